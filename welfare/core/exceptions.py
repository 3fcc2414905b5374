"""
Domain error taxonomy and the FastAPI handlers that translate it to HTTP.

Services raise these instead of HTTPException so they stay usable outside
a request (scripts, tests, background jobs).
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class WelfareError(Exception):
    """Base class for all domain errors"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidArgument(WelfareError, ValueError):
    """Bad input: negative amounts, non-positive terms, malformed records"""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(WelfareError, LookupError):
    """Requested record does not exist"""
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDenied(WelfareError):
    """Caller may not act on this record"""
    status_code = status.HTTP_403_FORBIDDEN


class InvalidState(WelfareError):
    """Record is not in a state that allows the requested transition"""
    status_code = status.HTTP_409_CONFLICT


class UpstreamFailure(WelfareError, RuntimeError):
    """Record store, document storage or email provider failed"""
    status_code = status.HTTP_502_BAD_GATEWAY


async def welfare_error_handler(request: Request, exc: WelfareError) -> JSONResponse:
    if isinstance(exc, UpstreamFailure):
        logger.error(f"Upstream failure on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_exception_handlers(app: FastAPI) -> None:
    """Attach domain error handlers to the application"""
    app.add_exception_handler(WelfareError, welfare_error_handler)
