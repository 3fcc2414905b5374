from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from welfare.core.database import get_db
from welfare.core.dependencies import get_current_active_user
from welfare.modules.members.models import Member
from welfare.modules.statements import exporters
from welfare.modules.statements.schemas import Statement, StatementFormat
from welfare.modules.statements.services import member_statement

router = APIRouter(prefix="/api/v1/statements", tags=["statements"])


async def statement_response(statement: Statement, format: StatementFormat):
    """Return the statement as JSON or as a downloadable file"""
    if format == StatementFormat.JSON:
        return statement

    if format == StatementFormat.PDF:
        content = await run_in_threadpool(exporters.render_pdf, statement)
        media_type = exporters.PDF_MEDIA_TYPE
    else:
        content = await run_in_threadpool(exporters.render_xlsx, statement)
        media_type = exporters.XLSX_MEDIA_TYPE

    filename = exporters.statement_filename(statement, format.value)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("/me")
async def get_my_statement(
    format: StatementFormat = Query(StatementFormat.PDF),
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(get_current_active_user)
):
    """
    Download your loan statement.

    - format: pdf (default), xlsx or json
    """
    statement = await member_statement(db, current_user.id)
    return await statement_response(statement, format)
