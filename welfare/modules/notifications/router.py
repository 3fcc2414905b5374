from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from welfare.core.database import get_db
from welfare.core.dependencies import require_admin
from welfare.core.exceptions import InvalidArgument, UpstreamFailure
from welfare.modules.members.models import Member
from welfare.modules.notifications import schemas
from welfare.modules.notifications.models import EmailStatus, EmailTemplate
from welfare.modules.notifications.services import EmailDispatcher, get_email_dispatcher, list_email_logs

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.post("/send-email", response_model=schemas.SendEmailResponse)
async def send_email(
    request: schemas.SendEmailRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    current_user: Member = Depends(require_admin)
):
    """
    Send an association email to any address.

    - type: loan-application, loan-approval, disbursement, payment-received or custom
    - Reports the delivery outcome; a provider failure is a 502
    """
    try:
        template = EmailTemplate(request.type)
    except ValueError:
        raise InvalidArgument(f"Unknown email type: {request.type}")

    log = await dispatcher.send_template(
        db,
        request.email,
        template,
        loan_id=request.loan_id,
        approved=request.approved,
        amount=request.amount,
        subject=request.subject,
        message=request.message
    )
    # Keep the log entry even when delivery failed
    await db.commit()

    if log.status == EmailStatus.FAILED:
        raise UpstreamFailure(f"Failed to send email: {log.error_message}")

    message = "Email sent successfully" if log.status == EmailStatus.SENT else "Email provider not configured; email skipped"
    return schemas.SendEmailResponse(
        success=log.status == EmailStatus.SENT,
        message=message,
        log=schemas.EmailLogResponse.model_validate(log)
    )


@router.get("/logs", response_model=schemas.EmailLogListResponse)
async def get_email_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    recipient: Optional[str] = None,
    status: Optional[EmailStatus] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(require_admin)
):
    logs, total = await list_email_logs(db, skip=(page - 1) * limit, limit=limit, recipient=recipient, status=status)
    return {"logs": logs, "total": total, "page": page, "limit": limit}
