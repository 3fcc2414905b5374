from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from starlette.concurrency import run_in_threadpool
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, From
from typing import Optional, List, Protocol
from datetime import datetime, timezone
from decimal import Decimal
import logging

from welfare.core.config import settings
from welfare.core.exceptions import InvalidArgument
from welfare.core.security import mask_email
from welfare.modules.notifications import templates
from welfare.modules.notifications.models import EmailLog, EmailTemplate, EmailStatus

logger = logging.getLogger(__name__)


class EmailTransport(Protocol):
    configured: bool

    def deliver(self, to: str, subject: str, html: str) -> Optional[str]:
        """Send one message; return the provider message id"""


class SendGridTransport:
    """Delivers mail through the SendGrid v3 API"""

    def __init__(self, api_key: str = None, from_email: str = None, from_name: str = None):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.from_email = from_email or settings.SENDGRID_FROM_EMAIL
        self.from_name = from_name or settings.SENDGRID_FROM_NAME

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def deliver(self, to: str, subject: str, html: str) -> Optional[str]:
        message = Mail(
            from_email=From(self.from_email, self.from_name),
            to_emails=to,
            subject=subject,
            html_content=html
        )
        response = SendGridAPIClient(self.api_key).send(message)
        return response.headers.get("X-Message-Id", "")


class EmailDispatcher:
    """
    Renders association templates and sends them.

    Sending never raises: the outcome is written to EmailLog and logged, so a
    loan or repayment change that triggered the email is never undone by a
    mail outage.
    """

    def __init__(self, transport: EmailTransport = None):
        self.transport = transport or SendGridTransport()

    async def send(
        self,
        db: AsyncSession,
        to: str,
        template: EmailTemplate,
        subject: str,
        html: str,
        related_entity_type: str = None,
        related_entity_id: int = None
    ) -> EmailLog:
        log = EmailLog(
            recipient=to,
            template=template,
            subject=subject[:255],
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
        )

        if not self.transport.configured:
            logger.warning("Email provider not configured, skipping email")
            log.status = EmailStatus.SKIPPED
            log.error_message = "Email provider not configured"
        else:
            try:
                log.external_id = await run_in_threadpool(self.transport.deliver, to, subject, html)
                log.status = EmailStatus.SENT
                log.sent_at = datetime.now(timezone.utc)
                logger.info(f"Email '{template.value}' sent to {mask_email(to)}")
            except Exception as e:
                logger.error(f"Email '{template.value}' to {mask_email(to)} failed: {str(e)}")
                log.status = EmailStatus.FAILED
                log.error_message = str(e)

        db.add(log)
        await db.flush()
        await db.refresh(log)
        return log

    async def send_template(
        self,
        db: AsyncSession,
        to: str,
        template: EmailTemplate,
        loan_id: int = None,
        approved: bool = None,
        amount: Decimal = None,
        subject: str = None,
        message: str = None
    ) -> EmailLog:
        """Render one of the named templates from loose arguments"""
        if template == EmailTemplate.LOAN_APPLICATION:
            if loan_id is None:
                raise InvalidArgument("loan_id is required for loan-application emails")
            subject, html = templates.loan_application(loan_id)
        elif template == EmailTemplate.LOAN_APPROVAL:
            if approved is None:
                raise InvalidArgument("approved is required for loan-approval emails")
            subject, html = templates.loan_approval(approved)
        elif template == EmailTemplate.DISBURSEMENT:
            if amount is None:
                raise InvalidArgument("amount is required for disbursement emails")
            subject, html = templates.disbursement(amount)
        elif template == EmailTemplate.PAYMENT_RECEIVED:
            if amount is None:
                raise InvalidArgument("amount is required for payment-received emails")
            subject, html = templates.payment_received(amount)
        else:
            if not subject or not message:
                raise InvalidArgument("subject and message are required for custom emails")
            subject, html = templates.custom(subject, message)

        related_type = "loan" if loan_id is not None else None
        return await self.send(db, to, template, subject, html, related_type, loan_id)

    async def loan_application(self, db: AsyncSession, to: str, loan_id: int) -> EmailLog:
        subject, html = templates.loan_application(loan_id)
        return await self.send(db, to, EmailTemplate.LOAN_APPLICATION, subject, html, "loan", loan_id)

    async def loan_decision(self, db: AsyncSession, to: str, loan_id: int, approved: bool) -> EmailLog:
        subject, html = templates.loan_approval(approved)
        return await self.send(db, to, EmailTemplate.LOAN_APPROVAL, subject, html, "loan", loan_id)

    async def disbursement(self, db: AsyncSession, to: str, loan_id: int, amount: Decimal) -> EmailLog:
        subject, html = templates.disbursement(amount)
        return await self.send(db, to, EmailTemplate.DISBURSEMENT, subject, html, "loan", loan_id)

    async def payment_received(self, db: AsyncSession, to: str, repayment_id: int, amount: Decimal) -> EmailLog:
        subject, html = templates.payment_received(amount)
        return await self.send(db, to, EmailTemplate.PAYMENT_RECEIVED, subject, html, "repayment", repayment_id)

    async def custom(
        self,
        db: AsyncSession,
        to: str,
        subject: str,
        html: str,
        related_entity_type: str = None,
        related_entity_id: int = None
    ) -> EmailLog:
        return await self.send(db, to, EmailTemplate.CUSTOM, subject, html, related_entity_type, related_entity_id)


async def list_email_logs(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 50,
    recipient: Optional[str] = None,
    status: Optional[EmailStatus] = None
) -> tuple[List[EmailLog], int]:
    """Email log entries, newest first"""
    query = select(EmailLog)
    if recipient:
        query = query.where(EmailLog.recipient == recipient)
    if status:
        query = query.where(EmailLog.status == status)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    query = query.order_by(EmailLog.id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total or 0


def get_email_dispatcher() -> EmailDispatcher:
    """FastAPI dependency; tests override it with a recording transport"""
    return EmailDispatcher()
