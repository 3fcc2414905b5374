from sqlalchemy import Column, Integer, String, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from welfare.core.database import Base
import enum


class EmailTemplate(str, enum.Enum):
    """Templated messages the association sends"""
    LOAN_APPLICATION = "loan-application"
    LOAN_APPROVAL = "loan-approval"
    DISBURSEMENT = "disbursement"
    PAYMENT_RECEIVED = "payment-received"
    CUSTOM = "custom"


class EmailStatus(str, enum.Enum):
    """Outcome of a delivery attempt"""
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # provider not configured


class EmailLog(Base):
    """
    One row per outbound email attempt.
    Delivery is best effort; failures are recorded here, not raised.
    """
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True)
    recipient = Column(String(255), nullable=False, index=True)
    template = Column(SQLEnum(EmailTemplate), nullable=False, index=True)
    subject = Column(String(255), nullable=False)

    status = Column(SQLEnum(EmailStatus), nullable=False, index=True)
    error_message = Column(Text, nullable=True)
    external_id = Column(String(255), nullable=True)  # SendGrid X-Message-Id

    # Related entity (optional), e.g. 'loan' / 42
    related_entity_type = Column(String(50), nullable=True)
    related_entity_id = Column(Integer, nullable=True)

    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<EmailLog(id={self.id}, template={self.template}, status={self.status})>"
