from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from welfare.core.database import Base
import enum


class RepaymentStatus(str, enum.Enum):
    """Only approved repayments reduce a loan balance"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(str, enum.Enum):
    MPESA = "mpesa"
    BANK_TRANSFER = "bank_transfer"
    CHECKOFF = "checkoff"
    CASH = "cash"


class Repayment(Base):
    __tablename__ = "repayments"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)

    amount_paid = Column(Numeric(15, 2), nullable=True)
    payment_method = Column(SQLEnum(PaymentMethod), default=PaymentMethod.MPESA, nullable=False)
    reference = Column(String(100), nullable=True)  # M-Pesa code, bank slip number
    proof_url = Column(String(500), nullable=True)

    status = Column(SQLEnum(RepaymentStatus), default=RepaymentStatus.PENDING, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)

    logged_by = Column(Integer, nullable=True)  # Admin member ID when entered by the office
    reviewed_by = Column(Integer, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Repayment(id={self.id}, loan_id={self.loan_id}, status={self.status})>"
