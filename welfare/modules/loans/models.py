from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from decimal import Decimal
from typing import NamedTuple
from welfare.core.database import Base
import enum


class LoanType(str, enum.Enum):
    """Loan products offered to members"""
    PERSONAL = "personal"
    BUSINESS = "business"
    EDUCATION = "education"


class LoanStatus(str, enum.Enum):
    """
    Loan lifecycle:
    pending -> approved -> disbursed -> partially_repaid -> fully_repaid
    pending -> rejected; any active state -> defaulted
    """
    PENDING = "pending"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    PARTIALLY_REPAID = "partially_repaid"
    FULLY_REPAID = "fully_repaid"
    DEFAULTED = "defaulted"
    REJECTED = "rejected"


class GuarantorStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class LoanTypeTerms(NamedTuple):
    interest_rate: Decimal  # annual percent
    min_repayment_period: int
    max_repayment_period: int


LOAN_TYPE_TERMS = {
    LoanType.PERSONAL: LoanTypeTerms(Decimal("10"), 1, 24),
    LoanType.BUSINESS: LoanTypeTerms(Decimal("12"), 1, 60),
    LoanType.EDUCATION: LoanTypeTerms(Decimal("8"), 1, 48),
}

# Set only by an administrator; never derived from repayments
ADMIN_ONLY_STATUSES = {LoanStatus.REJECTED, LoanStatus.DEFAULTED}

# Loans that can still receive repayments
REPAYABLE_STATUSES = {LoanStatus.APPROVED, LoanStatus.DISBURSED, LoanStatus.PARTIALLY_REPAID}


class Loan(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)

    loan_type = Column(SQLEnum(LoanType), nullable=False)
    amount_requested = Column(Numeric(15, 2), nullable=False)
    purpose = Column(String(255), nullable=False)
    repayment_period = Column(Integer, nullable=False)  # months
    interest_rate = Column(Numeric(5, 2), nullable=False)  # annual percent
    repayment_method = Column(String(50), default="checkoff", nullable=False)

    # Fixed at application time
    existing_loan_balance = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    monthly_installment = Column(Numeric(15, 2), nullable=False)
    total_due = Column(Numeric(15, 2), nullable=False)

    amount_disbursed = Column(Numeric(15, 2), nullable=True)
    status = Column(SQLEnum(LoanStatus), default=LoanStatus.PENDING, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    # Review
    reviewed_by = Column(Integer, nullable=True)  # Admin member ID
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    defaulted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    guarantors = relationship("Guarantor", back_populates="loan", lazy="selectin")

    def __repr__(self):
        return f"<Loan(id={self.id}, member_id={self.member_id}, status={self.status})>"


class Guarantor(Base):
    __tablename__ = "guarantors"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    guarantor_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    status = Column(SQLEnum(GuarantorStatus), default=GuarantorStatus.PENDING, nullable=False)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    loan = relationship("Loan", back_populates="guarantors")
