from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from welfare.modules.repayments.models import RepaymentStatus, PaymentMethod


class RepaymentResponse(BaseModel):
    id: int
    loan_id: int
    member_id: int
    amount_paid: Optional[Decimal] = None
    payment_method: PaymentMethod
    reference: Optional[str] = None
    proof_url: Optional[str] = None
    status: RepaymentStatus
    rejection_reason: Optional[str] = None
    logged_by: Optional[int] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RepaymentListResponse(BaseModel):
    repayments: List[RepaymentResponse]
    total: int
    page: int
    page_size: int


class RepaymentRejectRequest(BaseModel):
    reason: str = Field(..., min_length=5, max_length=1000)


class RepaymentReviewResponse(BaseModel):
    """Outcome of a review, with the loan figures after reconciliation"""
    repayment: RepaymentResponse
    loan_status: str
    total_paid: Decimal
    balance_due: Decimal
