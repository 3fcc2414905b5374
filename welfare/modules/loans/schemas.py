from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal

from welfare.modules.loans.models import LoanType, LoanStatus, GuarantorStatus
from welfare.modules.repayments.schemas import RepaymentResponse


class LoanTypeInfo(BaseModel):
    loan_type: LoanType
    interest_rate: Decimal
    min_repayment_period: int
    max_repayment_period: int


# Calculator
class LoanCalculationRequest(BaseModel):
    """Preview of installment and total due; either loan_type or interest_rate"""
    amount: Decimal = Field(..., gt=0)
    repayment_period: int = Field(..., ge=1, le=360)
    loan_type: Optional[LoanType] = None
    interest_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    overdue_days: Optional[int] = Field(None, ge=0)
    penalty_rate: Optional[Decimal] = Field(None, ge=0, le=100)

    @model_validator(mode='after')
    def require_rate_source(self):
        if self.loan_type is None and self.interest_rate is None:
            raise ValueError('Either loan_type or interest_rate is required')
        return self


class LoanCalculationResponse(BaseModel):
    amount: Decimal
    interest_rate: Decimal
    repayment_period: int
    monthly_installment: Decimal
    total_due: Decimal
    total_interest: Decimal
    penalty: Optional[Decimal] = None


# Application
class LoanApplicationRequest(BaseModel):
    loan_type: LoanType
    amount_requested: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    purpose: str = Field(..., min_length=3, max_length=255)
    repayment_period: int = Field(..., ge=1)
    repayment_method: str = Field("checkoff", max_length=50)
    guarantor_id: Optional[int] = None
    guarantor_message: Optional[str] = Field(None, max_length=2000)


class GuarantorResponse(BaseModel):
    id: int
    guarantor_id: int
    status: GuarantorStatus
    created_at: datetime
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoanResponse(BaseModel):
    """Loan record with ledger figures recomputed from approved repayments"""
    id: int
    member_id: int
    loan_type: LoanType
    amount_requested: Decimal
    purpose: str
    repayment_period: int
    interest_rate: Decimal
    repayment_method: str
    existing_loan_balance: Decimal
    monthly_installment: Decimal
    total_due: Decimal
    amount_disbursed: Optional[Decimal] = None
    status: LoanStatus
    notes: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    disbursed_at: Optional[datetime] = None
    defaulted_at: Optional[datetime] = None
    created_at: datetime
    total_paid: Decimal = Decimal("0.00")
    balance_due: Decimal = Decimal("0.00")

    class Config:
        from_attributes = True


class LoanDetailResponse(LoanResponse):
    repayments: List[RepaymentResponse] = []
    guarantors: List[GuarantorResponse] = []


class LoanListResponse(BaseModel):
    loans: List[LoanResponse]
    total: int
    page: int
    page_size: int


# Admin actions
class LoanRejectRequest(BaseModel):
    reason: str = Field(..., min_length=5, max_length=1000)


class LoanDisburseRequest(BaseModel):
    """Defaults to the requested amount when omitted"""
    amount: Optional[Decimal] = Field(None, gt=0)


class LoanDefaultRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class LoanNotesRequest(BaseModel):
    notes: str = Field(..., max_length=5000)


class LoanStatsResponse(BaseModel):
    by_status: Dict[str, int]
    total_requested: Decimal
    total_disbursed: Decimal
    total_due: Decimal
    total_paid: Decimal
    outstanding: Decimal


# Guarantees
class GuaranteeRequestResponse(BaseModel):
    """A loan the caller has been asked to guarantee"""
    id: int
    loan_id: int
    applicant_name: str
    amount_requested: Decimal
    loan_status: LoanStatus
    status: GuarantorStatus
    created_at: datetime
    responded_at: Optional[datetime] = None
