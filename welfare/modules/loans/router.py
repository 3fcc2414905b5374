from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from welfare.core.database import get_db
from welfare.core.dependencies import get_current_active_user, require_approved_member
from welfare.modules.members.models import Member
from welfare.modules.loans import schemas
from welfare.modules.loans.services import LoanService
from welfare.modules.notifications.services import EmailDispatcher, get_email_dispatcher

router = APIRouter(prefix="/api/v1/loans", tags=["loans"])


@router.get("/types", response_model=List[schemas.LoanTypeInfo])
async def list_loan_types():
    """Loan products with their annual rate and allowed repayment periods"""
    return LoanService.loan_types()


@router.post("/calculate", response_model=schemas.LoanCalculationResponse)
async def calculate_loan(request: schemas.LoanCalculationRequest):
    """
    Preview a loan before applying.

    - Uses the loan type's rate unless interest_rate is given
    - Pass overdue_days to preview the late-payment penalty on the total due
    """
    return LoanService.calculate(request)


@router.post("/apply", response_model=schemas.LoanResponse, status_code=status.HTTP_201_CREATED)
async def apply_for_loan(
    data: schemas.LoanApplicationRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    current_user: Member = Depends(require_approved_member)
):
    """
    Apply for a loan.

    - Requires an approved membership and a complete profile
    - The repayment period must fall within the loan type's range
    - An optional guarantor must be another approved member
    """
    return await LoanService.apply_for_loan(db, dispatcher, current_user, data)


@router.get("/guarantees", response_model=List[schemas.GuaranteeRequestResponse])
async def list_guarantee_requests(
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(get_current_active_user)
):
    """Loan applications naming the caller as guarantor"""
    return await LoanService.list_guarantee_requests(db, current_user.id)


@router.post("/guarantees/{guarantee_id}/accept", response_model=schemas.GuaranteeRequestResponse)
async def accept_guarantee(
    guarantee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(require_approved_member)
):
    return await LoanService.respond_to_guarantee(db, guarantee_id, current_user, accept=True)


@router.post("/guarantees/{guarantee_id}/decline", response_model=schemas.GuaranteeRequestResponse)
async def decline_guarantee(
    guarantee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(require_approved_member)
):
    return await LoanService.respond_to_guarantee(db, guarantee_id, current_user, accept=False)


@router.get("", response_model=List[schemas.LoanResponse])
async def list_my_loans(
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(get_current_active_user)
):
    return await LoanService.get_member_loans(db, current_user.id)


@router.get("/{loan_id}", response_model=schemas.LoanDetailResponse)
async def get_my_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(get_current_active_user)
):
    """Loan details with repayment history and current balance"""
    return await LoanService.get_loan_detail(db, loan_id, member_id=current_user.id)
