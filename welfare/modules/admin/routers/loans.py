"""
Admin loan management endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from welfare.core.database import get_db
from welfare.core.dependencies import require_admin
from welfare.modules.members.models import Member
from welfare.modules.loans.models import LoanStatus, LoanType
from welfare.modules.loans import schemas
from welfare.modules.loans.services import LoanService
from welfare.modules.notifications.services import EmailDispatcher, get_email_dispatcher

router = APIRouter(prefix="/loans", tags=["admin-loans"])


@router.get("", response_model=schemas.LoanListResponse)
async def list_loans(
    status: Optional[LoanStatus] = None,
    member_id: Optional[int] = None,
    loan_type: Optional[LoanType] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """List all loans with filtering"""
    loans, total = await LoanService.list_loans(
        db, status=status, member_id=member_id, loan_type=loan_type,
        skip=(page - 1) * page_size, limit=page_size
    )
    return {"loans": loans, "total": total, "page": page, "page_size": page_size}


@router.get("/pending", response_model=schemas.LoanListResponse)
async def list_pending_loans(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """List loans pending approval"""
    loans, total = await LoanService.list_loans(
        db, status=LoanStatus.PENDING, skip=(page - 1) * page_size, limit=page_size, oldest_first=True
    )
    return {"loans": loans, "total": total, "page": page, "page_size": page_size}


@router.get("/stats", response_model=schemas.LoanStatsResponse)
async def get_loan_stats(db: AsyncSession = Depends(get_db)):
    """Get loan statistics"""
    return await LoanService.loan_stats(db)


@router.get("/{loan_id}", response_model=schemas.LoanDetailResponse)
async def get_loan(loan_id: int, db: AsyncSession = Depends(get_db)):
    """Get loan details with guarantors and repayments"""
    return await LoanService.get_loan_detail(db, loan_id)


@router.post("/{loan_id}/approve", response_model=schemas.LoanResponse)
async def approve_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    admin: Member = Depends(require_admin)
):
    return await LoanService.review_loan(db, dispatcher, loan_id, admin, approve=True)


@router.post("/{loan_id}/reject", response_model=schemas.LoanResponse)
async def reject_loan(
    loan_id: int,
    data: schemas.LoanRejectRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    admin: Member = Depends(require_admin)
):
    return await LoanService.review_loan(db, dispatcher, loan_id, admin, approve=False, reason=data.reason)


@router.post("/{loan_id}/disburse", response_model=schemas.LoanResponse)
async def disburse_loan(
    loan_id: int,
    data: schemas.LoanDisburseRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    admin: Member = Depends(require_admin)
):
    """Record the payout; defaults to the requested amount"""
    return await LoanService.disburse_loan(db, dispatcher, loan_id, admin, amount=data.amount)


@router.post("/{loan_id}/default", response_model=schemas.LoanResponse)
async def mark_loan_defaulted(
    loan_id: int,
    data: schemas.LoanDefaultRequest,
    db: AsyncSession = Depends(get_db),
    admin: Member = Depends(require_admin)
):
    return await LoanService.mark_defaulted(db, loan_id, admin, reason=data.reason)


@router.put("/{loan_id}/notes", response_model=schemas.LoanResponse)
async def update_loan_notes(
    loan_id: int,
    data: schemas.LoanNotesRequest,
    db: AsyncSession = Depends(get_db)
):
    return await LoanService.update_notes(db, loan_id, data.notes)
