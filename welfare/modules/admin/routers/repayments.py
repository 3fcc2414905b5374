"""
Admin repayment review endpoints.
"""
from fastapi import APIRouter, Depends, Query, UploadFile, File, Form, status as http_status
from sqlalchemy.ext.asyncio import AsyncSession
from decimal import Decimal
from typing import Optional

from welfare.core.database import get_db
from welfare.core.dependencies import require_admin
from welfare.modules.members.models import Member
from welfare.modules.repayments.models import RepaymentStatus, PaymentMethod
from welfare.modules.repayments import schemas
from welfare.modules.repayments.services import RepaymentService
from welfare.modules.notifications.services import EmailDispatcher, get_email_dispatcher
from welfare.modules.storage.services import DocumentStorage, get_document_storage

router = APIRouter(prefix="/repayments", tags=["admin-repayments"])


@router.get("", response_model=schemas.RepaymentListResponse)
async def list_repayments(
    status: Optional[RepaymentStatus] = None,
    loan_id: Optional[int] = None,
    member_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    repayments, total = await RepaymentService.list_repayments(
        db, status=status, loan_id=loan_id, member_id=member_id,
        skip=(page - 1) * page_size, limit=page_size
    )
    return {"repayments": repayments, "total": total, "page": page, "page_size": page_size}


@router.get("/pending", response_model=schemas.RepaymentListResponse)
async def list_pending_repayments(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Submitted repayments waiting for review"""
    repayments, total = await RepaymentService.list_repayments(
        db, status=RepaymentStatus.PENDING, skip=(page - 1) * page_size, limit=page_size
    )
    return {"repayments": repayments, "total": total, "page": page, "page_size": page_size}


@router.post("/log", response_model=schemas.RepaymentReviewResponse, status_code=http_status.HTTP_201_CREATED)
async def log_payment(
    loan_id: int = Form(...),
    amount_paid: Decimal = Form(..., gt=0),
    payment_method: PaymentMethod = Form(PaymentMethod.CASH),
    reference: Optional[str] = Form(None, max_length=100),
    proof: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    storage: DocumentStorage = Depends(get_document_storage),
    admin: Member = Depends(require_admin)
):
    """
    Log a payment received at the office.

    The repayment is approved immediately and the loan balance updated.
    """
    return await RepaymentService.log_payment(
        db, dispatcher, storage, admin, loan_id, amount_paid, payment_method, reference, proof
    )


@router.post("/{repayment_id}/approve", response_model=schemas.RepaymentReviewResponse)
async def approve_repayment(
    repayment_id: int,
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    admin: Member = Depends(require_admin)
):
    return await RepaymentService.approve_repayment(db, dispatcher, repayment_id, admin)


@router.post("/{repayment_id}/reject", response_model=schemas.RepaymentResponse)
async def reject_repayment(
    repayment_id: int,
    data: schemas.RepaymentRejectRequest,
    db: AsyncSession = Depends(get_db),
    admin: Member = Depends(require_admin)
):
    return await RepaymentService.reject_repayment(db, repayment_id, admin, reason=data.reason)
