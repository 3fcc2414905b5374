from fastapi import APIRouter, Depends, status, UploadFile, File, Form
from sqlalchemy.ext.asyncio import AsyncSession
from decimal import Decimal
from typing import List, Optional

from welfare.core.database import get_db
from welfare.core.dependencies import get_current_active_user
from welfare.modules.members.models import Member
from welfare.modules.repayments.models import PaymentMethod
from welfare.modules.repayments import schemas
from welfare.modules.repayments.services import RepaymentService
from welfare.modules.storage.services import DocumentStorage, get_document_storage

router = APIRouter(prefix="/api/v1/repayments", tags=["repayments"])


@router.post("", response_model=schemas.RepaymentResponse, status_code=status.HTTP_201_CREATED)
async def submit_repayment(
    loan_id: int = Form(...),
    amount_paid: Decimal = Form(..., gt=0),
    payment_method: PaymentMethod = Form(PaymentMethod.MPESA),
    reference: Optional[str] = Form(None, max_length=100),
    proof: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    storage: DocumentStorage = Depends(get_document_storage),
    current_user: Member = Depends(get_current_active_user)
):
    """
    Submit a repayment with proof of payment.

    - The loan must be approved, disbursed or partially repaid
    - The repayment stays pending until an administrator approves it
    """
    return await RepaymentService.submit_repayment(
        db, storage, current_user, loan_id, amount_paid, payment_method, proof, reference
    )


@router.get("", response_model=List[schemas.RepaymentResponse])
async def get_repayment_history(
    loan_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(get_current_active_user)
):
    return await RepaymentService.get_member_repayments(db, current_user.id, loan_id)
