from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fastapi import UploadFile
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List
import logging

from welfare.core.exceptions import InvalidArgument, InvalidState, NotFound
from welfare.modules.loans.models import Loan, REPAYABLE_STATUSES
from welfare.modules.loans.services import LoanService
from welfare.modules.members.models import Member
from welfare.modules.notifications.services import EmailDispatcher
from welfare.modules.repayments.models import Repayment, RepaymentStatus, PaymentMethod
from welfare.modules.repayments import schemas
from welfare.modules.storage.schemas import DocumentCategory
from welfare.modules.storage.services import DocumentStorage

logger = logging.getLogger(__name__)


class RepaymentService:
    """Service layer for repayment submission, review and reconciliation"""

    @staticmethod
    def _check_amount(amount: Decimal) -> None:
        if amount is None or not amount.is_finite() or amount <= 0:
            raise InvalidArgument("Amount paid must be greater than zero")

    @staticmethod
    def _check_repayable(loan: Loan) -> None:
        if loan.status not in REPAYABLE_STATUSES:
            raise InvalidState(f"Repayments are not accepted for {loan.status.value} loans")

    @staticmethod
    async def submit_repayment(
        db: AsyncSession,
        storage: DocumentStorage,
        member: Member,
        loan_id: int,
        amount_paid: Decimal,
        payment_method: PaymentMethod,
        proof: UploadFile,
        reference: Optional[str] = None
    ) -> Repayment:
        """Record a member's payment with proof; it waits for administrator approval"""
        RepaymentService._check_amount(amount_paid)

        loan = await LoanService.get_loan(db, loan_id)
        if loan.member_id != member.id:
            raise NotFound("Loan not found")
        RepaymentService._check_repayable(loan)

        stored = await storage.save(proof, member.id, DocumentCategory.PROOF_OF_PAYMENT)

        repayment = Repayment(
            loan_id=loan.id,
            member_id=member.id,
            amount_paid=amount_paid,
            payment_method=payment_method,
            reference=reference,
            proof_url=stored.url,
            status=RepaymentStatus.PENDING
        )
        db.add(repayment)
        await db.commit()
        await db.refresh(repayment)

        logger.info(f"Repayment {repayment.id} of {amount_paid} submitted for loan {loan.id}")
        return repayment

    @staticmethod
    async def get_member_repayments(
        db: AsyncSession,
        member_id: int,
        loan_id: Optional[int] = None
    ) -> List[Repayment]:
        query = select(Repayment).where(Repayment.member_id == member_id)
        if loan_id:
            query = query.where(Repayment.loan_id == loan_id)
        result = await db.execute(query.order_by(Repayment.created_at.desc(), Repayment.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def list_repayments(
        db: AsyncSession,
        status: Optional[RepaymentStatus] = None,
        loan_id: Optional[int] = None,
        member_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 20
    ) -> tuple[List[Repayment], int]:
        query = select(Repayment)
        if status:
            query = query.where(Repayment.status == status)
        if loan_id:
            query = query.where(Repayment.loan_id == loan_id)
        if member_id:
            query = query.where(Repayment.member_id == member_id)

        total = await db.scalar(select(func.count()).select_from(query.subquery()))

        query = query.order_by(Repayment.created_at.desc(), Repayment.id.desc()).offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all()), total or 0

    @staticmethod
    async def _get_for_review(db: AsyncSession, repayment_id: int) -> Repayment:
        result = await db.execute(
            select(Repayment).where(Repayment.id == repayment_id).with_for_update()
        )
        repayment = result.scalar_one_or_none()
        if not repayment:
            raise NotFound("Repayment not found")
        if repayment.status != RepaymentStatus.PENDING:
            raise InvalidState(f"Repayment is already {repayment.status.value}")
        return repayment

    @staticmethod
    async def _settle(
        db: AsyncSession,
        dispatcher: EmailDispatcher,
        repayment: Repayment
    ) -> schemas.RepaymentReviewResponse:
        """Reconcile the loan after an approved repayment and notify the member"""
        loan, summary = await LoanService.reconcile_loan(db, repayment.loan_id)
        await db.commit()
        await db.refresh(repayment)

        result = await db.execute(select(Member).where(Member.id == repayment.member_id))
        member = result.scalar_one_or_none()
        if member:
            await dispatcher.payment_received(db, member.email, repayment.id, repayment.amount_paid or Decimal("0"))
            await db.commit()

        return schemas.RepaymentReviewResponse(
            repayment=schemas.RepaymentResponse.model_validate(repayment),
            loan_status=loan.status.value,
            total_paid=summary.total_paid,
            balance_due=summary.balance_due
        )

    @staticmethod
    async def approve_repayment(
        db: AsyncSession,
        dispatcher: EmailDispatcher,
        repayment_id: int,
        admin: Member
    ) -> schemas.RepaymentReviewResponse:
        """
        Approve a pending repayment.

        Approving the same repayment twice is refused, so the balance can
        only ever move once per repayment.
        """
        repayment = await RepaymentService._get_for_review(db, repayment_id)

        repayment.status = RepaymentStatus.APPROVED
        repayment.reviewed_by = admin.id
        repayment.reviewed_at = datetime.now(timezone.utc)
        await db.flush()

        logger.info(f"Repayment {repayment.id} approved by admin {admin.id}")
        return await RepaymentService._settle(db, dispatcher, repayment)

    @staticmethod
    async def reject_repayment(
        db: AsyncSession,
        repayment_id: int,
        admin: Member,
        reason: Optional[str] = None
    ) -> Repayment:
        """Reject a pending repayment; the record is kept and never counts"""
        repayment = await RepaymentService._get_for_review(db, repayment_id)

        repayment.status = RepaymentStatus.REJECTED
        repayment.rejection_reason = reason
        repayment.reviewed_by = admin.id
        repayment.reviewed_at = datetime.now(timezone.utc)

        await db.commit()
        await db.refresh(repayment)
        logger.info(f"Repayment {repayment.id} rejected by admin {admin.id}")
        return repayment

    @staticmethod
    async def log_payment(
        db: AsyncSession,
        dispatcher: EmailDispatcher,
        storage: DocumentStorage,
        admin: Member,
        loan_id: int,
        amount_paid: Decimal,
        payment_method: PaymentMethod,
        reference: Optional[str] = None,
        proof: Optional[UploadFile] = None
    ) -> schemas.RepaymentReviewResponse:
        """Record a payment received by the office; it counts immediately"""
        RepaymentService._check_amount(amount_paid)

        loan = await LoanService.get_loan(db, loan_id)
        RepaymentService._check_repayable(loan)

        proof_url = None
        if proof is not None and proof.filename:
            proof_url = (await storage.save(proof, loan.member_id, DocumentCategory.PROOF_OF_PAYMENT)).url

        now = datetime.now(timezone.utc)
        repayment = Repayment(
            loan_id=loan.id,
            member_id=loan.member_id,
            amount_paid=amount_paid,
            payment_method=payment_method,
            reference=reference,
            proof_url=proof_url,
            status=RepaymentStatus.APPROVED,
            logged_by=admin.id,
            reviewed_by=admin.id,
            reviewed_at=now
        )
        db.add(repayment)
        await db.flush()

        logger.info(f"Payment {repayment.id} of {amount_paid} logged for loan {loan.id} by admin {admin.id}")
        return await RepaymentService._settle(db, dispatcher, repayment)
