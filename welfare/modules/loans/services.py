from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Dict, Iterable
import logging

from welfare.core.config import settings
from welfare.core.exceptions import InvalidArgument, InvalidState, NotFound, PermissionDenied
from welfare.modules.loans.models import (
    Loan, Guarantor, GuarantorStatus, LoanType, LoanStatus, LOAN_TYPE_TERMS, REPAYABLE_STATUSES
)
from welfare.modules.loans import calculator
from welfare.modules.loans.calculator import LedgerLoan, LedgerRepayment, LedgerSummary
from welfare.modules.loans import schemas
from welfare.modules.members.models import Member, MemberRole, MembershipStatus
from welfare.modules.notifications import templates
from welfare.modules.notifications.services import EmailDispatcher
from welfare.modules.repayments.models import Repayment, RepaymentStatus
from welfare.modules.repayments.schemas import RepaymentResponse

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Loans whose balance still counts toward the portfolio
OUTSTANDING_STATUSES = REPAYABLE_STATUSES | {LoanStatus.DEFAULTED}


class LoanService:
    """Service layer for loan applications, ledger figures and admin decisions"""

    # Calculator

    @staticmethod
    def loan_types() -> List[schemas.LoanTypeInfo]:
        return [
            schemas.LoanTypeInfo(
                loan_type=loan_type,
                interest_rate=terms.interest_rate,
                min_repayment_period=terms.min_repayment_period,
                max_repayment_period=terms.max_repayment_period
            )
            for loan_type, terms in LOAN_TYPE_TERMS.items()
        ]

    @staticmethod
    def calculate(request: schemas.LoanCalculationRequest) -> schemas.LoanCalculationResponse:
        """Installment, total due and optional penalty preview for a proposed loan"""
        if request.interest_rate is not None:
            rate = request.interest_rate
        else:
            rate = LOAN_TYPE_TERMS[request.loan_type].interest_rate

        installment = calculator.compute_monthly_installment(request.amount, rate, request.repayment_period)
        total_due = calculator.compute_total_due(installment, request.repayment_period)

        penalty = None
        if request.overdue_days is not None:
            penalty_rate = request.penalty_rate
            if penalty_rate is None:
                penalty_rate = Decimal(str(settings.DEFAULT_PENALTY_RATE))
            penalty = calculator.compute_penalty(request.overdue_days, penalty_rate, total_due)

        return schemas.LoanCalculationResponse(
            amount=request.amount,
            interest_rate=rate,
            repayment_period=request.repayment_period,
            monthly_installment=installment,
            total_due=total_due,
            total_interest=total_due - request.amount,
            penalty=penalty
        )

    # Ledger

    @staticmethod
    def ledger_summary(loan: Loan, repayments: Iterable[Repayment]) -> LedgerSummary:
        """Fresh totals for one loan from its repayment records"""
        return calculator.summarize(
            LedgerLoan.model_validate(loan),
            [LedgerRepayment.model_validate(r) for r in repayments],
            clamp_to_zero=settings.CLAMP_OVERPAID_BALANCE
        )

    @staticmethod
    async def repayments_by_loan(
        db: AsyncSession,
        loan_ids: List[int],
        approved_only: bool = False
    ) -> Dict[int, List[Repayment]]:
        grouped: Dict[int, List[Repayment]] = {loan_id: [] for loan_id in loan_ids}
        if not loan_ids:
            return grouped

        query = select(Repayment).where(Repayment.loan_id.in_(loan_ids))
        if approved_only:
            query = query.where(Repayment.status == RepaymentStatus.APPROVED)
        result = await db.execute(query.order_by(Repayment.created_at, Repayment.id))
        for repayment in result.scalars().all():
            grouped[repayment.loan_id].append(repayment)
        return grouped

    @staticmethod
    def to_response(loan: Loan, repayments: Iterable[Repayment]) -> schemas.LoanResponse:
        summary = LoanService.ledger_summary(loan, repayments)
        response = schemas.LoanResponse.model_validate(loan)
        response.total_paid = summary.total_paid
        response.balance_due = summary.balance_due
        response.status = summary.status
        return response

    @staticmethod
    async def reconcile_loan(db: AsyncSession, loan_id: int) -> tuple[Loan, LedgerSummary]:
        """
        Re-derive a loan's status from its complete approved-repayment history.

        The loan row is locked first, so concurrent approvals on the same loan
        each see every repayment committed before them.
        """
        result = await db.execute(select(Loan).where(Loan.id == loan_id).with_for_update())
        loan = result.scalar_one_or_none()
        if not loan:
            raise NotFound("Loan not found")

        grouped = await LoanService.repayments_by_loan(db, [loan.id], approved_only=True)
        summary = LoanService.ledger_summary(loan, grouped[loan.id])

        if summary.status != loan.status:
            logger.info(f"Loan {loan.id} status {loan.status.value} -> {summary.status.value}")
            loan.status = summary.status
        await db.flush()
        await db.refresh(loan)
        return loan, summary

    @staticmethod
    async def outstanding_balance(db: AsyncSession, member_id: int) -> Decimal:
        """Balance still owed on the member's active loans"""
        result = await db.execute(
            select(Loan).where(
                Loan.member_id == member_id,
                Loan.status.in_(REPAYABLE_STATUSES)
            )
        )
        loans = list(result.scalars().all())
        grouped = await LoanService.repayments_by_loan(db, [loan.id for loan in loans], approved_only=True)

        total = ZERO
        for loan in loans:
            balance = LoanService.ledger_summary(loan, grouped[loan.id]).balance_due
            if balance > 0:
                total += balance
        return total

    # Member operations

    @staticmethod
    async def apply_for_loan(
        db: AsyncSession,
        dispatcher: EmailDispatcher,
        member: Member,
        data: schemas.LoanApplicationRequest
    ) -> schemas.LoanResponse:
        """Create a pending loan with its installment and total due fixed"""
        if member.status != MembershipStatus.APPROVED:
            raise PermissionDenied("Only approved members can apply for loans")

        missing = member.missing_profile_fields()
        if missing:
            raise PermissionDenied(f"Complete your profile before applying. Missing: {', '.join(missing)}")

        terms = LOAN_TYPE_TERMS[data.loan_type]
        if not terms.min_repayment_period <= data.repayment_period <= terms.max_repayment_period:
            raise InvalidArgument(
                f"Repayment period for {data.loan_type.value} loans must be between "
                f"{terms.min_repayment_period} and {terms.max_repayment_period} months"
            )

        guarantor = None
        if data.guarantor_id is not None:
            if data.guarantor_id == member.id:
                raise InvalidArgument("You cannot guarantee your own loan")
            result = await db.execute(select(Member).where(Member.id == data.guarantor_id))
            guarantor = result.scalar_one_or_none()
            if (
                not guarantor
                or guarantor.role != MemberRole.MEMBER
                or guarantor.status != MembershipStatus.APPROVED
            ):
                raise InvalidArgument("Guarantor must be an approved member")

        installment = calculator.compute_monthly_installment(
            data.amount_requested, terms.interest_rate, data.repayment_period
        )

        loan = Loan(
            member_id=member.id,
            loan_type=data.loan_type,
            amount_requested=data.amount_requested,
            purpose=data.purpose,
            repayment_period=data.repayment_period,
            interest_rate=terms.interest_rate,
            repayment_method=data.repayment_method,
            existing_loan_balance=await LoanService.outstanding_balance(db, member.id),
            monthly_installment=installment,
            total_due=calculator.compute_total_due(installment, data.repayment_period),
            status=LoanStatus.PENDING
        )
        db.add(loan)
        await db.flush()

        if guarantor:
            db.add(Guarantor(loan_id=loan.id, guarantor_id=guarantor.id))

        await db.commit()
        await db.refresh(loan)
        logger.info(f"Loan application {loan.id} submitted by member {member.id}")

        if guarantor:
            subject, html = templates.guarantor_request(
                member.full_name, loan.amount_requested, loan.id, note=data.guarantor_message
            )
            await dispatcher.custom(db, guarantor.email, subject, html, "loan", loan.id)
        await dispatcher.loan_application(db, member.email, loan.id)
        await db.commit()

        return LoanService.to_response(loan, [])

    @staticmethod
    async def get_loan(db: AsyncSession, loan_id: int) -> Loan:
        result = await db.execute(select(Loan).where(Loan.id == loan_id))
        loan = result.scalar_one_or_none()
        if not loan:
            raise NotFound("Loan not found")
        return loan

    @staticmethod
    async def get_member_loans(db: AsyncSession, member_id: int) -> List[schemas.LoanResponse]:
        """The member's loans, newest first, with fresh totals"""
        result = await db.execute(
            select(Loan).where(Loan.member_id == member_id).order_by(Loan.created_at.desc(), Loan.id.desc())
        )
        loans = list(result.scalars().all())
        grouped = await LoanService.repayments_by_loan(db, [loan.id for loan in loans])
        return [LoanService.to_response(loan, grouped[loan.id]) for loan in loans]

    @staticmethod
    async def get_loan_detail(
        db: AsyncSession,
        loan_id: int,
        member_id: Optional[int] = None
    ) -> schemas.LoanDetailResponse:
        """One loan with its repayments; member_id restricts to the owner's loans"""
        loan = await LoanService.get_loan(db, loan_id)
        if member_id is not None and loan.member_id != member_id:
            raise NotFound("Loan not found")

        grouped = await LoanService.repayments_by_loan(db, [loan.id])
        guarantor_result = await db.execute(select(Guarantor).where(Guarantor.loan_id == loan.id))

        base = LoanService.to_response(loan, grouped[loan.id])
        return schemas.LoanDetailResponse(
            **base.model_dump(),
            repayments=[RepaymentResponse.model_validate(r) for r in grouped[loan.id]],
            guarantors=[schemas.GuarantorResponse.model_validate(g) for g in guarantor_result.scalars().all()]
        )

    # Guarantees

    @staticmethod
    def _guarantee_response(guarantee: Guarantor, loan: Loan, applicant: Member) -> schemas.GuaranteeRequestResponse:
        return schemas.GuaranteeRequestResponse(
            id=guarantee.id,
            loan_id=loan.id,
            applicant_name=applicant.full_name,
            amount_requested=loan.amount_requested,
            loan_status=loan.status,
            status=guarantee.status,
            created_at=guarantee.created_at,
            responded_at=guarantee.responded_at
        )

    @staticmethod
    async def list_guarantee_requests(db: AsyncSession, member_id: int) -> List[schemas.GuaranteeRequestResponse]:
        """Loans the member has been named on as guarantor, newest first"""
        result = await db.execute(
            select(Guarantor, Loan, Member)
            .join(Loan, Guarantor.loan_id == Loan.id)
            .join(Member, Loan.member_id == Member.id)
            .where(Guarantor.guarantor_id == member_id)
            .order_by(Guarantor.created_at.desc(), Guarantor.id.desc())
        )
        return [LoanService._guarantee_response(g, loan, applicant) for g, loan, applicant in result.all()]

    @staticmethod
    async def respond_to_guarantee(
        db: AsyncSession,
        guarantee_id: int,
        member: Member,
        accept: bool
    ) -> schemas.GuaranteeRequestResponse:
        """Accept or decline a pending guarantee while the application is still under review"""
        result = await db.execute(
            select(Guarantor).where(Guarantor.id == guarantee_id).with_for_update()
        )
        guarantee = result.scalar_one_or_none()
        if not guarantee or guarantee.guarantor_id != member.id:
            raise NotFound("Guarantee request not found")
        if guarantee.status != GuarantorStatus.PENDING:
            raise InvalidState(f"Guarantee request is already {guarantee.status.value}")

        loan = await LoanService.get_loan(db, guarantee.loan_id)
        if loan.status != LoanStatus.PENDING:
            raise InvalidState(f"Loan application is already {loan.status.value}")

        guarantee.status = GuarantorStatus.ACCEPTED if accept else GuarantorStatus.DECLINED
        guarantee.responded_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(guarantee)
        logger.info(f"Guarantee {guarantee.id} for loan {loan.id} {guarantee.status.value} by member {member.id}")

        applicant = await LoanService._notify_member(db, loan.member_id)
        return LoanService._guarantee_response(guarantee, loan, applicant)

    # Admin operations

    @staticmethod
    async def list_loans(
        db: AsyncSession,
        status: Optional[LoanStatus] = None,
        member_id: Optional[int] = None,
        loan_type: Optional[LoanType] = None,
        skip: int = 0,
        limit: int = 20,
        oldest_first: bool = False
    ) -> tuple[List[schemas.LoanResponse], int]:
        query = select(Loan)
        if status:
            query = query.where(Loan.status == status)
        if member_id:
            query = query.where(Loan.member_id == member_id)
        if loan_type:
            query = query.where(Loan.loan_type == loan_type)

        total = await db.scalar(select(func.count()).select_from(query.subquery()))

        order = Loan.created_at.asc() if oldest_first else Loan.created_at.desc()
        query = query.order_by(order, Loan.id).offset(skip).limit(limit)
        result = await db.execute(query)
        loans = list(result.scalars().all())

        grouped = await LoanService.repayments_by_loan(db, [loan.id for loan in loans])
        return [LoanService.to_response(loan, grouped[loan.id]) for loan in loans], total or 0

    @staticmethod
    def _append_note(loan: Loan, note: str) -> None:
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M")
        entry = f"[{stamp}] {note}"
        loan.notes = f"{loan.notes}\n{entry}" if loan.notes else entry

    @staticmethod
    async def _notify_member(db: AsyncSession, member_id: int) -> Optional[Member]:
        result = await db.execute(select(Member).where(Member.id == member_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def review_loan(
        db: AsyncSession,
        dispatcher: EmailDispatcher,
        loan_id: int,
        admin: Member,
        approve: bool,
        reason: Optional[str] = None
    ) -> schemas.LoanResponse:
        """Approve or reject a pending application and email the outcome"""
        loan = await LoanService.get_loan(db, loan_id)
        if loan.status != LoanStatus.PENDING:
            raise InvalidState(f"Only pending loans can be reviewed. Current status: {loan.status.value}")

        now = datetime.now(timezone.utc)
        loan.reviewed_by = admin.id
        if approve:
            loan.status = LoanStatus.APPROVED
            loan.approved_at = now
        else:
            loan.status = LoanStatus.REJECTED
            loan.rejected_at = now
            if reason:
                LoanService._append_note(loan, f"Rejected: {reason}")

        await db.commit()
        await db.refresh(loan)
        logger.info(f"Loan {loan.id} {loan.status.value} by admin {admin.id}")

        member = await LoanService._notify_member(db, loan.member_id)
        if member:
            await dispatcher.loan_decision(db, member.email, loan.id, approve)
            await db.commit()

        grouped = await LoanService.repayments_by_loan(db, [loan.id])
        return LoanService.to_response(loan, grouped[loan.id])

    @staticmethod
    async def disburse_loan(
        db: AsyncSession,
        dispatcher: EmailDispatcher,
        loan_id: int,
        admin: Member,
        amount: Optional[Decimal] = None
    ) -> schemas.LoanResponse:
        """Record the payout of an approved loan and email the member"""
        loan = await LoanService.get_loan(db, loan_id)
        if loan.disbursed_at is not None or loan.status not in (LoanStatus.APPROVED, LoanStatus.PARTIALLY_REPAID):
            raise InvalidState(f"Loan cannot be disbursed. Current status: {loan.status.value}")

        disbursed = amount if amount is not None else loan.amount_requested
        if disbursed > loan.amount_requested:
            raise InvalidArgument("Disbursed amount cannot exceed the amount requested")

        loan.amount_disbursed = disbursed
        loan.disbursed_at = datetime.now(timezone.utc)
        loan.reviewed_by = admin.id
        loan.status = LoanStatus.DISBURSED
        await db.flush()

        # Repayments approved before payout keep the loan partially repaid
        loan, _ = await LoanService.reconcile_loan(db, loan.id)
        await db.commit()
        await db.refresh(loan)
        logger.info(f"Loan {loan.id} disbursed ({disbursed}) by admin {admin.id}")

        member = await LoanService._notify_member(db, loan.member_id)
        if member:
            await dispatcher.disbursement(db, member.email, loan.id, disbursed)
            await db.commit()

        grouped = await LoanService.repayments_by_loan(db, [loan.id])
        return LoanService.to_response(loan, grouped[loan.id])

    @staticmethod
    async def mark_defaulted(
        db: AsyncSession,
        loan_id: int,
        admin: Member,
        reason: Optional[str] = None
    ) -> schemas.LoanResponse:
        loan = await LoanService.get_loan(db, loan_id)
        if loan.status not in REPAYABLE_STATUSES:
            raise InvalidState(f"Only active loans can be marked defaulted. Current status: {loan.status.value}")

        loan.status = LoanStatus.DEFAULTED
        loan.defaulted_at = datetime.now(timezone.utc)
        loan.reviewed_by = admin.id
        if reason:
            LoanService._append_note(loan, f"Defaulted: {reason}")

        await db.commit()
        await db.refresh(loan)
        logger.warning(f"Loan {loan.id} marked defaulted by admin {admin.id}")

        grouped = await LoanService.repayments_by_loan(db, [loan.id])
        return LoanService.to_response(loan, grouped[loan.id])

    @staticmethod
    async def update_notes(db: AsyncSession, loan_id: int, notes: str) -> schemas.LoanResponse:
        loan = await LoanService.get_loan(db, loan_id)
        loan.notes = notes
        await db.commit()
        await db.refresh(loan)

        grouped = await LoanService.repayments_by_loan(db, [loan.id])
        return LoanService.to_response(loan, grouped[loan.id])

    @staticmethod
    async def portfolio_totals(db: AsyncSession) -> Dict[str, Decimal]:
        """Portfolio figures summed from loan and approved-repayment records"""
        result = await db.execute(select(Loan).where(Loan.status.in_(OUTSTANDING_STATUSES | {LoanStatus.FULLY_REPAID})))
        loans = list(result.scalars().all())
        grouped = await LoanService.repayments_by_loan(db, [loan.id for loan in loans], approved_only=True)

        totals = {
            "total_requested": ZERO,
            "total_disbursed": ZERO,
            "total_due": ZERO,
            "total_paid": ZERO,
            "outstanding": ZERO,
        }
        for loan in loans:
            summary = LoanService.ledger_summary(loan, grouped[loan.id])
            totals["total_requested"] += loan.amount_requested
            totals["total_disbursed"] += loan.amount_disbursed or ZERO
            totals["total_due"] += summary.total_due
            totals["total_paid"] += summary.total_paid
            if loan.status in OUTSTANDING_STATUSES and summary.balance_due > 0:
                totals["outstanding"] += summary.balance_due
        return totals

    @staticmethod
    async def count_by_status(db: AsyncSession) -> Dict[str, int]:
        result = await db.execute(select(Loan.status, func.count(Loan.id)).group_by(Loan.status))
        counts = {status.value: 0 for status in LoanStatus}
        for status, count in result.all():
            counts[LoanStatus(status).value] = count
        return counts

    @staticmethod
    async def loan_stats(db: AsyncSession) -> schemas.LoanStatsResponse:
        totals = await LoanService.portfolio_totals(db)
        return schemas.LoanStatsResponse(by_status=await LoanService.count_by_status(db), **totals)
