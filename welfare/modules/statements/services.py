from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List
import logging

from welfare.core.config import settings
from welfare.modules.loans.models import Loan, LoanStatus
from welfare.modules.loans.services import LoanService
from welfare.modules.members.models import Member
from welfare.modules.members.services import MemberService
from welfare.modules.repayments.models import Repayment
from welfare.modules.statements.schemas import Statement, StatementLine

logger = logging.getLogger(__name__)

# Applications that never became a debt stay off the statement
EXCLUDED_STATUSES = {LoanStatus.PENDING, LoanStatus.REJECTED}


def build_statement(
    member: Member,
    loans: Iterable[Loan],
    repayments: Dict[int, List[Repayment]]
) -> Statement:
    """
    Per-loan lines and grand totals for one member.

    Paid and balance figures are recomputed from the repayment records;
    nothing stored on the loan besides total_due is trusted.
    """
    lines = []
    for loan in loans:
        if loan.status in EXCLUDED_STATUSES:
            continue
        summary = LoanService.ledger_summary(loan, repayments.get(loan.id, []))
        lines.append(StatementLine(
            loan_id=loan.id,
            loan_type=loan.loan_type,
            purpose=loan.purpose,
            status=summary.status,
            amount_requested=loan.amount_requested,
            total_due=summary.total_due,
            amount_paid=summary.total_paid,
            balance_due=summary.balance_due,
            applied_at=loan.created_at
        ))

    return Statement(
        member_id=member.id,
        member_name=member.full_name,
        member_email=member.email,
        generated_at=datetime.now(timezone.utc),
        currency=settings.CURRENCY,
        lines=lines,
        total_requested=sum((line.amount_requested for line in lines), Decimal("0.00")),
        total_due=sum((line.total_due for line in lines), Decimal("0.00")),
        total_paid=sum((line.amount_paid for line in lines), Decimal("0.00")),
        total_balance=sum((line.balance_due for line in lines), Decimal("0.00")),
    )


async def member_statement(db: AsyncSession, member_id: int) -> Statement:
    """Load a member's loans and repayments and build their statement"""
    member = await MemberService.get_member(db, member_id)

    result = await db.execute(
        select(Loan).where(Loan.member_id == member.id).order_by(Loan.created_at, Loan.id)
    )
    loans = list(result.scalars().all())
    repayments = await LoanService.repayments_by_loan(db, [loan.id for loan in loans])

    statement = build_statement(member, loans, repayments)
    logger.info(f"Statement built for member {member.id} with {len(statement.lines)} loans")
    return statement
