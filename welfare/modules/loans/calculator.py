"""
Loan ledger arithmetic.

Pure functions shared by the member and admin flows: the reducing-balance
installment, the late-payment penalty, the approved-repayment aggregate and
the status derived from it. Money is handled as Decimal quantized to cents.

Balances are never kept as a running total. Callers pass the complete list
of repayments for a loan every time, as fetched from the database, so two
administrators approving repayments at the same moment cannot lose an
update.
"""
from datetime import datetime
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_EVEN, InvalidOperation, Overflow, localcontext
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field

from welfare.core.exceptions import InvalidArgument
from welfare.modules.loans.models import LoanStatus, ADMIN_ONLY_STATUSES
from welfare.modules.repayments.models import RepaymentStatus

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[int, float, str, Decimal]

# Monthly rates below 10^-MAX_RATE_DIGITS are treated as interest free
MAX_RATE_DIGITS = 900


class LedgerLoan(BaseModel):
    """The loan fields the ledger needs, parsed from a record"""
    id: Optional[int] = None
    amount_requested: Optional[Decimal] = Field(default=None, ge=0)
    interest_rate: Optional[Decimal] = Field(default=None, ge=0)
    repayment_period: Optional[int] = Field(default=None, ge=1)
    total_due: Decimal = Field(..., ge=0)
    status: LoanStatus = LoanStatus.PENDING

    class Config:
        from_attributes = True


class LedgerRepayment(BaseModel):
    """The repayment fields the ledger needs, parsed from a record"""
    loan_id: Optional[int] = None
    amount_paid: Optional[Decimal] = Field(default=None, ge=0)
    status: RepaymentStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LedgerSummary(BaseModel):
    total_due: Decimal
    total_paid: Decimal
    balance_due: Decimal
    status: LoanStatus


def _to_decimal(value: Number, name: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidArgument(f"{name} must be a number")
    try:
        # str() keeps floats like 0.1 from dragging binary noise along
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidArgument(f"{name} must be a number")
    if not result.is_finite():
        raise InvalidArgument(f"{name} must be finite")
    return result


def _non_negative(value: Number, name: str) -> Decimal:
    result = _to_decimal(value, name)
    if result < 0:
        raise InvalidArgument(f"{name} must not be negative")
    return result


def _working_precision(principal: Decimal, annual_rate: Decimal, term_months: int) -> int:
    # (1 + r) must keep every digit of r, and the result must resolve cents
    rate_digits = min(max(-annual_rate.adjusted(), 0), MAX_RATE_DIGITS)
    amount_digits = max(principal.adjusted(), 0)
    return 40 + rate_digits + amount_digits + len(str(term_months))


def compute_monthly_installment(principal: Number, annual_rate_percent: Number, term_months: int) -> Decimal:
    """
    Fixed monthly payment for a reducing-balance loan.

    installment = P * r * (1 + r)^n / ((1 + r)^n - 1), with r the monthly
    rate. A zero rate is P / n. The result is rounded half-to-even to cents,
    except that it is rounded up when half-even would leave
    installment * n short of the principal.
    """
    if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months < 1:
        raise InvalidArgument("term_months must be a positive integer")
    principal = _non_negative(principal, "principal")
    annual_rate = _non_negative(annual_rate_percent, "annual_rate_percent")

    with localcontext() as ctx:
        ctx.prec = _working_precision(principal, annual_rate, term_months)
        straight_line = principal / term_months
        monthly_rate = annual_rate / 12 / 100

        if annual_rate == 0 or monthly_rate.adjusted() < -MAX_RATE_DIGITS:
            raw = straight_line
        else:
            try:
                growth = (1 + monthly_rate) ** term_months
                if growth == 1:
                    raw = straight_line
                else:
                    # Any positive rate costs at least the interest-free split
                    raw = max(principal * monthly_rate * growth / (growth - 1), straight_line)
            except Overflow:
                raise InvalidArgument("annual_rate_percent is too large for this term")

        installment = raw.quantize(CENTS, rounding=ROUND_HALF_EVEN)
        if installment * term_months < principal:
            installment = raw.quantize(CENTS, rounding=ROUND_CEILING)
    return installment


def compute_total_due(monthly_installment: Number, term_months: int) -> Decimal:
    """Amount contractually owed: installment times term, fixed at application"""
    if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months < 1:
        raise InvalidArgument("term_months must be a positive integer")
    installment = _non_negative(monthly_installment, "monthly_installment")
    return (installment * term_months).quantize(CENTS, rounding=ROUND_HALF_EVEN)


def compute_penalty(overdue_days: Number, penalty_rate_percent: Number, balance: Number) -> Decimal:
    """Late-payment penalty: days * rate% * balance / 100"""
    days = _non_negative(overdue_days, "overdue_days")
    rate = _non_negative(penalty_rate_percent, "penalty_rate_percent")
    amount = _non_negative(balance, "balance")
    return (days * rate * amount / 100).quantize(CENTS, rounding=ROUND_HALF_EVEN)


def compute_total_paid(repayments: Iterable[LedgerRepayment]) -> Decimal:
    """Sum of amount_paid over approved repayments; missing amounts count as zero"""
    total = ZERO
    for repayment in repayments:
        if RepaymentStatus(repayment.status) != RepaymentStatus.APPROVED:
            continue
        if repayment.amount_paid is None:
            continue
        total += _to_decimal(repayment.amount_paid, "amount_paid")
    return total.quantize(CENTS, rounding=ROUND_HALF_EVEN)


def compute_balance_due(loan: LedgerLoan, total_paid: Number, clamp_to_zero: bool = False) -> Decimal:
    """
    total_due minus total_paid. An overpaid loan yields a negative balance
    unless clamp_to_zero is set.
    """
    balance = _to_decimal(loan.total_due, "total_due") - _to_decimal(total_paid, "total_paid")
    if clamp_to_zero and balance < 0:
        balance = ZERO
    return balance.quantize(CENTS, rounding=ROUND_HALF_EVEN)


def derive_status(total_due: Number, total_paid: Number, current_status: Union[LoanStatus, str]) -> LoanStatus:
    """
    Repayment-driven status. rejected and defaulted are administrator
    decisions and are returned untouched.
    """
    current = LoanStatus(current_status)
    if current in ADMIN_ONLY_STATUSES:
        return current

    due = _to_decimal(total_due, "total_due")
    paid = _to_decimal(total_paid, "total_paid")
    if paid >= due:
        return LoanStatus.FULLY_REPAID
    if paid > 0:
        return LoanStatus.PARTIALLY_REPAID
    return current


def summarize(loan: LedgerLoan, repayments: Iterable[LedgerRepayment], clamp_to_zero: bool = False) -> LedgerSummary:
    """Total paid, balance due and derived status for one loan"""
    total_paid = compute_total_paid(repayments)
    return LedgerSummary(
        total_due=_to_decimal(loan.total_due, "total_due").quantize(CENTS),
        total_paid=total_paid,
        balance_due=compute_balance_due(loan, total_paid, clamp_to_zero=clamp_to_zero),
        status=derive_status(loan.total_due, total_paid, loan.status),
    )
