from pydantic import BaseModel
from typing import List
from datetime import datetime
from decimal import Decimal
import enum

from welfare.modules.loans.models import LoanType, LoanStatus


class StatementFormat(str, enum.Enum):
    JSON = "json"
    PDF = "pdf"
    XLSX = "xlsx"


class StatementLine(BaseModel):
    loan_id: int
    loan_type: LoanType
    purpose: str
    status: LoanStatus
    amount_requested: Decimal
    total_due: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    applied_at: datetime


class Statement(BaseModel):
    """A member's loan statement; every figure comes from the ledger"""
    member_id: int
    member_name: str
    member_email: str
    generated_at: datetime
    currency: str
    lines: List[StatementLine]
    total_requested: Decimal
    total_due: Decimal
    total_paid: Decimal
    total_balance: Decimal
