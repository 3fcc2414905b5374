from pydantic import BaseModel
from typing import Dict
from decimal import Decimal


class DashboardStats(BaseModel):
    # Members
    total_members: int
    members_by_status: Dict[str, int]
    new_members_this_week: int

    # Loans
    total_loans: int
    loans_by_status: Dict[str, int]
    pending_loan_applications: int

    # Repayments
    pending_repayments: int

    # Portfolio, recomputed from loan and repayment records
    total_requested: Decimal
    total_disbursed: Decimal
    total_due: Decimal
    total_paid: Decimal
    outstanding: Decimal
