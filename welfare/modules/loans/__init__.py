# Loans module
from welfare.modules.loans.models import Loan, Guarantor, LoanType, LoanStatus, GuarantorStatus, LOAN_TYPE_TERMS

__all__ = ["Loan", "Guarantor", "LoanType", "LoanStatus", "GuarantorStatus", "LOAN_TYPE_TERMS"]
