"""
HTML bodies for association emails.

Every template shares the same header and footer; only the main block
differs. Values interpolated into the markup are escaped.
"""
from datetime import date
from decimal import Decimal
from html import escape
from typing import Optional, Union

from welfare.core.config import settings


def format_amount(amount: Union[Decimal, int, float]) -> str:
    return f"{settings.CURRENCY} {Decimal(str(amount)):,.2f}"


def _layout(body: str) -> str:
    org = escape(settings.ORGANIZATION_NAME)
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: auto; border: 1px solid #E5E7EB; border-radius: 12px; overflow: hidden;">
      <header style="background: #14213D; padding: 24px; text-align: center; color: #fff;">
        <h1 style="margin: 0; font-size: 28px;">{org}</h1>
        <p style="margin: 8px 0; font-size: 16px;">Empowering Communities</p>
      </header>
      <main style="padding: 32px; color: #333;">
        {body}
      </main>
      <footer style="background: #FCA311; padding: 16px; text-align: center; color: #fff; font-size: 14px;">
        &copy; {date.today().year} {org}. All rights reserved.
      </footer>
    </div>
    """


def loan_application(loan_id: Union[int, str]) -> tuple[str, str]:
    org = escape(settings.ORGANIZATION_NAME)
    subject = f"Loan Application Received - {settings.ORGANIZATION_NAME}"
    body = f"""
        <h2 style="color: #14213D; font-size: 24px;">Application Received!</h2>
        <p>Hi there,</p>
        <p>We've received your loan application <strong>(ID: {escape(str(loan_id))})</strong>. Our team is
        currently reviewing your request and will contact you soon with the next steps.</p>
        <p style="margin-top: 24px;">Thank you for trusting <strong>{org}</strong>.</p>
    """
    return subject, _layout(body)


def loan_approval(approved: bool) -> tuple[str, str]:
    if approved:
        subject = f"Loan Approved - {settings.ORGANIZATION_NAME}"
        body = """
        <h2 style="color: #14213D; font-size: 24px;">Loan Approved!</h2>
        <p>Hello,</p>
        <p>Your loan application has been <strong>approved</strong>.</p>
        <p>The funds will be disbursed shortly to your registered account.</p>
        """
    else:
        subject = f"Loan Declined - {settings.ORGANIZATION_NAME}"
        body = """
        <h2 style="color: #14213D; font-size: 24px;">Loan Declined</h2>
        <p>Hello,</p>
        <p>Your loan application has been <strong>declined</strong>.</p>
        <p>If you have any questions, feel free to reach out to our support team.</p>
        """
    return subject, _layout(body)


def disbursement(amount: Union[Decimal, int, float]) -> tuple[str, str]:
    subject = f"Loan Disbursed - {settings.ORGANIZATION_NAME}"
    body = f"""
        <h2 style="color: #14213D; font-size: 24px;">Loan Disbursed!</h2>
        <p>Hello,</p>
        <p>Your loan of <strong>{format_amount(amount)}</strong> has been successfully disbursed to your
        registered account.</p>
        <p>Thank you for choosing {escape(settings.ORGANIZATION_NAME)}.</p>
    """
    return subject, _layout(body)


def payment_received(amount: Union[Decimal, int, float]) -> tuple[str, str]:
    subject = f"Payment Received - {settings.ORGANIZATION_NAME}"
    body = f"""
        <h2 style="color: #14213D; font-size: 24px;">Payment Received!</h2>
        <p>Hello,</p>
        <p>We've successfully received your payment of <strong>{format_amount(amount)}</strong>.</p>
        <p>Your financial journey is on the right track!</p>
    """
    return subject, _layout(body)


def custom(subject: str, message: str) -> tuple[str, str]:
    # Admin-authored HTML goes out as written
    return subject, message


def guarantor_request(
    applicant_name: str,
    amount: Union[Decimal, int, float],
    loan_id: Union[int, str],
    note: Optional[str] = None
) -> tuple[str, str]:
    subject = f"Guarantor Request - {settings.ORGANIZATION_NAME}"
    quoted = ""
    if note:
        quoted = f"""
        <p>Their message to you:</p>
        <blockquote style="margin: 16px 0; padding: 12px 16px; border-left: 4px solid #FCA311; background: #F9FAFB; white-space: pre-wrap;">{escape(note)}</blockquote>
        """
    body = f"""
        <h2 style="color: #14213D; font-size: 24px;">You Have Been Named as Guarantor</h2>
        <p>Hello,</p>
        <p><strong>{escape(applicant_name)}</strong> has named you as guarantor for a loan of
        <strong>{format_amount(amount)}</strong> (application ID: {escape(str(loan_id))}).</p>
        {quoted}
        <p>Sign in to the member portal to accept or decline this request.</p>
    """
    return subject, _layout(body)
