"""
Tests for statement building and exports
"""
import pytest
from decimal import Decimal
from io import BytesIO

import pandas as pd

from welfare.core.exceptions import UpstreamFailure
from welfare.modules.loans.models import LoanStatus
from welfare.modules.repayments.models import RepaymentStatus
from welfare.modules.statements import exporters
from welfare.modules.statements.services import build_statement, member_statement
from tests.conftest import create_loan, create_repayment


@pytest.fixture
async def statement_loans(db_session, approved_member):
    """One repaid-in-part loan, one pending application and one rejected loan"""
    active = await create_loan(db_session, approved_member)
    await create_repayment(db_session, active, "8791.59", RepaymentStatus.APPROVED)
    await create_repayment(db_session, active, "8791.59", RepaymentStatus.PENDING)
    await create_loan(db_session, approved_member, amount="5000.00", status=LoanStatus.PENDING)
    await create_loan(db_session, approved_member, amount="7000.00", status=LoanStatus.REJECTED)
    return active


class TestBuildStatement:

    @pytest.mark.integration
    async def test_lines_use_recomputed_figures(self, db_session, approved_member, statement_loans):
        statement = await member_statement(db_session, approved_member.id)

        assert statement.member_name == approved_member.full_name
        assert [line.loan_id for line in statement.lines] == [statement_loans.id]

        line = statement.lines[0]
        assert line.total_due == Decimal("105499.08")
        assert line.amount_paid == Decimal("8791.59")
        assert line.balance_due == Decimal("96707.49")
        assert line.status == LoanStatus.PARTIALLY_REPAID

        assert statement.total_paid == Decimal("8791.59")
        assert statement.total_balance == Decimal("96707.49")

    @pytest.mark.unit
    def test_empty_statement(self, approved_member):
        statement = build_statement(approved_member, [], {})

        assert statement.lines == []
        assert statement.total_due == Decimal("0")


class TestExports:

    @pytest.mark.integration
    async def test_xlsx_export(self, db_session, approved_member, statement_loans):
        statement = await member_statement(db_session, approved_member.id)

        content = exporters.render_xlsx(statement)

        df = pd.read_excel(BytesIO(content), sheet_name="Loan Statement", engine="openpyxl")
        assert list(df.columns) == exporters.COLUMNS
        assert len(df) == 2
        assert df.iloc[0]["Balance Due"] == pytest.approx(96707.49)
        assert df.iloc[-1]["Purpose"] == "TOTAL"

    @pytest.mark.unit
    def test_html_escapes_member_input(self, approved_member):
        approved_member.full_name = "<b>Jane</b>"
        statement = build_statement(approved_member, [], {})

        html = exporters.render_statement_html(statement)

        assert "&lt;b&gt;Jane&lt;/b&gt;" in html
        assert "No loans on record." in html

    @pytest.mark.unit
    def test_filename(self, approved_member):
        statement = build_statement(approved_member, [], {})

        name = exporters.statement_filename(statement, "pdf")

        assert name.startswith("statement_jane_wanjiku_")
        assert name.endswith(".pdf")

    @pytest.mark.integration
    async def test_pdf_export(self, db_session, approved_member, statement_loans):
        statement = await member_statement(db_session, approved_member.id)

        try:
            content = exporters.render_pdf(statement)
        except UpstreamFailure as e:
            pytest.skip(f"WeasyPrint system libraries unavailable: {e}")

        assert content.startswith(b"%PDF")


class TestStatementEndpoints:

    @pytest.mark.integration
    async def test_member_json_statement(self, client, member_headers, statement_loans):
        response = await client.get("/api/v1/statements/me", headers=member_headers, params={"format": "json"})

        assert response.status_code == 200
        data = response.json()
        assert len(data["lines"]) == 1
        assert Decimal(str(data["total_balance"])) == Decimal("96707.49")

    @pytest.mark.integration
    async def test_member_xlsx_download(self, client, member_headers, statement_loans):
        response = await client.get("/api/v1/statements/me", headers=member_headers, params={"format": "xlsx"})

        assert response.status_code == 200
        assert response.headers["content-type"] == exporters.XLSX_MEDIA_TYPE
        assert "attachment" in response.headers["content-disposition"]

    @pytest.mark.integration
    async def test_admin_downloads_member_statement(self, client, admin_headers, approved_member, statement_loans):
        response = await client.get(
            f"/api/v1/admin/statements/{approved_member.id}", headers=admin_headers, params={"format": "json"}
        )

        assert response.status_code == 200
        assert response.json()["member_id"] == approved_member.id

    @pytest.mark.integration
    async def test_admin_unknown_member(self, client, admin_headers):
        response = await client.get("/api/v1/admin/statements/9999", headers=admin_headers, params={"format": "json"})

        assert response.status_code == 404

    @pytest.mark.integration
    async def test_statement_requires_login(self, client):
        response = await client.get("/api/v1/statements/me")

        assert response.status_code == 401
