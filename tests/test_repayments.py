"""
Tests for repayment submission, review and loan reconciliation
"""
import pytest
from decimal import Decimal
from sqlalchemy import select

from welfare.modules.loans.models import LoanStatus
from welfare.modules.notifications.models import EmailLog, EmailTemplate
from welfare.modules.repayments.models import Repayment, RepaymentStatus
from tests.conftest import create_loan, create_repayment

PROOF = {"proof": ("mpesa.png", b"\x89PNG fake image", "image/png")}


class TestSubmitRepayment:

    @pytest.mark.integration
    async def test_submit_with_proof(self, client, member_headers, approved_loan, storage):
        response = await client.post(
            "/api/v1/repayments",
            headers=member_headers,
            data={"loan_id": str(approved_loan.id), "amount_paid": "8791.59", "reference": "QWE123RTY"},
            files=PROOF
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["payment_method"] == "mpesa"
        assert "penalty_applied" not in data
        assert data["proof_url"].startswith("http://test/uploads/proof_of_payment/")
        assert len(list((storage.root / "proof_of_payment").iterdir())) == 1

    @pytest.mark.integration
    async def test_pending_repayment_does_not_change_balance(self, client, member_headers, approved_loan):
        await client.post(
            "/api/v1/repayments",
            headers=member_headers,
            data={"loan_id": str(approved_loan.id), "amount_paid": "5000"},
            files=PROOF
        )

        response = await client.get(f"/api/v1/loans/{approved_loan.id}", headers=member_headers)

        data = response.json()
        assert Decimal(data["total_paid"]) == Decimal("0")
        assert data["status"] == "approved"

    @pytest.mark.integration
    async def test_proof_is_required(self, client, member_headers, approved_loan):
        response = await client.post(
            "/api/v1/repayments",
            headers=member_headers,
            data={"loan_id": str(approved_loan.id), "amount_paid": "5000"}
        )

        assert response.status_code == 422

    @pytest.mark.integration
    async def test_amount_must_be_positive(self, client, member_headers, approved_loan):
        response = await client.post(
            "/api/v1/repayments",
            headers=member_headers,
            data={"loan_id": str(approved_loan.id), "amount_paid": "0"},
            files=PROOF
        )

        assert response.status_code == 422

    @pytest.mark.integration
    async def test_pending_loan_cannot_be_repaid(self, client, db_session, member_headers, approved_member):
        loan = await create_loan(db_session, approved_member, status=LoanStatus.PENDING)

        response = await client.post(
            "/api/v1/repayments",
            headers=member_headers,
            data={"loan_id": str(loan.id), "amount_paid": "100"},
            files=PROOF
        )

        assert response.status_code == 409

    @pytest.mark.integration
    async def test_cannot_repay_someone_elses_loan(self, client, db_session, member_headers, guarantor_member):
        loan = await create_loan(db_session, guarantor_member)

        response = await client.post(
            "/api/v1/repayments",
            headers=member_headers,
            data={"loan_id": str(loan.id), "amount_paid": "100"},
            files=PROOF
        )

        assert response.status_code == 404

    @pytest.mark.integration
    async def test_history(self, client, db_session, member_headers, approved_loan, guarantor_member):
        mine = await create_repayment(db_session, approved_loan, "100.00")
        other_loan = await create_loan(db_session, guarantor_member)
        await create_repayment(db_session, other_loan, "200.00")

        response = await client.get("/api/v1/repayments", headers=member_headers)

        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == [mine.id]


class TestReviewRepayment:

    @pytest.mark.integration
    async def test_approve_reconciles_loan(
        self, client, db_session, admin_headers, approved_member, approved_loan, email_transport
    ):
        repayment = await create_repayment(db_session, approved_loan, "8791.59")

        response = await client.post(f"/api/v1/admin/repayments/{repayment.id}/approve", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["repayment"]["status"] == "approved"
        assert data["loan_status"] == "partially_repaid"
        assert Decimal(data["total_paid"]) == Decimal("8791.59")
        assert Decimal(data["balance_due"]) == Decimal("96707.49")

        await db_session.refresh(approved_loan)
        assert approved_loan.status == LoanStatus.PARTIALLY_REPAID

        assert email_transport.sent[-1]["to"] == approved_member.email
        assert "Payment Received" in email_transport.sent[-1]["subject"]

    @pytest.mark.integration
    async def test_final_payment_marks_fully_repaid(self, client, db_session, admin_headers, approved_loan):
        await create_repayment(db_session, approved_loan, "100000.00", RepaymentStatus.APPROVED)
        last = await create_repayment(db_session, approved_loan, "5499.08")

        response = await client.post(f"/api/v1/admin/repayments/{last.id}/approve", headers=admin_headers)

        data = response.json()
        assert data["loan_status"] == "fully_repaid"
        assert Decimal(data["balance_due"]) == Decimal("0")

    @pytest.mark.integration
    async def test_overpayment_leaves_negative_balance(self, client, db_session, admin_headers, approved_loan):
        extra = await create_repayment(db_session, approved_loan, "106000.00")

        response = await client.post(f"/api/v1/admin/repayments/{extra.id}/approve", headers=admin_headers)

        data = response.json()
        assert data["loan_status"] == "fully_repaid"
        assert Decimal(data["balance_due"]) == Decimal("-500.92")

    @pytest.mark.integration
    async def test_approving_twice_is_refused(self, client, db_session, admin_headers, approved_loan):
        repayment = await create_repayment(db_session, approved_loan, "1000.00")

        first = await client.post(f"/api/v1/admin/repayments/{repayment.id}/approve", headers=admin_headers)
        second = await client.post(f"/api/v1/admin/repayments/{repayment.id}/approve", headers=admin_headers)

        assert first.status_code == 200
        assert second.status_code == 409

        detail = await client.get(f"/api/v1/admin/loans/{approved_loan.id}", headers=admin_headers)
        assert Decimal(detail.json()["total_paid"]) == Decimal("1000.00")

    @pytest.mark.integration
    async def test_sequential_approvals_all_count(self, client, db_session, admin_headers, approved_loan):
        first = await create_repayment(db_session, approved_loan, "1000.00")
        second = await create_repayment(db_session, approved_loan, "2500.00")

        await client.post(f"/api/v1/admin/repayments/{first.id}/approve", headers=admin_headers)
        response = await client.post(f"/api/v1/admin/repayments/{second.id}/approve", headers=admin_headers)

        assert Decimal(response.json()["total_paid"]) == Decimal("3500.00")

    @pytest.mark.integration
    async def test_reject_keeps_record_and_balance(self, client, db_session, admin_headers, approved_loan):
        repayment = await create_repayment(db_session, approved_loan, "1000.00")

        response = await client.post(
            f"/api/v1/admin/repayments/{repayment.id}/reject",
            headers=admin_headers,
            json={"reason": "M-Pesa code not found"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"

        result = await db_session.execute(select(Repayment).where(Repayment.id == repayment.id))
        assert result.scalar_one().rejection_reason == "M-Pesa code not found"

        detail = await client.get(f"/api/v1/admin/loans/{approved_loan.id}", headers=admin_headers)
        assert Decimal(detail.json()["total_paid"]) == Decimal("0")
        assert detail.json()["status"] == "approved"

    @pytest.mark.integration
    async def test_defaulted_loan_keeps_status_after_approval(
        self, client, db_session, admin_headers, approved_member
    ):
        loan = await create_loan(db_session, approved_member, status=LoanStatus.PARTIALLY_REPAID)
        repayment = await create_repayment(db_session, loan, "500.00")
        loan.status = LoanStatus.DEFAULTED
        await db_session.commit()

        response = await client.post(f"/api/v1/admin/repayments/{repayment.id}/approve", headers=admin_headers)

        assert response.json()["loan_status"] == "defaulted"

    @pytest.mark.integration
    async def test_list_pending(self, client, db_session, admin_headers, approved_loan):
        pending = await create_repayment(db_session, approved_loan, "100.00")
        await create_repayment(db_session, approved_loan, "200.00", RepaymentStatus.APPROVED)

        response = await client.get("/api/v1/admin/repayments/pending", headers=admin_headers)

        data = response.json()
        assert data["total"] == 1
        assert data["repayments"][0]["id"] == pending.id


class TestLogPayment:

    @pytest.mark.integration
    async def test_log_payment_is_approved_immediately(
        self, client, db_session, admin_headers, admin_user, approved_loan
    ):
        response = await client.post(
            "/api/v1/admin/repayments/log",
            headers=admin_headers,
            data={"loan_id": str(approved_loan.id), "amount_paid": "8791.59", "payment_method": "checkoff"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["repayment"]["status"] == "approved"
        assert data["repayment"]["logged_by"] == admin_user.id
        assert data["repayment"]["member_id"] == approved_loan.member_id
        assert data["repayment"]["proof_url"] is None
        assert data["loan_status"] == "partially_repaid"

        result = await db_session.execute(
            select(EmailLog).where(EmailLog.template == EmailTemplate.PAYMENT_RECEIVED)
        )
        assert result.scalar_one().related_entity_id == data["repayment"]["id"]

    @pytest.mark.integration
    async def test_log_payment_with_proof(self, client, admin_headers, approved_loan):
        response = await client.post(
            "/api/v1/admin/repayments/log",
            headers=admin_headers,
            data={"loan_id": str(approved_loan.id), "amount_paid": "100"},
            files={"proof": ("slip.pdf", b"%PDF-1.4 fake", "application/pdf")}
        )

        assert response.status_code == 201
        assert response.json()["repayment"]["proof_url"].endswith(".pdf")

    @pytest.mark.integration
    async def test_log_payment_on_rejected_loan(self, client, db_session, admin_headers, approved_member):
        loan = await create_loan(db_session, approved_member, status=LoanStatus.REJECTED)

        response = await client.post(
            "/api/v1/admin/repayments/log",
            headers=admin_headers,
            data={"loan_id": str(loan.id), "amount_paid": "100"}
        )

        assert response.status_code == 409
