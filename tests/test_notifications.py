"""
Tests for email templates, the dispatcher and the admin email endpoints
"""
import pytest
from decimal import Decimal

from welfare.core.exceptions import InvalidArgument
from welfare.modules.notifications import templates
from welfare.modules.notifications.models import EmailStatus, EmailTemplate
from welfare.modules.notifications.services import EmailDispatcher, SendGridTransport, list_email_logs
from tests.conftest import RecordingTransport


class TestTemplates:

    @pytest.mark.unit
    def test_loan_application_mentions_loan_id(self):
        subject, html = templates.loan_application(42)

        assert subject.startswith("Loan Application Received")
        assert "ID: 42" in html

    @pytest.mark.unit
    def test_loan_approval_variants(self):
        approved_subject, approved_html = templates.loan_approval(True)
        declined_subject, declined_html = templates.loan_approval(False)

        assert "Approved" in approved_subject
        assert "<strong>approved</strong>" in approved_html
        assert "Declined" in declined_subject
        assert "<strong>declined</strong>" in declined_html

    @pytest.mark.unit
    def test_amounts_are_formatted(self):
        _, html = templates.payment_received(Decimal("8791.5"))

        assert "KES 8,791.50" in html

    @pytest.mark.unit
    def test_interpolated_values_are_escaped(self):
        _, html = templates.guarantor_request("<script>x</script>", 1000, 7)

        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    @pytest.mark.unit
    def test_guarantor_note_is_quoted_and_escaped(self):
        _, html = templates.guarantor_request("Jane", 1000, 7, note="Please help <b>urgently</b>")

        assert "<blockquote" in html
        assert "Please help &lt;b&gt;urgently&lt;/b&gt;" in html
        assert "<b>" not in html

    @pytest.mark.unit
    def test_guarantor_request_without_note(self):
        _, html = templates.guarantor_request("Jane", 1000, 7)

        assert "<blockquote" not in html
        assert "accept or decline" in html


class TestDispatcher:

    @pytest.mark.integration
    async def test_sent_email_is_logged(self, db_session):
        transport = RecordingTransport()
        dispatcher = EmailDispatcher(transport=transport)

        log = await dispatcher.disbursement(db_session, "member@farova.org", 5, Decimal("1000"))

        assert log.status == EmailStatus.SENT
        assert log.external_id == "msg-1"
        assert log.related_entity_type == "loan"
        assert log.related_entity_id == 5
        assert log.sent_at is not None

    @pytest.mark.integration
    async def test_unconfigured_provider_is_skipped(self, db_session):
        dispatcher = EmailDispatcher(transport=SendGridTransport(api_key=""))

        log = await dispatcher.loan_application(db_session, "member@farova.org", 1)

        assert log.status == EmailStatus.SKIPPED
        assert log.sent_at is None

    @pytest.mark.integration
    async def test_provider_failure_is_recorded_not_raised(self, db_session):
        dispatcher = EmailDispatcher(transport=RecordingTransport(fail=True))

        log = await dispatcher.loan_decision(db_session, "member@farova.org", 3, approved=False)

        assert log.status == EmailStatus.FAILED
        assert log.error_message == "provider unavailable"

    @pytest.mark.integration
    async def test_send_template_requires_its_arguments(self, db_session, dispatcher):
        with pytest.raises(InvalidArgument):
            await dispatcher.send_template(db_session, "member@farova.org", EmailTemplate.PAYMENT_RECEIVED)

    @pytest.mark.integration
    async def test_list_logs_filters_by_status(self, db_session):
        await EmailDispatcher(transport=RecordingTransport()).loan_application(db_session, "a@farova.org", 1)
        await EmailDispatcher(transport=RecordingTransport(fail=True)).loan_application(db_session, "b@farova.org", 2)

        logs, total = await list_email_logs(db_session, status=EmailStatus.FAILED)

        assert total == 1
        assert logs[0].recipient == "b@farova.org"


class TestSendEmailEndpoint:

    @pytest.mark.integration
    async def test_send_custom_email(self, client, admin_headers, email_transport):
        response = await client.post("/api/v1/notifications/send-email", headers=admin_headers, json={
            "email": "member@farova.org",
            "type": "custom",
            "subject": "AGM Notice",
            "message": "<p>The AGM is on Saturday.</p>"
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["log"]["status"] == "sent"
        assert email_transport.sent[0]["subject"] == "AGM Notice"

    @pytest.mark.integration
    async def test_unknown_type_is_rejected(self, client, admin_headers):
        response = await client.post("/api/v1/notifications/send-email", headers=admin_headers, json={
            "email": "member@farova.org",
            "type": "newsletter"
        })

        assert response.status_code == 400

    @pytest.mark.integration
    async def test_missing_template_argument(self, client, admin_headers):
        response = await client.post("/api/v1/notifications/send-email", headers=admin_headers, json={
            "email": "member@farova.org",
            "type": "disbursement"
        })

        assert response.status_code == 400

    @pytest.mark.integration
    async def test_provider_failure_is_reported(self, client, admin_headers, email_transport):
        email_transport.fail = True

        response = await client.post("/api/v1/notifications/send-email", headers=admin_headers, json={
            "email": "member@farova.org",
            "type": "loan-approval",
            "loan_id": 1,
            "approved": True
        })

        assert response.status_code == 502

        logs = await client.get("/api/v1/notifications/logs", headers=admin_headers)
        assert logs.json()["total"] == 1
        assert logs.json()["logs"][0]["status"] == "failed"

    @pytest.mark.integration
    async def test_requires_admin(self, client, member_headers):
        response = await client.post("/api/v1/notifications/send-email", headers=member_headers, json={
            "email": "member@farova.org",
            "type": "custom",
            "subject": "Hi",
            "message": "Hello"
        })

        assert response.status_code == 403
