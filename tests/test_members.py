"""
Tests for membership, authentication and profile endpoints
"""
import pytest

from welfare.modules.members.models import MembershipStatus
from tests.conftest import TEST_PASSWORD, auth_headers_for


class TestRegistration:

    @pytest.mark.integration
    async def test_register_creates_pending_member(self, client):
        response = await client.post("/api/v1/members/register", json={
            "email": "newmember@farova.org",
            "phone_number": "+254711000100",
            "full_name": "  Grace   Achieng ",
            "password": TEST_PASSWORD
        })

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["role"] == "member"
        assert data["full_name"] == "Grace Achieng"
        assert "hashed_password" not in data

    @pytest.mark.integration
    async def test_register_duplicate_email(self, client, approved_member):
        response = await client.post("/api/v1/members/register", json={
            "email": approved_member.email,
            "phone_number": "0722000000",
            "full_name": "Someone Else",
            "password": TEST_PASSWORD
        })

        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    @pytest.mark.integration
    async def test_register_weak_password(self, client):
        response = await client.post("/api/v1/members/register", json={
            "email": "weak@farova.org",
            "phone_number": "0722000001",
            "full_name": "Weak Password",
            "password": "alllowercase1"
        })

        assert response.status_code == 400

    @pytest.mark.integration
    async def test_register_invalid_phone(self, client):
        response = await client.post("/api/v1/members/register", json={
            "email": "phone@farova.org",
            "phone_number": "07-2200-0001",
            "full_name": "Bad Phone",
            "password": TEST_PASSWORD
        })

        assert response.status_code == 422


class TestAuthentication:

    @pytest.mark.integration
    async def test_login_with_email(self, client, approved_member):
        response = await client.post("/api/v1/members/login", json={
            "email_or_phone": approved_member.email,
            "password": TEST_PASSWORD
        })

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["refresh_token"]

    @pytest.mark.integration
    async def test_login_with_phone(self, client, approved_member):
        response = await client.post("/api/v1/members/login", json={
            "email_or_phone": approved_member.phone_number,
            "password": TEST_PASSWORD
        })

        assert response.status_code == 200

    @pytest.mark.integration
    async def test_login_wrong_password(self, client, approved_member):
        response = await client.post("/api/v1/members/login", json={
            "email_or_phone": approved_member.email,
            "password": "WrongPassword123!"
        })

        assert response.status_code == 401

    @pytest.mark.integration
    async def test_refresh_issues_new_tokens(self, client, approved_member):
        login = await client.post("/api/v1/members/login", json={
            "email_or_phone": approved_member.email,
            "password": TEST_PASSWORD
        })

        response = await client.post("/api/v1/members/refresh", json={
            "refresh_token": login.json()["refresh_token"]
        })

        assert response.status_code == 200
        assert response.json()["access_token"]

    @pytest.mark.integration
    async def test_access_token_cannot_refresh(self, client, approved_member):
        login = await client.post("/api/v1/members/login", json={
            "email_or_phone": approved_member.email,
            "password": TEST_PASSWORD
        })

        response = await client.post("/api/v1/members/refresh", json={
            "refresh_token": login.json()["access_token"]
        })

        assert response.status_code == 400

    @pytest.mark.integration
    async def test_logout_revokes_token(self, client, approved_member, fake_redis):
        headers = auth_headers_for(approved_member)

        response = await client.post("/api/v1/members/logout", headers=headers)
        assert response.status_code == 200
        assert len(fake_redis.store) == 1

        response = await client.get("/api/v1/members/profile", headers=headers)
        assert response.status_code == 401


class TestProfile:

    @pytest.mark.integration
    async def test_get_profile(self, client, pending_member, pending_headers):
        response = await client.get("/api/v1/members/profile", headers=pending_headers)

        assert response.status_code == 200
        assert response.json()["email"] == pending_member.email

    @pytest.mark.integration
    async def test_update_profile(self, client, pending_headers):
        response = await client.put("/api/v1/members/profile", headers=pending_headers, json={
            "occupation": "Nurse",
            "town_residence": "Kisumu",
            "marital_status": "married",
            "spouse_name": "Peter Ouma"
        })

        assert response.status_code == 200
        data = response.json()
        assert data["occupation"] == "Nurse"
        assert data["marital_status"] == "married"

    @pytest.mark.integration
    async def test_update_profile_phone_taken(self, client, pending_headers, approved_member):
        response = await client.put("/api/v1/members/profile", headers=pending_headers, json={
            "phone_number": approved_member.phone_number
        })

        assert response.status_code == 400

    @pytest.mark.integration
    async def test_completeness_lists_missing_fields(self, client, pending_headers):
        response = await client.get("/api/v1/members/profile/completeness", headers=pending_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["complete"] is False
        assert "national_id" in data["missing_fields"]
        assert "passport_image" in data["missing_fields"]
        assert "email" not in data["missing_fields"]

    @pytest.mark.integration
    async def test_completeness_for_complete_profile(self, client, member_headers):
        response = await client.get("/api/v1/members/profile/completeness", headers=member_headers)

        assert response.json() == {"complete": True, "missing_fields": []}


class TestKYCUpload:

    @pytest.mark.integration
    async def test_upload_passport(self, client, pending_headers, storage):
        response = await client.post(
            "/api/v1/members/kyc/passport",
            headers=pending_headers,
            files={"file": ("passport.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["document_type"] == "passport"
        assert data["url"].startswith("http://test/uploads/kyc_documents/")
        assert data["profile_complete"] is False

        stored = list((storage.root / "kyc_documents").iterdir())
        assert len(stored) == 1

        profile = await client.get("/api/v1/members/profile", headers=pending_headers)
        assert profile.json()["passport_image"] == data["url"]

    @pytest.mark.integration
    async def test_upload_rejects_disallowed_type(self, client, pending_headers):
        response = await client.post(
            "/api/v1/members/kyc/id",
            headers=pending_headers,
            files={"file": ("id.exe", b"MZ", "application/octet-stream")}
        )

        assert response.status_code == 400

    @pytest.mark.integration
    async def test_upload_rejects_empty_file(self, client, pending_headers):
        response = await client.post(
            "/api/v1/members/kyc/kra",
            headers=pending_headers,
            files={"file": ("kra.pdf", b"", "application/pdf")}
        )

        assert response.status_code == 400


class TestGuarantors:

    @pytest.mark.integration
    async def test_lists_other_approved_members(
        self, client, member_headers, approved_member, guarantor_member, pending_member, admin_user
    ):
        response = await client.get("/api/v1/members/guarantors", headers=member_headers)

        assert response.status_code == 200
        ids = [m["id"] for m in response.json()]
        assert ids == [guarantor_member.id]

    @pytest.mark.integration
    async def test_pending_member_cannot_list(self, client, pending_headers):
        response = await client.get("/api/v1/members/guarantors", headers=pending_headers)

        assert response.status_code == 403


class TestAdminMemberReview:

    @pytest.mark.integration
    async def test_list_pending(self, client, admin_headers, pending_member, approved_member):
        response = await client.get("/api/v1/admin/members/pending", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["members"][0]["id"] == pending_member.id

    @pytest.mark.integration
    async def test_search_by_name(self, client, admin_headers, pending_member, approved_member):
        response = await client.get("/api/v1/admin/members", headers=admin_headers, params={"search": "wanjiku"})

        assert response.status_code == 200
        assert [m["id"] for m in response.json()["members"]] == [approved_member.id]

    @pytest.mark.integration
    async def test_approve_member(self, client, admin_headers, admin_user, pending_member):
        response = await client.post(f"/api/v1/admin/members/{pending_member.id}/approve", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert pending_member.reviewed_by == admin_user.id

    @pytest.mark.integration
    async def test_reject_member_with_reason(self, client, admin_headers, pending_member):
        response = await client.post(
            f"/api/v1/admin/members/{pending_member.id}/reject",
            headers=admin_headers,
            json={"reason": "National ID could not be verified"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "rejected"
        assert data["rejection_reason"] == "National ID could not be verified"

    @pytest.mark.integration
    async def test_cannot_review_twice(self, client, admin_headers, approved_member):
        response = await client.post(f"/api/v1/admin/members/{approved_member.id}/approve", headers=admin_headers)

        assert response.status_code == 409

    @pytest.mark.integration
    async def test_admin_cannot_be_reviewed(self, client, admin_headers, admin_user):
        response = await client.post(f"/api/v1/admin/members/{admin_user.id}/approve", headers=admin_headers)

        assert response.status_code == 409

    @pytest.mark.integration
    async def test_members_cannot_use_admin_routes(self, client, member_headers):
        response = await client.get("/api/v1/admin/members", headers=member_headers)

        assert response.status_code == 403

    @pytest.mark.integration
    async def test_unknown_member(self, client, admin_headers):
        response = await client.get("/api/v1/admin/members/9999", headers=admin_headers)

        assert response.status_code == 404

    @pytest.mark.unit
    def test_status_values(self):
        assert {s.value for s in MembershipStatus} == {"pending", "approved", "rejected"}
