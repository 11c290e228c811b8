"""Tests for the sign-in and activation HTTP endpoints."""

from portal_auth.constants import LoginStep, SetupStep
from tests.fakes import CORPORATE_EMAIL, PASSWORD, VALID_CODE

INVITEE = "nuevo@avtechesdeveniments.com"
NEW_PASSWORD = "Nexo-Strong-Pass-2025!"


def login(test_client, email=CORPORATE_EMAIL, password=PASSWORD):
    return test_client.post("/api/auth/login", json={"email": email, "password": password})


class TestHealth:
    def test_health(self, api_client):
        test_client, _ = api_client

        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestLoginEndpoints:
    """Credential and code steps over HTTP."""

    def test_full_login(self, api_client):
        """Credentials, then the code, returns the session."""
        test_client, identity = api_client

        response = login(test_client)
        assert response.status_code == 200
        data = response.json()
        assert data["step"] == LoginStep.OTP_CHALLENGE
        assert data["flow_id"]
        assert "device_id" in response.cookies

        response = test_client.post(f"/api/auth/login/{data['flow_id']}/code", json={"code": VALID_CODE})
        assert response.status_code == 200
        completed = response.json()
        assert completed["step"] == LoginStep.COMPLETE
        assert completed["flow_id"] is None
        assert completed["user"]["user_id"] == "user-1"
        assert completed["session"]["access_token"]

        # The attempt is over
        response = test_client.post(f"/api/auth/login/{data['flow_id']}/code", json={"code": VALID_CODE})
        assert response.status_code == 404

    def test_same_device_skips_code_later_today(self, api_client):
        test_client, _ = api_client
        flow_id = login(test_client).json()["flow_id"]
        test_client.post(f"/api/auth/login/{flow_id}/code", json={"code": VALID_CODE})

        data = login(test_client).json()

        assert data["step"] == LoginStep.COMPLETE

    def test_other_device_needs_code(self, api_client):
        test_client, _ = api_client
        flow_id = login(test_client).json()["flow_id"]
        test_client.post(f"/api/auth/login/{flow_id}/code", json={"code": VALID_CODE})
        test_client.cookies.clear()

        data = login(test_client).json()

        assert data["step"] == LoginStep.OTP_CHALLENGE

    def test_rejected_credentials_not_kept(self, api_client):
        test_client, _ = api_client

        data = login(test_client, password="wrong").json()

        assert data["step"] == LoginStep.CREDENTIALS
        assert data["error"] == "Invalid email or password."
        assert data["flow_id"] is None

    def test_foreign_domain(self, api_client):
        test_client, identity = api_client

        data = login(test_client, email="ana@gmail.com").json()

        assert data["step"] == LoginStep.CREDENTIALS
        assert "@avtechesdeveniments.com" in data["error"]
        assert identity.sign_ins == []

    def test_lockout_reported(self, api_client):
        test_client, _ = api_client
        for _ in range(3):
            data = login(test_client, password="wrong").json()

        assert data["step"] == LoginStep.RATE_LIMITED
        assert data["retry_after_seconds"] == 900

    def test_wrong_code_keeps_attempt_open(self, api_client):
        test_client, _ = api_client
        flow_id = login(test_client).json()["flow_id"]

        data = test_client.post(f"/api/auth/login/{flow_id}/code", json={"code": "000000"}).json()

        assert data["step"] == LoginStep.OTP_CHALLENGE
        assert data["remaining_attempts"] == 2
        assert data["flow_id"] == flow_id

    def test_resend_during_cooldown(self, api_client):
        test_client, _ = api_client
        flow_id = login(test_client).json()["flow_id"]

        data = test_client.post(f"/api/auth/login/{flow_id}/resend").json()

        assert data["step"] == LoginStep.OTP_CHALLENGE
        assert data["can_resend"] is False
        assert data["error"].startswith("You can request a new code")

    def test_back_ends_attempt(self, api_client):
        test_client, _ = api_client
        flow_id = login(test_client).json()["flow_id"]

        data = test_client.post(f"/api/auth/login/{flow_id}/back").json()

        assert data["step"] == LoginStep.CREDENTIALS
        assert test_client.post(f"/api/auth/login/{flow_id}/resend").status_code == 404

    def test_abandon(self, api_client):
        test_client, _ = api_client
        flow_id = login(test_client).json()["flow_id"]

        response = test_client.delete(f"/api/auth/login/{flow_id}")

        assert response.status_code == 204
        assert test_client.post(f"/api/auth/login/{flow_id}/back").status_code == 404

    def test_unknown_flow(self, api_client):
        test_client, _ = api_client

        response = test_client.post("/api/auth/login/nope/code", json={"code": VALID_CODE})

        assert response.status_code == 404

    def test_credentials_endpoint_rate_limited(self, api_client):
        """More than ten credential submissions a minute are refused."""
        test_client, _ = api_client
        for _ in range(10):
            assert login(test_client, password="wrong").status_code == 200

        response = login(test_client, password="wrong")

        assert response.status_code == 429


class TestLogoutEndpoint:
    """Explicit sign-out over HTTP."""

    def full_login(self, test_client) -> dict:
        flow_id = login(test_client).json()["flow_id"]
        response = test_client.post(f"/api/auth/login/{flow_id}/code", json={"code": VALID_CODE})
        return response.json()

    def test_logout_ends_session_and_trust(self, api_client):
        """After signing out the same device needs a code again."""
        test_client, identity = api_client
        completed = self.full_login(test_client)
        token = completed["session"]["access_token"]

        response = test_client.post(
            "/api/auth/logout", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 204
        assert identity.session is None
        assert login(test_client).json()["step"] == LoginStep.OTP_CHALLENGE

    def test_logout_without_token_still_forgets_device(self, api_client):
        test_client, _ = api_client
        self.full_login(test_client)

        response = test_client.post("/api/auth/logout")

        assert response.status_code == 204
        assert login(test_client).json()["step"] == LoginStep.OTP_CHALLENGE

    def test_logout_keeps_other_devices_trusted(self, api_client, storage):
        test_client, _ = api_client
        self.full_login(test_client)
        trusted_keys = set(storage._data)
        test_client.cookies.clear()

        response = test_client.post("/api/auth/logout")

        assert response.status_code == 204
        assert set(storage._data) == trusted_keys

    def test_logout_with_unknown_token(self, api_client):
        test_client, identity = api_client

        response = test_client.post("/api/auth/logout", headers={"Authorization": "Bearer stale"})

        assert response.status_code == 204
        assert identity.session is None


class TestAccountSetupEndpoints:
    """Invitation activation over HTTP."""

    def test_full_activation(self, api_client, invitations):
        test_client, identity = api_client
        invitations.invite("tok", INVITEE, user_id="user-9")

        data = test_client.post("/api/auth/setup", json={"token": "tok", "email": INVITEE}).json()
        assert data["step"] == SetupStep.PASSWORD
        wizard_id = data["flow_id"]

        data = test_client.post(
            f"/api/auth/setup/{wizard_id}/password",
            json={"password": NEW_PASSWORD, "confirm_password": NEW_PASSWORD},
        ).json()
        assert data["step"] == SetupStep.PROFILE

        data = test_client.post(
            f"/api/auth/setup/{wizard_id}/profile",
            json={"full_name": "Nuevo Usuario", "department": "TECHNICAL"},
        ).json()
        assert data["step"] == SetupStep.SUCCESS
        assert data["redirect_to"] == "/user-9/dashboard"
        assert identity.metadata == {"pending_setup": False}

        response = test_client.post(
            f"/api/auth/setup/{wizard_id}/profile", json={"full_name": "Nuevo Usuario"}
        )
        assert response.status_code == 404

    def test_missing_token(self, api_client):
        test_client, _ = api_client

        data = test_client.post("/api/auth/setup", json={"email": INVITEE}).json()

        assert data["step"] == SetupStep.ERROR
        assert data["flow_id"] is None

    def test_password_mismatch_keeps_wizard(self, api_client, invitations):
        test_client, _ = api_client
        invitations.invite("tok", INVITEE)
        wizard_id = test_client.post("/api/auth/setup", json={"token": "tok", "email": INVITEE}).json()["flow_id"]

        data = test_client.post(
            f"/api/auth/setup/{wizard_id}/password",
            json={"password": NEW_PASSWORD, "confirm_password": "other"},
        ).json()

        assert data["step"] == SetupStep.PASSWORD
        assert data["error"] == "The passwords do not match."
        assert data["flow_id"] == wizard_id
