"""Client for the serverless functions gateway.

Covers the login-attempt limiter, the one-time-code service and the
invitation/admin service. All of them are JSON POST endpoints under
``settings.gateway_url``.
"""

import logging
from collections.abc import Callable

from portal_auth.config import settings
from portal_auth.exceptions import AuthRejected, ServiceUnavailable
from portal_auth.schemas.invitation import InvitationStatus
from portal_auth.schemas.otp import OtpVerification
from portal_auth.schemas.rate_limit import RateLimitRequest, RateLimitStatus
from portal_auth.services.shared.http_client import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)

RATE_LIMIT_PATH = "/rate-limit"
SEND_OTP_PATH = "/send-otp"
VERIFY_OTP_PATH = "/verify-otp"
ADMIN_USERS_PATH = "/admin-users"


class FunctionsClient(HTTPClient):
    """Gateway for limiter, one-time-code and invitation operations."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: Callable[[], str | None] | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        **kwargs,
    ):
        api_key = settings.api_key if api_key is None else api_key
        super().__init__(
            base_url=base_url or settings.gateway_url,
            timeout=timeout or settings.http_timeout_seconds,
            max_retries=max_retries or settings.http_max_retries,
            headers={"apikey": api_key} if api_key else {},
            **kwargs,
        )
        self._access_token = access_token

    def _auth_headers(self) -> dict[str, str]:
        token = self._access_token() if self._access_token else None
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _call(self, path: str, body: dict, idempotent: bool = False) -> dict:
        try:
            data = await self.post_json(
                path, json=body, headers=self._auth_headers(), idempotent=idempotent
            )
        except HTTPClientError as e:
            raise ServiceUnavailable(f"{path} failed: {e}") from e
        return data or {}

    # Limiter

    async def check(self, email: str) -> RateLimitStatus:
        body = RateLimitRequest(action="check", email=email).model_dump(exclude_none=True)
        data = await self._call(RATE_LIMIT_PATH, body, idempotent=True)
        return RateLimitStatus.model_validate(data)

    async def record(self, email: str, success: bool) -> None:
        body = RateLimitRequest(action="record", email=email, success=success).model_dump()
        await self._call(RATE_LIMIT_PATH, body)

    # One-time codes

    async def send(self, email: str) -> None:
        await self._call(SEND_OTP_PATH, {"email": email})

    async def verify(self, email: str, code: str) -> OtpVerification:
        data = await self._call(VERIFY_OTP_PATH, {"email": email, "code": code})
        return OtpVerification.model_validate(data)

    # Invitations

    async def validate_invitation(self, token: str, email: str) -> InvitationStatus:
        data = await self._call(
            ADMIN_USERS_PATH,
            {"action": "validate-invitation", "token": token, "email": email},
            idempotent=True,
        )
        return InvitationStatus.model_validate(data)

    async def setup_password(self, token: str, email: str, new_password: str) -> None:
        try:
            await self.post_json(
                ADMIN_USERS_PATH,
                json={
                    "action": "setup-password",
                    "token": token,
                    "email": email,
                    "newPassword": new_password,
                },
                headers=self._auth_headers(),
            )
        except HTTPClientError as e:
            if e.is_transport_error:
                raise ServiceUnavailable("setup-password failed") from e
            raise AuthRejected() from e

    async def update_own_profile(self, user_id: str, fields: dict) -> None:
        await self._call(
            ADMIN_USERS_PATH,
            {"action": "update_own_info", "userId": user_id, **fields},
        )
