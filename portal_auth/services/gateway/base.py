"""Interfaces of the remote collaborators consumed by the sign-in flows.

The HTTP gateways in this package implement them; tests substitute
in-memory fakes.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from portal_auth.schemas.identity import AuthorizationProfile, BackendSession
from portal_auth.schemas.invitation import InvitationStatus
from portal_auth.schemas.otp import OtpVerification
from portal_auth.schemas.rate_limit import RateLimitStatus

SessionListener = Callable[[str, BackendSession | None], Awaitable[None] | None]


class LimiterGateway(Protocol):
    async def check(self, email: str) -> RateLimitStatus: ...

    async def record(self, email: str, success: bool) -> None: ...


class OtpGateway(Protocol):
    async def send(self, email: str) -> None: ...

    async def verify(self, email: str, code: str) -> OtpVerification: ...


class IdentityBackend(Protocol):
    async def sign_in(self, email: str, password: str) -> BackendSession: ...

    async def sign_out(self) -> None: ...

    async def resume_session(self, access_token: str) -> BackendSession | None: ...

    async def get_session(self) -> BackendSession | None: ...

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]: ...

    async def update_user_metadata(self, **metadata) -> None: ...


class AuthorizationDirectory(Protocol):
    async def get_current_user_info(self) -> list[AuthorizationProfile]: ...


class InvitationGateway(Protocol):
    async def validate_invitation(self, token: str, email: str) -> InvitationStatus: ...

    async def setup_password(self, token: str, email: str, new_password: str) -> None: ...

    async def update_own_profile(self, user_id: str, fields: dict) -> None: ...
