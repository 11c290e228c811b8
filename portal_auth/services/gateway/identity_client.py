"""Client for the identity backend and the authorization directory.

Holds the session established by the last successful sign-in in memory and
notifies listeners when it changes.
"""

import inspect
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from portal_auth.config import settings
from portal_auth.constants import SessionEvent
from portal_auth.exceptions import AuthRejected, ServiceUnavailable
from portal_auth.schemas.identity import AuthorizationProfile, BackendSession
from portal_auth.services.gateway.base import SessionListener
from portal_auth.services.shared.http_client import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)

TOKEN_PATH = "/auth/v1/token"
LOGOUT_PATH = "/auth/v1/logout"
USER_PATH = "/auth/v1/user"
USER_INFO_RPC_PATH = "/rest/v1/rpc/get_current_user_info"


class IdentityClient(HTTPClient):
    """Password sign-in, sign-out, session access and directory lookups."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        **kwargs,
    ):
        api_key = settings.api_key if api_key is None else api_key
        super().__init__(
            base_url=base_url or settings.identity_url,
            timeout=timeout or settings.http_timeout_seconds,
            max_retries=max_retries or settings.http_max_retries,
            headers={"apikey": api_key} if api_key else {},
            **kwargs,
        )
        self._session: BackendSession | None = None
        self._listeners: list[SessionListener] = []

    @property
    def access_token(self) -> str | None:
        return self._session.access_token if self._session else None

    def _bearer(self) -> dict[str, str]:
        if not self._session:
            return {}
        return {"Authorization": f"Bearer {self._session.access_token}"}

    async def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            result = listener(event, self._session)
            if inspect.isawaitable(result):
                await result

    async def sign_in(self, email: str, password: str) -> BackendSession:
        """Exchange e-mail and password for a session."""
        try:
            data = await self.post_json(
                TOKEN_PATH,
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except HTTPClientError as e:
            if e.is_transport_error:
                raise ServiceUnavailable("identity backend unreachable") from e
            # 400 covers both unknown e-mail and wrong password
            raise AuthRejected() from e

        user = data.get("user") or {}
        expires_in = data.get("expires_in")
        self._session = BackendSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            user_id=user.get("id", ""),
            email=user.get("email", email),
            expires_at=datetime.now(UTC) + timedelta(seconds=expires_in) if expires_in else None,
            user_metadata=user.get("user_metadata") or {},
        )
        await self._notify(SessionEvent.SIGNED_IN)
        return self._session

    async def sign_out(self) -> None:
        """Revoke the current session. The local session is always dropped."""
        if self._session is None:
            return
        headers = self._bearer()
        self._session = None
        try:
            await self.post(LOGOUT_PATH, headers=headers)
        except HTTPClientError as e:
            logger.warning(f"Remote sign-out failed, local session dropped: {e}")
        await self._notify(SessionEvent.SIGNED_OUT)

    async def resume_session(self, access_token: str) -> BackendSession | None:
        """Adopt a session issued earlier, if the backend still accepts its token."""
        try:
            response = await self.get(
                USER_PATH, headers={"Authorization": f"Bearer {access_token}"}
            )
        except HTTPClientError as e:
            if e.is_transport_error:
                raise ServiceUnavailable("identity backend unreachable") from e
            return None

        user = response.json() or {}
        self._session = BackendSession(
            access_token=access_token,
            user_id=user.get("id", ""),
            email=user.get("email", ""),
            user_metadata=user.get("user_metadata") or {},
        )
        return self._session

    async def get_session(self) -> BackendSession | None:
        """Return the current session, dropping it once expired."""
        if self._session and self._session.expires_at:
            if self._session.expires_at <= datetime.now(UTC):
                self._session = None
        return self._session

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        """Register a session listener; returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def update_user_metadata(self, **metadata) -> None:
        try:
            await self.put(USER_PATH, json={"data": metadata}, headers=self._bearer())
        except HTTPClientError as e:
            raise ServiceUnavailable("user metadata update failed") from e
        if self._session:
            self._session.user_metadata.update(metadata)

    async def get_current_user_info(self) -> list[AuthorizationProfile]:
        """Directory rows for the signed-in identity. Empty means not authorized."""
        try:
            rows = await self.post_json(
                USER_INFO_RPC_PATH, json={}, headers=self._bearer(), idempotent=True
            )
        except HTTPClientError as e:
            if e.is_transport_error:
                raise ServiceUnavailable("authorization directory unreachable") from e
            return []
        return [AuthorizationProfile.model_validate(row) for row in rows or []]
