"""Ending sessions: explicit sign-out and sign-out after inactivity."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from portal_auth.config import settings
from portal_auth.services.countdown import Clock
from portal_auth.services.credential_service import CredentialVerifier
from portal_auth.services.security_audit_service import SecurityAuditService, SecurityEventType
from portal_auth.services.trusted_session import TrustedSessionCache

logger = logging.getLogger(__name__)

ACTIVITY_THROTTLE_SECONDS = 1.0


async def sign_out(
    verifier: CredentialVerifier,
    trusted: TrustedSessionCache | None,
    event_type: str = SecurityEventType.LOGOUT,
) -> None:
    """Forget the trusted-for-today record and sign the backend out."""
    if trusted is not None:
        trusted.clear()
    session = await verifier.current_session()
    await verifier.sign_out()
    SecurityAuditService.log_event(event_type, email=session.email if session else None)


class InactivityMonitor:
    """Signs the user out after a period without activity.

    Warns once ``warning_minutes`` before the timeout. Activity reports
    closer together than a second are ignored.
    """

    def __init__(
        self,
        on_timeout: Callable[[], Awaitable[None]],
        on_warning: Callable[[int], None] | None = None,
        timeout_minutes: int | None = None,
        warning_minutes: int | None = None,
        clock: Clock = time.monotonic,
    ):
        self.on_timeout = on_timeout
        self.on_warning = on_warning
        self.timeout_seconds = (timeout_minutes or settings.inactivity_timeout_minutes) * 60
        self.warning_seconds = (
            settings.inactivity_warning_minutes if warning_minutes is None else warning_minutes
        ) * 60
        self._clock = clock
        self._last_activity = clock()
        self._warned = False
        self._timed_out = False
        self._task: asyncio.Task | None = None

    @property
    def idle_seconds(self) -> float:
        return self._clock() - self._last_activity

    def record_activity(self) -> None:
        if self._timed_out:
            return
        if self._clock() - self._last_activity > ACTIVITY_THROTTLE_SECONDS:
            self._last_activity = self._clock()
            self._warned = False

    async def check(self) -> None:
        """Warn or sign out depending on how long the user has been idle."""
        if self._timed_out:
            return
        idle = self.idle_seconds
        if idle >= self.timeout_seconds:
            self._timed_out = True
            logger.info("Signing out after inactivity")
            await self.on_timeout()
        elif idle >= self.timeout_seconds - self.warning_seconds and not self._warned:
            self._warned = True
            if self.on_warning is not None:
                self.on_warning(int(self.timeout_seconds - idle))

    def start(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> asyncio.Task:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run(sleep))
        return self._task

    async def _run(self, sleep) -> None:
        while not self._timed_out:
            await sleep(1)
            await self.check()

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
