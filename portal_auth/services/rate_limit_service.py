"""Login-attempt limiter client.

The limiter itself is remote; this service only reads and records counters.
A limiter outage never blocks sign-in.
"""

import logging

from portal_auth.exceptions import RateLimitedError, ServiceUnavailable, rate_limit_message
from portal_auth.schemas.rate_limit import RateLimitStatus
from portal_auth.services.gateway.base import LimiterGateway
from portal_auth.services.shared.emails import normalize_email

logger = logging.getLogger(__name__)


class RateLimiterService:
    """Query and record attempt counters for an identity."""

    def __init__(self, gateway: LimiterGateway):
        self.gateway = gateway

    async def check(self, email: str) -> RateLimitStatus:
        """Return the current limiter verdict.

        Fails open when the limiter is unreachable, but any lockout the
        limiter does report is surfaced with a positive countdown.
        """
        try:
            status = await self.gateway.check(normalize_email(email))
        except (ServiceUnavailable, ValueError) as e:
            logger.warning(f"Rate limit check unavailable, allowing attempt: {e}")
            return RateLimitStatus.open()

        if status.allowed:
            return status

        retry_after = max(status.retry_after_seconds, 1)
        return status.model_copy(
            update={
                "retry_after_seconds": retry_after,
                "message": status.message or rate_limit_message(retry_after),
            }
        )

    async def record(self, email: str, success: bool) -> None:
        """Record an attempt. Best effort: errors are logged and dropped."""
        try:
            await self.gateway.record(normalize_email(email), success)
        except Exception:
            logger.warning(
                f"Failed to record login attempt (success={success})", exc_info=True
            )

    async def ensure_allowed(self, email: str) -> RateLimitStatus:
        """Like ``check``, but a lockout raises ``RateLimitedError``."""
        status = await self.check(email)
        if not status.allowed:
            raise RateLimitedError(status.retry_after_seconds, status.message)
        return status
