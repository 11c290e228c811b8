"""One-time-code challenge manager.

The code itself lives on the server. This manager adds the client-side rules:
format checks before any network call, the resend cooldown and deterministic
rejection once a challenge has been consumed.
"""

import logging
import time

from portal_auth.config import settings
from portal_auth.constants import Messages
from portal_auth.exceptions import ServiceUnavailable, StepUpFailed, ValidationError
from portal_auth.schemas.otp import OtpVerification
from portal_auth.services.countdown import Clock, Countdown
from portal_auth.services.gateway.base import OtpGateway
from portal_auth.services.shared.emails import normalize_email

logger = logging.getLogger(__name__)


class OtpChallengeManager:
    """Issue, verify and throttle second-factor codes."""

    def __init__(
        self,
        gateway: OtpGateway,
        code_length: int | None = None,
        cooldown_seconds: int | None = None,
        clock: Clock = time.monotonic,
    ):
        self.gateway = gateway
        self.code_length = code_length or settings.otp_length
        self.cooldown_seconds = (
            settings.otp_resend_cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        )
        self._clock = clock
        self._cooldowns: dict[str, Countdown] = {}
        self._consumed: set[str] = set()

    def cooldown(self, email: str) -> Countdown | None:
        """The running resend cooldown for ``email``, if any."""
        countdown = self._cooldowns.get(normalize_email(email))
        if countdown is not None and countdown.expired:
            return None
        return countdown

    def resend_in(self, email: str) -> int:
        countdown = self.cooldown(email)
        return countdown.remaining if countdown else 0

    def can_issue(self, email: str) -> bool:
        return self.resend_in(email) == 0

    def is_well_formed(self, code: str) -> bool:
        return len(code) == self.code_length and code.isascii() and code.isdigit()

    async def issue(self, email: str) -> Countdown:
        """Send a fresh code, replacing any live challenge.

        Returns the resend cooldown started on success.

        Raises:
            ValidationError: the cooldown of a previous code is still running
            ServiceUnavailable: the code could not be sent
        """
        email = normalize_email(email)
        remaining = self.resend_in(email)
        if remaining:
            raise ValidationError(Messages.OTP_RESEND_WAIT.format(seconds=remaining))

        try:
            await self.gateway.send(email)
        except ServiceUnavailable as e:
            logger.warning(f"Failed to send verification code: {e}")
            raise ServiceUnavailable(Messages.OTP_SEND_FAILED) from e

        self._consumed.discard(email)
        countdown = Countdown(self.cooldown_seconds, clock=self._clock)
        self._cooldowns[email] = countdown
        return countdown

    async def verify(self, email: str, code: str) -> OtpVerification:
        """Check a submitted code.

        Malformed codes are rejected without a network call. A consumed
        challenge (matched, or out of attempts) fails without asking the
        server again.
        """
        email = normalize_email(email)
        code = (code or "").strip()
        if not self.is_well_formed(code):
            raise ValidationError(Messages.OTP_INCOMPLETE.format(length=self.code_length))

        if email in self._consumed:
            return OtpVerification(valid=False, message=Messages.OTP_EXHAUSTED, remaining_attempts=0)

        result = await self.gateway.verify(email, code)
        if result.valid or result.remaining_attempts <= 0:
            self._consumed.add(email)
        return result

    def reset(self, email: str) -> None:
        """Forget cooldown and consumption state for ``email``."""
        email = normalize_email(email)
        countdown = self._cooldowns.pop(email, None)
        if countdown is not None:
            countdown.cancel()
        self._consumed.discard(email)

    async def confirm(self, email: str, code: str) -> OtpVerification:
        """Verify ``code``; a rejected code raises ``StepUpFailed``."""
        result = await self.verify(email, code)
        if not result.valid:
            message = Messages.OTP_INVALID if result.remaining_attempts > 0 else Messages.OTP_EXHAUSTED
            raise StepUpFailed(message, remaining_attempts=result.remaining_attempts)
        return result
