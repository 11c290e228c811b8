"""Sign-in and activation error taxonomy.

Every member carries a user-safe ``message``. The flows catch these at their
boundary and map them to a single message per state; raw backend text is
never shown to the user.
"""

from portal_auth.constants import Messages


class AuthFlowError(Exception):
    """Base exception for sign-in and activation failures."""

    default_message = Messages.UNEXPECTED

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthFlowError):
    """Client-side rejection. Never reaches the network."""


class AuthRejected(AuthFlowError):
    """Unknown identity or wrong secret, deliberately indistinguishable."""

    default_message = Messages.INVALID_CREDENTIALS


class AuthorizationMissing(AuthRejected):
    """Valid credentials but no authorization profile in the directory."""


class RateLimitedError(AuthFlowError):
    """The limiter refused the attempt."""

    def __init__(self, retry_after_seconds: int, message: str | None = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message or rate_limit_message(retry_after_seconds))


class StepUpFailed(AuthFlowError):
    """Wrong, expired or exhausted one-time code."""

    default_message = Messages.OTP_INVALID

    def __init__(self, message: str | None = None, remaining_attempts: int = 0):
        self.remaining_attempts = remaining_attempts
        super().__init__(message)


class ServiceUnavailable(AuthFlowError):
    """Transport or backend fault."""


class InvitationInvalid(AuthFlowError):
    """The invitation service explicitly rejected the token."""

    default_message = Messages.INVITATION_INVALID

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message)


def rate_limit_message(retry_after_seconds: int) -> str:
    """Build the lockout message, rounding the wait up to whole minutes."""
    minutes = max(1, -(-retry_after_seconds // 60))
    return Messages.RATE_LIMITED.format(minutes=minutes)
