"""Two-step sign-in: password, then a one-time code unless trusted for today.

Steps::

    credentials -> rate_limited -> credentials          (lockout countdown)
    credentials -> otp_challenge -> verifying -> complete
    credentials -> complete                             (trusted for today)
    otp_challenge -> credentials                        (back)

A ``LoginFlow`` is built fresh per sign-in attempt by its caller. Its
collaborators are injected so tests can substitute deterministic fakes.
Every response is checked against a generation counter: once the flow moved
on (back, abandon) a late response is dropped instead of resurrecting a
dismissed step.
"""

import logging
import time
from collections.abc import Callable

from portal_auth.config import settings
from portal_auth.constants import LoginStep, Messages
from portal_auth.exceptions import (
    AuthFlowError,
    AuthorizationMissing,
    AuthRejected,
    RateLimitedError,
    ServiceUnavailable,
    StepUpFailed,
    ValidationError,
)
from portal_auth.schemas.flows import LoginSnapshot
from portal_auth.schemas.identity import AuthorizationProfile, BackendSession
from portal_auth.services.countdown import Clock, Countdown
from portal_auth.services.credential_service import CredentialVerifier
from portal_auth.services.otp_service import OtpChallengeManager
from portal_auth.services.rate_limit_service import RateLimiterService
from portal_auth.services.security_audit_service import SecurityAuditService, SecurityEventType
from portal_auth.services.shared.emails import has_domain, normalize_email
from portal_auth.services.trusted_session import TrustedSessionCache

logger = logging.getLogger(__name__)


class _StaleResponse(Exception):
    """A response arrived for a generation the flow has already left."""


class PendingStepUp:
    """E-mail and password held between the credential and code steps.

    Lives in memory only and is wiped on every exit from the code step.
    """

    __slots__ = ("email", "_secret")

    def __init__(self, email: str, secret: str):
        self.email = email
        self._secret = bytearray(secret.encode("utf-8"))

    @property
    def secret(self) -> str:
        return self._secret.decode("utf-8")

    @property
    def wiped(self) -> bool:
        return not self._secret

    def wipe(self) -> None:
        for i in range(len(self._secret)):
            self._secret[i] = 0
        self._secret = bytearray()

    def __repr__(self) -> str:
        return f"PendingStepUp(email={self.email!r}, secret=<redacted>)"


class LoginFlow:
    """Orchestrates limiter, credential check, trusted skip and step-up."""

    def __init__(
        self,
        rate_limiter: RateLimiterService,
        otp: OtpChallengeManager,
        verifier: CredentialVerifier,
        trusted: TrustedSessionCache,
        corporate_domain: str | None = None,
        clock: Clock = time.monotonic,
        auto_tick: bool = False,
        on_change: Callable[[LoginSnapshot], None] | None = None,
    ):
        self.rate_limiter = rate_limiter
        self.otp = otp
        self.verifier = verifier
        self.trusted = trusted
        self.corporate_domain = corporate_domain or settings.corporate_domain
        self._clock = clock
        self._auto_tick = auto_tick
        self._on_change = on_change

        self._step = LoginStep.CREDENTIALS
        self._generation = 0
        self._submitting = False
        self._lockout: Countdown | None = None
        self._pending: PendingStepUp | None = None

        self.email: str | None = None
        self.error: str | None = None
        self.code = ""
        self.remaining_attempts: int | None = None
        self.user: AuthorizationProfile | None = None
        self.session: BackendSession | None = None

    # State

    @property
    def step(self) -> str:
        self._reconcile()
        return self._step

    @property
    def submitting(self) -> bool:
        return self._submitting

    @property
    def pending(self) -> PendingStepUp | None:
        return self._pending

    @property
    def retry_after_seconds(self) -> int:
        self._reconcile()
        return self._lockout.remaining if self._lockout else 0

    @property
    def resend_in(self) -> int:
        return self.otp.resend_in(self.email) if self.email else 0

    @property
    def can_submit(self) -> bool:
        return self.step in (LoginStep.CREDENTIALS, LoginStep.OTP_CHALLENGE) and not self._submitting

    @property
    def can_resend(self) -> bool:
        return self.step == LoginStep.OTP_CHALLENGE and not self._submitting and self.resend_in == 0

    def snapshot(self) -> LoginSnapshot:
        return LoginSnapshot(
            step=self.step,
            email=self.email,
            error=self.error,
            submitting=self._submitting,
            can_submit=self.can_submit,
            retry_after_seconds=self.retry_after_seconds,
            remaining_attempts=self.remaining_attempts,
            resend_in=self.resend_in,
            can_resend=self.can_resend,
            user=self.user,
            session=self.session,
        )

    def _notify(self, *_args) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())

    def _reconcile(self) -> None:
        if self._step == LoginStep.RATE_LIMITED and self._lockout and self._lockout.expired:
            self._lockout.cancel()
            self._lockout = None
            self._step = LoginStep.CREDENTIALS
            self.error = None

    def _check_current(self, generation: int) -> None:
        if generation != self._generation:
            raise _StaleResponse()

    async def _drop_if_stale(self, generation: int) -> None:
        """Abandon a superseded attempt, ending the session it may have opened."""
        if generation != self._generation:
            if not self._submitting:
                await self._sign_out_quietly()
            raise _StaleResponse()

    def _begin(self) -> int:
        self._submitting = True
        self.error = None
        return self._generation

    def _end(self, generation: int) -> None:
        if generation == self._generation:
            self._submitting = False

    # Transitions

    def _enter_rate_limited(self, error: RateLimitedError) -> None:
        if self._lockout is not None:
            self._lockout.cancel()
        self._lockout = Countdown(error.retry_after_seconds, clock=self._clock)
        self._step = LoginStep.RATE_LIMITED
        self.error = error.message
        SecurityAuditService.log_event(
            SecurityEventType.LOGIN_BLOCKED_RATE_LIMIT,
            email=self.email,
            details={"retry_after_seconds": error.retry_after_seconds},
        )
        if self._auto_tick:
            self._lockout.start(on_tick=self._notify, on_expire=self._on_lockout_expired)

    def _on_lockout_expired(self) -> None:
        self._reconcile()
        self._notify()

    def _discard_pending(self) -> None:
        if self._pending is not None:
            self._pending.wipe()
            self._pending = None

    def _reset_code_state(self) -> None:
        if self.email:
            self.otp.reset(self.email)
        self.code = ""
        self.remaining_attempts = None

    def _return_to_credentials(self, error: str | None = None) -> None:
        self._discard_pending()
        self._reset_code_state()
        self._step = LoginStep.CREDENTIALS
        self.error = error

    def _complete(self, user: AuthorizationProfile, session: BackendSession | None) -> None:
        self._discard_pending()
        self.user = user
        self.session = session
        self._step = LoginStep.COMPLETE
        self.error = None
        SecurityAuditService.log_event(
            SecurityEventType.LOGIN_SUCCESS, email=self.email, user_id=user.user_id
        )

    async def _record_failure(self, generation: int) -> None:
        """Count a failed attempt and show either the lockout or the generic error."""
        await self.rate_limiter.record(self.email, False)
        try:
            await self.rate_limiter.ensure_allowed(self.email)
        except RateLimitedError as e:
            self._check_current(generation)
            SecurityAuditService.log_event(SecurityEventType.LOGIN_FAILED, email=self.email)
            self._enter_rate_limited(e)
            return
        self._check_current(generation)
        SecurityAuditService.log_event(SecurityEventType.LOGIN_FAILED, email=self.email)
        self._step = LoginStep.CREDENTIALS
        self.error = Messages.INVALID_CREDENTIALS

    async def _sign_out_quietly(self) -> None:
        try:
            await self.verifier.sign_out()
        except AuthFlowError as e:
            logger.warning(f"Sign-out after rejected login failed: {e}")

    # Credential step

    async def submit_credentials(self, email: str, password: str) -> LoginSnapshot:
        """Run the primary credential step."""
        if self.step != LoginStep.CREDENTIALS or self._submitting:
            return self.snapshot()

        email = normalize_email(email)
        self.email = email
        self.error = None
        if not has_domain(email, self.corporate_domain):
            SecurityAuditService.log_event(SecurityEventType.LOGIN_REJECTED_DOMAIN, email=email)
            self.error = Messages.DOMAIN_NOT_ALLOWED.format(domain=self.corporate_domain)
            return self.snapshot()

        generation = self._begin()
        try:
            await self._authenticate(email, password, generation)
        except _StaleResponse:
            logger.debug("Dropped stale credential response")
        finally:
            self._end(generation)
        self._notify()
        return self.snapshot()

    async def _authenticate(self, email: str, password: str, generation: int) -> None:
        try:
            await self.rate_limiter.ensure_allowed(email)
        except RateLimitedError as e:
            self._check_current(generation)
            self._enter_rate_limited(e)
            return
        self._check_current(generation)

        try:
            session = await self.verifier.verify(email, password)
        except AuthRejected:
            self._check_current(generation)
            await self._record_failure(generation)
            return
        except ServiceUnavailable as e:
            self._check_current(generation)
            logger.warning(f"Identity backend unavailable during sign-in: {e}")
            self.error = Messages.UNEXPECTED
            return

        try:
            self._check_current(generation)
            user = await self.verifier.fetch_authorization_profile()
            self._check_current(generation)
        except (AuthorizationMissing, ServiceUnavailable) as e:
            # Valid credentials alone do not make a user of this application
            SecurityAuditService.log_event(
                SecurityEventType.AUTHORIZATION_MISSING, email=email, details={"cause": type(e).__name__}
            )
            await self._sign_out_quietly()
            self.trusted.clear()
            self._check_current(generation)
            await self._record_failure(generation)
            return
        except _StaleResponse:
            if not self._submitting:
                await self._sign_out_quietly()
            raise

        if self.trusted.can_skip(email):
            await self.rate_limiter.record(email, True)
            await self._drop_if_stale(generation)
            self.trusted.mark_trusted(email)
            SecurityAuditService.log_event(SecurityEventType.OTP_SKIPPED_TRUSTED, email=email)
            self._complete(user, session)
            return

        # The backend session is re-established only after the code step
        await self._sign_out_quietly()
        self._check_current(generation)
        self.trusted.clear()
        self._discard_pending()
        self._pending = PendingStepUp(email, password)
        self._reset_code_state()

        try:
            await self._issue_code()
        except AuthFlowError as e:
            self._check_current(generation)
            self._return_to_credentials(error=e.message)
            return
        self._check_current(generation)
        self._step = LoginStep.OTP_CHALLENGE

    async def _issue_code(self) -> None:
        countdown = await self.otp.issue(self.email)
        SecurityAuditService.log_event(SecurityEventType.OTP_SENT, email=self.email)
        if self._auto_tick:
            countdown.start(on_tick=self._notify, on_expire=self._notify)

    # Code step

    async def submit_code(self, code: str) -> LoginSnapshot:
        """Verify the one-time code and re-establish the backend session."""
        if self.step != LoginStep.OTP_CHALLENGE or self._submitting or self._pending is None:
            return self.snapshot()

        self.code = (code or "").strip()
        if not self.otp.is_well_formed(self.code):
            self.error = Messages.OTP_INCOMPLETE.format(length=self.otp.code_length)
            return self.snapshot()

        generation = self._begin()
        self._step = LoginStep.VERIFYING
        try:
            await self._verify_code(generation)
        except _StaleResponse:
            logger.debug("Dropped stale code response")
        finally:
            self._end(generation)
        self._notify()
        return self.snapshot()

    async def _verify_code(self, generation: int) -> None:
        try:
            await self.otp.confirm(self.email, self.code)
        except StepUpFailed as e:
            self._check_current(generation)
            self.remaining_attempts = e.remaining_attempts
            self._step = LoginStep.OTP_CHALLENGE
            self.error = e.message
            SecurityAuditService.log_event(
                SecurityEventType.OTP_FAILED,
                email=self.email,
                details={"remaining_attempts": e.remaining_attempts},
            )
            return
        except (ValidationError, ServiceUnavailable) as e:
            self._check_current(generation)
            logger.warning(f"Code verification unavailable: {e}")
            self._step = LoginStep.OTP_CHALLENGE
            self.error = e.message if isinstance(e, ValidationError) else Messages.UNEXPECTED
            return
        self._check_current(generation)

        SecurityAuditService.log_event(SecurityEventType.OTP_VERIFIED, email=self.email)
        pending = self._pending
        try:
            session = await self.verifier.verify(pending.email, pending.secret)
            self._check_current(generation)
            user = await self.verifier.fetch_authorization_profile()
        except (AuthRejected, ServiceUnavailable) as e:
            self._check_current(generation)
            logger.warning(f"Session re-establishment after step-up failed: {type(e).__name__}")
            await self._sign_out_quietly()
            await self.rate_limiter.record(self.email, False)
            self._check_current(generation)
            self._return_to_credentials(error=Messages.STEP_UP_FAILED)
            return
        except _StaleResponse:
            if not self._submitting:
                await self._sign_out_quietly()
            raise
        await self._drop_if_stale(generation)

        await self.rate_limiter.record(self.email, True)
        await self._drop_if_stale(generation)
        self.trusted.mark_trusted(self.email)
        self._reset_code_state()
        self._complete(user, session)

    async def resend_code(self) -> LoginSnapshot:
        """Send a new code once the cooldown has elapsed."""
        if not self.can_resend:
            if self.step == LoginStep.OTP_CHALLENGE and self.resend_in:
                self.error = Messages.OTP_RESEND_WAIT.format(seconds=self.resend_in)
            return self.snapshot()

        generation = self._begin()
        self.code = ""
        self.remaining_attempts = None
        try:
            try:
                await self._issue_code()
            except AuthFlowError as e:
                self._check_current(generation)
                self.error = e.message
        except _StaleResponse:
            logger.debug("Dropped stale resend response")
        finally:
            self._end(generation)
        self._notify()
        return self.snapshot()

    # Navigation

    def back(self) -> LoginSnapshot:
        """Leave the code step and forget everything captured for it."""
        if self.step not in (LoginStep.OTP_CHALLENGE, LoginStep.VERIFYING):
            return self.snapshot()
        self._generation += 1
        self._submitting = False
        self._return_to_credentials()
        self._notify()
        return self.snapshot()

    def abandon(self) -> None:
        """Drop the flow; responses still in flight are ignored."""
        self._generation += 1
        self._submitting = False
        self._discard_pending()
        if self.email:
            self.otp.reset(self.email)
        if self._lockout is not None:
            self._lockout.cancel()

    async def resume_existing_session(self) -> LoginSnapshot:
        """Complete immediately if an authorized backend session already exists."""
        if self.step != LoginStep.CREDENTIALS or self._submitting:
            return self.snapshot()

        generation = self._begin()
        try:
            session = await self.verifier.current_session()
            if session is None:
                return self.snapshot()
            self._check_current(generation)
            self.email = normalize_email(session.email)
            try:
                user = await self.verifier.fetch_authorization_profile()
            except (AuthorizationMissing, ServiceUnavailable):
                self._check_current(generation)
                await self._sign_out_quietly()
                self.error = Messages.NOT_AUTHORIZED
                return self.snapshot()
            self._check_current(generation)
            self._complete(user, session)
        except _StaleResponse:
            logger.debug("Dropped stale session check")
        finally:
            self._end(generation)
        self._notify()
        return self.snapshot()
