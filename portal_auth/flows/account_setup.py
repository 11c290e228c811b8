"""Account activation for invited users.

Steps: loading -> password -> profile -> success, or loading -> error.

Each step can be re-submitted after a transient failure. The password step
tries to sign in with the new password before asking the invitation service
to set it, so a retry after a lost response finds the password already in
place instead of tripping over a consumed token.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import ValidationError as SchemaValidationError

from portal_auth.config import settings
from portal_auth.constants import ACTIVATION_REDIRECT_PATH, Department, Messages, SetupStep
from portal_auth.exceptions import (
    AuthFlowError,
    AuthorizationMissing,
    AuthRejected,
    InvitationInvalid,
    ServiceUnavailable,
)
from portal_auth.schemas.flows import SetupSnapshot
from portal_auth.schemas.invitation import ProfileUpdate
from portal_auth.services.credential_service import CredentialVerifier
from portal_auth.services.gateway.base import InvitationGateway
from portal_auth.services.invitation_service import InvitationTokenValidator
from portal_auth.services.password_policy import PasswordCheck, validate_password
from portal_auth.services.security_audit_service import SecurityAuditService, SecurityEventType
from portal_auth.services.shared.emails import normalize_email

logger = logging.getLogger(__name__)


class AccountSetupWizard:
    """Drives password creation and profile completion for an invitee."""

    def __init__(
        self,
        validator: InvitationTokenValidator,
        verifier: CredentialVerifier,
        invitations: InvitationGateway,
        password_policy: Callable[[str], PasswordCheck] = validate_password,
        redirect_delay_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.validator = validator
        self.verifier = verifier
        self.invitations = invitations
        self.password_policy = password_policy
        self.redirect_delay_seconds = (
            settings.activation_redirect_delay_seconds
            if redirect_delay_seconds is None
            else redirect_delay_seconds
        )
        self._sleep = sleep

        self.step = SetupStep.LOADING
        self.error: str | None = None
        self.token: str | None = None
        self.email: str | None = None
        self.user_id: str | None = None
        self.redirect_to: str | None = None
        self._submitting = False

    @property
    def submitting(self) -> bool:
        return self._submitting

    def snapshot(self) -> SetupSnapshot:
        return SetupSnapshot(
            step=self.step,
            email=self.email,
            error=self.error,
            submitting=self._submitting,
            user_id=self.user_id,
            redirect_to=self.redirect_to,
            redirect_after_seconds=(
                self.redirect_delay_seconds if self.step == SetupStep.SUCCESS else None
            ),
        )

    async def start(self, token: str | None, email: str | None) -> SetupSnapshot:
        """Validate the invitation link and open the password step."""
        if self.step != SetupStep.LOADING:
            return self.snapshot()

        self.token = token
        self.email = normalize_email(email) if email else None
        try:
            result = await self.validator.ensure_valid(token, email)
        except InvitationInvalid as e:
            self.step = SetupStep.ERROR
            self.error = e.message
            SecurityAuditService.log_event(
                SecurityEventType.INVITATION_REJECTED, email=self.email, details={"reason": e.reason}
            )
            return self.snapshot()
        except ServiceUnavailable as e:
            # An unreachable validator must not lock out a legitimate invitee
            logger.warning(f"Invitation validation unavailable, continuing: {e}")
            self.step = SetupStep.PASSWORD
            return self.snapshot()

        self.user_id = result.identity_id
        self.step = SetupStep.PASSWORD
        SecurityAuditService.log_event(
            SecurityEventType.INVITATION_VALIDATED, email=self.email, user_id=self.user_id
        )
        return self.snapshot()

    async def submit_password(self, password: str, confirm_password: str) -> SetupSnapshot:
        """Set the invitee's password and sign in with it."""
        if self.step != SetupStep.PASSWORD or self._submitting:
            return self.snapshot()

        self.error = None
        if password != confirm_password:
            self.error = Messages.PASSWORD_MISMATCH
            return self.snapshot()

        check = self.password_policy(password)
        if not check.is_valid:
            self.error = Messages.PASSWORD_WEAK.format(errors=", ".join(check.errors))
            return self.snapshot()

        self._submitting = True
        try:
            await self._establish_password(password)
            try:
                profile = await self.verifier.fetch_authorization_profile()
                self.user_id = profile.user_id
            except (AuthorizationMissing, ServiceUnavailable) as e:
                logger.info(f"Profile not available yet after password setup: {type(e).__name__}")
            self.step = SetupStep.PROFILE
            SecurityAuditService.log_event(
                SecurityEventType.PASSWORD_SET, email=self.email, user_id=self.user_id
            )
        except AuthFlowError as e:
            logger.warning(f"Password setup failed: {type(e).__name__}")
            self.error = Messages.PASSWORD_SETUP_FAILED
        finally:
            self._submitting = False
        return self.snapshot()

    async def _establish_password(self, password: str) -> None:
        try:
            # Already set by an earlier attempt whose response was lost
            await self.verifier.verify(self.email or "", password)
            return
        except AuthRejected:
            pass
        await self.invitations.setup_password(self.token or "", self.email or "", password)
        await self.verifier.verify(self.email or "", password)

    async def submit_profile(
        self,
        full_name: str,
        phone: str | None = None,
        department: str | None = None,
        position: str | None = None,
    ) -> SetupSnapshot:
        """Store the profile and clear the pending-setup flag."""
        if self.step != SetupStep.PROFILE or self._submitting:
            return self.snapshot()

        self.error = None
        if not (full_name or "").strip():
            self.error = Messages.FULL_NAME_REQUIRED
            return self.snapshot()
        try:
            form = ProfileUpdate(
                full_name=full_name,
                phone=phone,
                department=department or Department.DEFAULT,
                position=position,
            )
        except SchemaValidationError as e:
            invalid = {err["loc"][0] for err in e.errors() if err["loc"]}
            self.error = (
                Messages.DEPARTMENT_INVALID if "department" in invalid else Messages.PROFILE_FAILED
            )
            return self.snapshot()

        self._submitting = True
        try:
            profile = await self.verifier.fetch_authorization_profile()
            self.user_id = profile.user_id
            await self.invitations.update_own_profile(self.user_id, form.model_dump())
            await self.verifier.mark_setup_complete()
            self.redirect_to = ACTIVATION_REDIRECT_PATH.format(user_id=self.user_id)
            self.step = SetupStep.SUCCESS
            SecurityAuditService.log_event(
                SecurityEventType.PROFILE_COMPLETED, email=self.email, user_id=self.user_id
            )
        except AuthFlowError as e:
            logger.warning(f"Profile update failed: {type(e).__name__}")
            self.error = Messages.PROFILE_FAILED
        finally:
            self._submitting = False
        return self.snapshot()

    async def wait_for_redirect(self) -> str | None:
        """Wait the hand-off delay and return where to navigate."""
        if self.step != SetupStep.SUCCESS:
            return None
        await self._sleep(self.redirect_delay_seconds)
        return self.redirect_to
