"""Invitation token validation."""

import logging

from portal_auth.constants import Messages
from portal_auth.exceptions import InvitationInvalid
from portal_auth.schemas.invitation import InvitationReason, InvitationResult
from portal_auth.services.gateway.base import InvitationGateway
from portal_auth.services.shared.emails import normalize_email

logger = logging.getLogger(__name__)


def _classify(error_message: str | None) -> str:
    text = (error_message or "").lower()
    if "expired" in text:
        return InvitationReason.EXPIRED
    if "used" in text:
        return InvitationReason.ALREADY_USED
    if "not found" in text:
        return InvitationReason.NOT_FOUND
    return InvitationReason.INVALID


class InvitationTokenValidator:
    """Checks a one-time activation token bound to an e-mail."""

    def __init__(self, gateway: InvitationGateway):
        self.gateway = gateway

    async def validate(self, token: str | None, email: str | None) -> InvitationResult:
        """Validate ``token`` for ``email``.

        A missing token or e-mail is rejected without a network call.
        Transport faults propagate as ``ServiceUnavailable`` so the caller can
        decide how to recover; only an explicit rejection yields
        ``valid=False``.
        """
        if not token or not email or not email.strip():
            return InvitationResult(valid=False, reason=InvitationReason.MISSING)

        status = await self.gateway.validate_invitation(token, normalize_email(email))
        if not status.is_valid:
            reason = _classify(status.error_message)
            logger.info(f"Invitation rejected: {reason}")
            return InvitationResult(valid=False, reason=reason)
        return InvitationResult(valid=True, identity_id=status.user_id)

    async def ensure_valid(self, token: str | None, email: str | None) -> InvitationResult:
        """Like ``validate``, but a rejection raises ``InvitationInvalid``."""
        result = await self.validate(token, email)
        if not result.valid:
            message = Messages.INVITATION_MISSING if result.reason == InvitationReason.MISSING else None
            raise InvitationInvalid(result.reason, message)
        return result
