"""Service for logging security events."""

import json
import logging

from portal_auth.services.shared.emails import normalize_email

logger = logging.getLogger("portal_auth.audit")


class SecurityEventType:
    """Constants for security event types."""

    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGIN_BLOCKED_RATE_LIMIT = "login_blocked_rate_limit"
    LOGIN_REJECTED_DOMAIN = "login_rejected_domain"
    AUTHORIZATION_MISSING = "authorization_missing"
    OTP_SENT = "otp_sent"
    OTP_VERIFIED = "otp_verified"
    OTP_FAILED = "otp_failed"
    OTP_SKIPPED_TRUSTED = "otp_skipped_trusted"
    LOGOUT = "logout"
    INACTIVITY_LOGOUT = "inactivity_logout"
    INVITATION_VALIDATED = "invitation_validated"
    INVITATION_REJECTED = "invitation_rejected"
    PASSWORD_SET = "password_set"
    PROFILE_COMPLETED = "profile_completed"


class SecurityAuditService:
    """Service for recording security audit events.

    Events are log records; the identity backend keeps the durable trail.
    """

    @staticmethod
    def log_event(
        event_type: str,
        email: str | None = None,
        user_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        """Log a security event. Never pass secrets or codes in ``details``."""
        logger.info(
            f"Security event: {event_type} | email={normalize_email(email) if email else None}"
            f" | user_id={user_id}"
            + (f" | details={json.dumps(details, sort_keys=True)}" if details else "")
        )
