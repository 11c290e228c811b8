"""Application constants to avoid magic strings."""


class LoginStep:
    """Login state machine steps."""

    CREDENTIALS = "credentials"
    RATE_LIMITED = "rate_limited"
    OTP_CHALLENGE = "otp_challenge"
    VERIFYING = "verifying"
    COMPLETE = "complete"


class SetupStep:
    """Account activation wizard steps."""

    LOADING = "loading"
    PASSWORD = "password"
    PROFILE = "profile"
    SUCCESS = "success"
    ERROR = "error"


class Department:
    """Departments a new account can belong to."""

    COMMERCIAL = "COMMERCIAL"
    TECHNICAL = "TECHNICAL"
    ADMIN = "ADMIN"
    DIRECTION = "DIRECTION"

    ALL = (COMMERCIAL, TECHNICAL, ADMIN, DIRECTION)
    DEFAULT = COMMERCIAL


class SessionEvent:
    """Identity backend session change events."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


class Messages:
    """User-facing messages, one per failure state."""

    DOMAIN_NOT_ALLOWED = "Only corporate e-mail addresses (@{domain}) can sign in."
    INVALID_CREDENTIALS = "Invalid email or password."
    NOT_AUTHORIZED = "Your e-mail is not authorized to access this platform."
    RATE_LIMITED = "Too many attempts. Please wait {minutes} minutes."
    OTP_SEND_FAILED = "We could not send the verification code. Please try again."
    OTP_INCOMPLETE = "Enter the {length}-digit verification code."
    OTP_INVALID = "Invalid verification code."
    OTP_EXHAUSTED = "The verification code is no longer valid. Request a new one."
    OTP_RESEND_WAIT = "You can request a new code in {seconds} seconds."
    STEP_UP_FAILED = "We could not complete the verification. Please sign in again."
    UNEXPECTED = "An unexpected error occurred. Please try again."

    INVITATION_MISSING = "Invalid invitation link. The token or e-mail is missing."
    INVITATION_INVALID = "The invitation link has expired or is not valid."
    PASSWORD_MISMATCH = "The passwords do not match."
    PASSWORD_WEAK = "The password does not meet the requirements: {errors}."
    PASSWORD_SETUP_FAILED = "We could not set up your password. Please try again."
    FULL_NAME_REQUIRED = "Full name is required."
    DEPARTMENT_INVALID = "Select a valid department."
    PROFILE_FAILED = "We could not save your profile. Please try again."


ACTIVATION_REDIRECT_PATH = "/{user_id}/dashboard"
