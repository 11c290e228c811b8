"""Snapshots of the sign-in and activation flows, plus presentation-layer bodies."""

from pydantic import BaseModel, Field

from portal_auth.constants import Department
from portal_auth.schemas.identity import AuthorizationProfile, BackendSession


class LoginSnapshot(BaseModel):
    """What a sign-in form needs to render."""

    step: str
    flow_id: str | None = None
    email: str | None = None
    error: str | None = None
    submitting: bool = False
    can_submit: bool = False
    retry_after_seconds: int = 0
    remaining_attempts: int | None = None
    resend_in: int = 0
    can_resend: bool = False
    user: AuthorizationProfile | None = None
    session: BackendSession | None = None


class SetupSnapshot(BaseModel):
    """What an activation wizard needs to render."""

    step: str
    flow_id: str | None = None
    email: str | None = None
    error: str | None = None
    submitting: bool = False
    user_id: str | None = None
    redirect_to: str | None = None
    redirect_after_seconds: float | None = None


class CredentialsRequest(BaseModel):
    """Body of the credential step."""

    email: str
    password: str


class CodeRequest(BaseModel):
    """Body of the one-time-code step."""

    code: str


class SetupStartRequest(BaseModel):
    """Invitation link parameters."""

    token: str | None = None
    email: str | None = None


class PasswordSetupRequest(BaseModel):
    """Body of the password activation step."""

    password: str
    confirm_password: str


class ProfileSetupRequest(BaseModel):
    """Body of the profile activation step."""

    full_name: str = ""
    phone: str | None = None
    department: str = Department.DEFAULT
    position: str | None = Field(None, max_length=200)

