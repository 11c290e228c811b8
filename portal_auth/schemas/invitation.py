"""Schemas for invitation validation and account activation."""

from pydantic import BaseModel, Field, field_validator

from portal_auth.constants import Department


class InvitationReason:
    """Reasons an invitation can be rejected."""

    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    MISSING = "missing"


class InvitationStatus(BaseModel):
    """Raw answer of the invitation service."""

    is_valid: bool
    user_id: str | None = None
    error_message: str | None = None


class InvitationResult(BaseModel):
    """Outcome of validating an invitation token."""

    valid: bool
    identity_id: str | None = None
    reason: str | None = None


class ProfileUpdate(BaseModel):
    """Profile fields submitted in the last activation step."""

    full_name: str = Field(min_length=1, max_length=200)
    phone: str | None = None
    department: str = Department.DEFAULT
    position: str | None = None

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("full name is required")
        return v

    @field_validator("phone", "position")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("department")
    @classmethod
    def validate_department(cls, v: str) -> str:
        if v not in Department.ALL:
            raise ValueError(f"department must be one of: {', '.join(Department.ALL)}")
        return v
