"""Schemas for the identity backend and authorization directory."""

from datetime import datetime

from pydantic import BaseModel, Field


class BackendSession(BaseModel):
    """A session held by the identity backend."""

    access_token: str
    refresh_token: str | None = None
    user_id: str
    email: str
    expires_at: datetime | None = None
    user_metadata: dict = Field(default_factory=dict)


class AuthorizationProfile(BaseModel):
    """Directory record proving the identity is a user of this application."""

    user_id: str
    full_name: str | None = None
    email: str
    department: str | None = None
    roles: list[str] = Field(default_factory=list)


class TrustedSessionRecord(BaseModel):
    """Locally stored marker of a completed login."""

    email: str
    timestamp: int  # milliseconds since the epoch
