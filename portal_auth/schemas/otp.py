"""Schemas for the one-time-code service."""

from pydantic import BaseModel


class OtpVerification(BaseModel):
    """Result of verifying a one-time code."""

    valid: bool
    message: str | None = None
    remaining_attempts: int = 0
