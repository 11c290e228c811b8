"""Schemas for the remote login-attempt limiter."""

from pydantic import BaseModel, Field


class RateLimitStatus(BaseModel):
    """Projection of the server-owned login attempt record."""

    allowed: bool = True
    remaining_attempts: int = 0
    retry_after_seconds: int = 0
    message: str | None = None

    @classmethod
    def open(cls) -> "RateLimitStatus":
        """Status used when the limiter cannot be reached."""
        return cls(allowed=True)


class RateLimitRequest(BaseModel):
    """Body sent to the limiter."""

    action: str = Field(pattern="^(check|record)$")
    email: str
    success: bool | None = None
