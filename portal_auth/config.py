"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Remote services
    gateway_url: str = "http://localhost:54321/functions/v1"
    identity_url: str = "http://localhost:54321"
    api_key: str = ""

    # HTTP transport
    http_timeout_seconds: float = 15.0
    http_max_retries: int = 3

    # Sign-in policy
    corporate_domain: str = "avtechesdeveniments.com"
    otp_length: int = 6
    otp_resend_cooldown_seconds: int = 60

    # Trusted-for-today record
    trusted_session_storage_path: str = ".portal_auth/trusted_session.json"
    trusted_session_key: str = "nexo_av_last_login"

    # Account activation
    activation_redirect_delay_seconds: float = 2.0

    # Inactivity sign-out
    inactivity_timeout_minutes: int = 30
    inactivity_warning_minutes: int = 5

    # HTTP presentation layer
    login_flow_ttl_seconds: int = 900

    # Application
    log_level: str = "INFO"
    debug: bool = False

    # CORS
    allowed_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


settings = Settings()
