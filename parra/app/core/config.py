from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # In-memory rate limiter settings
    rate_limit_cleanup_interval_ms: int = 60_000  # Sweep every minute
    rate_limit_max_entry_age_ms: int = 3_600_000  # Drop keys idle for 1 hour
    rate_limit_auto_cleanup: bool = True
    rate_limit_fail_closed: bool = (
        False  # If True, deny requests when Redis is unavailable
    )

    # Redis settings (optional)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "parra:ratelimit"

    @field_validator("rate_limit_cleanup_interval_ms", "rate_limit_max_entry_age_ms")
    @classmethod
    def validate_interval_positive(cls, v: int) -> int:
        """Validate sweep interval and entry age are positive."""
        if v < 1:
            raise ValueError("rate limit intervals must be at least 1 ms")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
