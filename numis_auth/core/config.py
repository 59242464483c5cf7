"""
Configuration settings for the Numis authentication client.
"""
from functools import lru_cache
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Authentication client configuration settings."""

    # Application settings
    app_name: str = "Numis Auth Client"
    environment: str = "development"

    # API settings
    api_base_url: str = "http://localhost:4000"
    request_timeout: float = 10.0
    max_connections: int = 20
    max_keepalive_connections: int = 5

    # Storage settings
    storage_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    storage_key_prefix: str = "numis:auth:"
    storage_retry_attempts: int = 3
    storage_retry_delay: float = 0.2  # seconds between clear attempts

    # Background session polling
    session_poll_interval: float = 60.0
    session_poll_refresh_sessions: bool = True

    # Revocation handling
    default_termination_reason: str = "Your session has been terminated from another device"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base_url must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v):
        allowed = ["memory", "redis"]
        if v not in allowed:
            raise ValueError(f"Storage backend must be one of: {allowed}")
        return v

    @field_validator("request_timeout", "session_poll_interval")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Intervals and timeouts must be positive")
        return v

    @field_validator("storage_retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v):
        if v < 1:
            raise ValueError("storage_retry_attempts must be at least 1")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        allowed = ["json", "console"]
        if v not in allowed:
            raise ValueError(f"Log format must be one of: {allowed}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    model_config = SettingsConfigDict(
        env_prefix="NUMIS_AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
