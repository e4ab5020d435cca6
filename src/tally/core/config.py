from functools import lru_cache

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Tally Reading"
    app_env: str = "development"  # development, testing, production
    debug: bool = False
    enable_openapi: bool = True

    # Tenancy - resolved once at startup, never re-read per request
    multi_tenant_enabled: bool = True

    # Security
    log_user_emails: bool = False  # Set to False in production for GDPR compliance

    # Database
    database_url: str
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_echo: bool = False

    # Shutdown
    shutdown_grace_period: int = 30

    # Auth
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536
    argon2_parallelism: int = 1
    min_password_length: int = 8

    # Refresh token cookie
    refresh_cookie_name: str = "refresh_token"
    refresh_cookie_path: str = "/api/auth"
    refresh_cookie_secure: bool | None = None  # None = secure everywhere except development

    # Account lockout (rolling window over the login attempt log)
    lockout_max_attempts: int = 5
    lockout_window_minutes: int = 15
    login_attempt_retention_hours: int = 24

    # Password reset
    password_reset_expire_minutes: int = 60

    # Encryption of tenant-supplied secrets (third-party API keys)
    secret_encryption_key: str | None = None  # Falls back to jwt_secret_key
    secret_encryption_salt: str = "krm-api-key-encryption-v1"
    secret_encryption_info: str = "api-key-encryption"

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        if v == "change-this-to-a-secure-random-string":
            raise ValueError(
                "JWT_SECRET_KEY must be changed from default value. "
                "Generate a secure secret with: openssl rand -hex 32"
            )
        if len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters")
        return v

    @field_validator("lockout_max_attempts", "lockout_window_minutes")
    @classmethod
    def validate_positive(cls, v: int, info: ValidationInfo) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: list[str]) -> list[str]:
        """Validate CORS origins - reject wildcards when credentials are used."""
        for origin in v:
            if origin == "*":
                raise ValueError(
                    "CORS wildcard '*' is not allowed when allow_credentials=True. "
                    "Specify explicit origins instead."
                )
        return v

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Metrics
    metrics_api_key: str | None = None  # If set, /metrics requires this key

    # Email (Resend)
    resend_api_key: str | None = None  # If not set, emails are logged but not sent
    email_from: str = "noreply@example.com"
    email_send_timeout_seconds: int = 10  # Timeout for email API calls
    app_url: str = "http://localhost:3000"  # Frontend URL for reset links

    # Cleanup
    token_cleanup_retention_days: int = 30  # Delete tokens expired more than this many days ago

    @property
    def cookie_secure(self) -> bool:
        """Whether the refresh cookie carries the Secure attribute."""
        if self.refresh_cookie_secure is not None:
            return self.refresh_cookie_secure
        return self.app_env != "development"

    @property
    def encryption_secret(self) -> str:
        return self.secret_encryption_key or self.jwt_secret_key


@lru_cache
def get_settings() -> Settings:
    return Settings()
