"""
Configuration management for the Clinic Staff Backend
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Required settings
    DATABASE_URL: str = Field(..., description="Database URL (PostgreSQL in production, SQLite locally)")
    JWT_SECRET_KEY: str = Field(..., description="Secret key for token signing and code hashing")

    # Optional settings with defaults
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=720, description="Bearer token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # CORS settings
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    # Version (can be git SHA or semver)
    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # First-admin bootstrap
    ADMIN_BOOTSTRAP_KEY: Optional[str] = Field(
        default=None,
        description="Shared secret expected in the X-Admin-Key header of POST /bootstrap/admin. Unset disables bootstrap."
    )

    # One-time codes
    MFA_CODE_TTL_MINUTES: int = Field(default=10, ge=1, description="Lifetime of a login code in minutes")
    MFA_MAX_ATTEMPTS: Optional[int] = Field(
        default=None,
        ge=1,
        description="Failed verifications after which a code is exhausted. Unset allows retries until expiry."
    )
    MFA_EXEMPT_EMAILS: str = Field(
        default="",
        description="Comma-separated emails that receive a token straight after the password check"
    )

    # Invitations
    INVITATION_TTL_DAYS: int = Field(default=7, ge=1, description="Lifetime of an invitation token in days")

    # SMS delivery
    SMS_BACKEND: str = Field(default="log", description="SMS backend: log (local development) or http")
    SMS_GATEWAY_URL: Optional[str] = Field(default=None, description="HTTP endpoint of the SMS gateway")
    SMS_API_KEY: Optional[str] = Field(default=None, description="Bearer key for the SMS gateway")
    SMS_SENDER_ID: str = Field(default="CLINIC", description="Sender id shown on outgoing SMS")
    SMS_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0, description="SMS gateway request timeout")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("SMS_BACKEND")
    @classmethod
    def validate_sms_backend(cls, v: str) -> str:
        allowed = ["log", "http"]
        if v.lower() not in allowed:
            raise ValueError(f"SMS_BACKEND must be one of {allowed}")
        return v.lower()

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            # JWT_SECRET_KEY must be at least 32 characters in production
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )

            # ALLOWED_ORIGINS must not be wildcard in production
            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

            if self.ADMIN_BOOTSTRAP_KEY is not None and len(self.ADMIN_BOOTSTRAP_KEY) < 16:
                raise ValueError(
                    "ADMIN_BOOTSTRAP_KEY must be at least 16 characters in production environment"
                )

            # Codes must leave the building through a real gateway
            if self.SMS_BACKEND != "http" or not self.SMS_GATEWAY_URL:
                raise ValueError(
                    "SMS_BACKEND must be 'http' with SMS_GATEWAY_URL set in production environment"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    def get_mfa_exempt_emails(self) -> List[str]:
        """Normalized allow-list of emails that skip the one-time-code step"""
        return [
            email.strip().lower()
            for email in self.MFA_EXEMPT_EMAILS.split(",")
            if email.strip()
        ]


# Create settings instance
settings = Settings()

# Validate production settings if in prod
if settings.APP_ENV == "prod":
    settings.validate_production()
