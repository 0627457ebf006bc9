"""
Tests for configuration validation
"""
import pytest
from pydantic import ValidationError
from clinic_backend.core.config import Settings

PROD_OK = dict(
    DATABASE_URL="postgresql://test",
    JWT_SECRET_KEY="a" * 32,
    APP_ENV="prod",
    ALLOWED_ORIGINS="https://clinic.example.com",
    SMS_BACKEND="http",
    SMS_GATEWAY_URL="https://sms.example.com/send",
)


def test_prod_settings_valid():
    Settings(**PROD_OK).validate_production()


def test_prod_settings_rejects_wildcard_origins():
    settings = Settings(**dict(PROD_OK, ALLOWED_ORIGINS="*"))
    with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
        settings.validate_production()


def test_prod_settings_rejects_short_jwt_secret():
    settings = Settings(**dict(PROD_OK, JWT_SECRET_KEY="short"))
    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        settings.validate_production()


def test_prod_settings_rejects_short_bootstrap_key():
    settings = Settings(**dict(PROD_OK, ADMIN_BOOTSTRAP_KEY="tiny"))
    with pytest.raises(ValueError, match="ADMIN_BOOTSTRAP_KEY"):
        settings.validate_production()


def test_prod_settings_require_sms_gateway():
    settings = Settings(**dict(PROD_OK, SMS_BACKEND="log"))
    with pytest.raises(ValueError, match="SMS_BACKEND"):
        settings.validate_production()


def test_local_settings_allows_wildcard_origins():
    """Test that local settings allow wildcard origins"""
    settings = Settings(
        DATABASE_URL="sqlite:///./local.db",
        JWT_SECRET_KEY="test-key",
        APP_ENV="local",
        ALLOWED_ORIGINS="*"
    )

    # Should not raise error
    settings.validate_production()
    assert settings.get_allowed_origins_list() == ["*"]


def test_get_allowed_origins_list():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="test-key",
        ALLOWED_ORIGINS="https://example.com, https://app.example.com,"
    )
    assert settings.get_allowed_origins_list() == ["https://example.com", "https://app.example.com"]


def test_mfa_exempt_emails_normalized():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="test-key",
        MFA_EXEMPT_EMAILS=" Owner@Clinic.test ,,ops@clinic.test",
    )
    assert settings.get_mfa_exempt_emails() == ["owner@clinic.test", "ops@clinic.test"]


@pytest.mark.parametrize(
    "field, value",
    [
        ("APP_ENV", "production"),
        ("SMS_BACKEND", "carrier-pigeon"),
        ("MFA_MAX_ATTEMPTS", 0),
        ("INVITATION_TTL_DAYS", 0),
    ],
)
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(DATABASE_URL="postgresql://test", JWT_SECRET_KEY="test-key", **{field: value})


def test_defaults():
    settings = Settings(DATABASE_URL="postgresql://test", JWT_SECRET_KEY="test-key")
    assert settings.MFA_CODE_TTL_MINUTES == 10
    assert settings.MFA_MAX_ATTEMPTS is None
    assert settings.INVITATION_TTL_DAYS == 7
    assert settings.SMS_BACKEND == "log"
