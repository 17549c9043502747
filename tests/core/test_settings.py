"""Tests for Settings validators and derived properties."""
import pytest
from pydantic import ValidationError

from app.core.config import Settings

REQUIRED = {
    "mpesa_consumer_key": "k",
    "mpesa_consumer_secret": "s",
    "mpesa_shortcode": "174379",
    "mpesa_passkey": "p",
    "mpesa_callback_url": "https://example.com/cb",
    "email_user": "shop@example.com",
    "email_pass": "pw",
}


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **{**REQUIRED, **overrides})


def test_defaults():
    s = _settings()
    assert s.entitlement_ttl_minutes == 30
    assert s.ebook_filename == "Born_Too_Soon.pdf"
    assert s.token_store_backend == "memory"
    assert s.admin_recipients == ("info@cidalitravel.com", "zekele.enterprise@gmail.com")


def test_missing_credentials_fail(monkeypatch):
    for name in ("MPESA_CONSUMER_KEY", "EMAIL_PASS"):
        monkeypatch.delenv(name, raising=False)
    kwargs = {k: v for k, v in REQUIRED.items() if k not in ("mpesa_consumer_key", "email_pass")}
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **kwargs)


def test_shortcode_must_be_numeric():
    with pytest.raises(ValidationError):
        _settings(mpesa_shortcode="abc123")


def test_backend_validation():
    assert _settings(token_store_backend=" Memory ").token_store_backend == "memory"
    with pytest.raises(ValidationError):
        _settings(token_store_backend="sqlite")


def test_redis_backend_requires_url():
    with pytest.raises(ValidationError):
        _settings(token_store_backend="redis", redis_url=None)
    assert _settings(token_store_backend="redis", redis_url="redis://localhost:6379/0").redis_url


def test_public_base_url_trailing_slash():
    assert _settings(public_base_url="https://shop.example.com/").public_base_url == "https://shop.example.com"


def test_cors_origins_list():
    assert _settings(cors_origins="https://a.com, https://b.com,").cors_origins_list == [
        "https://a.com",
        "https://b.com",
    ]
