import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

# Settings() has required fields; set them before any app module is imported
os.environ.setdefault("MPESA_CONSUMER_KEY", "test-consumer-key")
os.environ.setdefault("MPESA_CONSUMER_SECRET", "test-consumer-secret")
os.environ.setdefault("MPESA_SHORTCODE", "174379")
os.environ.setdefault("MPESA_PASSKEY", "test-passkey")
os.environ.setdefault("MPESA_CALLBACK_URL", "https://example.com/api/mpesa/callback")
os.environ.setdefault("EMAIL_USER", "shop@example.com")
os.environ.setdefault("EMAIL_PASS", "test-email-pass")
os.environ.setdefault("TOKEN_SWEEP_INTERVAL_SECONDS", "0")


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    from app.entitlements.store import InMemoryTokenStore

    return InMemoryTokenStore(clock=clock)


@pytest.fixture
def content_dir(tmp_path):
    (tmp_path / "Born_Too_Soon.pdf").write_bytes(b"%PDF-1.4\n%fake ebook\n")
    return tmp_path


@pytest.fixture
def storage(content_dir):
    from app.storage.local import LocalContentStorage

    return LocalContentStorage(content_dir)


@pytest.fixture
def mpesa():
    client = MagicMock()
    client.get_access_token.return_value = "bearer-123"
    client.stk_push.return_value = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": "ws_CO_191220191020363925",
        "ResponseCode": "0",
        "ResponseDescription": "Success. Request accepted for processing",
        "CustomerMessage": "Success. Request accepted for processing",
    }
    return client


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture(autouse=True)
def reset_mpesa_breaker():
    from app.services.circuit_breaker import mpesa_breaker

    mpesa_breaker.close()
    yield
    mpesa_breaker.close()


@pytest.fixture
def api_client(store, storage, mpesa, notifier):
    from fastapi.testclient import TestClient

    from app.api.dependencies import get_content_storage, get_mpesa_client, get_notifier
    from app.entitlements.store import get_token_store
    from app.main import app

    app.dependency_overrides[get_token_store] = lambda: store
    app.dependency_overrides[get_content_storage] = lambda: storage
    app.dependency_overrides[get_mpesa_client] = lambda: mpesa
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
