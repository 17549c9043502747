"""Tests for RedisTokenStore against a dict-backed stand-in for the redis client."""
import fnmatch
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from prometheus_client import REGISTRY

from app.entitlements.models import TokenError
from app.entitlements.store import RedisTokenStore

TTL = timedelta(minutes=30)
BOOK = "Born_Too_Soon.pdf"


class DictRedis:
    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    def get(self, key):
        return self.data.get(key)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    def scan_iter(self, match="*"):
        return [k for k in list(self.data) if fnmatch.fnmatch(k, match)]


@pytest.fixture
def redis_client():
    return DictRedis()


@pytest.fixture
def redis_store(redis_client, clock):
    return RedisTokenStore(redis_client, clock=clock)


def test_issue_sets_key_with_ttl(redis_store, redis_client):
    token = redis_store.issue(BOOK, TTL)
    key = f"entitlement:{token}"
    assert key in redis_client.data
    assert redis_client.ttls[key] == 1800


def test_validate_lifecycle(redis_store, clock):
    token = redis_store.issue(BOOK, TTL)
    assert redis_store.validate(token, BOOK).ok
    assert redis_store.validate(token, BOOK).ok
    assert redis_store.validate(token, "Other.pdf").error == TokenError.CONTENT_MISMATCH

    clock.advance(minutes=30)
    assert redis_store.validate(token, BOOK).error == TokenError.EXPIRED
    assert redis_store.validate(token, BOOK).error == TokenError.NOT_FOUND


def test_never_issued(redis_store):
    assert redis_store.validate("0" * 64, BOOK).error == TokenError.NOT_FOUND


def test_corrupt_record_is_dropped(redis_store, redis_client):
    redis_client.data["entitlement:bad"] = "not-json"
    assert redis_store.validate("bad", BOOK).error == TokenError.NOT_FOUND
    assert "entitlement:bad" not in redis_client.data


def test_sweep_and_len(redis_store, clock):
    redis_store.issue(BOOK, timedelta(minutes=1))
    keep = redis_store.issue(BOOK, TTL)
    clock.advance(minutes=2)
    assert len(redis_store) == 2
    assert redis_store.sweep() == 1
    assert len(redis_store) == 1
    assert redis_store.validate(keep, BOOK).ok


def test_sweep_refreshes_live_gauge(redis_store, clock):
    redis_store.issue(BOOK, timedelta(minutes=1))
    redis_store.issue(BOOK, TTL)
    redis_store.issue(BOOK, TTL)
    clock.advance(minutes=2)
    redis_store.sweep()
    assert REGISTRY.get_sample_value("entitlement_tokens_live") == 2


def test_collision_is_refused(clock):
    client = MagicMock()
    client.set.return_value = None
    store = RedisTokenStore(client, clock=clock)
    with pytest.raises(RuntimeError):
        store.issue(BOOK, TTL)
