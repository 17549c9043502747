"""
Entitlement token store: issue / validate / evict / sweep.

Tokens are opaque random ids (never caller-supplied) bound to one content id and an
expiry instant. Validation order: missing -> NOT_FOUND, expired -> EXPIRED (record
evicted), other content -> CONTENT_MISMATCH. A valid token can be read any number
of times until it expires.
"""
from __future__ import annotations

import logging
import secrets
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable

import redis

from app.core.config import Settings, settings
from app.entitlements.models import EntitlementToken, TokenError, TokenValidation
from app.utils.metrics import (
    entitlement_tokens_issued_total,
    entitlement_tokens_live,
    entitlement_validations_total,
)

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 64 hex chars

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_token_id() -> str:
    return secrets.token_hex(TOKEN_BYTES)


class TokenStore(ABC):
    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or utcnow

    @abstractmethod
    def issue(self, content_id: str, ttl: timedelta) -> str:
        raise NotImplementedError

    @abstractmethod
    def validate(self, token_id: str, content_id: str, now: datetime | None = None) -> TokenValidation:
        raise NotImplementedError

    @abstractmethod
    def evict(self, token_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def sweep(self, now: datetime | None = None) -> int:
        """Remove every record with expires_at <= now; returns how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError

    def _record_result(self, token_id: str, content_id: str, result: TokenValidation) -> TokenValidation:
        label = "ok" if result.ok else result.error.value
        entitlement_validations_total.labels(result=label).inc()
        if not result.ok:
            # Log a prefix only, never the full token
            logger.info(
                "entitlement_denied",
                extra={"reason": label, "content_id": content_id, "token": token_id[:8]},
            )
        return result


class InMemoryTokenStore(TokenStore):
    """
    Process-local store: dict guarded by a lock.
    Route handlers are sync and run in the threadpool, so every access takes the lock.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        super().__init__(clock)
        self._tokens: dict[str, EntitlementToken] = {}
        self._lock = threading.Lock()

    def issue(self, content_id: str, ttl: timedelta) -> str:
        token_id = new_token_id()
        record = EntitlementToken(
            token_id=token_id,
            content_id=content_id,
            expires_at=self.clock() + ttl,
        )
        with self._lock:
            self._tokens[token_id] = record
            entitlement_tokens_live.set(len(self._tokens))
        entitlement_tokens_issued_total.inc()
        logger.info(
            "entitlement_issued",
            extra={"content_id": content_id, "expires_at": record.expires_at.isoformat()},
        )
        return token_id

    def validate(self, token_id: str, content_id: str, now: datetime | None = None) -> TokenValidation:
        now = now or self.clock()
        with self._lock:
            record = self._tokens.get(token_id)
            if record is None:
                result = TokenValidation.failed(TokenError.NOT_FOUND)
            elif record.is_expired(now):
                del self._tokens[token_id]
                entitlement_tokens_live.set(len(self._tokens))
                result = TokenValidation.failed(TokenError.EXPIRED)
            elif record.content_id != content_id:
                result = TokenValidation.failed(TokenError.CONTENT_MISMATCH)
            else:
                result = TokenValidation.valid()
        return self._record_result(token_id, content_id, result)

    def evict(self, token_id: str) -> bool:
        with self._lock:
            removed = self._tokens.pop(token_id, None) is not None
            entitlement_tokens_live.set(len(self._tokens))
        return removed

    def sweep(self, now: datetime | None = None) -> int:
        now = now or self.clock()
        with self._lock:
            expired = [tid for tid, rec in self._tokens.items() if rec.is_expired(now)]
            for tid in expired:
                del self._tokens[tid]
            entitlement_tokens_live.set(len(self._tokens))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


class RedisTokenStore(TokenStore):
    """
    Redis-backed store for running several API instances.
    Keys carry a Redis TTL, so expired records disappear without the sweep;
    expiry is still checked against the record on every validate.
    """

    key_prefix = "entitlement:"

    def __init__(self, client: redis.Redis, clock: Clock | None = None) -> None:
        super().__init__(clock)
        self.client = client

    def _key(self, token_id: str) -> str:
        return f"{self.key_prefix}{token_id}"

    def issue(self, content_id: str, ttl: timedelta) -> str:
        token_id = new_token_id()
        record = EntitlementToken(
            token_id=token_id,
            content_id=content_id,
            expires_at=self.clock() + ttl,
        )
        ttl_seconds = max(1, int(ttl.total_seconds()))
        # nx: never overwrite a live token
        created = self.client.set(self._key(token_id), record.model_dump_json(), nx=True, ex=ttl_seconds)
        if not created:
            raise RuntimeError("entitlement token collision")
        entitlement_tokens_issued_total.inc()
        logger.info(
            "entitlement_issued",
            extra={"content_id": content_id, "expires_at": record.expires_at.isoformat()},
        )
        return token_id

    def _load(self, token_id: str) -> EntitlementToken | None:
        raw = self.client.get(self._key(token_id))
        if not raw:
            return None
        try:
            return EntitlementToken.model_validate_json(raw)
        except ValueError:
            logger.warning("entitlement_record_corrupt", extra={"token": token_id[:8]})
            self.client.delete(self._key(token_id))
            return None

    def validate(self, token_id: str, content_id: str, now: datetime | None = None) -> TokenValidation:
        now = now or self.clock()
        record = self._load(token_id)
        if record is None:
            result = TokenValidation.failed(TokenError.NOT_FOUND)
        elif record.is_expired(now):
            self.client.delete(self._key(token_id))
            result = TokenValidation.failed(TokenError.EXPIRED)
        elif record.content_id != content_id:
            result = TokenValidation.failed(TokenError.CONTENT_MISMATCH)
        else:
            result = TokenValidation.valid()
        return self._record_result(token_id, content_id, result)

    def evict(self, token_id: str) -> bool:
        return bool(self.client.delete(self._key(token_id)))

    def sweep(self, now: datetime | None = None) -> int:
        now = now or self.clock()
        removed = 0
        for key in self.client.scan_iter(match=f"{self.key_prefix}*"):
            raw = self.client.get(key)
            if not raw:
                continue
            try:
                expires_at = EntitlementToken.model_validate_json(raw).expires_at
            except ValueError:
                expires_at = now
            if now >= expires_at:
                removed += self.client.delete(key)
        entitlement_tokens_live.set(len(self))
        return removed

    def __len__(self) -> int:
        return sum(1 for _ in self.client.scan_iter(match=f"{self.key_prefix}*"))


def build_token_store(cfg: Settings = settings) -> TokenStore:
    if cfg.token_store_backend == "redis":
        client = redis.Redis.from_url(cfg.redis_url, decode_responses=True)
        return RedisTokenStore(client)
    return InMemoryTokenStore()


_store: TokenStore | None = None
_store_lock = threading.Lock()


def get_token_store() -> TokenStore:
    """Process-wide token store (FastAPI dependency)."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = build_token_store()
    return _store
