"""
DTO entitlements: EntitlementToken (store record), TokenValidation (validate result), AccessDecision (gate result), ServedFile.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class TokenError(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    CONTENT_MISMATCH = "content_mismatch"


# ----- Record owned by the token store -----


class EntitlementToken(BaseModel):
    """One grant: opaque id bound to exactly one content item until expires_at."""

    token_id: str
    content_id: str
    expires_at: datetime

    model_config = {"frozen": True}

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


# ----- Result of TokenStore.validate -----


class TokenValidation(BaseModel):
    ok: bool
    error: TokenError | None = None

    model_config = {"frozen": True}

    @classmethod
    def valid(cls) -> "TokenValidation":
        return cls(ok=True)

    @classmethod
    def failed(cls, error: TokenError) -> "TokenValidation":
        return cls(ok=False, error=error)


# ----- Gate decision (callers see only authorized / denied) -----


class AccessDecision(BaseModel):
    authorized: bool
    reason: TokenError | None = Field(
        None,
        description="Why access was denied; logged only, never returned to the client",
    )

    model_config = {"frozen": True}


# ----- What the gate hands to the route for streaming -----


class ServedFile(BaseModel):
    path: Path
    media_type: str
    headers: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}
