"""
Entitlements: token store (issue/validate) and the content access gate built on it.
Decision (gate.authorize_view) and serving (stream_content / render_viewer_shell) are separate.
"""
from app.entitlements.gate import ContentAccessGate
from app.entitlements.models import (
    AccessDecision,
    EntitlementToken,
    ServedFile,
    TokenError,
    TokenValidation,
)
from app.entitlements.store import (
    InMemoryTokenStore,
    RedisTokenStore,
    TokenStore,
    build_token_store,
    get_token_store,
)

__all__ = [
    "AccessDecision",
    "ContentAccessGate",
    "EntitlementToken",
    "InMemoryTokenStore",
    "RedisTokenStore",
    "ServedFile",
    "TokenError",
    "TokenStore",
    "TokenValidation",
    "build_token_store",
    "get_token_store",
]
