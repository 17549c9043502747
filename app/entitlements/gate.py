"""
Content access gate: token check for the viewer shell and the raw byte stream.

The shell (viewer.html) is the same document for every file; its script fetches the
bytes from /api/secure-pdf/<filename>?token=... with the token from its own URL.
The stream carries the no-cache / nosniff / frame headers, the shell does not.
"""
from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

from app.core.errors import ContentMissing
from app.entitlements.models import AccessDecision, ServedFile, TokenError
from app.entitlements.store import Clock, TokenStore, utcnow
from app.storage.base import ContentStorage

logger = logging.getLogger(__name__)

VIEWER_SHELL_PATH = Path(__file__).parent / "static" / "viewer.html"

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
}


def media_type_for(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


class ContentAccessGate:
    def __init__(self, store: TokenStore, storage: ContentStorage, clock: Clock | None = None) -> None:
        self.store = store
        self.storage = storage
        self.clock = clock or store.clock or utcnow

    def authorize_view(self, filename: str, token_id: str | None) -> AccessDecision:
        if not token_id:
            return AccessDecision(authorized=False, reason=TokenError.NOT_FOUND)
        result = self.store.validate(token_id, filename, self.clock())
        if result.ok:
            return AccessDecision(authorized=True)
        return AccessDecision(authorized=False, reason=result.error)

    def stream_content(self, filename: str) -> ServedFile:
        """Call only after authorize_view returned authorized."""
        path = self.storage.resolve(filename)
        if path is None:
            logger.warning("content_missing", extra={"content_id": filename})
            raise ContentMissing("File not found")
        headers = dict(NO_STORE_HEADERS)
        headers["Content-Disposition"] = f'inline; filename="{filename}"'
        return ServedFile(path=path, media_type=media_type_for(filename), headers=headers)

    def render_viewer_shell(self, filename: str) -> ServedFile:
        """Call only after authorize_view returned authorized."""
        return ServedFile(
            path=VIEWER_SHELL_PATH,
            media_type="text/html; charset=utf-8",
            headers={"X-Content-Type-Options": "nosniff"},
        )
