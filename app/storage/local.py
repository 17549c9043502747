import logging
from pathlib import Path

from app.core.config import settings
from app.storage.base import ContentStorage

logger = logging.getLogger(__name__)


class LocalContentStorage(ContentStorage):
    """Files addressed by name inside one directory (CONTENT_DIR)."""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base_dir = Path(base_dir or settings.content_dir).resolve()

    def resolve(self, filename: str) -> Path | None:
        if not filename or "/" in filename or "\\" in filename or filename in (".", ".."):
            logger.warning("content_name_rejected", extra={"content_id": filename})
            return None
        path = (self.base_dir / filename).resolve()
        if path.parent != self.base_dir or not path.is_file():
            return None
        return path
