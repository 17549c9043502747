from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
import redis

from app.api.dependencies import get_content_storage
from app.core.config import settings
from app.storage.base import ContentStorage


router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "CIDALI BookStore backend running"


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, storage: ContentStorage = Depends(get_content_storage)) -> dict:
    """Readiness probe - returns 503 if the eBook or the token backend is unavailable."""
    try:
        if not storage.exists(settings.ebook_filename):
            raise FileNotFoundError(f"{settings.ebook_filename} not found in {settings.content_dir}")

        if settings.token_store_backend == "redis":
            redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
            redis_client.ping()

        return {"status": "ready"}
    except Exception as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e)}
