"""
Background sweep of expired entitlement tokens.
Runs inside the API process (the in-memory store is not visible to other processes).
"""
import asyncio
import logging

from fastapi import FastAPI

from app.core.config import settings
from app.entitlements.store import TokenStore
from app.utils.metrics import entitlement_tokens_swept_total

logger = logging.getLogger(__name__)


def sweep_once(store: TokenStore) -> int:
    removed = store.sweep()
    if removed:
        entitlement_tokens_swept_total.inc(removed)
        logger.info("entitlement_sweep", extra={"removed": removed})
    return removed


async def _sweep_loop(store: TokenStore, interval_seconds: int) -> None:
    """Periodic task: drop tokens nobody redeemed before they expired."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            # store.sweep() is blocking (redis SCAN/GET, store lock)
            await asyncio.to_thread(sweep_once, store)
        except Exception:
            # Keep the loop alive; validate() still evicts lazily
            logger.exception("entitlement_sweep_failed")


def start_token_sweeper(app: FastAPI, store: TokenStore, interval_seconds: int | None = None) -> None:
    """Start background task when app starts. interval 0 disables the sweep."""
    interval = settings.token_sweep_interval_seconds if interval_seconds is None else interval_seconds
    if interval <= 0:
        app.state.token_sweeper = None
        return
    loop = asyncio.get_running_loop()
    app.state.token_sweeper = loop.create_task(_sweep_loop(store, interval))


async def stop_token_sweeper(app: FastAPI) -> None:
    """Cancel sweeper on shutdown if running."""
    task = getattr(app.state, "token_sweeper", None)
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
