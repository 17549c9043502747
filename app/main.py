"""
Main FastAPI application for the CIDALI BookStore backend.
Serves M-Pesa payment endpoints, the token-gated eBook reader, health and metrics.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import register_error_handlers
from app.core.logging import configure_logging
from app.api.routes import content, health, mpesa
from app.entitlements.store import get_token_store
from app.entitlements.sweeper import start_token_sweeper, stop_token_sweeper
from app.utils.metrics import router as metrics_router


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    start_token_sweeper(app, get_token_store())
    yield
    await stop_token_sweeper(app)


app = FastAPI(
    title="CIDALI BookStore API",
    description="M-Pesa checkout and token-gated eBook delivery",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = settings.cors_origins_list or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(mpesa.router)
app.include_router(content.router)
app.include_router(metrics_router)


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
