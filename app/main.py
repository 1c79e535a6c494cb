"""FastAPI application entry point with session store and model sequence lifespan."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import timedelta
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pythonjsonlogger import jsonlogger

from app.api.routes import chat_stream, sessions, socket
from app.config import build_model_descriptors, get_settings
from app.middleware.llm_rate_limiter import LLMConcurrencyManager, configure_global_rate_limits
from app.persistence.session_store import SessionStore
from app.services.generator import LangChainResponseGenerator
from app.services.sequencer import ModelSequencer
from app.utils.http_client import close_http_client

# Configure logging
settings = get_settings()
logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure JSON logging for production."""
    log_handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    log_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [log_handler]
    root_logger.setLevel(settings.log_level.upper())

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)


async def sweep_expired_sessions(store: SessionStore, ttl: timedelta, interval: float) -> None:
    """Periodically drop sessions idle for longer than `ttl`."""
    while True:
        await asyncio.sleep(interval)
        try:
            store.purge_expired(ttl)
        except Exception:
            logger.error("Session expiry sweep failed", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build the model sequence, store and sweeper."""
    setup_logging()
    logger.info("Starting sequential-chat service")

    descriptors = build_model_descriptors(settings)
    configure_global_rate_limits(
        max_concurrent=settings.llm_max_concurrent,
        requests_per_second=settings.llm_requests_per_second,
    )

    store = SessionStore()
    app.state.session_store = store
    app.state.sequencer = ModelSequencer(
        store=store,
        generator=LangChainResponseGenerator(settings),
        descriptors=descriptors,
    )

    sweeper = asyncio.create_task(
        sweep_expired_sessions(
            store,
            ttl=timedelta(minutes=settings.session_ttl_minutes),
            interval=settings.session_sweep_interval_seconds,
        )
    )

    yield

    # Cleanup
    logger.info("Shutting down sequential-chat service")
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    await close_http_client()
    LLMConcurrencyManager.reset()


# Create FastAPI app
app = FastAPI(
    title="Sequential Chat",
    description="Answers each chat message with several language models in turn, streaming every answer",
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions.router)
app.include_router(chat_stream.router)
app.include_router(socket.router)


@app.get("/")
async def root() -> dict:
    """Root endpoint with service info."""
    return {
        "service": "sequential-chat",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/live")
async def liveness() -> dict:
    """Kubernetes liveness probe."""
    return {"status": "alive"}


@app.get("/ready")
async def readiness() -> dict:
    """Kubernetes readiness probe."""
    sequencer = getattr(app.state, "sequencer", None)
    if sequencer is None:
        return {"status": "not_ready", "reason": "sequencer_not_initialized"}

    manager = LLMConcurrencyManager.current()
    return {
        "status": "ready",
        "models": [d.id for d in sequencer.descriptors],
        "llm": manager.get_stats() if manager else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )
