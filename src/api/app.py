"""FastAPI application factory.

Creates the app, registers routers and exception handlers, and wires up
lifespan events (component loading, security log, Janitor thread).
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.deps import get_defense, init_components, is_initialized
from src.api.guard import register_exception_handlers
from src.api.models import HealthResponse
from src.api.routes_chat import router as chat_router
from src.api.routes_documents import router as documents_router
from src.api.routes_search import router as search_router
from src.config import Config
from src.security.events import configure_security_log

logger = logging.getLogger(__name__)

SERVICE_NAME = "resume-chat-api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize heavy components on startup, stop the Janitor on shutdown."""
    if not is_initialized():
        logger.info("Starting résumé chat API — loading models...")
        init_components()
        logger.info("Startup complete")

    defense = get_defense()
    if defense.config.security_log_dir is not None:
        path = configure_security_log(defense.config.security_log_dir)
        logger.info("Security events logged to %s", path)
    defense.janitor.start()
    yield
    defense.janitor.stop()
    logger.info("Shutting down")


def create_app(config: Config | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    config = config or Config()

    app = FastAPI(
        title="Résumé Chat API",
        description="RAG-powered résumé chat with a layered request-defense pipeline.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)

    # API routers
    app.include_router(chat_router, prefix="/api")
    app.include_router(search_router, prefix="/api")
    app.include_router(documents_router, prefix="/api")

    # Health checks bypass the defense pipeline
    @app.get("/health", response_model=HealthResponse, tags=["health"])
    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    def health_check():
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            service=SERVICE_NAME,
        )

    return app


app = create_app()
