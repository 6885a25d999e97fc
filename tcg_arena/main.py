"""
main.py — FastAPI Application Factory
======================================
TCG Arena battle room service.

Usage:
    uvicorn tcg_arena.main:app --reload          # development
    python -m tcg_arena.main                     # same, settings-driven
    uvicorn tcg_arena.main:app --workers 1       # production (in-memory store is per process)
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from tcg_arena.core.config import Settings, get_settings
from tcg_arena.core.errors import register_error_handlers

logger = logging.getLogger("tcg_arena")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the store and engine before serving; release the pool on exit."""
    from tcg_arena.core.dependencies import get_engine, shutdown

    settings = get_settings()
    logger.info(f"🚀 {settings.APP_NAME} v{settings.VERSION} ({settings.ENV}, store={settings.db_mode})")
    if not settings.REQUIRE_DECKS:
        logger.warning("⚠️  REQUIRE_DECKS disabled - battles start without deck checks")

    get_engine()
    try:
        yield
    finally:
        shutdown()
        logger.info("👋 Battle room service stopped")


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def _install_middleware(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )

    @app.middleware("http")
    async def process_time(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Process-Time"] = f"{time.perf_counter() - started:.4f}s"
        return response


def _system_router(settings: Settings) -> APIRouter:
    router = APIRouter(tags=["system"])

    @router.get("/health")
    def health():
        return {
            "status": "ok",
            "version": settings.VERSION,
            "environment": settings.ENV,
            "db_mode": settings.db_mode,
            "require_decks": settings.REQUIRE_DECKS,
        }

    @router.get("/")
    def index():
        return {
            "service": settings.APP_NAME,
            "rooms": "/api/battle/rooms",
            "docs": "/docs" if settings.DEBUG else "disabled",
        }

    return router


def create_app() -> FastAPI:
    """Build a configured app. Tests use the module-level ``app`` with dependency overrides."""
    settings = get_settings()
    _configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="Two-seat battle rooms for the Pokémon TCG arena.",
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
    )
    _install_middleware(app, settings)
    register_error_handlers(app)

    from tcg_arena.apps.battle.router import router as battle_router
    from tcg_arena.apps.decks.router import router as decks_router
    from tcg_arena.apps.ws.router import router as ws_router

    for router in (_system_router(settings), battle_router, decks_router, ws_router):
        app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "tcg_arena.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
