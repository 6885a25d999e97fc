"""
dependencies.py — FastAPI dependencies
=======================================
Process-wide singletons (store, engine, deck provider) and the caller's
identity. The store is built once at startup and shared by every request.
"""

import logging

from fastapi import Header
from sqlalchemy.engine import Engine

from tcg_arena.apps.decks.service import DeckStore
from tcg_arena.core.config import get_settings
from tcg_arena.core.database import db, make_engine
from tcg_arena.core.errors import Unauthorized
from tcg_arena.core.match_engine import MatchEngine
from tcg_arena.core.repository import InMemoryMatchRepository, MatchRepository, SqlMatchRepository

logger = logging.getLogger(__name__)

_sql_engine: Engine | None = None
_match_engine: MatchEngine | None = None
_deck_store: DeckStore | None = None


def get_deck_store() -> DeckStore:
    global _deck_store
    if not _deck_store:
        _deck_store = DeckStore(db)
    return _deck_store


def _build_repository() -> MatchRepository:
    global _sql_engine
    settings = get_settings()
    if settings.USE_IN_MEMORY_DB:
        return InMemoryMatchRepository(db)
    _sql_engine = make_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
    logger.info(f"🗄️  SQL store ready: {_sql_engine.url.render_as_string(hide_password=True)}")
    return SqlMatchRepository(_sql_engine)


def get_engine() -> MatchEngine:
    """The lifecycle engine, wired to the configured store on first use."""
    global _match_engine
    if not _match_engine:
        settings = get_settings()
        _match_engine = MatchEngine(
            _build_repository(),
            decks=get_deck_store(),
            require_decks=settings.REQUIRE_DECKS,
            max_name_length=settings.MAX_ROOM_NAME_LENGTH,
            max_secret_length=settings.MAX_SECRET_LENGTH,
        )
    return _match_engine


def shutdown() -> None:
    """Release the connection pool (app shutdown)."""
    global _sql_engine, _match_engine
    if _sql_engine is not None:
        _sql_engine.dispose()
        _sql_engine = None
    _match_engine = None


async def get_current_user(x_user_id: str | None = Header(None)) -> str:
    """Verified caller identity, set by the auth layer in front of this service."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise Unauthorized("User ID missing")
    return user_id
