"""
database.py — Persistent Store
===============================
Two backends share one contract: keyed records with version-checked writes.

1. InMemoryDB: thread-safe in-process collections (default, dev/test).
2. SQL: one process-wide SQLAlchemy Engine (connection pool) over the
   `matches` table, built once at startup.
"""

from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool


class InMemoryDB:
    """Thread-safe in-memory key-value store with collections."""

    def __init__(self):
        self._lock = threading.Lock()
        self._collections: dict[str, dict[str, dict]] = {}

    # ── Collection CRUD ──────────────────────────────

    def insert(self, collection: str, id: str, data: dict) -> dict:
        """Insert a record, overwriting one with the same id."""
        with self._lock:
            record = {
                **copy.deepcopy(data),
                "_id": id,
                "_updated_at": datetime.now(timezone.utc).isoformat(),
            }
            self._collections.setdefault(collection, {})[id] = record
            return copy.deepcopy(record)

    def insert_new(self, collection: str, id: str, data: dict) -> dict | None:
        """Insert a record. Returns None if the id is already taken."""
        with self._lock:
            coll = self._collections.setdefault(collection, {})
            if id in coll:
                return None
            record = {
                **copy.deepcopy(data),
                "_id": id,
                "_updated_at": datetime.now(timezone.utc).isoformat(),
            }
            coll[id] = record
            return copy.deepcopy(record)

    def get(self, collection: str, id: str) -> dict | None:
        """Fetch a record by id (a copy, callers may mutate it)."""
        with self._lock:
            record = self._collections.get(collection, {}).get(id)
            return copy.deepcopy(record) if record is not None else None

    def compare_and_swap(
        self,
        collection: str,
        id: str,
        expected_version: int,
        data: dict,
    ) -> dict | None:
        """
        Replace the record only if its stored "version" equals expected_version.
        The stored version becomes expected_version + 1.

        Returns the new record, or None when the record is missing or stale.
        """
        with self._lock:
            coll = self._collections.get(collection, {})
            current = coll.get(id)
            if current is None or current.get("version") != expected_version:
                return None
            record = {
                **copy.deepcopy(data),
                "_id": id,
                "version": expected_version + 1,
                "_updated_at": datetime.now(timezone.utc).isoformat(),
            }
            coll[id] = record
            return copy.deepcopy(record)

    def list(self, collection: str, filter_fn: Callable[[dict], Any] | None = None) -> list[dict]:
        """All records of a collection, optionally filtered."""
        with self._lock:
            records = [copy.deepcopy(r) for r in self._collections.get(collection, {}).values()]
        if filter_fn:
            records = [r for r in records if filter_fn(r)]
        return records


# ── Singleton Instance ───────────────────────────────

db = InMemoryDB()


# ── Collection Names ─────────────────────────────────

MATCHES = "matches"
DECKS = "decks"


# ═══════════════════════════════════════════════════
# SQL BACKEND
# ═══════════════════════════════════════════════════

metadata = MetaData()

matches_table = Table(
    "matches",
    metadata,
    Column("match_id", String(64), primary_key=True),
    Column("name", String(120), nullable=False),
    Column("creator_id", String(128), nullable=False),
    Column("visibility", String(16), nullable=False),
    Column("secret", String(128), nullable=True),
    Column("wager_rarity", String(32), nullable=True),
    Column("slots", JSON, nullable=False),
    Column("state", String(16), nullable=False, index=True),
    Column("winner", String(128), nullable=True),
    Column("current_turn", String(16), nullable=True),
    Column("turn_number", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
    Column("started_at", DateTime(timezone=True), nullable=True),
    Column("finished_at", DateTime(timezone=True), nullable=True),
    Column("version", Integer, nullable=False, default=0),
)


def make_engine(url: str, echo: bool = False) -> Engine:
    """
    Build the process-wide Engine. Connections are checked out per call
    by the repository and returned to the pool afterwards.
    """
    if url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # a single shared connection keeps the in-memory database alive
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
    else:
        engine = create_engine(url, echo=echo, pool_pre_ping=True)
    metadata.create_all(engine)
    return engine
