"""
repository.py — Match Repository
=================================
Maps Match objects to the persistent store.

    load(match_id)  -> Match            (NotFound)
    add(match)      -> Match            (Conflict if the id exists)
    save(match)     -> Match            (StaleWrite if match.version is outdated)
    iter_matches()  -> Iterator[Match]  (newest first)

save() is a compare-and-swap on `version`: the write only lands when the
stored version still equals the one read at load time. On success the
returned Match carries the bumped version.
"""

from __future__ import annotations

import logging
from typing import Iterator

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from tcg_arena.apps.battle.models import Match
from tcg_arena.core.database import MATCHES, InMemoryDB, matches_table
from tcg_arena.core.errors import Conflict, NotFound, StaleWrite

logger = logging.getLogger(__name__)


class MatchRepository:
    """Interface shared by both backends."""

    def load(self, match_id: str) -> Match:
        raise NotImplementedError

    def add(self, match: Match) -> Match:
        raise NotImplementedError

    def save(self, match: Match) -> Match:
        raise NotImplementedError

    def iter_matches(self) -> Iterator[Match]:
        raise NotImplementedError


def _strip_private_keys(record: dict) -> dict:
    return {k: v for k, v in record.items() if not k.startswith("_")}


class InMemoryMatchRepository(MatchRepository):
    def __init__(self, store: InMemoryDB, collection: str = MATCHES):
        self.store = store
        self.collection = collection

    def load(self, match_id: str) -> Match:
        record = self.store.get(self.collection, match_id)
        if record is None:
            raise NotFound(f"Room not found: {match_id}", details={"match_id": match_id})
        return Match.from_record(_strip_private_keys(record))

    def add(self, match: Match) -> Match:
        record = self.store.insert_new(self.collection, match.match_id, match.to_record())
        if record is None:
            raise Conflict(f"Room {match.match_id} already exists", details={"match_id": match.match_id})
        return Match.from_record(_strip_private_keys(record))

    def save(self, match: Match) -> Match:
        record = self.store.compare_and_swap(
            self.collection, match.match_id, match.version, match.to_record()
        )
        if record is None:
            logger.debug(f"⚠️  Stale write on {match.match_id} (v{match.version})")
            raise StaleWrite(match.match_id, match.version)
        return Match.from_record(_strip_private_keys(record))

    def iter_matches(self) -> Iterator[Match]:
        matches = [Match.from_record(_strip_private_keys(r)) for r in self.store.list(self.collection)]
        matches.sort(key=lambda m: m.created_at, reverse=True)
        yield from matches


class SqlMatchRepository(MatchRepository):
    """SQLAlchemy Core backend; one short transaction per call."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @staticmethod
    def _row_values(match: Match) -> dict:
        return {
            "match_id": match.match_id,
            "name": match.name,
            "creator_id": match.creator_id,
            "visibility": match.visibility.value,
            "secret": match.secret,
            "wager_rarity": match.wager_rarity,
            "slots": [s.to_dict() for s in match.slots],
            "state": match.state.value,
            "winner": match.winner,
            "current_turn": match.current_turn,
            "turn_number": match.turn_number,
            "created_at": match.created_at,
            "started_at": match.started_at,
            "finished_at": match.finished_at,
        }

    def load(self, match_id: str) -> Match:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(matches_table).where(matches_table.c.match_id == match_id)
            ).mappings().first()
        if row is None:
            raise NotFound(f"Room not found: {match_id}", details={"match_id": match_id})
        return Match.from_record(dict(row))

    def add(self, match: Match) -> Match:
        values = {**self._row_values(match), "version": 0}
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(matches_table).values(**values))
        except IntegrityError:
            raise Conflict(f"Room {match.match_id} already exists", details={"match_id": match.match_id})
        return Match.from_record(values)

    def save(self, match: Match) -> Match:
        values = {**self._row_values(match), "version": match.version + 1}
        with self.engine.begin() as conn:
            result = conn.execute(
                update(matches_table)
                .where(matches_table.c.match_id == match.match_id)
                .where(matches_table.c.version == match.version)
                .values(**values)
            )
        if result.rowcount != 1:
            logger.debug(f"⚠️  Stale write on {match.match_id} (v{match.version})")
            raise StaleWrite(match.match_id, match.version)
        return Match.from_record(values)

    def iter_matches(self) -> Iterator[Match]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(matches_table).order_by(matches_table.c.created_at.desc())
            ).mappings().all()
        for row in rows:
            yield Match.from_record(dict(row))
