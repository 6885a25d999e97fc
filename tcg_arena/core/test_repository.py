"""Tests for the match repositories (in-memory and SQL)."""

from datetime import datetime, timedelta, timezone

import pytest

from tcg_arena.apps.battle.models import Match, MatchState, Visibility
from tcg_arena.core.database import InMemoryDB, make_engine
from tcg_arena.core.errors import Conflict, NotFound, StaleWrite
from tcg_arena.core.match_engine import MatchEngine
from tcg_arena.core.repository import InMemoryMatchRepository, SqlMatchRepository


@pytest.fixture(params=["memory", "sql"])
def repo(request):
    if request.param == "memory":
        yield InMemoryMatchRepository(InMemoryDB())
    else:
        engine = make_engine("sqlite://")
        yield SqlMatchRepository(engine)
        engine.dispose()


def make_match(match_id="room1", minutes=0, **kwargs):
    match = Match(
        match_id=match_id,
        name=f"Room {match_id}",
        creator_id="alice",
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes),
        **kwargs,
    )
    match.slots[0].seat("alice", deck_id="fire")
    return match


def test_add_then_load(repo):
    repo.add(make_match(visibility=Visibility.PRIVATE, secret="abc", wager_rarity="rare"))
    loaded = repo.load("room1")
    assert loaded.name == "Room room1"
    assert loaded.visibility == Visibility.PRIVATE
    assert loaded.secret == "abc"
    assert loaded.wager_rarity == "rare"
    assert loaded.slots[0].occupant == "alice"
    assert loaded.slots[0].deck_id == "fire"
    assert loaded.slots[1].occupant is None
    assert loaded.state == MatchState.OPEN
    assert loaded.version == 0


def test_add_duplicate(repo):
    repo.add(make_match())
    with pytest.raises(Conflict):
        repo.add(make_match())


def test_load_missing(repo):
    with pytest.raises(NotFound):
        repo.load("nope")


def test_save_bumps_version(repo):
    repo.add(make_match())
    match = repo.load("room1")
    match.slots[1].seat("bob")
    match.state = MatchState.READY_PENDING

    saved = repo.save(match)
    assert saved.version == 1

    loaded = repo.load("room1")
    assert loaded.version == 1
    assert loaded.slots[1].occupant == "bob"
    assert loaded.state == MatchState.READY_PENDING


def test_stale_save_is_rejected(repo):
    repo.add(make_match())
    first = repo.load("room1")
    second = repo.load("room1")

    first.slots[1].seat("bob")
    repo.save(first)

    second.slots[1].seat("carol")
    with pytest.raises(StaleWrite):
        repo.save(second)
    assert repo.load("room1").slots[1].occupant == "bob"


def test_timestamps_come_back_in_utc(repo):
    added = repo.add(make_match())
    match = repo.load("room1")
    match.started_at = datetime(2026, 1, 1, 0, 5, tzinfo=timezone.utc)
    repo.save(match)

    loaded = repo.load("room1")
    assert loaded.created_at == added.created_at
    assert loaded.created_at.tzinfo is not None
    assert loaded.started_at.utcoffset() == timedelta(0)
    assert loaded.to_record()["created_at"] == added.to_record()["created_at"]
    assert all(m.created_at.tzinfo is not None for m in repo.iter_matches())


def test_iter_matches_newest_first(repo):
    repo.add(make_match("a", minutes=1))
    repo.add(make_match("c", minutes=3))
    repo.add(make_match("b", minutes=2))
    assert [m.match_id for m in repo.iter_matches()] == ["c", "b", "a"]


def test_engine_on_sql_backend():
    sql = make_engine("sqlite://")
    engine = MatchEngine(SqlMatchRepository(sql), require_decks=False)

    engine.create_match("room1", Visibility.PRIVATE, "alice", secret="abc", match_id="room1")
    engine.join_match("room1", "bob", secret="abc")
    engine.set_ready("room1", "alice")
    match = engine.set_ready("room1", "bob")
    assert match.state == MatchState.IN_PROGRESS
    assert match.version == 3

    match = engine.end_match("room1", "bob")
    assert match.state == MatchState.FINISHED
    assert engine.get_match("room1").winner == "bob"
    assert list(engine.list_joinable()) == []
    sql.dispose()
