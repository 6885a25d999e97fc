"""
service.py — Battle Room Business Logic
========================================
Calls the lifecycle engine off the event loop (store I/O blocks) and
pushes every successful transition to the room's websocket subscribers.
"""

import logging
from itertools import islice

from starlette.concurrency import run_in_threadpool

from tcg_arena.apps.battle.models import Match
from tcg_arena.apps.battle.schema import (
    EndRequest,
    JoinRequest,
    RoomCreateRequest,
    RoomResponse,
    RoomSummary,
)
from tcg_arena.apps.ws.service import manager
from tcg_arena.core.match_engine import MatchEngine

logger = logging.getLogger(__name__)


async def publish_room(match: Match) -> None:
    """Send the new room state to everyone watching it."""
    await manager.broadcast(
        match.match_id,
        {
            "event": "room_updated",
            "data": RoomResponse.from_match(match).model_dump(mode="json"),
        },
    )


# ═══════════════════════════════════════════════════
# ROOM SERVICE FUNCTIONS
# ═══════════════════════════════════════════════════

async def create_room(engine: MatchEngine, creator_id: str, req: RoomCreateRequest) -> Match:
    return await run_in_threadpool(
        engine.create_match,
        name=req.name,
        visibility=req.visibility,
        creator_id=creator_id,
        secret=req.password,
        match_id=req.id,
        wager_rarity=req.wager_rarity,
        deck_id=req.deck_id,
        avatar=req.avatar,
    )


async def get_room(engine: MatchEngine, match_id: str) -> Match:
    return await run_in_threadpool(engine.get_match, match_id)


async def join_room(engine: MatchEngine, match_id: str, user_id: str, req: JoinRequest) -> Match:
    match = await run_in_threadpool(
        engine.join_match,
        match_id,
        user_id,
        secret=req.password,
        deck_id=req.deck_id,
        avatar=req.avatar,
    )
    await publish_room(match)
    return match


async def ready_up(engine: MatchEngine, match_id: str, user_id: str) -> Match:
    match = await run_in_threadpool(engine.set_ready, match_id, user_id)
    await publish_room(match)
    return match


async def pass_turn(engine: MatchEngine, match_id: str, user_id: str) -> Match:
    match = await run_in_threadpool(engine.pass_turn, match_id, user_id)
    await publish_room(match)
    return match


async def end_room(engine: MatchEngine, match_id: str, user_id: str, req: EndRequest) -> Match:
    match = await run_in_threadpool(engine.end_match, match_id, req.winner_id, caller_id=user_id)
    await publish_room(match)
    return match


async def check_password(engine: MatchEngine, match_id: str, password: str) -> None:
    await run_in_threadpool(engine.verify_secret, match_id, password)


async def list_rooms(
    engine: MatchEngine,
    visibility: str | None,
    wager_rarity: str | None,
    limit: int,
    offset: int,
) -> list[RoomSummary]:
    """One page of joinable rooms, newest first."""

    def _page() -> list[RoomSummary]:
        rooms = engine.list_joinable(visibility=visibility, wager_rarity=wager_rarity)
        return [RoomSummary.from_match(m) for m in islice(rooms, offset, offset + limit)]

    page = await run_in_threadpool(_page)
    logger.debug(f"Found {len(page)} available rooms")
    return page
