"""
schema.py — Battle Room Request/Response Models
================================================
Pydantic models for the room endpoints. Room passwords are accepted on
input but never echoed back.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from tcg_arena.apps.battle.models import Match, MatchState, Visibility


# ═══════════════════════════════════════════════════
# REQUEST MODELS
# ═══════════════════════════════════════════════════

class RoomCreateRequest(BaseModel):
    """
    New battle room. The caller (X-User-Id) takes slot-1.
    """
    id: Optional[str] = Field(None, min_length=1, max_length=64, description="Room ID (generated if omitted)")
    name: str = Field(..., min_length=1, description="Room name (length limit: ARENA_MAX_ROOM_NAME_LENGTH)")
    visibility: Visibility = Field(default=Visibility.PUBLIC, description="public | private")
    password: Optional[str] = Field(None, description="Required for private rooms (length limit: ARENA_MAX_SECRET_LENGTH)")
    wager_rarity: Optional[str] = Field(None, description="Card rarity both players wager")
    deck_id: Optional[str] = Field(None, max_length=64, description="Creator's deck")
    avatar: Optional[str] = Field(None, max_length=500, description="Creator's avatar URL")

    class Config:
        json_schema_extra = {
            "example": {
                "id": "room1",
                "name": "Friday night battle",
                "visibility": "private",
                "password": "abc",
                "wager_rarity": "rare_holo",
                "deck_id": "fire-starter",
            }
        }


class JoinRequest(BaseModel):
    """
    Take the free seat of a room.
    """
    password: Optional[str] = Field(None, description="Room password (private rooms)")
    deck_id: Optional[str] = Field(None, max_length=64, description="Joiner's deck")
    avatar: Optional[str] = Field(None, max_length=500, description="Joiner's avatar URL")

    class Config:
        json_schema_extra = {"example": {"password": "abc", "deck_id": "water-wall"}}


class EndRequest(BaseModel):
    winner_id: str = Field(..., min_length=1, max_length=128, description="Winner's user ID or 'abandoned'")


class PasswordCheckRequest(BaseModel):
    password: str = Field(..., min_length=1)


# ═══════════════════════════════════════════════════
# RESPONSE MODELS
# ═══════════════════════════════════════════════════

class SlotResponse(BaseModel):
    label: str = Field(..., description="slot-1 | slot-2")
    occupant: Optional[str] = Field(None, description="Seated user ID")
    ready: bool = Field(..., description="Ready to start?")
    deck_id: Optional[str] = None
    avatar: Optional[str] = None


class RoomResponse(BaseModel):
    """
    Full room state.
    """
    id: str
    name: str
    creator_id: str
    visibility: Visibility
    wager_rarity: Optional[str] = None
    players: int = Field(..., description="Seated players (0-2)")
    max_players: int = 2
    slots: List[SlotResponse]
    state: MatchState
    winner: Optional[str] = None
    current_turn: Optional[str] = Field(None, description="Slot to move while in_progress")
    turn_number: int = 0
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    version: int

    @classmethod
    def from_match(cls, match: Match) -> "RoomResponse":
        return cls(
            id=match.match_id,
            name=match.name,
            creator_id=match.creator_id,
            visibility=match.visibility,
            wager_rarity=match.wager_rarity,
            players=match.participant_count,
            slots=[SlotResponse(**s.to_dict()) for s in match.slots],
            state=match.state,
            winner=match.winner,
            current_turn=match.current_turn,
            turn_number=match.turn_number,
            created_at=match.created_at,
            started_at=match.started_at,
            finished_at=match.finished_at,
            version=match.version,
        )


class RoomSummary(BaseModel):
    """
    Lobby listing row.
    """
    id: str
    name: str
    visibility: Visibility
    players: int
    max_players: int = 2
    creator_id: str
    wager_rarity: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_match(cls, match: Match) -> "RoomSummary":
        return cls(
            id=match.match_id,
            name=match.name,
            visibility=match.visibility,
            players=match.participant_count,
            creator_id=match.creator_id,
            wager_rarity=match.wager_rarity,
            created_at=match.created_at,
        )


class RoomListResponse(BaseModel):
    items: List[RoomSummary]
    limit: int
    offset: int


class PasswordCheckResponse(BaseModel):
    success: bool = True
