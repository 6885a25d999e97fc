"""
Battle room models — Match record and its two seats.
Persisted through tcg_arena.core.repository (in-memory or SQL).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class MatchState(str, Enum):
    OPEN = "open"
    READY_PENDING = "ready_pending"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"

    @property
    def rank(self) -> int:
        return _STATE_ORDER.index(self)


_STATE_ORDER = [
    MatchState.OPEN,
    MatchState.READY_PENDING,
    MatchState.IN_PROGRESS,
    MatchState.FINISHED,
]

JOINABLE_STATES = frozenset({MatchState.OPEN, MatchState.READY_PENDING})


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


SLOT_LABELS = ("slot-1", "slot-2")

# Outcome an external reaper records for stale rooms.
ABANDONED = "abandoned"

VALID_RARITIES = (
    "common",
    "uncommon",
    "rare",
    "rare_holo",
    "rare_ultra",
    "promo",
    "rare_holo_gx",
    "rare_break",
    "rare_holo_ex",
    "rare_rainbow",
    "rare_shiny",
    "classic_collection",
    "rare_secret",
    "double_rare",
    "illustration_rare",
)

# Collection display names → stored rarity keys
_RARITY_ALIASES = {
    "ultra rare": "rare_ultra",
}


def normalize_rarity(value: str | None) -> str | None:
    """'Rare Holo GX' → 'rare_holo_gx'. Unknown values come back None."""
    if value is None:
        return None
    key = value.strip().lower()
    if key in _RARITY_ALIASES:
        return _RARITY_ALIASES[key]
    key = key.replace(" ", "_")
    return key if key in VALID_RARITIES else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Slot:
    """One of the two seats in a match."""
    label: str
    occupant: str | None = None
    ready: bool = False
    deck_id: str | None = None
    avatar: str | None = None

    @property
    def occupied(self) -> bool:
        return self.occupant is not None

    def seat(self, occupant: str, deck_id: str | None = None, avatar: str | None = None) -> None:
        self.occupant = occupant
        self.ready = False
        self.deck_id = deck_id
        self.avatar = avatar

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "occupant": self.occupant,
            # an empty seat never reads as ready
            "ready": self.ready if self.occupied else False,
            "deck_id": self.deck_id,
            "avatar": self.avatar,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Slot:
        return cls(
            label=data["label"],
            occupant=data.get("occupant"),
            ready=bool(data.get("ready")) and data.get("occupant") is not None,
            deck_id=data.get("deck_id"),
            avatar=data.get("avatar"),
        )


def _empty_slots() -> list[Slot]:
    return [Slot(label=label) for label in SLOT_LABELS]


@dataclass
class Match:
    """Battle room record (the unit the lifecycle engine governs)."""
    match_id: str
    name: str
    creator_id: str
    visibility: Visibility = Visibility.PUBLIC
    secret: str | None = None
    wager_rarity: str | None = None
    slots: list[Slot] = field(default_factory=_empty_slots)
    state: MatchState = MatchState.OPEN
    winner: str | None = None
    current_turn: str | None = None  # slot label, only while in_progress
    turn_number: int = 0
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    version: int = 0

    # ── Seats ────────────────────────────────────────

    @property
    def participant_count(self) -> int:
        return sum(1 for s in self.slots if s.occupied)

    @property
    def is_private(self) -> bool:
        return self.visibility == Visibility.PRIVATE

    def slot_of(self, identity: str | None) -> Slot | None:
        if identity is None:
            return None
        for slot in self.slots:
            if slot.occupant == identity:
                return slot
        return None

    def slot_by_label(self, label: str) -> Slot:
        for slot in self.slots:
            if slot.label == label:
                return slot
        raise KeyError(label)

    def first_empty_slot(self) -> Slot | None:
        for slot in self.slots:
            if not slot.occupied:
                return slot
        return None

    def all_ready(self) -> bool:
        return all(s.occupied and s.ready for s in self.slots)

    def other_label(self, label: str) -> str:
        return SLOT_LABELS[1] if label == SLOT_LABELS[0] else SLOT_LABELS[0]

    # ── Serialization ────────────────────────────────

    def to_record(self) -> dict:
        """Durable projection (includes the secret)."""
        return {
            "match_id": self.match_id,
            "name": self.name,
            "creator_id": self.creator_id,
            "visibility": self.visibility.value,
            "secret": self.secret,
            "wager_rarity": self.wager_rarity,
            "slots": [s.to_dict() for s in self.slots],
            "state": self.state.value,
            "winner": self.winner,
            "current_turn": self.current_turn,
            "turn_number": self.turn_number,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "version": self.version,
        }

    @classmethod
    def from_record(cls, data: dict) -> Match:
        def _dt(value):
            if value is None:
                return None
            if not isinstance(value, datetime):
                value = datetime.fromisoformat(value)
            # SQLite drops the offset; stored times are always UTC
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value

        return cls(
            match_id=data["match_id"],
            name=data["name"],
            creator_id=data["creator_id"],
            visibility=Visibility(data["visibility"]),
            secret=data.get("secret"),
            wager_rarity=data.get("wager_rarity"),
            slots=[Slot.from_dict(s) for s in data["slots"]],
            state=MatchState(data["state"]),
            winner=data.get("winner"),
            current_turn=data.get("current_turn"),
            turn_number=data.get("turn_number", 0),
            created_at=_dt(data["created_at"]),
            started_at=_dt(data.get("started_at")),
            finished_at=_dt(data.get("finished_at")),
            version=data.get("version", 0),
        )
