"""
match_engine.py — Battle Room Lifecycle Engine
===============================================
Owns the state machine of a single battle room:

    open ──join──▶ ready_pending ──both ready──▶ in_progress ──end──▶ finished
      └──────────────────────────end────────────────────────────────────┘

Rules:
- states only move forward, `finished` is absorbing
- slot-1 is the creator, slot-2 the joiner; slot-1 moves first
- the winner is recorded exactly when the room is finished

The engine keeps no state between calls. Every mutating operation is
load → validate → apply → save, where save is a version-checked write
in the repository. A stale write is retried once from a fresh read
(re-validating against the new state); a second stale write surfaces
as Conflict.

USAGE:
------
    engine = MatchEngine(InMemoryMatchRepository(db), decks=DeckStore(db))

    room = engine.create_match("room1", "private", "alice", secret="abc")
    engine.join_match("room1", "bob", secret="abc")
    engine.set_ready("room1", "alice")
    engine.set_ready("room1", "bob")        # → in_progress
    engine.end_match("room1", "alice")      # → finished
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Iterator, Protocol

from tcg_arena.apps.battle.models import (
    ABANDONED,
    JOINABLE_STATES,
    SLOT_LABELS,
    Match,
    MatchState,
    Visibility,
    normalize_rarity,
    utcnow,
)
from tcg_arena.core.errors import (
    Conflict,
    InvalidArgument,
    InvalidState,
    MatchError,
    NotFound,
    StaleWrite,
)
from tcg_arena.core.guards import require_participant, require_secret
from tcg_arena.core.repository import MatchRepository

logger = logging.getLogger(__name__)

# One automatic re-read/re-apply after a lost compare-and-swap.
MAX_ATTEMPTS = 2


class DeckProvider(Protocol):
    def get_deck(self, user_id: str, deck_id: str | None = None) -> list[str]: ...


class JoinableMatches:
    """
    Rooms that can still be joined, newest first.

    Lazy and restartable: nothing is read until iteration starts, and
    every new iteration reads the store again.
    """

    def __init__(
        self,
        repository: MatchRepository,
        visibility: Visibility | None = None,
        wager_rarity: str | None = None,
    ):
        self.repository = repository
        self.visibility = visibility
        self.wager_rarity = wager_rarity

    def __iter__(self) -> Iterator[Match]:
        for match in self.repository.iter_matches():
            if match.state not in JOINABLE_STATES or match.participant_count >= 2:
                continue
            if self.visibility is not None and match.visibility != self.visibility:
                continue
            if self.wager_rarity is not None and match.wager_rarity != self.wager_rarity:
                continue
            yield match


class MatchEngine:
    def __init__(
        self,
        repository: MatchRepository,
        decks: DeckProvider | None = None,
        require_decks: bool = True,
        max_name_length: int = 60,
        max_secret_length: int = 64,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self.repository = repository
        self.decks = decks
        self.require_decks = require_decks
        self.max_name_length = max_name_length
        self.max_secret_length = max_secret_length
        self.clock = clock
        self.id_factory = id_factory

    # ═══════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════

    def _mutate(self, op: str, match_id: str, apply: Callable[[Match], bool]) -> Match:
        """
        Run one read-validate-write cycle with a single retry.

        `apply` validates and mutates the loaded match in place, returning
        False for a no-op (nothing is written and the loaded record is
        returned as-is).
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            match = self.repository.load(match_id)
            try:
                changed = apply(match)
            except MatchError as e:
                logger.warning(f"⛔ {op} rejected on {match_id}: {e.code} {e.message}")
                raise
            if not changed:
                return match
            try:
                return self.repository.save(match)
            except StaleWrite:
                if attempt < MAX_ATTEMPTS:
                    logger.info(f"🔁 {op} on {match_id} lost a concurrent write, retrying")
                    continue
        logger.warning(f"⛔ {op} on {match_id} gave up after {MAX_ATTEMPTS} stale writes")
        raise Conflict(
            f"Room {match_id} was modified concurrently, try again",
            details={"match_id": match_id, "operation": op},
        )

    def _check_decks(self, match: Match) -> None:
        if self.decks is None or not self.require_decks:
            return
        for slot in match.slots:
            try:
                cards = self.decks.get_deck(slot.occupant, slot.deck_id)
            except NotFound:
                cards = []
            if not cards:
                raise InvalidState(
                    f"{slot.occupant} has no usable deck",
                    details={"match_id": match.match_id, "slot": slot.label},
                )

    # ═══════════════════════════════════════════════════
    # OPERATIONS
    # ═══════════════════════════════════════════════════

    def create_match(
        self,
        name: str,
        visibility: Visibility | str,
        creator_id: str,
        secret: str | None = None,
        match_id: str | None = None,
        wager_rarity: str | None = None,
        deck_id: str | None = None,
        avatar: str | None = None,
    ) -> Match:
        """
        Open a new room with the creator seated in slot-1.

        Raises:
            InvalidArgument: blank or overlong name, blank creator/id, unknown
                visibility or rarity, private room without a secret or with
                an overlong one
            Conflict: match_id already taken
        """
        if not name or not name.strip():
            raise InvalidArgument("Room name is required")
        if len(name.strip()) > self.max_name_length:
            raise InvalidArgument(f"Room name is longer than {self.max_name_length} characters")
        if not creator_id or not creator_id.strip():
            raise InvalidArgument("Creator identity is required")
        try:
            visibility = Visibility(visibility)
        except ValueError:
            raise InvalidArgument(f"Unknown visibility: {visibility}")

        if visibility == Visibility.PRIVATE:
            if not secret:
                raise InvalidArgument("Private rooms need a password")
            if len(secret) > self.max_secret_length:
                raise InvalidArgument(f"Password is longer than {self.max_secret_length} characters")
        else:
            secret = None

        rarity = None
        if wager_rarity:
            rarity = normalize_rarity(wager_rarity)
            if rarity is None:
                raise InvalidArgument(f"Invalid card rarity selected: {wager_rarity}")

        if match_id is None:
            match_id = self.id_factory()
        elif not match_id.strip():
            raise InvalidArgument("Room id must not be blank")

        match = Match(
            match_id=match_id,
            name=name.strip(),
            creator_id=creator_id,
            visibility=visibility,
            secret=secret,
            wager_rarity=rarity,
            created_at=self.clock(),
        )
        match.slot_by_label(SLOT_LABELS[0]).seat(creator_id, deck_id=deck_id, avatar=avatar)

        match = self.repository.add(match)
        logger.info(f"🎮 Room created: {match_id} by {creator_id} ({visibility.value})")
        return match

    def join_match(
        self,
        match_id: str,
        occupant_id: str,
        secret: str | None = None,
        deck_id: str | None = None,
        avatar: str | None = None,
    ) -> Match:
        """
        Seat occupant_id in the free slot. A full room moves to ready_pending.

        Raises:
            NotFound, InvalidState (not open, full, already seated),
            Unauthorized (wrong password)
        """
        if not occupant_id or not occupant_id.strip():
            raise InvalidArgument("Player identity is required")

        def apply(match: Match) -> bool:
            if match.state != MatchState.OPEN:
                raise InvalidState(
                    f"Room is not accepting players (status: {match.state.value})",
                    details={"match_id": match_id, "state": match.state.value},
                )
            if match.slot_of(occupant_id) is not None:
                raise InvalidState(
                    "You are already in this room",
                    details={"match_id": match_id},
                )
            slot = match.first_empty_slot()
            if slot is None:
                raise InvalidState("Room is full", details={"match_id": match_id})
            require_secret(match, secret)

            slot.seat(occupant_id, deck_id=deck_id, avatar=avatar)
            if match.participant_count == len(SLOT_LABELS):
                match.state = MatchState.READY_PENDING
            return True

        match = self._mutate("join", match_id, apply)
        logger.info(f"👤 {occupant_id} joined room {match_id} ({match.state.value})")
        return match

    def set_ready(self, match_id: str, occupant_id: str) -> Match:
        """
        Mark the caller's slot ready. When both slots are ready the decks
        are checked and the room starts: in_progress, slot-1 to move.

        Raises:
            NotFound, Unauthorized (not seated), InvalidState (wrong state,
            missing deck)
        """

        def apply(match: Match) -> bool:
            require_participant(match, occupant_id)
            if match.state == MatchState.IN_PROGRESS:
                return False
            if match.state != MatchState.READY_PENDING:
                raise InvalidState(
                    f"Cannot ready up while room is {match.state.value}",
                    details={"match_id": match_id, "state": match.state.value},
                )
            slot = match.slot_of(occupant_id)
            if slot.ready:
                return False
            slot.ready = True

            # evaluated on the freshly loaded record, so a concurrent
            # ready from the other seat is never missed
            if match.all_ready():
                self._check_decks(match)
                match.state = MatchState.IN_PROGRESS
                match.started_at = self.clock()
                match.current_turn = SLOT_LABELS[0]
                match.turn_number = 1
            return True

        match = self._mutate("ready", match_id, apply)
        if match.state == MatchState.IN_PROGRESS:
            logger.info(f"⚔️  Room {match_id} started, {match.current_turn} to move")
        else:
            logger.info(f"✋ {occupant_id} is ready in room {match_id}")
        return match

    def pass_turn(self, match_id: str, occupant_id: str) -> Match:
        """
        Hand the turn to the other slot.

        Raises:
            NotFound, Unauthorized (not seated), InvalidState (not in
            progress, not the caller's turn)
        """

        def apply(match: Match) -> bool:
            require_participant(match, occupant_id)
            if match.state != MatchState.IN_PROGRESS:
                raise InvalidState(
                    f"No turns to pass while room is {match.state.value}",
                    details={"match_id": match_id, "state": match.state.value},
                )
            slot = match.slot_of(occupant_id)
            if slot.label != match.current_turn:
                raise InvalidState(
                    "It is not your turn",
                    details={"match_id": match_id, "current_turn": match.current_turn},
                )
            match.current_turn = match.other_label(slot.label)
            match.turn_number += 1
            return True

        match = self._mutate("turn", match_id, apply)
        logger.info(f"🔄 Room {match_id} turn {match.turn_number}: {match.current_turn}")
        return match

    def end_match(self, match_id: str, winner_id: str, caller_id: str | None = None) -> Match:
        """
        Finish the room and record the winner.

        Repeating the call with the same winner returns the finished
        record unchanged. `abandoned` may be recorded without being a
        player (stale-room cleanup). When caller_id is given (HTTP
        requests), the caller must be seated in the room; in-process
        callers such as a stale-room reaper pass None.

        Raises:
            NotFound, Unauthorized (caller not seated),
            InvalidArgument (winner not seated),
            Conflict (already finished with another winner)
        """
        if not winner_id:
            raise InvalidArgument("Winner identity is required")

        def apply(match: Match) -> bool:
            if caller_id is not None:
                require_participant(match, caller_id)
            if match.state == MatchState.FINISHED:
                if match.winner == winner_id:
                    return False
                raise Conflict(
                    "Battle already completed with a different winner",
                    details={"match_id": match_id},
                )
            if winner_id != ABANDONED and match.slot_of(winner_id) is None:
                raise InvalidArgument(
                    f"{winner_id} is not a player in room {match_id}",
                    details={"match_id": match_id},
                )
            match.state = MatchState.FINISHED
            match.winner = winner_id
            match.current_turn = None
            match.finished_at = self.clock()
            return True

        match = self._mutate("end", match_id, apply)
        logger.info(f"🏁 Room {match_id} finished, winner: {match.winner}")
        return match

    def get_match(self, match_id: str) -> Match:
        return self.repository.load(match_id)

    def verify_secret(self, match_id: str, secret: str | None) -> Match:
        """Check a room password without joining. Raises Unauthorized on mismatch."""
        match = self.repository.load(match_id)
        require_secret(match, secret)
        return match

    def list_joinable(
        self,
        visibility: Visibility | str | None = None,
        wager_rarity: str | None = None,
    ) -> JoinableMatches:
        if visibility is not None:
            try:
                visibility = Visibility(visibility)
            except ValueError:
                raise InvalidArgument(f"Unknown visibility: {visibility}")
        rarity = None
        if wager_rarity:
            rarity = normalize_rarity(wager_rarity)
            if rarity is None:
                raise InvalidArgument(f"Invalid card rarity selected: {wager_rarity}")
        return JoinableMatches(self.repository, visibility, rarity)
