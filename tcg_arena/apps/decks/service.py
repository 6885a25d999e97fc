"""
service.py — Deck Provider
===========================
Stores each user's decks (ordered card ids) and hands them to the
battle engine at match start. Deck legality is not checked here.
"""

import logging

from tcg_arena.core.database import DECKS, InMemoryDB
from tcg_arena.core.errors import InvalidArgument, NotFound

logger = logging.getLogger(__name__)


class DeckStore:
    """In-memory Deck Provider: get_deck(user_id, deck_id=None) -> list[str]."""

    def __init__(self, store: InMemoryDB, collection: str = DECKS):
        self.store = store
        self.collection = collection

    @staticmethod
    def _key(user_id: str, deck_id: str) -> str:
        return f"{user_id}:{deck_id}"

    def save_deck(self, user_id: str, deck_id: str, name: str, cards: list[str]) -> dict:
        if not deck_id.strip():
            raise InvalidArgument("deck_id must not be empty")
        record = self.store.insert(
            self.collection,
            self._key(user_id, deck_id),
            {"user_id": user_id, "deck_id": deck_id, "name": name, "cards": list(cards)},
        )
        logger.info(f"🃏 Deck {deck_id} saved for {user_id} ({len(cards)} cards)")
        return record

    def list_decks(self, user_id: str) -> list[dict]:
        return self.store.list(self.collection, lambda r: r["user_id"] == user_id)

    def get_deck(self, user_id: str, deck_id: str | None = None) -> list[str]:
        """
        Ordered card ids of one deck.

        With no deck_id the user's first saved deck is used.

        Raises:
            NotFound: user has no such deck
        """
        if deck_id is not None:
            record = self.store.get(self.collection, self._key(user_id, deck_id))
        else:
            decks = self.list_decks(user_id)
            record = decks[0] if decks else None
        if record is None:
            raise NotFound(
                f"No deck found for {user_id}",
                details={"user_id": user_id, "deck_id": deck_id},
            )
        return list(record["cards"])
