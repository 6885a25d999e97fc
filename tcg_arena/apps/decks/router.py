"""
router.py — Deck Endpoints
===========================
PUT /api/decks/{user_id}   → save a deck (owner only)
GET /api/decks/{user_id}   → show a user's decks
"""

from fastapi import APIRouter, Depends

from tcg_arena.apps.decks.schema import DeckResponse, DeckSaveRequest
from tcg_arena.apps.decks.service import DeckStore
from tcg_arena.core.dependencies import get_current_user, get_deck_store
from tcg_arena.core.errors import Unauthorized

router = APIRouter(prefix="/api/decks", tags=["decks"])


@router.put("/{user_id}", response_model=DeckResponse)
async def save_deck_endpoint(
    user_id: str,
    req: DeckSaveRequest,
    caller: str = Depends(get_current_user),
    decks: DeckStore = Depends(get_deck_store),
):
    if caller != user_id:
        raise Unauthorized("You can only edit your own decks")
    record = decks.save_deck(user_id, req.deck_id, req.name, req.cards)
    return DeckResponse(**{k: record[k] for k in ("user_id", "deck_id", "name", "cards")})


@router.get("/{user_id}", response_model=list[DeckResponse])
async def show_decks_endpoint(user_id: str, decks: DeckStore = Depends(get_deck_store)):
    return [
        DeckResponse(**{k: r[k] for k in ("user_id", "deck_id", "name", "cards")})
        for r in decks.list_decks(user_id)
    ]
