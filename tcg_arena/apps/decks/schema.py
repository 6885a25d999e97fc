"""
schema.py — Deck Request/Response Models
=========================================
"""

from typing import List

from pydantic import BaseModel, Field


class DeckSaveRequest(BaseModel):
    """Save (or overwrite) one deck."""
    deck_id: str = Field(..., min_length=1, max_length=64, description="Deck ID")
    name: str = Field(..., min_length=1, max_length=60, description="Deck name")
    cards: List[str] = Field(..., max_length=60, description="Ordered card token IDs")

    class Config:
        json_schema_extra = {
            "example": {
                "deck_id": "fire-starter",
                "name": "Fire Starter",
                "cards": ["4", "5", "6", "37", "38"],
            }
        }


class DeckResponse(BaseModel):
    user_id: str
    deck_id: str
    name: str
    cards: List[str]
