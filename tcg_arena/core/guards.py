"""
guards.py — Access checks for battle room transitions.
Pure predicates; the require_* variants raise Unauthorized.
"""

import hmac

from tcg_arena.apps.battle.models import Match
from tcg_arena.core.errors import Unauthorized


def is_participant(match: Match, identity: str | None) -> bool:
    return match.slot_of(identity) is not None


def secret_matches(match: Match, supplied: str | None) -> bool:
    """Exact, case-sensitive comparison. Public rooms always match."""
    if not match.is_private:
        return True
    if supplied is None or match.secret is None:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), match.secret.encode("utf-8"))


def require_participant(match: Match, identity: str | None) -> None:
    if not is_participant(match, identity):
        raise Unauthorized(
            f"{identity} is not a player in room {match.match_id}",
            details={"match_id": match.match_id},
        )


def require_secret(match: Match, supplied: str | None) -> None:
    if not secret_matches(match, supplied):
        raise Unauthorized(
            "Incorrect room password",
            details={"match_id": match.match_id},
        )
