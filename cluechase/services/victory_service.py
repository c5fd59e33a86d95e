"""
Victory placement.

A team's place is fixed by when it finished: 1 + the number of other
complete teams whose ``completed_at`` is strictly earlier.  Teams that
finish in the same instant share a place.

Setting ``VICTORY_PLACEMENT_MODE = "team_order"`` ranks finishers by team
creation order instead, matching games run before completion times were
recorded.
"""

import logging
from datetime import datetime, timezone

from flask import current_app

from cluechase.core.exceptions import ConflictError, NotFoundError
from cluechase.models.team import Team
from cluechase.services import authorization
from cluechase.services.team_service import get_team_or_404, is_complete

logger = logging.getLogger(__name__)

PLACEMENT_MODE_COMPLETED_AT = "completed_at"
PLACEMENT_MODE_TEAM_ORDER = "team_order"

DEFAULT_VICTORY_SETTINGS = {
    "firstPlace": {
        "title": "Congratulations! 🏆",
        "message": "You finished in 1st place!",
        "backgroundColor": "#10b981",
        "textColor": "#ffffff",
        "showConfetti": True,
    },
    "secondPlace": {
        "title": "Great Job! 🥈",
        "message": "You finished in 2nd place!",
        "backgroundColor": "#6366f1",
        "textColor": "#ffffff",
        "showConfetti": False,
    },
    "thirdPlace": {
        "title": "Well Done! 🥉",
        "message": "You finished in 3rd place!",
        "backgroundColor": "#f59e0b",
        "textColor": "#ffffff",
        "showConfetti": False,
    },
    "otherPlace": {
        "title": "Congratulations! 🎉",
        "message": "You completed the challenge!",
        "backgroundColor": "#8b5cf6",
        "textColor": "#ffffff",
        "showConfetti": False,
    },
}

_TIERS_BY_PLACE = {1: "firstPlace", 2: "secondPlace", 3: "thirdPlace"}


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands DateTime(timezone=True) back naive
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def tier_for_place(place: int) -> str:
    return _TIERS_BY_PLACE.get(place, "otherPlace")


def display_for_place(place: int, victory_settings: dict | None = None) -> dict:
    """Display config for a place: the game's settings merged over defaults."""
    tier = tier_for_place(place)
    display = dict(DEFAULT_VICTORY_SETTINGS[tier])
    display.update((victory_settings or {}).get(tier) or {})
    return display


def _placement_mode() -> str:
    return current_app.config.get("VICTORY_PLACEMENT_MODE", PLACEMENT_MODE_COMPLETED_AT)


def _place_among(team: Team, finished: list[Team], mode: str) -> int:
    others = [t for t in finished if t.id != team.id]
    if mode == PLACEMENT_MODE_TEAM_ORDER:
        ahead = [t for t in others if t.id < team.id]
    else:
        mine = _as_utc(team.completed_at)
        ahead = [
            t for t in others
            if t.completed_at is not None and mine is not None and _as_utc(t.completed_at) < mine
        ]
    return 1 + len(ahead)


def _finished_teams(game) -> list[Team]:
    teams = Team.query.filter_by(game_id=game.id).order_by(Team.id).all()
    return [t for t in teams if is_complete(t, game.total_clues)]


def resolve_placement(game_id: int, team_id: int, requester_id: str) -> dict:
    """Place, tier and display config for a team that has finished.

    Raises:
        NotFoundError: game or team missing, or team not in this game.
        ConflictError: the team has not completed the sequence.
    """
    authorization.require_member(game_id, requester_id, "view_placement")
    game = authorization.get_game_or_404(game_id)
    team = get_team_or_404(team_id)
    if team.game_id != game.id:
        raise NotFoundError("Team", team_id)
    if game.total_clues == 0 or not is_complete(team, game.total_clues):
        raise ConflictError("Team", reason="team has not completed the sequence")

    mode = _placement_mode()
    place = _place_among(team, _finished_teams(game), mode)
    logger.debug(
        "Placement resolved: %d (%s)", place, mode,
        extra={"game_id": game_id, "team_id": team_id},
    )
    return {
        "team_id": team.id,
        "team_name": team.name,
        "place": place,
        "tier": tier_for_place(place),
        "display": display_for_place(place, game.victory_settings),
        "completed_at": team.completed_at.isoformat() if team.completed_at else None,
    }


def leaderboard(game_id: int, requester_id: str) -> list[dict]:
    """All teams: finishers by place, then the rest by progress."""
    authorization.require_member(game_id, requester_id, "view_leaderboard")
    game = authorization.get_game_or_404(game_id)
    total = game.total_clues
    mode = _placement_mode()

    teams = Team.query.filter_by(game_id=game_id).order_by(Team.id).all()
    finished = [t for t in teams if total and is_complete(t, total)]

    rows = []
    for team in teams:
        entry = team.to_dict()
        entry["progress_percent"] = round(100 * min(team.current_clue_index, total) / total) if total else 0
        entry["place"] = _place_among(team, finished, mode) if team in finished else None
        rows.append(entry)

    rows.sort(key=lambda r: (
        r["place"] is None,
        r["place"] or 0,
        -r["current_clue_index"],
        r["id"],
    ))
    return rows
