"""
Per-game access control.

Two tiers, evaluated against GameMember rows on every call (nothing is
cached, so a removed member loses access on their next request):

  read   active member of the game, any role          → require_member
  write  active game_master of the game               → require_game_master
         active member bound to the submitting team    → require_team_member

The game_master role is scoped to one game and has nothing to do with any
platform-wide administrator role.

Usage:
    from cluechase.services.authorization import require_game_master

    member = require_game_master(game_id, user_id, action="set_status")
"""

from __future__ import annotations

from cluechase.core.exceptions import AuthorizationError, NotFoundError
from cluechase.models import db
from cluechase.models.game import (
    MEMBER_STATUS_ACTIVE,
    ROLE_GAME_MASTER,
    Game,
    GameMember,
)
from cluechase.models.team import Team


def get_game_or_404(game_id: int) -> Game:
    game = db.session.get(Game, game_id)
    if game is None:
        raise NotFoundError("Game", game_id)
    return game


def get_membership(game_id: int, user_id: str | None) -> GameMember | None:
    """Return the caller's active membership row for a game, or None."""
    if not user_id:
        return None
    return (
        GameMember.query
        .filter_by(game_id=game_id, user_id=str(user_id), status=MEMBER_STATUS_ACTIVE)
        .first()
    )


def is_game_master(game_id: int, user_id: str | None) -> bool:
    member = get_membership(game_id, user_id)
    return member is not None and member.role == ROLE_GAME_MASTER


def require_member(game_id: int, user_id: str | None, action: str = "view_game") -> GameMember:
    """Read tier: any active member of the game.

    Raises:
        NotFoundError: game does not exist.
        AuthorizationError: caller has no active membership.
    """
    get_game_or_404(game_id)
    member = get_membership(game_id, user_id)
    if member is None:
        raise AuthorizationError(user_id, action, game_id)
    return member


def require_game_master(game_id: int, user_id: str | None, action: str) -> GameMember:
    """Write tier for game-level mutations: sequence, status, teams, members, review."""
    member = require_member(game_id, user_id, action)
    if member.role != ROLE_GAME_MASTER:
        raise AuthorizationError(user_id, action, game_id)
    return member


def require_team_member(team: Team, user_id: str | None, action: str) -> GameMember:
    """Write tier for submissions: the caller must belong to this team.

    Membership of the game alone is not enough; game masters who are not
    bound to the team are refused as well.
    """
    member = require_member(team.game_id, user_id, action)
    if member.team_id != team.id:
        raise AuthorizationError(user_id, action, team.game_id)
    return member


def game_master_count(game_id: int) -> int:
    return (
        GameMember.query
        .filter_by(game_id=game_id, role=ROLE_GAME_MASTER, status=MEMBER_STATUS_ACTIVE)
        .count()
    )
