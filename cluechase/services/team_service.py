"""
Team progress tracking.

A team's position is ``Team.current_clue_index``; its completed clues are
``TeamClueCompletion`` rows.  ``advance`` is the only writer of either and
is reached from exactly two places: an approved submission
(``submission_service.review``) and the game master's manual override.

advance() is a compare-and-swap:

    UPDATE teams SET current_clue_index = :i + 1
     WHERE id = :team AND current_clue_index = :i

Zero rows means another request moved the team first; the caller gets a
ConflictError and nothing is written.  Repeating an advance that was
already recorded for the same submission is a no-op, so a retried approval
never skips a clue; a clue completed by any other path conflicts.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from cluechase.core.exceptions import ConflictError, NotFoundError, ValidationError
from cluechase.models import db
from cluechase.models.game import GAME_STATUS_COMPLETED, Game, GameMember
from cluechase.models.team import Team, TeamClueCompletion
from cluechase.services import authorization

logger = logging.getLogger(__name__)


def get_team_or_404(team_id: int) -> Team:
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team", team_id)
    return team


def is_complete(team: Team, total_clues: int) -> bool:
    return team.current_clue_index >= total_clues


# ── Teams & assignment ───────────────────────────────────────────────────────


def create_team(game_id: int, name: str, requester_id: str) -> dict:
    """Create a team at clue 0 with no completions.

    Raises:
        ValidationError: name missing.
        ConflictError: another team in this game has the same name.
    """
    authorization.require_game_master(game_id, requester_id, "create_team")
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Team name is required", details={"name": "required"})

    if Team.query.filter_by(game_id=game_id, name=name).first() is not None:
        raise ConflictError("Team", "name", name)

    team = Team(game_id=game_id, name=name[:255], current_clue_index=0)
    db.session.add(team)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Team", "name", name) from None

    logger.info(
        "Team created",
        extra={"game_id": game_id, "team_id": team.id, "user_id": str(requester_id)},
    )
    return team.to_dict()


def list_teams(game_id: int, requester_id: str) -> list[dict]:
    authorization.require_member(game_id, requester_id, "list_teams")
    teams = Team.query.filter_by(game_id=game_id).order_by(Team.id).all()
    return [t.to_dict() for t in teams]


def delete_team(team_id: int, requester_id: str) -> None:
    """Delete a team. Its submissions and completions cascade; members are unbound."""
    team = get_team_or_404(team_id)
    game_id = team.game_id
    authorization.require_game_master(game_id, requester_id, "delete_team")
    db.session.delete(team)
    db.session.commit()
    logger.info(
        "Team deleted",
        extra={"game_id": game_id, "team_id": team_id, "user_id": str(requester_id)},
    )


def assign_member(member_id: int, team_id: int | None, requester_id: str) -> dict:
    """Bind a member to a team (or unbind with ``team_id=None``).

    Any previous binding is overwritten.

    Raises:
        NotFoundError: member or team missing.
        ValidationError: team belongs to a different game.
    """
    member = db.session.get(GameMember, member_id)
    if member is None:
        raise NotFoundError("GameMember", member_id)
    authorization.require_game_master(member.game_id, requester_id, "assign_member")

    if team_id is not None:
        team = get_team_or_404(team_id)
        if team.game_id != member.game_id:
            raise ValidationError(
                "Team belongs to a different game",
                details={"team_id": "wrong_game"},
            )

    member.team_id = team_id
    db.session.commit()
    logger.info(
        "Member assigned to team",
        extra={"game_id": member.game_id, "team_id": team_id, "user_id": str(requester_id)},
    )
    return member.to_dict()


# ── Advancement ──────────────────────────────────────────────────────────────


def advance(team_id: int, clue_index: int, submission_id: int | None = None, *, commit: bool = True) -> Team:
    """Mark ``clue_index`` complete and move the team to the next clue.

    With ``commit=False`` the change is flushed into the caller's
    transaction; the approval path uses this so the status flip and the
    advancement commit or roll back together.

    Raises:
        NotFoundError: team missing.
        ValidationError: clue_index outside the game's sequence.
        ConflictError: the team is not currently at clue_index, including
                       when the clue was completed by a different path.
    """
    team = get_team_or_404(team_id)
    game = db.session.get(Game, team.game_id)
    total = game.total_clues

    if not isinstance(clue_index, int) or clue_index < 0 or clue_index >= total:
        raise ValidationError(
            f"clue_index {clue_index} is outside the sequence (0..{total - 1})",
            details={"clue_index": "out_of_range"},
        )

    already = TeamClueCompletion.query.filter_by(team_id=team_id, clue_index=clue_index).first()
    if already is not None and already.submission_id == submission_id:
        logger.info(
            "Advance skipped, clue already completed",
            extra={"game_id": game.id, "team_id": team_id},
        )
        return team

    now = datetime.now(timezone.utc)
    values = {"current_clue_index": clue_index + 1}
    if clue_index + 1 >= total:
        values["completed_at"] = now

    result = db.session.execute(
        update(Team)
        .where(Team.id == team_id, Team.current_clue_index == clue_index)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise ConflictError("Team", reason=f"team is not at clue {clue_index}")

    db.session.add(TeamClueCompletion(
        team_id=team_id,
        clue_index=clue_index,
        submission_id=submission_id,
        completed_at=now,
    ))
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Team", reason=f"clue {clue_index} was completed concurrently") from None

    if commit:
        db.session.commit()
    db.session.expire(team)

    logger.info(
        "Team advanced to clue %d", clue_index + 1,
        extra={
            "game_id": game.id,
            "team_id": team_id,
            "submission_id": submission_id,
            "event_type": "team.completed" if "completed_at" in values else "team.advanced",
        },
    )
    return team


def manual_advance(team_id: int, requester_id: str) -> dict:
    """Game-master override: complete the team's current clue without a submission."""
    team = get_team_or_404(team_id)
    game = authorization.get_game_or_404(team.game_id)
    authorization.require_game_master(game.id, requester_id, "manual_advance")

    if game.status == GAME_STATUS_COMPLETED:
        raise ConflictError("Game", reason="game is already completed")
    if is_complete(team, game.total_clues):
        raise ConflictError("Team", reason="team has already finished the sequence")

    team = advance(team_id, team.current_clue_index)
    logger.info(
        "Manual advance",
        extra={"game_id": game.id, "team_id": team_id, "user_id": str(requester_id)},
    )
    return team.to_dict()
