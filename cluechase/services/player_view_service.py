"""Player-facing progress snapshot, polled by clients every few seconds."""

import logging

from flask import current_app

from cluechase.core.exceptions import ValidationError
from cluechase.models.submission import SUBMISSION_PENDING, SUBMISSION_REJECTED, Submission
from cluechase.services import authorization, victory_service
from cluechase.services.clue_types import CLUE_TYPE_DISPLAY
from cluechase.services.team_service import get_team_or_404, is_complete

logger = logging.getLogger(__name__)


def get_player_view(game_id: int, requester_id: str) -> dict:
    """Everything the player screen needs for the caller's team.

    Raises:
        ValidationError: the caller is not assigned to a team yet.
    """
    member = authorization.require_member(game_id, requester_id, "view_progress")
    game = authorization.get_game_or_404(game_id)
    if member.team_id is None:
        raise ValidationError(
            "You are not assigned to a team in this game",
            details={"team_id": "unassigned"},
        )
    team = get_team_or_404(member.team_id)
    total = game.total_clues
    index = team.current_clue_index
    complete = total > 0 and is_complete(team, total)

    current_clue = None
    if not complete and index < total:
        current_clue = dict(game.clue_sequence[index])
        current_clue["display_type"] = CLUE_TYPE_DISPLAY.get(current_clue.get("type"))

    pending = None
    last_rejection = None
    if not complete:
        pending = (
            Submission.query
            .filter_by(team_id=team.id, clue_index=index, status=SUBMISSION_PENDING)
            .first()
        )
        last_rejection = (
            Submission.query
            .filter_by(team_id=team.id, clue_index=index, status=SUBMISSION_REJECTED)
            .order_by(Submission.reviewed_at.desc(), Submission.id.desc())
            .first()
        )

    return {
        "game_id": game.id,
        "game_name": game.name,
        "game_status": game.status,
        "team": {"id": team.id, "name": team.name},
        "total_clues": total,
        "current_clue_index": index,
        "current_clue": current_clue,
        "completed_clues": team.completed_clues,
        "progress_percent": round(100 * min(index, total) / total) if total else 0,
        "is_complete": complete,
        "pending_submission": pending.to_dict() if pending else None,
        "last_rejection_comment": last_rejection.admin_comment if last_rejection else None,
        "placement": (
            victory_service.resolve_placement(game.id, team.id, requester_id) if complete else None
        ),
        "poll_interval_seconds": current_app.config.get("POLL_INTERVAL_SECONDS", 30),
    }
