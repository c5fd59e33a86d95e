"""
Submission review workflow.

    pending ──approve──▶ approved   (team advances in the same transaction)
            ──reject───▶ rejected   (admin_comment mandatory, team untouched)

Every transition out of ``pending`` is one conditional UPDATE filtered on
``status = 'pending'``.  When two reviewers act at once, exactly one
UPDATE matches a row; the other sees rowcount 0 and gets a ConflictError.
Edits and deletes by the team go through the same filter, so a submission
cannot change underneath a reviewer once it has been decided.
Approval also filters on the team still standing on the submission's
clue, so evidence for a clue the game master already skipped stays pending.

Evidence rules live in ``clue_types.validate_evidence`` and are applied
identically on create and edit.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete as sa_delete
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from cluechase.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from cluechase.models import db
from cluechase.models.game import GAME_STATUS_COMPLETED, ROLE_GAME_MASTER, Game
from cluechase.models.submission import (
    REVIEW_APPROVE,
    REVIEW_DECISIONS,
    REVIEW_REJECT,
    SUBMISSION_APPROVED,
    SUBMISSION_PENDING,
    SUBMISSION_REJECTED,
    SUBMISSION_STATUSES,
    Submission,
)
from cluechase.models.team import Team
from cluechase.services import authorization, team_service
from cluechase.services.clue_types import parse_clue, validate_evidence

logger = logging.getLogger(__name__)


def _get_submission_or_404(submission_id: int) -> Submission:
    submission = db.session.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError("Submission", submission_id)
    return submission


def _clue_at(game: Game, clue_index) -> object:
    total = game.total_clues
    if total == 0:
        raise ValidationError("This game has no clues", details={"clue_index": "no_clues"})
    if isinstance(clue_index, bool) or not isinstance(clue_index, int) or not 0 <= clue_index < total:
        raise ValidationError(
            f"clue_index must be between 0 and {total - 1}",
            details={"clue_index": "out_of_range"},
        )
    return parse_clue(game.clue_sequence[clue_index])


# ── Team side ────────────────────────────────────────────────────────────────


def create(game_id: int, team_id: int, clue_index: int, payload: dict, requester_id: str) -> dict:
    """File evidence for the team's current clue.

    Raises:
        NotFoundError: game or team missing, or team not in this game.
        AuthorizationError: caller is not bound to the team.
        ValidationError: clue_index out of range or evidence invalid.
        ConflictError: game completed, team not at clue_index, or a
                       pending submission already exists for the clue.
    """
    game = authorization.get_game_or_404(game_id)
    team = team_service.get_team_or_404(team_id)
    if team.game_id != game.id:
        raise NotFoundError("Team", team_id)
    authorization.require_team_member(team, requester_id, "create_submission")

    if game.status == GAME_STATUS_COMPLETED:
        raise ConflictError("Game", reason="game is already completed")

    clue = _clue_at(game, clue_index)
    if clue_index != team.current_clue_index:
        raise ConflictError(
            "Submission",
            reason=f"team is on clue {team.current_clue_index}, not {clue_index}",
        )
    evidence = validate_evidence(clue, payload)

    pending = Submission.query.filter_by(
        team_id=team_id, clue_index=clue_index, status=SUBMISSION_PENDING,
    ).first()
    if pending is not None:
        raise ConflictError("Submission", reason="a submission for this clue is already awaiting review")

    submission = Submission(
        game_id=game.id,
        team_id=team_id,
        clue_index=clue_index,
        clue_type=clue.type,
        status=SUBMISSION_PENDING,
        submitted_by=str(requester_id),
        **evidence.as_columns(),
    )
    db.session.add(submission)
    try:
        db.session.commit()
    except IntegrityError:
        # Partial unique index: a concurrent create won
        db.session.rollback()
        raise ConflictError(
            "Submission", reason="a submission for this clue is already awaiting review",
        ) from None

    logger.info(
        "Submission created for clue %d", clue_index,
        extra={
            "game_id": game.id,
            "team_id": team_id,
            "submission_id": submission.id,
            "user_id": str(requester_id),
            "event_type": "submission.created",
        },
    )
    return submission.to_dict()


def edit(submission_id: int, payload: dict, requester_id: str) -> dict:
    """Replace the evidence of a pending submission."""
    submission = _get_submission_or_404(submission_id)
    team = team_service.get_team_or_404(submission.team_id)
    authorization.require_team_member(team, requester_id, "edit_submission")

    if not submission.is_pending:
        raise ConflictError("Submission", reason=f"submission is already {submission.status}")

    game = db.session.get(Game, submission.game_id)
    evidence = validate_evidence(_clue_at(game, submission.clue_index), payload)

    result = db.session.execute(
        update(Submission)
        .where(Submission.id == submission_id, Submission.status == SUBMISSION_PENDING)
        .values(updated_at=datetime.now(timezone.utc), **evidence.as_columns())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise ConflictError("Submission", reason="submission was reviewed before the edit landed")
    db.session.commit()
    db.session.refresh(submission)

    logger.info(
        "Submission edited",
        extra={"game_id": submission.game_id, "submission_id": submission_id, "user_id": str(requester_id)},
    )
    return submission.to_dict()


def delete(submission_id: int, requester_id: str) -> None:
    submission = _get_submission_or_404(submission_id)
    team = team_service.get_team_or_404(submission.team_id)
    authorization.require_team_member(team, requester_id, "delete_submission")

    if not submission.is_pending:
        raise ConflictError("Submission", reason=f"submission is already {submission.status}")

    game_id = submission.game_id
    result = db.session.execute(
        sa_delete(Submission)
        .where(Submission.id == submission_id, Submission.status == SUBMISSION_PENDING)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise ConflictError("Submission", reason="submission was reviewed before the delete landed")
    db.session.commit()
    db.session.expunge(submission)

    logger.info(
        "Submission deleted",
        extra={"game_id": game_id, "submission_id": submission_id, "user_id": str(requester_id)},
    )


# ── Game master side ─────────────────────────────────────────────────────────


def review(submission_id: int, decision: str, admin_comment: str | None, requester_id: str) -> dict:
    """Approve or reject a pending submission.

    Approval flips the status and advances the team inside one
    transaction: if the team is no longer at the submission's clue, the
    status flip is rolled back as well and a ConflictError is raised.

    Raises:
        ValidationError: unknown decision, or reject without a comment.
        ConflictError: submission no longer pending, or team index mismatch.
    """
    submission = _get_submission_or_404(submission_id)
    authorization.require_game_master(submission.game_id, requester_id, "review_submission")

    if decision not in REVIEW_DECISIONS:
        raise ValidationError(
            f"Invalid decision '{decision}'. Must be one of: {', '.join(REVIEW_DECISIONS)}",
            details={"decision": "invalid"},
        )
    comment = admin_comment.strip() if isinstance(admin_comment, str) else ""
    if decision == REVIEW_REJECT and not comment:
        raise ValidationError(
            "A comment is required when rejecting a submission",
            details={"admin_comment": "required"},
        )

    now = datetime.now(timezone.utc)
    new_status = SUBMISSION_APPROVED if decision == REVIEW_APPROVE else SUBMISSION_REJECTED
    conditions = [Submission.id == submission_id, Submission.status == SUBMISSION_PENDING]
    if decision == REVIEW_APPROVE:
        # Only the clue the team is standing on can be approved
        conditions.append(
            Submission.clue_index
            == select(Team.current_clue_index).where(Team.id == Submission.team_id).scalar_subquery()
        )
    result = db.session.execute(
        update(Submission)
        .where(*conditions)
        .values(
            status=new_status,
            admin_comment=comment or None,
            reviewed_by=str(requester_id),
            reviewed_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        current = db.session.get(Submission, submission_id)
        if current is not None and current.is_pending:
            raise ConflictError(
                "Submission", reason=f"team is no longer at clue {submission.clue_index}",
            )
        raise ConflictError("Submission", reason="submission is no longer pending")

    if decision == REVIEW_APPROVE:
        try:
            team_service.advance(
                submission.team_id, submission.clue_index, submission.id, commit=False,
            )
        except (ConflictError, ValidationError) as exc:
            db.session.rollback()
            logger.warning(
                "Approval rolled back: %s", exc,
                extra={"game_id": submission.game_id, "submission_id": submission_id},
            )
            raise ConflictError(
                "Submission", reason=f"team is no longer at clue {submission.clue_index}",
            ) from None

    db.session.commit()
    db.session.refresh(submission)

    logger.info(
        "Submission %s", new_status,
        extra={
            "game_id": submission.game_id,
            "team_id": submission.team_id,
            "submission_id": submission_id,
            "user_id": str(requester_id),
            "event_type": f"submission.{new_status}",
        },
    )
    return submission.to_dict()


# ── Reads ────────────────────────────────────────────────────────────────────


def list_submissions(
    game_id: int,
    requester_id: str,
    status: str | None = None,
    team_id: int | None = None,
) -> list[dict]:
    """Game masters see every submission; players only their own team's."""
    member = authorization.require_member(game_id, requester_id, "list_submissions")

    if status is not None and status not in SUBMISSION_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(SUBMISSION_STATUSES)}",
            details={"status": "invalid"},
        )

    if member.role != ROLE_GAME_MASTER:
        if member.team_id is None:
            return []
        if team_id is not None and team_id != member.team_id:
            raise AuthorizationError(requester_id, "list_submissions", game_id)
        team_id = member.team_id

    q = Submission.query.filter_by(game_id=game_id)
    if status:
        q = q.filter_by(status=status)
    if team_id is not None:
        q = q.filter_by(team_id=team_id)
    rows = q.order_by(Submission.created_at.desc(), Submission.id.desc()).all()
    return [s.to_dict() for s in rows]


def get_submission(submission_id: int, requester_id: str) -> dict:
    submission = _get_submission_or_404(submission_id)
    member = authorization.require_member(submission.game_id, requester_id, "view_submission")
    if member.role != ROLE_GAME_MASTER and member.team_id != submission.team_id:
        raise AuthorizationError(requester_id, "view_submission", submission.game_id)
    return submission.to_dict()
