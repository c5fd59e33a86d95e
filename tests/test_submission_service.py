"""
Submission workflow tests.

Tests cover:
  - Create guards: team membership, clue position, completed game, one pending per clue
  - Edit / delete only while pending
  - Review: approve advances exactly once, reject needs a comment
  - Conflicting concurrent transitions surface as ConflictError
  - Visibility of submissions to players vs game masters
"""

import pytest
from sqlalchemy import update

from cluechase.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from cluechase.models import db
from cluechase.models.submission import Submission
from cluechase.models.team import Team
from cluechase.services import game_service, submission_service, team_service

PROOF = {"text_proof": "We found the fountain"}
DETOUR_PROOF = {
    "text_proof": "Took the hill path",
    "detour_choice": "b",
    "photo_urls": ["https://img.example/1.jpg", "https://img.example/2.jpg"],
}


def _submit(game, team, clue_index=0, payload=None, user="player-1"):
    return submission_service.create(game["id"], team["id"], clue_index, payload or PROOF, user)


def _team_index(team):
    db.session.expire_all()
    return db.session.get(Team, team["id"]).current_clue_index


# ═════════════════════════════════════════════════════════════════════════
# CREATE
# ═════════════════════════════════════════════════════════════════════════


class TestCreate:
    def test_create_pending(self, active_game, team):
        sub = _submit(active_game, team)
        assert sub["status"] == "pending"
        assert sub["clue_type"] == "route-info"
        assert sub["submitted_by"] == "player-1"

    def test_outsider_cannot_submit(self, active_game, team):
        with pytest.raises(AuthorizationError):
            _submit(active_game, team, user="outsider-9")

    def test_game_master_outside_team_cannot_submit(self, active_game, team):
        with pytest.raises(AuthorizationError):
            _submit(active_game, team, user="gm-1")

    def test_player_of_other_team_cannot_submit(self, active_game, team):
        blue = team_service.create_team(active_game["id"], "Blue", "gm-1")
        joined = game_service.join_game(active_game["code"], "player-2")
        team_service.assign_member(joined["member"]["id"], blue["id"], "gm-1")
        with pytest.raises(AuthorizationError):
            _submit(active_game, team, user="player-2")

    def test_cannot_skip_ahead(self, active_game, team):
        with pytest.raises(ConflictError):
            _submit(active_game, team, clue_index=1, payload=DETOUR_PROOF)

    def test_clue_index_out_of_range(self, active_game, team):
        with pytest.raises(ValidationError):
            _submit(active_game, team, clue_index=7)

    def test_team_from_another_game(self, active_game, team):
        other = game_service.create_game("Other", "XYZ789", "gm-1")
        with pytest.raises(NotFoundError):
            submission_service.create(other["id"], team["id"], 0, PROOF, "player-1")

    def test_game_without_clues(self):
        bare = game_service.create_game("Bare", "NOCLUE", "gm-1")
        blue = team_service.create_team(bare["id"], "Blue", "gm-1")
        joined = game_service.join_game("NOCLUE", "player-3")
        team_service.assign_member(joined["member"]["id"], blue["id"], "gm-1")
        with pytest.raises(ValidationError) as exc:
            submission_service.create(bare["id"], blue["id"], 0, PROOF, "player-3")
        assert exc.value.details == {"clue_index": "no_clues"}
        assert "no clues" in str(exc.value)

    def test_completed_game_refuses_submissions(self, active_game, team):
        game_service.set_status(active_game["id"], "completed", "gm-1")
        with pytest.raises(ConflictError):
            _submit(active_game, team)

    def test_only_one_pending_per_clue(self, active_game, team):
        _submit(active_game, team)
        with pytest.raises(ConflictError):
            _submit(active_game, team)

    def test_photo_count_enforced(self, active_game, team):
        team_service.manual_advance(team["id"], "gm-1")
        with pytest.raises(ValidationError) as exc:
            _submit(active_game, team, 1, {**DETOUR_PROOF, "photo_urls": DETOUR_PROOF["photo_urls"][:1]})
        assert "photo_urls" in exc.value.details


# ═════════════════════════════════════════════════════════════════════════
# EDIT / DELETE
# ═════════════════════════════════════════════════════════════════════════


class TestEditDelete:
    def test_edit_pending(self, active_game, team):
        sub = _submit(active_game, team)
        edited = submission_service.edit(sub["id"], {"text_proof": "Better proof", "notes": "n"}, "player-1")
        assert edited["text_proof"] == "Better proof"
        assert edited["notes"] == "n"
        assert edited["status"] == "pending"

    def test_edit_uses_same_validation_as_create(self, active_game, team):
        sub = _submit(active_game, team)
        with pytest.raises(ValidationError):
            submission_service.edit(sub["id"], {"text_proof": ""}, "player-1")

    def test_edit_after_review_conflicts(self, active_game, team):
        sub = _submit(active_game, team)
        submission_service.review(sub["id"], "approve", None, "gm-1")
        with pytest.raises(ConflictError):
            submission_service.edit(sub["id"], PROOF, "player-1")

    def test_edit_by_game_master_forbidden(self, active_game, team):
        sub = _submit(active_game, team)
        with pytest.raises(AuthorizationError):
            submission_service.edit(sub["id"], PROOF, "gm-1")

    def test_delete_pending(self, active_game, team):
        sub = _submit(active_game, team)
        submission_service.delete(sub["id"], "player-1")
        assert db.session.get(Submission, sub["id"]) is None
        # The clue can be submitted again
        assert _submit(active_game, team)["status"] == "pending"

    def test_delete_rejected_conflicts(self, active_game, team):
        sub = _submit(active_game, team)
        submission_service.review(sub["id"], "reject", "blurry", "gm-1")
        with pytest.raises(ConflictError):
            submission_service.delete(sub["id"], "player-1")


# ═════════════════════════════════════════════════════════════════════════
# REVIEW
# ═════════════════════════════════════════════════════════════════════════


class TestReview:
    def test_approve_advances_team(self, active_game, team):
        sub = _submit(active_game, team)
        reviewed = submission_service.review(sub["id"], "approve", None, "gm-1")
        assert reviewed["status"] == "approved"
        assert reviewed["reviewed_by"] == "gm-1"
        assert reviewed["reviewed_at"] is not None
        assert _team_index(team) == 1
        assert db.session.get(Team, team["id"]).completed_clues == [0]

    def test_second_approval_conflicts_and_does_not_advance(self, active_game, team):
        sub = _submit(active_game, team)
        submission_service.review(sub["id"], "approve", None, "gm-1")
        with pytest.raises(ConflictError):
            submission_service.review(sub["id"], "approve", None, "gm-1")
        assert _team_index(team) == 1

    def test_approve_after_reject_conflicts(self, active_game, team):
        sub = _submit(active_game, team)
        submission_service.review(sub["id"], "reject", "blurry", "gm-1")
        with pytest.raises(ConflictError):
            submission_service.review(sub["id"], "approve", None, "gm-1")
        assert _team_index(team) == 0

    @pytest.mark.parametrize("comment", [None, "", "   "])
    def test_reject_requires_comment(self, active_game, team, comment):
        sub = _submit(active_game, team)
        with pytest.raises(ValidationError):
            submission_service.review(sub["id"], "reject", comment, "gm-1")
        assert db.session.get(Submission, sub["id"]).status == "pending"

    def test_reject_leaves_team_untouched(self, active_game, team):
        sub = _submit(active_game, team)
        rejected = submission_service.review(sub["id"], "reject", " blurry ", "gm-1")
        assert rejected["status"] == "rejected"
        assert rejected["admin_comment"] == "blurry"
        assert _team_index(team) == 0

    def test_rejected_team_can_resubmit(self, active_game, team):
        sub = _submit(active_game, team)
        submission_service.review(sub["id"], "reject", "blurry", "gm-1")
        again = _submit(active_game, team)
        assert again["id"] != sub["id"]

    def test_unknown_decision(self, active_game, team):
        sub = _submit(active_game, team)
        with pytest.raises(ValidationError):
            submission_service.review(sub["id"], "maybe", None, "gm-1")

    def test_player_cannot_review(self, active_game, team):
        sub = _submit(active_game, team)
        with pytest.raises(AuthorizationError):
            submission_service.review(sub["id"], "approve", None, "player-1")

    def test_index_mismatch_rolls_back_approval(self, active_game, team):
        sub = _submit(active_game, team)
        # Another request moved the team on without recording clue 0
        db.session.execute(update(Team).where(Team.id == team["id"]).values(current_clue_index=2))
        db.session.commit()

        with pytest.raises(ConflictError):
            submission_service.review(sub["id"], "approve", None, "gm-1")

        db.session.expire_all()
        assert db.session.get(Submission, sub["id"]).status == "pending"
        assert _team_index(team) == 2

    def test_approval_after_manual_advance_conflicts(self, active_game, team):
        sub = _submit(active_game, team)
        team_service.manual_advance(team["id"], "gm-1")

        with pytest.raises(ConflictError):
            submission_service.review(sub["id"], "approve", None, "gm-1")

        db.session.expire_all()
        assert db.session.get(Submission, sub["id"]).status == "pending"
        assert _team_index(team) == 1
        assert db.session.get(Team, team["id"]).completed_clues == [0]

    def test_skipped_clue_can_still_be_rejected(self, active_game, team):
        sub = _submit(active_game, team)
        team_service.manual_advance(team["id"], "gm-1")
        rejected = submission_service.review(sub["id"], "reject", "skipped by the game master", "gm-1")
        assert rejected["status"] == "rejected"
        assert _team_index(team) == 1


# ═════════════════════════════════════════════════════════════════════════
# READS
# ═════════════════════════════════════════════════════════════════════════


class TestVisibility:
    @pytest.fixture()
    def blue_player(self, active_game):
        blue = team_service.create_team(active_game["id"], "Blue", "gm-1")
        joined = game_service.join_game(active_game["code"], "player-2")
        team_service.assign_member(joined["member"]["id"], blue["id"], "gm-1")
        return blue

    def test_game_master_sees_all(self, active_game, team, blue_player):
        _submit(active_game, team)
        _submit(active_game, blue_player, user="player-2")
        assert len(submission_service.list_submissions(active_game["id"], "gm-1")) == 2
        pending_red = submission_service.list_submissions(
            active_game["id"], "gm-1", status="pending", team_id=team["id"],
        )
        assert [s["team_id"] for s in pending_red] == [team["id"]]

    def test_player_sees_only_own_team(self, active_game, team, blue_player):
        _submit(active_game, team)
        mine = _submit(active_game, blue_player, user="player-2")
        rows = submission_service.list_submissions(active_game["id"], "player-2")
        assert [s["id"] for s in rows] == [mine["id"]]
        with pytest.raises(AuthorizationError):
            submission_service.list_submissions(active_game["id"], "player-2", team_id=team["id"])

    def test_get_other_teams_submission_forbidden(self, active_game, team, blue_player):
        sub = _submit(active_game, team)
        with pytest.raises(AuthorizationError):
            submission_service.get_submission(sub["id"], "player-2")
        assert submission_service.get_submission(sub["id"], "gm-1")["id"] == sub["id"]

    def test_invalid_status_filter(self, active_game):
        with pytest.raises(ValidationError):
            submission_service.list_submissions(active_game["id"], "gm-1", status="lost")
