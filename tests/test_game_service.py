"""
Game lifecycle service tests.

Tests cover:
  - Game creation, join codes and duplicate detection
  - Membership: join, invite, role/status changes, last game master guard
  - Clue sequence: validation, setup-only, snapshot independence
  - Status graph setup → active → completed and activation prerequisites
  - Victory settings, listing and deletion
"""

import pytest

from cluechase.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from cluechase.models import db
from cluechase.models.game import GameMember
from cluechase.models.team import Team
from cluechase.services import clue_service, game_service, team_service


# ═════════════════════════════════════════════════════════════════════════
# CREATION & CODES
# ═════════════════════════════════════════════════════════════════════════


class TestCreateGame:
    def test_create_game_starts_in_setup_with_creator_as_game_master(self):
        game = game_service.create_game("Summer Hunt", "abc123", "gm-1")
        assert game["status"] == "setup"
        assert game["code"] == "ABC123"
        assert game["clue_sequence"] == []

        detail = game_service.get_game(game["id"], "gm-1")
        assert detail["user_role"] == "game_master"
        assert [m["user_id"] for m in detail["members"]] == ["gm-1"]

    def test_duplicate_code_is_case_insensitive(self):
        game_service.create_game("One", "ABC123", "gm-1")
        with pytest.raises(ConflictError) as exc:
            game_service.create_game("Two", "abc123", "gm-2")
        assert exc.value.is_duplicate

    @pytest.mark.parametrize("code", ["ABC12", "ABC1234", "", None])
    def test_code_must_be_six_characters(self, code):
        with pytest.raises(ValidationError):
            game_service.create_game("Hunt", code, "gm-1")

    def test_name_required(self):
        with pytest.raises(ValidationError) as exc:
            game_service.create_game("  ", "ABC123", "gm-1")
        assert exc.value.details == {"name": "required"}

    def test_generated_code_uses_unambiguous_alphabet(self):
        for _ in range(20):
            code = game_service.generate_game_code()
            assert len(code) == 6
            assert not set(code) & set("01IO")


# ═════════════════════════════════════════════════════════════════════════
# MEMBERSHIP
# ═════════════════════════════════════════════════════════════════════════


class TestMembership:
    def test_join_by_code_enrols_player(self, game):
        result = game_service.join_game("abc123", "player-1", display_name="Pat")
        assert result["member"]["role"] == "player"
        assert result["member"]["display_name"] == "Pat"
        assert result["game"]["id"] == game["id"]

    def test_join_unknown_code(self, game):
        with pytest.raises(NotFoundError):
            game_service.join_game("ZZZZZZ", "player-1")

    def test_join_twice_conflicts(self, game):
        game_service.join_game(game["code"], "player-1")
        with pytest.raises(ConflictError):
            game_service.join_game(game["code"], "player-1")

    def test_join_completed_game_conflicts(self, active_game):
        game_service.set_status(active_game["id"], "completed", "gm-1")
        with pytest.raises(ConflictError):
            game_service.join_game(active_game["code"], "late-1")

    def test_invite_requires_game_master(self, game, player):
        with pytest.raises(AuthorizationError):
            game_service.invite_member(game["id"], "friend-1", "player", "player-1")

    def test_invite_validates_role(self, game):
        with pytest.raises(ValidationError):
            game_service.invite_member(game["id"], "friend-1", "admin", "gm-1")

    def test_last_game_master_cannot_be_demoted(self, game):
        gm_member = GameMember.query.filter_by(game_id=game["id"], user_id="gm-1").one()
        with pytest.raises(ConflictError):
            game_service.set_member_role(gm_member.id, "player", "gm-1")
        with pytest.raises(ConflictError):
            game_service.set_member_status(gm_member.id, "removed", "gm-1")

    def test_demote_allowed_with_second_game_master(self, game):
        game_service.invite_member(game["id"], "gm-2", "game_master", "gm-1")
        gm_member = GameMember.query.filter_by(game_id=game["id"], user_id="gm-1").one()
        updated = game_service.set_member_role(gm_member.id, "player", "gm-2")
        assert updated["role"] == "player"
        with pytest.raises(AuthorizationError):
            game_service.set_clue_sequence(game["id"], [], "gm-1")

    def test_removed_member_loses_access(self, game, player):
        game_service.set_member_status(player["id"], "removed", "gm-1")
        with pytest.raises(AuthorizationError):
            game_service.get_game(game["id"], "player-1")

    def test_removed_member_cannot_rejoin_by_code(self, game, player):
        game_service.set_member_status(player["id"], "removed", "gm-1")
        with pytest.raises(ConflictError) as exc:
            game_service.join_game(game["code"], "player-1")
        assert "removed" in str(exc.value)
        assert GameMember.query.filter_by(game_id=game["id"], user_id="player-1").one().status == "removed"

    def test_game_master_reinvite_reactivates_removed_member(self, game, player):
        game_service.set_member_status(player["id"], "removed", "gm-1")
        member = game_service.invite_member(game["id"], "player-1", "player", "gm-1")
        assert member["id"] == player["id"]
        assert member["status"] == "active"
        assert member["team_id"] is None
        assert game_service.get_game(game["id"], "player-1")["user_role"] == "player"

    def test_join_rejects_non_string_display_name(self, game):
        with pytest.raises(ValidationError):
            game_service.join_game(game["code"], "player-1", display_name=5)

    def test_list_games_for_user(self, game, player):
        game_service.create_game("Other", "XYZ789", "gm-2")
        games = game_service.list_games_for_user("player-1")
        assert [g["code"] for g in games] == ["ABC123"]
        assert games[0]["user_role"] == "player"
        assert games[0]["user_team_id"] == player["team_id"]


# ═════════════════════════════════════════════════════════════════════════
# CLUE SEQUENCE
# ═════════════════════════════════════════════════════════════════════════


class TestClueSequence:
    def test_sequence_stored_as_snapshots(self, game):
        assert game["total_clues"] == 3
        assert [c["type"] for c in game["clue_sequence"]] == ["route-info", "detour", "road-block"]
        assert game["clue_sequence"][1]["required_photos"] == 2

    def test_invalid_entry_reports_position(self, game, sequence):
        sequence[2] = {"type": "road-block", "title": "Solo", "question": "Who?"}
        with pytest.raises(ValidationError) as exc:
            game_service.set_clue_sequence(game["id"], sequence, "gm-1")
        assert exc.value.details["position"] == 2

    def test_player_cannot_set_sequence(self, game, player, sequence):
        with pytest.raises(AuthorizationError):
            game_service.set_clue_sequence(game["id"], sequence, "player-1")

    def test_sequence_frozen_once_active(self, active_game, sequence):
        with pytest.raises(ConflictError):
            game_service.set_clue_sequence(active_game["id"], sequence[:1], "gm-1")

    def test_caller_list_mutation_does_not_reach_game(self, game, sequence):
        stored = game_service.set_clue_sequence(game["id"], sequence, "gm-1")
        sequence[0]["title"] = "Mutated"
        assert game_service.get_game(game["id"], "gm-1")["game"]["clue_sequence"][0]["title"] == stored["clue_sequence"][0]["title"]

    def test_library_edit_does_not_change_sequenced_game(self, game):
        clue = clue_service.create_clue(
            {"type": "route-info", "title": "Library clue", "content": ["Original text"]}, "gm-1",
        )
        snapshots = game_service.sequence_from_library([clue["id"]], "gm-1")
        game_service.set_clue_sequence(game["id"], snapshots, "gm-1")

        clue_service.update_clue(
            clue["id"], {"type": "route-info", "title": "Edited", "content": ["New text"]}, "gm-1",
        )

        seq = game_service.get_game(game["id"], "gm-1")["game"]["clue_sequence"]
        assert seq[0]["title"] == "Library clue"
        assert seq[0]["content"] == ["Original text"]
        assert seq[0]["source_clue_id"] == clue["id"]

    def test_sequence_from_someone_elses_library(self, game):
        clue = clue_service.create_clue(
            {"type": "route-info", "title": "Mine", "content": ["x"]}, "author-1",
        )
        with pytest.raises(AuthorizationError):
            game_service.sequence_from_library([clue["id"]], "gm-1")


# ═════════════════════════════════════════════════════════════════════════
# STATUS
# ═════════════════════════════════════════════════════════════════════════


class TestStatus:
    def test_activation_requires_team_and_assigned_player(self, game):
        with pytest.raises(ValidationError) as exc:
            game_service.set_status(game["id"], "active", "gm-1")
        assert {"teams", "players"} <= set(exc.value.details)

    def test_activation_requires_sequence(self):
        created = game_service.create_game("Empty", "EMP7YY", "gm-1")
        team = team_service.create_team(created["id"], "Red", "gm-1")
        joined = game_service.join_game("EMP7YY", "player-1")
        team_service.assign_member(joined["member"]["id"], team["id"], "gm-1")
        with pytest.raises(ValidationError) as exc:
            game_service.set_status(created["id"], "active", "gm-1")
        assert set(exc.value.details) == {"clue_sequence"}

    def test_full_lifecycle(self, active_game):
        assert active_game["status"] == "active"
        done = game_service.set_status(active_game["id"], "completed", "gm-1")
        assert done["status"] == "completed"

    def test_cannot_skip_or_reverse(self, game, team, player):
        with pytest.raises(ConflictError):
            game_service.set_status(game["id"], "completed", "gm-1")
        game_service.set_status(game["id"], "active", "gm-1")
        game_service.set_status(game["id"], "completed", "gm-1")
        with pytest.raises(ConflictError):
            game_service.set_status(game["id"], "active", "gm-1")

    def test_unknown_status(self, game):
        with pytest.raises(ValidationError):
            game_service.set_status(game["id"], "paused", "gm-1")

    def test_player_cannot_change_status(self, game, player):
        with pytest.raises(AuthorizationError):
            game_service.set_status(game["id"], "active", "player-1")


# ═════════════════════════════════════════════════════════════════════════
# VICTORY SETTINGS & DELETION
# ═════════════════════════════════════════════════════════════════════════


class TestVictorySettingsAndDelete:
    def test_victory_settings_saved(self, game):
        updated = game_service.set_victory_settings(
            game["id"], {"firstPlace": {"title": "Champions!", "showConfetti": False}}, "gm-1",
        )
        assert updated["victory_settings"] == {"firstPlace": {"title": "Champions!", "showConfetti": False}}

    def test_unknown_tier_rejected(self, game):
        with pytest.raises(ValidationError):
            game_service.set_victory_settings(game["id"], {"fourthPlace": {}}, "gm-1")

    def test_wrong_field_type_rejected(self, game):
        with pytest.raises(ValidationError):
            game_service.set_victory_settings(game["id"], {"firstPlace": {"showConfetti": "yes"}}, "gm-1")

    def test_delete_game_cascades(self, game, team, player):
        game_service.delete_game(game["id"], "gm-1")
        db.session.expire_all()
        assert Team.query.filter_by(game_id=game["id"]).count() == 0
        assert GameMember.query.filter_by(game_id=game["id"]).count() == 0
        with pytest.raises(NotFoundError):
            game_service.get_game(game["id"], "gm-1")
