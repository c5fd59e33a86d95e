"""
Game Blueprint: game lifecycle, roster and progress views.

Blueprint: game_bp
Prefix: /api/v1

Endpoints:
  Games:
    GET/POST  /games                            My games / create game
    POST      /games/join                       Join by code
    GET/DELETE /games/<gid>                     Detail / delete
    PUT       /games/<gid>/clue-sequence        Set sequence (setup only)
    PATCH     /games/<gid>/status               setup → active → completed
    PUT       /games/<gid>/victory-settings     Victory page display config

  Members:
    GET/POST  /games/<gid>/members              Roster / invite
    PATCH     /members/<mid>                    Role, status or team assignment

  Progress:
    GET       /games/<gid>/progress                      Player view
    GET       /games/<gid>/leaderboard                   All teams
    GET       /games/<gid>/teams/<tid>/placement         Victory placement

Layer contract:
    - Blueprint: parse JSON, call service, return JSON.
    - All guards and writes live in the services.
"""

import logging

from flask import Blueprint, jsonify, request

from cluechase.blueprints import json_body, require_identity, requester_id, requester_name
from cluechase.services import game_service, player_view_service, team_service, victory_service
from cluechase.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

game_bp = Blueprint("game", __name__, url_prefix="/api/v1")
register_error_handlers(game_bp)
require_identity(game_bp)


# ── Games ────────────────────────────────────────────────────────────────────


@game_bp.route("/games", methods=["GET"])
def list_games():
    games = game_service.list_games_for_user(requester_id())
    return jsonify({"games": games, "total": len(games)}), 200


@game_bp.route("/games", methods=["POST"])
def create_game():
    data = json_body()
    code = data.get("code") or game_service.generate_game_code()
    game = game_service.create_game(
        data.get("name"), code, requester_id(), creator_name=requester_name(),
    )
    return jsonify({"game": game}), 201


@game_bp.route("/games/join", methods=["POST"])
def join_game():
    data = json_body()
    result = game_service.join_game(
        data.get("code"), requester_id(), display_name=data.get("display_name") or requester_name(),
    )
    return jsonify(result), 201


@game_bp.route("/games/<int:game_id>", methods=["GET"])
def get_game(game_id):
    return jsonify(game_service.get_game(game_id, requester_id())), 200


@game_bp.route("/games/<int:game_id>", methods=["DELETE"])
def delete_game(game_id):
    game_service.delete_game(game_id, requester_id())
    return jsonify({"deleted": True}), 200


@game_bp.route("/games/<int:game_id>/clue-sequence", methods=["PUT"])
def set_clue_sequence(game_id):
    """Body: {"clues": [<snapshot>, ...]} or {"clue_ids": [<library id>, ...]}."""
    data = json_body()
    if "clue_ids" in data:
        clues = game_service.sequence_from_library(data["clue_ids"], requester_id())
    elif "clues" in data:
        clues = data["clues"]
    else:
        return api_error(E.VALIDATION_REQUIRED, "clues or clue_ids is required")
    game = game_service.set_clue_sequence(game_id, clues, requester_id())
    return jsonify({"game": game}), 200


@game_bp.route("/games/<int:game_id>/status", methods=["PATCH"])
def set_status(game_id):
    data = json_body()
    status = data.get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    game = game_service.set_status(game_id, status, requester_id())
    return jsonify({"game": game}), 200


@game_bp.route("/games/<int:game_id>/victory-settings", methods=["PUT"])
def set_victory_settings(game_id):
    data = request.get_json(silent=True)
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "JSON body is required")
    settings = data.get("victory_settings", data) if isinstance(data, dict) else data
    game = game_service.set_victory_settings(game_id, settings, requester_id())
    return jsonify({"game": game}), 200


# ── Members ──────────────────────────────────────────────────────────────────


@game_bp.route("/games/<int:game_id>/members", methods=["GET"])
def list_members(game_id):
    members = game_service.list_members(game_id, requester_id())
    return jsonify({"members": members, "total": len(members)}), 200


@game_bp.route("/games/<int:game_id>/members", methods=["POST"])
def invite_member(game_id):
    data = json_body()
    member = game_service.invite_member(
        game_id,
        data.get("user_id"),
        data.get("role"),
        requester_id(),
        display_name=data.get("display_name"),
    )
    return jsonify({"member": member}), 201


@game_bp.route("/members/<int:member_id>", methods=["PATCH"])
def update_member(member_id):
    """Any of: {"team_id": <id|null>, "role": "...", "status": "..."}."""
    data = json_body()
    if not any(key in data for key in ("team_id", "role", "status")):
        return api_error(E.VALIDATION_REQUIRED, "team_id, role or status is required")

    member = None
    if "team_id" in data:
        member = team_service.assign_member(member_id, data["team_id"], requester_id())
    if "role" in data:
        member = game_service.set_member_role(member_id, data["role"], requester_id())
    if "status" in data:
        member = game_service.set_member_status(member_id, data["status"], requester_id())
    return jsonify({"member": member}), 200


# ── Progress ─────────────────────────────────────────────────────────────────


@game_bp.route("/games/<int:game_id>/progress", methods=["GET"])
def player_progress(game_id):
    return jsonify(player_view_service.get_player_view(game_id, requester_id())), 200


@game_bp.route("/games/<int:game_id>/leaderboard", methods=["GET"])
def leaderboard(game_id):
    return jsonify({"teams": victory_service.leaderboard(game_id, requester_id())}), 200


@game_bp.route("/games/<int:game_id>/teams/<int:team_id>/placement", methods=["GET"])
def placement(game_id, team_id):
    return jsonify(victory_service.resolve_placement(game_id, team_id, requester_id())), 200
