"""
Team Blueprint.

Endpoints:
    GET/POST  /api/v1/games/<gid>/teams       List / create
    DELETE    /api/v1/teams/<tid>             Delete (submissions cascade)
    POST      /api/v1/teams/<tid>/advance     Game-master manual advance
"""

from flask import Blueprint, jsonify

from cluechase.blueprints import json_body, require_identity, requester_id
from cluechase.services import team_service
from cluechase.utils.errors import register_error_handlers

team_bp = Blueprint("team", __name__, url_prefix="/api/v1")
register_error_handlers(team_bp)
require_identity(team_bp)


@team_bp.route("/games/<int:game_id>/teams", methods=["GET"])
def list_teams(game_id):
    teams = team_service.list_teams(game_id, requester_id())
    return jsonify({"teams": teams, "total": len(teams)}), 200


@team_bp.route("/games/<int:game_id>/teams", methods=["POST"])
def create_team(game_id):
    data = json_body()
    team = team_service.create_team(game_id, data.get("name"), requester_id())
    return jsonify({"team": team}), 201


@team_bp.route("/teams/<int:team_id>", methods=["DELETE"])
def delete_team(team_id):
    team_service.delete_team(team_id, requester_id())
    return jsonify({"deleted": True}), 200


@team_bp.route("/teams/<int:team_id>/advance", methods=["POST"])
def manual_advance(team_id):
    team = team_service.manual_advance(team_id, requester_id())
    return jsonify({"team": team}), 200
