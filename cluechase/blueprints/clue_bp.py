"""
Clue library Blueprint.

Endpoints:
    GET/POST  /api/v1/clues            My library / author a clue
    GET/PUT   /api/v1/clues/<cid>      Read / replace a clue
"""

from flask import Blueprint, jsonify

from cluechase.blueprints import json_body, require_identity, requester_id
from cluechase.services import clue_service
from cluechase.utils.errors import register_error_handlers

clue_bp = Blueprint("clue", __name__, url_prefix="/api/v1")
register_error_handlers(clue_bp)
require_identity(clue_bp)


@clue_bp.route("/clues", methods=["GET"])
def list_clues():
    clues = clue_service.list_clues(requester_id())
    return jsonify({"clues": clues, "total": len(clues)}), 200


@clue_bp.route("/clues", methods=["POST"])
def create_clue():
    data = json_body()
    return jsonify({"clue": clue_service.create_clue(data, requester_id())}), 201


@clue_bp.route("/clues/<int:clue_id>", methods=["GET"])
def get_clue(clue_id):
    return jsonify({"clue": clue_service.get_clue(clue_id, requester_id())}), 200


@clue_bp.route("/clues/<int:clue_id>", methods=["PUT"])
def update_clue(clue_id):
    data = json_body()
    return jsonify({"clue": clue_service.update_clue(clue_id, data, requester_id())}), 200
