"""
Submission Blueprint: evidence filing and game-master review.

Blueprint: submission_bp
Prefix: /api/v1

Endpoints:
    GET/POST   /games/<gid>/submissions         List (?status=, ?team_id=) / create
    GET/PUT/DELETE /submissions/<sid>           Single submission (PUT/DELETE while pending)
    POST       /submissions/<sid>/review        {"decision": "approve|reject", "admin_comment"}

Create body:
    {"team_id": 3, "clue_index": 1, "text_proof": "...", "notes": "...",
     "photo_urls": [...], "detour_choice": "a|b", "roadblock_player": "..."}
camelCase keys (textProof, photoUrls, ...) are accepted as well.
"""

from flask import Blueprint, jsonify, request

from cluechase.blueprints import json_body, require_identity, requester_id
from cluechase.core.exceptions import ValidationError
from cluechase.services import submission_service
from cluechase.utils.errors import E, api_error, register_error_handlers

submission_bp = Blueprint("submission", __name__, url_prefix="/api/v1")
register_error_handlers(submission_bp)
require_identity(submission_bp)


def _int_field(data: dict, *keys: str):
    """First present key as an int; None when absent. Fractions are refused, not truncated."""
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                pass
        raise ValidationError(f"{keys[0]} must be an integer", details={keys[0]: "invalid"})
    return None


@submission_bp.route("/games/<int:game_id>/submissions", methods=["GET"])
def list_submissions(game_id):
    rows = submission_service.list_submissions(
        game_id,
        requester_id(),
        status=request.args.get("status") or None,
        team_id=request.args.get("team_id", type=int),
    )
    return jsonify({"submissions": rows, "total": len(rows)}), 200


@submission_bp.route("/games/<int:game_id>/submissions", methods=["POST"])
def create_submission(game_id):
    data = json_body()
    team_id = _int_field(data, "team_id", "teamId")
    clue_index = _int_field(data, "clue_index", "clueIndex")
    if team_id is None:
        return api_error(E.VALIDATION_REQUIRED, "team_id is required")
    if clue_index is None:
        return api_error(E.VALIDATION_REQUIRED, "clue_index is required")

    submission = submission_service.create(game_id, team_id, clue_index, data, requester_id())
    return jsonify({"submission": submission}), 201


@submission_bp.route("/submissions/<int:submission_id>", methods=["GET"])
def get_submission(submission_id):
    return jsonify({"submission": submission_service.get_submission(submission_id, requester_id())}), 200


@submission_bp.route("/submissions/<int:submission_id>", methods=["PUT"])
def edit_submission(submission_id):
    data = json_body()
    submission = submission_service.edit(submission_id, data, requester_id())
    return jsonify({"submission": submission}), 200


@submission_bp.route("/submissions/<int:submission_id>", methods=["DELETE"])
def delete_submission(submission_id):
    submission_service.delete(submission_id, requester_id())
    return jsonify({"deleted": True}), 200


@submission_bp.route("/submissions/<int:submission_id>/review", methods=["POST"])
def review_submission(submission_id):
    data = json_body()
    decision = data.get("decision")
    if decision is not None and not isinstance(decision, str):
        return api_error(E.VALIDATION_INVALID, "decision must be a string", details={"decision": "invalid"})
    decision = (decision or "").strip().lower()
    if not decision:
        return api_error(E.VALIDATION_REQUIRED, "decision is required")
    submission = submission_service.review(
        submission_id,
        decision,
        data.get("admin_comment", data.get("adminComment")),
        requester_id(),
    )
    return jsonify({"submission": submission}), 200
