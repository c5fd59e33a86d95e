"""
Evidence Blueprint: photo/video upload and the game-master photo archive.

Endpoints:
    POST  /api/v1/games/<gid>/teams/<tid>/evidence     multipart "file" (+ optional clue_index)
    GET   /api/v1/games/<gid>/evidence/archive         zip of every submitted photo
"""

import io

from flask import Blueprint, current_app, jsonify, request, send_file

from cluechase.blueprints import require_identity, requester_id
from cluechase.integrations.evidence_storage import (
    EvidenceFetcher,
    build_photo_archive,
    upload_evidence,
)
from cluechase.utils.errors import register_error_handlers

evidence_bp = Blueprint("evidence", __name__, url_prefix="/api/v1")
register_error_handlers(evidence_bp)
require_identity(evidence_bp)


def _storage():
    return current_app.extensions["evidence_storage"]


@evidence_bp.route("/games/<int:game_id>/teams/<int:team_id>/evidence", methods=["POST"])
def upload(game_id, team_id):
    result = upload_evidence(
        _storage(),
        game_id,
        team_id,
        request.files.get("file"),
        requester_id(),
        clue_index=request.form.get("clue_index", type=int),
        max_bytes=current_app.config.get("MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
    )
    return jsonify(result), 201


@evidence_bp.route("/games/<int:game_id>/evidence/archive", methods=["GET"])
def archive(game_id):
    fetcher = EvidenceFetcher(timeout=current_app.config.get("EVIDENCE_FETCH_TIMEOUT", 15))
    data, filename = build_photo_archive(_storage(), game_id, requester_id(), fetcher=fetcher)
    return send_file(
        io.BytesIO(data),
        mimetype="application/zip",
        as_attachment=True,
        download_name=filename,
    )
