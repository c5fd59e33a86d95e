"""
Identity middleware: resolves the caller's user id for every API request.

Sources, in order:
  1. Authorization: Bearer <JWT>   →  g.user_id = payload["sub"]
  2. X-User-Id header              →  only when TRUST_USER_HEADER is on
                                      (development and tests)

Nothing is rejected here: an invalid or missing identity leaves
g.user_id = None and each blueprint answers 401 itself, so health
checks and unknown routes behave normally.
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from cluechase.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

IDENTITY_SKIP_PREFIXES = (
    "/api/v1/health",
)


def init_identity_middleware(app):
    """Register identity resolution as a before_request hook."""

    @app.before_request
    def _resolve_identity():
        g.user_id = None
        g.user_name = None

        path = request.path
        if not path.startswith("/api/v1/") or path.startswith(IDENTITY_SKIP_PREFIXES):
            return

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            try:
                payload = decode_access_token(auth_header[7:])
            except pyjwt.ExpiredSignatureError:
                logger.info("Expired access token", extra={"path": path})
                return
            except pyjwt.InvalidTokenError:
                logger.info("Invalid access token", extra={"path": path})
                return
            g.user_id = payload.get("sub")
            g.user_name = payload.get("name")
            return

        if current_app.config.get("TRUST_USER_HEADER"):
            header_id = request.headers.get("X-User-Id", "").strip()
            if header_id:
                g.user_id = header_id
                g.user_name = request.headers.get("X-User-Name") or None
