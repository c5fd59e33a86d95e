"""
ClueChase
Blueprint registry and shared request helpers.
"""

from flask import g, request

from cluechase.core.exceptions import ValidationError
from cluechase.utils.errors import E, api_error


def require_identity(bp):
    """Answer 401 on every route of ``bp`` when the caller has no identity."""

    @bp.before_request
    def _require_identity():
        if not getattr(g, "user_id", None):
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        return None


def requester_id() -> str:
    return g.user_id


def requester_name() -> str | None:
    return getattr(g, "user_name", None)


def json_body() -> dict:
    """The request's JSON object, ``{}`` when absent; any other JSON value is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", details={"body": "invalid"})
    return data
