"""
Clue library authoring.

Library clues belong to the user who wrote them.  Games never reference a
library row; ``game_service.sequence_from_library`` copies them, so the
edits made here never reach a game that was already sequenced.
"""

import logging

from cluechase.core.exceptions import AuthorizationError, NotFoundError
from cluechase.models import db
from cluechase.models.clue import Clue
from cluechase.services.clue_types import Detour, RoadBlock, RouteInfo, parse_clue

logger = logging.getLogger(__name__)


def _columns(variant) -> dict:
    cols = {
        "type": variant.type,
        "title": variant.title,
        "required_photos": variant.required_photos,
        "content": None,
        "detour_option_a": None,
        "detour_option_b": None,
        "roadblock_question": None,
        "roadblock_task": None,
    }
    if isinstance(variant, RouteInfo):
        cols["content"] = list(variant.content)
    elif isinstance(variant, Detour):
        cols["detour_option_a"] = {"title": variant.option_a.title, "description": variant.option_a.description}
        cols["detour_option_b"] = {"title": variant.option_b.title, "description": variant.option_b.description}
    elif isinstance(variant, RoadBlock):
        cols["roadblock_question"] = variant.question
        cols["roadblock_task"] = variant.task
    return cols


def _get_owned_clue(clue_id: int, requester_id: str, action: str) -> Clue:
    clue = db.session.get(Clue, clue_id)
    if clue is None:
        raise NotFoundError("Clue", clue_id)
    if clue.owner_id != str(requester_id):
        raise AuthorizationError(requester_id, action)
    return clue


def create_clue(data: dict, requester_id: str) -> dict:
    variant = parse_clue(data)
    clue = Clue(owner_id=str(requester_id), **_columns(variant))
    db.session.add(clue)
    db.session.commit()
    logger.info("Clue created", extra={"user_id": str(requester_id), "event_type": "clue.created"})
    return clue.to_dict()


def update_clue(clue_id: int, data: dict, requester_id: str) -> dict:
    """Replace a library clue's content. Type changes are allowed."""
    clue = _get_owned_clue(clue_id, requester_id, "update_clue")
    variant = parse_clue(data)
    for key, value in _columns(variant).items():
        setattr(clue, key, value)
    db.session.commit()
    logger.info("Clue updated", extra={"user_id": str(requester_id), "event_type": "clue.updated"})
    return clue.to_dict()


def get_clue(clue_id: int, requester_id: str) -> dict:
    return _get_owned_clue(clue_id, requester_id, "view_clue").to_dict()


def list_clues(requester_id: str) -> list[dict]:
    rows = Clue.query.filter_by(owner_id=str(requester_id)).order_by(Clue.id).all()
    return [c.to_dict() for c in rows]
