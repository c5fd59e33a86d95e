"""
Clue library model.

Library clues are authored independently of any game.  A game never points
at a row here; it stores a snapshot taken when its sequence is set.
"""

from datetime import datetime, timezone

from cluechase.models import db

CLUE_TYPE_ROUTE_INFO = "route-info"
CLUE_TYPE_DETOUR = "detour"
CLUE_TYPE_ROAD_BLOCK = "road-block"
CLUE_TYPES = (CLUE_TYPE_ROUTE_INFO, CLUE_TYPE_DETOUR, CLUE_TYPE_ROAD_BLOCK)


def _utcnow():
    return datetime.now(timezone.utc)


class Clue(db.Model):
    __tablename__ = "clues"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(255), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False, comment="route-info | detour | road-block")
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.JSON, nullable=True, comment="route-info: list of instruction lines")
    detour_option_a = db.Column(db.JSON, nullable=True, comment="detour: {title, description}")
    detour_option_b = db.Column(db.JSON, nullable=True, comment="detour: {title, description}")
    roadblock_question = db.Column(db.Text, nullable=True)
    roadblock_task = db.Column(db.Text, nullable=True)
    required_photos = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "type": self.type,
            "title": self.title,
            "content": self.content,
            "detour_option_a": self.detour_option_a,
            "detour_option_b": self.detour_option_b,
            "roadblock_question": self.roadblock_question,
            "roadblock_task": self.roadblock_task,
            "required_photos": self.required_photos,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Clue #{self.id} {self.type} {self.title!r}>"
