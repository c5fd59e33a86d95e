"""
Game and GameMember models.

A Game owns an ordered clue sequence stored as JSON value snapshots (see
``cluechase.services.clue_types.snapshot_from_clue``).  Snapshots are
copies, not references: editing a library Clue never reaches a game that
already sequenced it.

GameMember links an opaque user identity (the ``sub`` of the caller's
token) to one game with a per-game role.
"""

from datetime import datetime, timezone

from cluechase.models import db

# ── Constants ─────────────────────────────────────────────────────────────────

GAME_CODE_LENGTH = 6

GAME_STATUS_SETUP = "setup"
GAME_STATUS_ACTIVE = "active"
GAME_STATUS_COMPLETED = "completed"
GAME_STATUSES = (GAME_STATUS_SETUP, GAME_STATUS_ACTIVE, GAME_STATUS_COMPLETED)

# setup → active → completed, nothing else
GAME_STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    GAME_STATUS_SETUP: (GAME_STATUS_ACTIVE,),
    GAME_STATUS_ACTIVE: (GAME_STATUS_COMPLETED,),
    GAME_STATUS_COMPLETED: (),
}

ROLE_GAME_MASTER = "game_master"
ROLE_PLAYER = "player"
MEMBER_ROLES = (ROLE_GAME_MASTER, ROLE_PLAYER)

MEMBER_STATUS_ACTIVE = "active"
MEMBER_STATUS_REMOVED = "removed"
MEMBER_STATUSES = (MEMBER_STATUS_ACTIVE, MEMBER_STATUS_REMOVED)


def _utcnow():
    return datetime.now(timezone.utc)


class Game(db.Model):
    """One hunt instance with its own clue sequence, teams and members."""

    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(
        db.String(GAME_CODE_LENGTH),
        nullable=False,
        unique=True,
        comment="Join code, stored upper-case",
    )
    status = db.Column(
        db.String(20),
        nullable=False,
        default=GAME_STATUS_SETUP,
        comment="setup | active | completed",
    )
    clue_sequence = db.Column(
        db.JSON,
        nullable=False,
        default=list,
        comment="Ordered list of clue snapshots (value copies)",
    )
    victory_settings = db.Column(
        db.JSON,
        nullable=True,
        comment="Per-placement display config: firstPlace | secondPlace | thirdPlace | otherPlace",
    )
    created_by = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @property
    def total_clues(self) -> int:
        return len(self.clue_sequence or [])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "status": self.status,
            "clue_sequence": list(self.clue_sequence or []),
            "total_clues": self.total_clues,
            "victory_settings": self.victory_settings,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Game #{self.id} {self.code} {self.status}>"


class GameMember(db.Model):
    """Per-game membership: role, optional team binding and status."""

    __tablename__ = "game_members"

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(
        db.Integer,
        db.ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(db.String(255), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default=ROLE_PLAYER, comment="game_master | player")
    team_id = db.Column(
        db.Integer,
        db.ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    display_name = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=MEMBER_STATUS_ACTIVE, comment="active | removed")
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("game_id", "user_id", name="uq_game_members_game_user"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == MEMBER_STATUS_ACTIVE

    @property
    def is_game_master(self) -> bool:
        return self.role == ROLE_GAME_MASTER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "game_id": self.game_id,
            "user_id": self.user_id,
            "display_name": self.display_name,
            "role": self.role,
            "team_id": self.team_id,
            "status": self.status,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }

    def __repr__(self) -> str:
        return f"<GameMember #{self.id} game={self.game_id} user={self.user_id} {self.role}>"
