"""
Team progress models.

``Team.current_clue_index`` is the team's position in its game's clue
sequence.  Completed clues are rows of ``TeamClueCompletion``; the unique
(team_id, clue_index) pair is what makes advancement idempotent.  Both are
written only by ``team_service.advance``.
"""

from datetime import datetime, timezone

from cluechase.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(
        db.Integer,
        db.ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    current_clue_index = db.Column(db.Integer, nullable=False, default=0)
    completed_at = db.Column(
        db.DateTime(timezone=True),
        nullable=True,
        comment="Set when current_clue_index first reaches the sequence length",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    completions = db.relationship(
        "TeamClueCompletion",
        order_by="TeamClueCompletion.clue_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="select",
    )

    __table_args__ = (
        db.UniqueConstraint("game_id", "name", name="uq_teams_game_name"),
        db.CheckConstraint("current_clue_index >= 0", name="ck_teams_clue_index_non_negative"),
    )

    @property
    def completed_clues(self) -> list[int]:
        return [c.clue_index for c in self.completions]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "game_id": self.game_id,
            "name": self.name,
            "current_clue_index": self.current_clue_index,
            "completed_clues": self.completed_clues,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Team #{self.id} {self.name!r} at={self.current_clue_index}>"


class TeamClueCompletion(db.Model):
    """One completed clue for one team, in approval order."""

    __tablename__ = "team_clue_completions"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(
        db.Integer,
        db.ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    clue_index = db.Column(db.Integer, nullable=False)
    submission_id = db.Column(
        db.Integer,
        db.ForeignKey("submissions.id", ondelete="SET NULL"),
        nullable=True,
        comment="Approved submission; NULL for a manual game-master advance",
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("team_id", "clue_index", name="uq_team_clue_completions_team_clue"),
    )

    def __repr__(self) -> str:
        return f"<TeamClueCompletion team={self.team_id} clue={self.clue_index}>"
