"""
Submission model: a team's evidence package for one clue.

Lifecycle:
    pending ──approve──▶ approved   (terminal)
            ──reject───▶ rejected   (terminal, admin_comment mandatory)

A rejected team files a new Submission for the same clue_index; rejected
rows are never reopened.  The partial unique index keeps at most one
pending submission per (team, clue_index).
"""

from datetime import datetime, timezone

from cluechase.models import db

SUBMISSION_PENDING = "pending"
SUBMISSION_APPROVED = "approved"
SUBMISSION_REJECTED = "rejected"
SUBMISSION_STATUSES = (SUBMISSION_PENDING, SUBMISSION_APPROVED, SUBMISSION_REJECTED)

REVIEW_APPROVE = "approve"
REVIEW_REJECT = "reject"
REVIEW_DECISIONS = (REVIEW_APPROVE, REVIEW_REJECT)

_PENDING_ONLY = db.text("status = 'pending'")


def _utcnow():
    return datetime.now(timezone.utc)


class Submission(db.Model):
    __tablename__ = "submissions"

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(
        db.Integer,
        db.ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    team_id = db.Column(
        db.Integer,
        db.ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    clue_index = db.Column(db.Integer, nullable=False)
    clue_type = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=SUBMISSION_PENDING)

    # Evidence
    text_proof = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    photo_urls = db.Column(db.JSON, nullable=False, default=list)
    detour_choice = db.Column(db.String(1), nullable=True, comment="a | b")
    roadblock_player = db.Column(db.String(255), nullable=True)

    # Review
    admin_comment = db.Column(db.Text, nullable=True)
    submitted_by = db.Column(db.String(255), nullable=False)
    reviewed_by = db.Column(db.String(255), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        db.Index("ix_submissions_game_status", "game_id", "status"),
        db.Index(
            "uq_submissions_one_pending_per_clue",
            "team_id",
            "clue_index",
            unique=True,
            sqlite_where=_PENDING_ONLY,
            postgresql_where=_PENDING_ONLY,
        ),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == SUBMISSION_PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "game_id": self.game_id,
            "team_id": self.team_id,
            "clue_index": self.clue_index,
            "clue_type": self.clue_type,
            "status": self.status,
            "text_proof": self.text_proof,
            "notes": self.notes,
            "photo_urls": list(self.photo_urls or []),
            "detour_choice": self.detour_choice,
            "roadblock_player": self.roadblock_player,
            "admin_comment": self.admin_comment,
            "submitted_by": self.submitted_by,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Submission #{self.id} team={self.team_id} clue={self.clue_index} {self.status}>"
