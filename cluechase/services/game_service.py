"""
Game lifecycle service.

Owns a game's status, its clue-sequence snapshot, its victory-page
configuration and its membership roster.

Functions:
    - generate_game_code:     Random 6-char join code (unambiguous alphabet)
    - create_game:            Create in status=setup, creator becomes game_master
    - join_game:              Enrol the caller as a player via join code
    - invite_member:          Game master adds a user with a given role
    - set_member_role:        Game master promotes/demotes a member
    - set_member_status:      Game master removes/re-activates a member
    - list_members:           Roster (read tier)
    - set_clue_sequence:      Replace the sequence with validated snapshots (setup only)
    - sequence_from_library:  Snapshots of the caller's library clues, in order
    - set_status:             setup → active → completed, atomically
    - set_victory_settings:   Per-placement display configuration
    - get_game:               Game + caller role + roster + teams (read tier)
    - list_games_for_user:    Games where the user holds an active membership
    - delete_game:            Game master only; teams/submissions cascade
"""

import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from cluechase.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from cluechase.models import db
from cluechase.models.clue import Clue
from cluechase.models.game import (
    GAME_CODE_LENGTH,
    GAME_STATUS_ACTIVE,
    GAME_STATUS_COMPLETED,
    GAME_STATUS_SETUP,
    GAME_STATUS_TRANSITIONS,
    GAME_STATUSES,
    MEMBER_ROLES,
    MEMBER_STATUS_ACTIVE,
    MEMBER_STATUS_REMOVED,
    MEMBER_STATUSES,
    ROLE_GAME_MASTER,
    ROLE_PLAYER,
    Game,
    GameMember,
)
from cluechase.models.team import Team
from cluechase.services import authorization
from cluechase.services.clue_types import parse_clue, snapshot_from_clue, to_snapshot

logger = logging.getLogger(__name__)

_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

VICTORY_TIERS = ("firstPlace", "secondPlace", "thirdPlace", "otherPlace")
_VICTORY_FIELDS = {
    "title": str,
    "message": str,
    "backgroundColor": str,
    "textColor": str,
    "showConfetti": bool,
}


# ── Codes ────────────────────────────────────────────────────────────────────


def generate_game_code() -> str:
    """Random join code; no 0/O/1/I so codes survive being read aloud."""
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(GAME_CODE_LENGTH))


def _normalize_code(code) -> str:
    code = (code or "").strip().upper() if isinstance(code, str) else ""
    if not code:
        raise ValidationError("Game code is required", details={"code": "required"})
    if len(code) != GAME_CODE_LENGTH:
        raise ValidationError(
            f"Game code must be {GAME_CODE_LENGTH} characters",
            details={"code": "invalid_length"},
        )
    return code


# ── Creation & membership ────────────────────────────────────────────────────


def create_game(name: str, code: str, creator_id: str, creator_name: str | None = None) -> dict:
    """Create a game in status=setup with an empty sequence.

    The creator is enrolled as the game's first game_master in the same
    transaction.

    Raises:
        ValidationError: name missing or code not exactly 6 characters.
        ConflictError: code already used by another game.
    """
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Game name is required", details={"name": "required"})
    code = _normalize_code(code)

    if Game.query.filter_by(code=code).first() is not None:
        raise ConflictError("Game", "code", code)

    game = Game(
        name=name[:255],
        code=code,
        status=GAME_STATUS_SETUP,
        clue_sequence=[],
        created_by=str(creator_id),
    )
    db.session.add(game)
    try:
        db.session.flush()
        db.session.add(GameMember(
            game_id=game.id,
            user_id=str(creator_id),
            display_name=creator_name,
            role=ROLE_GAME_MASTER,
            status=MEMBER_STATUS_ACTIVE,
        ))
        db.session.commit()
    except IntegrityError:
        # Lost a race with another create using the same code
        db.session.rollback()
        raise ConflictError("Game", "code", code) from None

    logger.info(
        "Game created",
        extra={"game_id": game.id, "user_id": str(creator_id), "event_type": "game.created"},
    )
    return game.to_dict()


def join_game(code: str, user_id: str, display_name: str | None = None) -> dict:
    """Enrol the caller as a player of the game with this join code.

    Raises:
        NotFoundError: no game has this code.
        ConflictError: already a member, or the game is completed.
    """
    code = _normalize_code(code)
    game = Game.query.filter_by(code=code).first()
    if game is None:
        raise NotFoundError("Game", code)
    if game.status == GAME_STATUS_COMPLETED:
        raise ConflictError("Game", reason="game is already completed")

    member = _add_member(game.id, user_id, ROLE_PLAYER, display_name)
    logger.info(
        "Player joined game",
        extra={"game_id": game.id, "user_id": str(user_id), "event_type": "member.joined"},
    )
    return {"game": game.to_dict(), "member": member.to_dict()}


def invite_member(
    game_id: int,
    user_id: str,
    role: str,
    requester_id: str,
    display_name: str | None = None,
) -> dict:
    """Game master enrols another user directly, with an explicit role.

    Re-inviting a removed member reactivates their existing row.
    """
    authorization.require_game_master(game_id, requester_id, "invite_member")
    if not user_id:
        raise ValidationError("user_id is required", details={"user_id": "required"})
    role = role or ROLE_PLAYER
    if role not in MEMBER_ROLES:
        raise ValidationError(
            f"Invalid role '{role}'. Must be one of: {', '.join(MEMBER_ROLES)}",
            details={"role": "invalid"},
        )
    member = _add_member(game_id, user_id, role, display_name, reactivate=True)
    logger.info(
        "Member invited",
        extra={"game_id": game_id, "user_id": str(requester_id), "event_type": "member.invited"},
    )
    return member.to_dict()


def _add_member(
    game_id: int,
    user_id: str,
    role: str,
    display_name: str | None,
    *,
    reactivate: bool = False,
) -> GameMember:
    """Insert a membership row.

    A removed member can only come back through a game master
    (``reactivate=True``); joining by code does not undo a removal.
    """
    if display_name is not None and not isinstance(display_name, str):
        raise ValidationError("display_name must be a string", details={"display_name": "invalid"})
    display_name = (display_name or "").strip()[:255] or None

    existing = GameMember.query.filter_by(game_id=game_id, user_id=str(user_id)).first()
    if existing is not None:
        if existing.status != MEMBER_STATUS_REMOVED:
            raise ConflictError("GameMember", "user_id", str(user_id))
        if not reactivate:
            raise ConflictError(
                "GameMember", reason="you were removed from this game; ask a game master to re-add you",
            )
        existing.status = MEMBER_STATUS_ACTIVE
        existing.role = role
        existing.team_id = None
        if display_name:
            existing.display_name = display_name
        db.session.commit()
        return existing

    member = GameMember(
        game_id=game_id,
        user_id=str(user_id),
        display_name=display_name,
        role=role,
        status=MEMBER_STATUS_ACTIVE,
    )
    db.session.add(member)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("GameMember", "user_id", str(user_id)) from None
    return member


def _get_member_or_404(member_id: int) -> GameMember:
    member = db.session.get(GameMember, member_id)
    if member is None:
        raise NotFoundError("GameMember", member_id)
    return member


def _guard_last_game_master(member: GameMember) -> None:
    if (
        member.role == ROLE_GAME_MASTER
        and member.status == MEMBER_STATUS_ACTIVE
        and authorization.game_master_count(member.game_id) <= 1
    ):
        raise ConflictError("GameMember", reason="a game must keep at least one active game master")


def set_member_role(member_id: int, role: str, requester_id: str) -> dict:
    member = _get_member_or_404(member_id)
    authorization.require_game_master(member.game_id, requester_id, "change_member_role")
    if role not in MEMBER_ROLES:
        raise ValidationError(
            f"Invalid role '{role}'. Must be one of: {', '.join(MEMBER_ROLES)}",
            details={"role": "invalid"},
        )
    if role != member.role:
        if role == ROLE_PLAYER:
            _guard_last_game_master(member)
        member.role = role
        db.session.commit()
        logger.info(
            "Member role changed",
            extra={"game_id": member.game_id, "user_id": str(requester_id), "event_type": "member.role"},
        )
    return member.to_dict()


def set_member_status(member_id: int, status: str, requester_id: str) -> dict:
    member = _get_member_or_404(member_id)
    authorization.require_game_master(member.game_id, requester_id, "change_member_status")
    if status not in MEMBER_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(MEMBER_STATUSES)}",
            details={"status": "invalid"},
        )
    if status != member.status:
        if status == MEMBER_STATUS_REMOVED:
            _guard_last_game_master(member)
        member.status = status
        db.session.commit()
        logger.info(
            "Member status changed",
            extra={"game_id": member.game_id, "user_id": str(requester_id), "event_type": "member.status"},
        )
    return member.to_dict()


def list_members(game_id: int, requester_id: str) -> list[dict]:
    authorization.require_member(game_id, requester_id, "list_members")
    members = GameMember.query.filter_by(game_id=game_id).order_by(GameMember.id).all()
    return [m.to_dict() for m in members]


# ── Sequence, status, victory settings ───────────────────────────────────────


def set_clue_sequence(game_id: int, clue_snapshots: list, requester_id: str) -> dict:
    """Replace the game's clue sequence wholesale.

    Each entry is validated by the authoring rules of its clue type and
    re-serialised into a fresh snapshot, so no caller-held object is
    stored.  Only allowed while the game is in setup: once teams are
    playing, the sequence they index into is frozen.

    Raises:
        ValidationError: not a list, or an entry fails authoring rules
                         (details carry the failing position).
        ConflictError: game is not in setup.
    """
    authorization.require_game_master(game_id, requester_id, "set_clue_sequence")
    game = authorization.get_game_or_404(game_id)

    if not isinstance(clue_snapshots, list):
        raise ValidationError("clue_sequence must be a list", details={"clue_sequence": "invalid"})
    if game.status != GAME_STATUS_SETUP:
        raise ConflictError("Game", reason=f"clue sequence is frozen once the game is {game.status}")

    snapshots = []
    for position, raw in enumerate(clue_snapshots):
        try:
            snapshots.append(to_snapshot(parse_clue(raw)))
        except ValidationError as exc:
            raise ValidationError(
                f"Clue {position}: {exc}",
                details={"position": position, **exc.details},
            ) from None

    game.clue_sequence = snapshots
    game.updated_at = datetime.now(timezone.utc)
    db.session.commit()

    logger.info(
        "Clue sequence set",
        extra={"game_id": game_id, "user_id": str(requester_id), "event_type": "game.sequence"},
    )
    return game.to_dict()


def _activation_problems(game: Game) -> dict[str, str]:
    problems: dict[str, str] = {}
    if not game.clue_sequence:
        problems["clue_sequence"] = "at least one clue must be sequenced"
    if Team.query.filter_by(game_id=game.id).count() == 0:
        problems["teams"] = "at least one team is required"
    assigned_players = (
        GameMember.query
        .filter(
            GameMember.game_id == game.id,
            GameMember.role == ROLE_PLAYER,
            GameMember.status == MEMBER_STATUS_ACTIVE,
            GameMember.team_id.isnot(None),
        )
        .count()
    )
    if assigned_players == 0:
        problems["players"] = "at least one player must be assigned to a team"
    return problems


def set_status(game_id: int, new_status: str, requester_id: str) -> dict:
    """Move the game along setup → active → completed.

    The write is a conditional UPDATE on the status observed here; if a
    concurrent call moved the game first, zero rows match and the call
    fails with a conflict instead of overwriting.

    Raises:
        ValidationError: unknown status, or activation prerequisites unmet.
        ConflictError: transition not allowed from the current status.
    """
    authorization.require_game_master(game_id, requester_id, "set_status")
    game = authorization.get_game_or_404(game_id)

    if new_status not in GAME_STATUSES:
        raise ValidationError(
            f"Invalid status '{new_status}'. Must be one of: {', '.join(GAME_STATUSES)}",
            details={"status": "invalid"},
        )
    current = game.status
    if new_status == current:
        return game.to_dict()
    if new_status not in GAME_STATUS_TRANSITIONS.get(current, ()):
        raise ConflictError("Game", reason=f"cannot move from '{current}' to '{new_status}'")

    if new_status == GAME_STATUS_ACTIVE:
        problems = _activation_problems(game)
        if problems:
            raise ValidationError(
                "Game cannot be activated: " + "; ".join(problems.values()),
                details=problems,
            )

    result = db.session.execute(
        update(Game)
        .where(Game.id == game_id, Game.status == current)
        .values(status=new_status, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise ConflictError("Game", reason="status changed concurrently, reload and retry")
    db.session.commit()
    db.session.refresh(game)

    logger.info(
        "Game status changed %s → %s", current, new_status,
        extra={"game_id": game_id, "user_id": str(requester_id), "event_type": "game.status"},
    )
    return game.to_dict()


def set_victory_settings(game_id: int, settings: dict, requester_id: str) -> dict:
    """Store per-placement display settings.

    Accepts any subset of the four tiers; each tier may carry title,
    message, backgroundColor, textColor and showConfetti.  Missing tiers
    fall back to defaults at read time (see victory_service).
    """
    authorization.require_game_master(game_id, requester_id, "set_victory_settings")
    game = authorization.get_game_or_404(game_id)

    if not isinstance(settings, dict):
        raise ValidationError("victory_settings must be an object")
    unknown = sorted(set(settings) - set(VICTORY_TIERS))
    if unknown:
        raise ValidationError(
            f"Unknown victory tiers: {', '.join(unknown)}",
            details={"tiers": unknown},
        )

    cleaned: dict[str, dict] = {}
    for tier, values in settings.items():
        if not isinstance(values, dict):
            raise ValidationError(f"{tier} must be an object", details={tier: "invalid"})
        tier_clean = {}
        for key, expected in _VICTORY_FIELDS.items():
            if key not in values:
                continue
            if not isinstance(values[key], expected):
                raise ValidationError(f"{tier}.{key} has the wrong type", details={f"{tier}.{key}": "invalid"})
            tier_clean[key] = values[key]
        cleaned[tier] = tier_clean

    game.victory_settings = cleaned
    game.updated_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info(
        "Victory settings saved",
        extra={"game_id": game_id, "user_id": str(requester_id), "event_type": "game.victory"},
    )
    return game.to_dict()


# ── Reads & deletion ─────────────────────────────────────────────────────────


def get_game(game_id: int, requester_id: str) -> dict:
    """Game detail for any member: caller role/team, roster and teams."""
    member = authorization.require_member(game_id, requester_id, "view_game")
    game = authorization.get_game_or_404(game_id)
    members = GameMember.query.filter_by(game_id=game_id).order_by(GameMember.id).all()
    teams = Team.query.filter_by(game_id=game_id).order_by(Team.id).all()
    return {
        "game": game.to_dict(),
        "user_role": member.role,
        "user_team_id": member.team_id,
        "members": [m.to_dict() for m in members],
        "teams": [t.to_dict() for t in teams],
    }


def list_games_for_user(user_id: str) -> list[dict]:
    rows = (
        db.session.query(Game, GameMember)
        .join(GameMember, GameMember.game_id == Game.id)
        .filter(GameMember.user_id == str(user_id), GameMember.status == MEMBER_STATUS_ACTIVE)
        .order_by(Game.created_at.desc(), Game.id.desc())
        .all()
    )
    out = []
    for game, member in rows:
        entry = game.to_dict()
        entry["user_role"] = member.role
        entry["user_team_id"] = member.team_id
        out.append(entry)
    return out


def delete_game(game_id: int, requester_id: str) -> None:
    """Delete a game; members, teams and submissions go with it (FK cascade)."""
    authorization.require_game_master(game_id, requester_id, "delete_game")
    game = authorization.get_game_or_404(game_id)
    db.session.delete(game)
    db.session.commit()
    logger.info(
        "Game deleted",
        extra={"game_id": game_id, "user_id": str(requester_id), "event_type": "game.deleted"},
    )


def sequence_from_library(clue_ids: list, requester_id: str) -> list[dict]:
    """Snapshot library clues, in the given order, for ``set_clue_sequence``.

    Only the caller's own library clues may be sequenced.  The same clue id
    may appear more than once; each occurrence is a separate snapshot.
    """
    if not isinstance(clue_ids, list):
        raise ValidationError("clue_ids must be a list", details={"clue_ids": "invalid"})

    snapshots = []
    for clue_id in clue_ids:
        clue = db.session.get(Clue, clue_id) if isinstance(clue_id, int) and not isinstance(clue_id, bool) else None
        if clue is None:
            raise NotFoundError("Clue", clue_id)
        if clue.owner_id != str(requester_id):
            raise AuthorizationError(requester_id, "sequence_clue")
        snapshots.append(snapshot_from_clue(clue))
    return snapshots
