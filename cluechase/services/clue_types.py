"""
Clue type validation: the three clue variants as a closed sum type.

    RouteInfo   ("route-info", shown to players as "Waypoint")
    Detour      ("detour",     "Fork": the team picks path a or b)
    RoadBlock   ("road-block", "Solo": one named player does the task)

Every function here dispatches over all three variants and raises
ValidationError for anything else; an unknown fourth type is never
silently accepted.  Nothing in this module touches the database.

Two rule sets per variant:
  - authoring:  what a clue must carry to be sequenced into a game
  - submission: what a team's evidence must carry for that clue

Submission validation is shared by create and edit in
``submission_service`` so the two paths cannot drift apart.

Usage:
    from cluechase.services.clue_types import parse_clue, validate_evidence

    clue = parse_clue(snapshot_dict)
    evidence = validate_evidence(clue, request_payload)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cluechase.core.exceptions import ValidationError
from cluechase.models.clue import (
    CLUE_TYPE_DETOUR,
    CLUE_TYPE_ROAD_BLOCK,
    CLUE_TYPE_ROUTE_INFO,
    CLUE_TYPES,
    Clue,
)

DETOUR_CHOICES = ("a", "b")

CLUE_TYPE_DISPLAY = {
    CLUE_TYPE_ROUTE_INFO: "Waypoint",
    CLUE_TYPE_DETOUR: "Fork",
    CLUE_TYPE_ROAD_BLOCK: "Solo",
}


# ── Variants ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DetourOption:
    title: str
    description: str


@dataclass(frozen=True)
class RouteInfo:
    title: str
    content: tuple[str, ...]
    required_photos: int = 0
    source_clue_id: int | None = None
    type: str = field(default=CLUE_TYPE_ROUTE_INFO, init=False)


@dataclass(frozen=True)
class Detour:
    title: str
    option_a: DetourOption
    option_b: DetourOption
    required_photos: int = 0
    source_clue_id: int | None = None
    type: str = field(default=CLUE_TYPE_DETOUR, init=False)


@dataclass(frozen=True)
class RoadBlock:
    title: str
    question: str
    task: str
    required_photos: int = 0
    source_clue_id: int | None = None
    type: str = field(default=CLUE_TYPE_ROAD_BLOCK, init=False)


ClueVariant = RouteInfo | Detour | RoadBlock


@dataclass(frozen=True)
class Evidence:
    """Normalised submission payload, ready to be written to a Submission."""

    text_proof: str
    notes: str | None
    photo_urls: tuple[str, ...]
    detour_choice: str | None = None
    roadblock_player: str | None = None

    def as_columns(self) -> dict:
        return {
            "text_proof": self.text_proof,
            "notes": self.notes,
            "photo_urls": list(self.photo_urls),
            "detour_choice": self.detour_choice,
            "roadblock_player": self.roadblock_player,
        }


def _unknown_variant(value) -> ValidationError:
    kind = getattr(value, "type", value)
    return ValidationError(
        f"Unrecognized clue type {kind!r}. Must be one of: {', '.join(CLUE_TYPES)}",
        details={"type": "invalid"},
    )


# ── Payload helpers ──────────────────────────────────────────────────────────


def _pick(data: dict, *keys: str):
    """Return the first present key; payloads arrive in snake_case or camelCase."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _text(data: dict, *keys: str) -> str:
    value = _pick(data, *keys)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{keys[0]} must be a string", details={keys[0]: "invalid"})
    return value.strip()


def _required_photos(data: dict) -> int:
    value = _pick(data, "required_photos", "requiredPhotos")
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise ValidationError(
                "required_photos must be an integer", details={"required_photos": "invalid"},
            ) from None
    if value < 0:
        raise ValidationError(
            "required_photos cannot be negative", details={"required_photos": "invalid"},
        )
    return value


def _option(data: dict, *keys: str) -> DetourOption:
    raw = _pick(data, *keys) or {}
    if not isinstance(raw, dict):
        raise ValidationError(f"{keys[0]} must be an object", details={keys[0]: "invalid"})
    return DetourOption(
        title=_text(raw, "title"),
        description=_text(raw, "description"),
    )


# ── Authoring ────────────────────────────────────────────────────────────────


def parse_clue(data: dict) -> ClueVariant:
    """Build and validate a clue variant from an authoring payload or snapshot.

    Raises:
        ValidationError: unknown type or a missing mandatory authoring field.
    """
    if not isinstance(data, dict):
        raise ValidationError("Clue must be an object")

    clue_type = data.get("type")
    title = _text(data, "title")
    required_photos = _required_photos(data)
    source_id = _pick(data, "source_clue_id", "id")

    if clue_type == CLUE_TYPE_ROUTE_INFO:
        raw_content = _pick(data, "content") or []
        if isinstance(raw_content, str):
            raw_content = [raw_content]
        content = tuple(line.strip() for line in raw_content if isinstance(line, str) and line.strip())
        clue = RouteInfo(title=title, content=content,
                         required_photos=required_photos, source_clue_id=source_id)
    elif clue_type == CLUE_TYPE_DETOUR:
        clue = Detour(
            title=title,
            option_a=_option(data, "option_a", "detour_option_a", "detourOptionA"),
            option_b=_option(data, "option_b", "detour_option_b", "detourOptionB"),
            required_photos=required_photos,
            source_clue_id=source_id,
        )
    elif clue_type == CLUE_TYPE_ROAD_BLOCK:
        clue = RoadBlock(
            title=title,
            question=_text(data, "question", "roadblock_question", "roadblockQuestion"),
            task=_text(data, "task", "roadblock_task", "roadblockTask"),
            required_photos=required_photos,
            source_clue_id=source_id,
        )
    else:
        raise _unknown_variant(clue_type)

    validate_authoring(clue)
    return clue


def validate_authoring(clue: ClueVariant) -> None:
    """Raise ValidationError listing every missing authoring field."""
    errors: dict[str, str] = {}
    if not clue.title:
        errors["title"] = "Clue title is required"

    if isinstance(clue, RouteInfo):
        if not clue.content:
            errors["content"] = "Route info content is required"
    elif isinstance(clue, Detour):
        if not clue.option_a.title or not clue.option_b.title:
            errors["detour_options"] = "Both detour option titles are required"
        if not clue.option_a.description or not clue.option_b.description:
            errors["detour_descriptions"] = "Both detour option descriptions are required"
    elif isinstance(clue, RoadBlock):
        if not clue.question:
            errors["roadblock_question"] = "Roadblock question is required"
        if not clue.task:
            errors["roadblock_task"] = "Roadblock task is required"
    else:
        raise _unknown_variant(clue)

    if errors:
        raise ValidationError("; ".join(errors.values()), details=errors)


def clue_from_model(clue: Clue) -> ClueVariant:
    """Validated variant for a library Clue row."""
    return parse_clue({
        "id": clue.id,
        "type": clue.type,
        "title": clue.title,
        "content": clue.content,
        "detour_option_a": clue.detour_option_a,
        "detour_option_b": clue.detour_option_b,
        "roadblock_question": clue.roadblock_question,
        "roadblock_task": clue.roadblock_task,
        "required_photos": clue.required_photos,
    })


def to_snapshot(clue: ClueVariant) -> dict:
    """Serialise a variant into the JSON value stored in Game.clue_sequence.

    Returns a fresh dict on every call; nothing in it aliases the source.
    """
    base = {
        "type": clue.type,
        "title": clue.title,
        "required_photos": clue.required_photos,
        "source_clue_id": clue.source_clue_id,
    }
    if isinstance(clue, RouteInfo):
        base["content"] = list(clue.content)
    elif isinstance(clue, Detour):
        base["option_a"] = {"title": clue.option_a.title, "description": clue.option_a.description}
        base["option_b"] = {"title": clue.option_b.title, "description": clue.option_b.description}
    elif isinstance(clue, RoadBlock):
        base["question"] = clue.question
        base["task"] = clue.task
    else:
        raise _unknown_variant(clue)
    return base


def snapshot_from_clue(clue: Clue) -> dict:
    return to_snapshot(clue_from_model(clue))


# ── Submission ───────────────────────────────────────────────────────────────


def _photo_urls(payload: dict) -> tuple[str, ...]:
    raw = _pick(payload, "photo_urls", "photoUrls")
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("photo_urls must be a list", details={"photo_urls": "invalid"})
    urls = []
    for item in raw:
        # Upload responses are {url, ...}; plain strings are accepted too
        url = item.get("url") if isinstance(item, dict) else item
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("photo_urls entries must be non-empty URLs",
                                  details={"photo_urls": "invalid"})
        urls.append(url.strip())
    return tuple(urls)


def validate_evidence(clue: ClueVariant, payload: dict) -> Evidence:
    """Validate a submission payload against the clue it answers.

    Rules (all variants): text_proof non-empty and exactly
    ``clue.required_photos`` photos.  Detour adds detour_choice ∈ {a, b};
    road-block adds a non-empty roadblock_player.

    Raises:
        ValidationError: with field-level ``details``.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Submission payload must be an object")

    errors: dict[str, str] = {}
    text_proof = _text(payload, "text_proof", "textProof")
    notes = _text(payload, "notes") or None
    photos = _photo_urls(payload)

    if not text_proof:
        errors["text_proof"] = "text_proof is required"

    if len(photos) != clue.required_photos:
        errors["photo_urls"] = (
            f"This clue requires exactly {clue.required_photos} "
            f"photo{'s' if clue.required_photos != 1 else ''}, got {len(photos)}"
        )

    detour_choice = None
    roadblock_player = None

    if isinstance(clue, RouteInfo):
        pass
    elif isinstance(clue, Detour):
        raw_choice = _pick(payload, "detour_choice", "detourChoice")
        choice = raw_choice.strip().lower() if isinstance(raw_choice, str) else None
        if choice not in DETOUR_CHOICES:
            errors["detour_choice"] = "detour_choice must be 'a' or 'b'"
        else:
            detour_choice = choice
    elif isinstance(clue, RoadBlock):
        roadblock_player = _text(payload, "roadblock_player", "roadblockPlayer")
        if not roadblock_player:
            errors["roadblock_player"] = "roadblock_player is required for a solo clue"
    else:
        raise _unknown_variant(clue)

    if errors:
        raise ValidationError("; ".join(errors.values()), details=errors)

    return Evidence(
        text_proof=text_proof,
        notes=notes,
        photo_urls=photos,
        detour_choice=detour_choice,
        roadblock_player=roadblock_player or None,
    )
