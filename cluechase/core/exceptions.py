"""
Platform-wide exception hierarchy.

Every service raises one of these four types; blueprints register handlers
against them once (see ``cluechase.utils.errors.register_error_handlers``)
and get consistent HTTP status codes everywhere.

    ValidationError     400  malformed or missing field, wrong photo count,
                             unknown clue type, rejection without a comment
    AuthorizationError  403  not a member, wrong role, not the submitting team
    NotFoundError       404  game / team / member / submission / clue missing
    ConflictError       409  duplicate code or membership, submission no longer
                             pending, team not at the reviewed clue

Usage:
    from cluechase.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Game", resource_id=42)
    raise ValidationError("textProof is required", details={"textProof": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Game", "Submission").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class AuthorizationError(Exception):
    """Raised when the caller lacks membership or role for an action.

    Roles are scoped per game: the same user may be game_master in one game
    and a plain player in another.

    Args:
        user_id: Caller identity (None when unauthenticated).
        action: What was attempted (e.g. "review_submission").
        game_id: Game the check was evaluated against.
    """

    def __init__(self, user_id: str | None, action: str, game_id: int | None = None) -> None:
        self.user_id = user_id
        self.action = action
        self.game_id = game_id
        msg = f"User {user_id} is not allowed to {action}"
        if game_id is not None:
            msg += f" in game {game_id}"
        super().__init__(msg)


class ConflictError(Exception):
    """Raised when an operation collides with existing state.

    Two shapes:
      - duplicate:  ConflictError("Game", "code", "ABC123")
      - state:      ConflictError("Submission", reason="submission is not pending")

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
        reason: Free-text state conflict; replaces the duplicate message.
    """

    def __init__(
        self,
        resource: str,
        field: str | None = None,
        value: str | None = None,
        *,
        reason: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        self.reason = reason
        if reason:
            msg = f"{resource}: {reason}"
        else:
            msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)

    @property
    def is_duplicate(self) -> bool:
        return self.reason is None
