"""
Platform-wide exception hierarchy.

Why this module exists:
  Every service in the sharing layer raises these types and nothing else
  for expected failures. Blueprints register handlers against them once
  (see ``chatshare.utils.errors.register_error_handlers``) and get the
  same HTTP status codes everywhere.

Usage:
    from chatshare.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Session", resource_id="abc")
    raise ValidationError("Invalid visibility", details={"visibility": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist or is not visible to the caller.

    Security note: Used for BOTH genuinely missing records AND resources the
    caller has no permission level on at all. A 403 would confirm that a
    private session exists; a 404 does not.

    Args:
        resource: Human-readable entity name (e.g. "Session", "User").
        resource_id: The key that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class PermissionDeniedError(Exception):
    """Raised when the caller can see a resource but lacks the level an action needs.

    Only raised after the caller's level resolved to something other than
    None; a caller with no level at all gets NotFoundError instead.

    Maps to HTTP 403.

    Args:
        action: What was attempted (e.g. "change visibility").
        resource: Entity name.
        level: The caller's resolved level, for logging.
    """

    def __init__(self, action: str, resource: str, level: str | None = None) -> None:
        self.action = action
        self.resource = resource
        self.level = level
        super().__init__(f"Not allowed to {action} this {resource.lower()}")


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Covers unknown visibility / permission / role values, self-targeted
    grants and malformed fields.

    Maps to HTTP 400 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
        message: Optional client-facing text for state conflicts that are not
            duplicates (e.g. deleting a project that still holds other users' sessions).
    """

    def __init__(
        self, resource: str, field: str, value: str | None = None, message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        self.message = message
        super().__init__(message or f"{resource} with {field}={value!r} already exists")

    @property
    def public_message(self) -> str:
        return self.message or f"{self.resource} {self.field} already exists"


class TokenGenerationError(RuntimeError):
    """Raised when no unique share token could be minted.

    Maps to HTTP 503; the caller may simply retry.
    """
