"""
Workflow-engine exception hierarchy.

Every rejected operation surfaces as exactly one of these types. Services
raise them; a single app-level error handler renders them with a stable
machine-readable ``code`` and HTTP status, so callers can tell "you can't"
(``ForbiddenError``) apart from "no one can right now"
(``InvalidStateError``).

Each error may carry ``current`` — the authoritative serialised state of the
resource at the moment of rejection — so the caller can resynchronise
without a second round-trip.

Usage:
    from docflow.core.exceptions import NotFoundError, InvalidStateError

    raise NotFoundError(resource="Assignment", resource_id=42)
    raise InvalidStateError("Cannot upload to a verified assignment",
                            current=assignment.to_dict())
"""


class WorkflowError(Exception):
    """Base class for every engine-level failure.

    Args:
        message: Human-readable explanation.
        current: Optional serialised post-check state of the target resource.
        details: Optional structured payload (field errors, missing items …).
    """

    code = "ERR_WORKFLOW"
    http_status = 400

    def __init__(self, message: str, *, current: dict | None = None, details: dict | None = None) -> None:
        self.message = message
        self.current = current
        self.details = details or {}
        super().__init__(message)

    def to_details(self) -> dict:
        payload = dict(self.details)
        if self.current is not None:
            payload["current"] = self.current
        return payload


class NotFoundError(WorkflowError):
    """Raised when a requested resource id is unknown. Terminal for the request.

    Args:
        resource: Human-readable model name (e.g. "Assignment").
        resource_id: The key that was looked up.
    """

    code = "ERR_NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ForbiddenError(WorkflowError):
    """Raised when the actor lacks the capability an operation requires."""

    code = "ERR_FORBIDDEN"
    http_status = 403

    def __init__(self, actor_id: str | None, operation: str, capability: str | None = None) -> None:
        self.actor_id = actor_id
        self.operation = operation
        self.capability = capability
        msg = f"Actor {actor_id or 'anonymous'} may not perform '{operation}'"
        if capability:
            msg += f" (requires {capability})"
        super().__init__(msg, details={"operation": operation, "required_capability": capability})


class InvalidStateError(WorkflowError):
    """Raised when a transition is illegal from the current state for anyone."""

    code = "ERR_INVALID_STATE"
    http_status = 409


class ValidationFailedError(WorkflowError):
    """Raised when well-formed input violates a business rule.

    Examples: reject/send-back without remarks, submit-for-review with
    mandatory items missing, a dropdown value outside its options.
    """

    code = "ERR_VALIDATION_FAILED"
    http_status = 422


class StaleSubmissionError(WorkflowError):
    """Raised when a review targets a version that a newer upload superseded."""

    code = "ERR_STALE_SUBMISSION"
    http_status = 409


class DuplicatePendingError(WorkflowError):
    """Raised on a second unlock request while one is still pending."""

    code = "ERR_DUPLICATE_PENDING"
    http_status = 409


class ConcurrentModificationError(WorkflowError):
    """Raised when a commit loses a race on a version or lock flip.

    The caller is expected to refresh and retry; the engine never retries.
    """

    code = "ERR_CONCURRENT_MODIFICATION"
    http_status = 409
