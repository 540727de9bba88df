"""
Service-layer error taxonomy.

Each error carries the user-facing message and the HTTP status the API
layer maps it to. The API boundary collapses all of them into a flat
``{"error": message}`` body.
"""


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 400

    def __init__(self, message: str, user_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.user_id = user_id


class ValidationError(ServiceError):
    """Missing or malformed request fields."""


class UnauthorizedError(ServiceError):
    """No caller identity could be resolved."""

    status_code = 401


class ForbiddenError(ServiceError):
    """Caller is not allowed to act on the resource."""


class NotFoundError(ServiceError):
    """Listing or profile does not exist (or is not visible to the caller)."""


class InsufficientCreditsError(ServiceError):
    """Credit balance is below the required amount."""

    def __init__(self, required: int, user_id: str | None = None):
        super().__init__(f"Crediti insufficienti. Hai bisogno di {required} crediti.", user_id)
        self.required = required


class PersistenceError(ServiceError):
    """A write against the database failed."""
