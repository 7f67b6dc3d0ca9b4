"""
Domain error taxonomy.

Services raise these; the exception handlers registered in ``main.py`` turn
them into the ``{"message": ..., "errors": ...}`` response body. Nothing below
the API layer should raise ``HTTPException`` directly.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, errors: dict | None = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(AppError):
    """Field-scoped failures, collected for every field before raising."""

    status_code = 422
    default_message = "Validation failed"

    def __init__(self, errors: dict, message: str | None = None):
        super().__init__(message, errors)


class InvalidInputError(AppError):
    status_code = 400
    default_message = "Invalid input"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict with current state"


class InvalidStateTransitionError(ConflictError):
    default_message = "Invalid status transition"


class CapacityExceededError(AppError):
    status_code = 409
    default_message = "No capacity left"


class ExternalServiceError(AppError):
    status_code = 502
    default_message = "External service unavailable, please retry"


class InternalError(AppError):
    status_code = 500
