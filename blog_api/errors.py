"""
Error taxonomy shared by the service and router layers.

Services raise these; ``blog_api.responses`` converts them into the JSON
envelope ``{"success": false, "message": ...}`` with the matching status.
"""


class BlogAPIError(Exception):
    status_code: int = 500
    default_message: str = "Operation failed."

    def __init__(self, message=None) -> None:
        self.message = message if message is not None else self.default_message
        super().__init__(self.message)


class ValidationFailed(BlogAPIError):
    """Per-field validation failure that needs the store to detect."""

    status_code = 422

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        super().__init__(errors)


class AuthenticationFailed(BlogAPIError):
    status_code = 401
    default_message = "Unauthenticated."


class PermissionDenied(BlogAPIError):
    status_code = 403
    default_message = "You are not authorized to perform this action."


class NotFound(BlogAPIError):
    status_code = 404
    default_message = "Resource not found."


class Conflict(BlogAPIError):
    status_code = 409
    default_message = "Resource already exists."


class StoreFailure(BlogAPIError):
    status_code = 500
    default_message = "Operation failed."
