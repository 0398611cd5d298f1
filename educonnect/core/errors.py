"""Error taxonomy shared by services and the HTTP layer.

Services raise these; ``main.py`` registers a handler that renders them as
``{"error": <message>, "success": false}`` with the matching status code.
"""
from typing import Any, Dict, Optional


class EduConnectError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **payload: Any):
        self.message = message or self.default_message
        self.payload = payload
        super().__init__(self.message)

    def to_response(self) -> Dict[str, Any]:
        body = {"error": self.message, "success": False}
        body.update(self.payload)
        return body


class BadRequest(EduConnectError):
    status_code = 400
    default_message = "Bad request"


class Unauthorized(EduConnectError):
    status_code = 401
    default_message = "Access token required"


class Forbidden(EduConnectError):
    status_code = 403
    default_message = "Invalid or expired token"


class NotFound(EduConnectError):
    status_code = 404
    default_message = "Not found"


class Conflict(EduConnectError):
    status_code = 409
    default_message = "User already exists with this email"


class TooManyRequests(EduConnectError):
    status_code = 429
    default_message = "Too many requests. Please wait a moment."


class UpstreamFailure(EduConnectError):
    """The external completion service failed or returned nothing usable."""

    status_code = 502
    default_message = "Completion service unavailable"


class InternalError(EduConnectError):
    status_code = 500
