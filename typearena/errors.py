"""
Error taxonomy shared by the API and the client.

Each error carries the HTTP status it maps to and a stable snake_case `detail` code
(the same shape as the auth errors: `token_expired`, `invalid_token`, ...). The API
renders them as `{"detail": <code>}`; the client maps responses back to these classes.
"""

from typing import Any, Dict, Optional, Type


class ArenaError(Exception):
    status_code = 500
    detail = "server_error"
    # Single user-facing sentence; details stay in logs.
    user_message = "Something went wrong. Please try again later."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or type(self).detail
        super().__init__(self.detail)


class NotFound(ArenaError):
    """Unknown redemption code."""

    status_code = 404
    detail = "invalid_code"
    user_message = "Invalid invite code."


class EventNotFound(ArenaError):
    status_code = 404
    detail = "event_not_found"
    user_message = "Event not found."


class NotActive(ArenaError):
    """Event exists but is not open for entry."""

    status_code = 400
    detail = "event_not_active"
    user_message = "This event is not active."


class CodeAlreadyUsed(ArenaError):
    status_code = 409
    detail = "code_already_used"
    user_message = "This invite code has already been used."


class ResultAlreadySubmitted(ArenaError):
    status_code = 409
    detail = "result_already_submitted"
    user_message = "A result has already been submitted for this code."


class Unauthorized(ArenaError):
    """Missing, invalid or expired credential."""

    status_code = 401
    detail = "not_authenticated"
    user_message = "Your session has expired. Please log in again."


class Forbidden(ArenaError):
    status_code = 403
    detail = "forbidden"
    user_message = "You are not allowed to do that."


class ValidationFailed(ArenaError):
    status_code = 422
    detail = "invalid_payload"
    user_message = "The submitted data is invalid."


class RateLimited(ArenaError):
    status_code = 429
    detail = "rate_limited"
    user_message = "Too many attempts. Please wait and try again."


class ServerError(ArenaError):
    """Downstream storage failure."""


_BY_STATUS: Dict[int, Type[ArenaError]] = {
    401: Unauthorized,
    403: Forbidden,
    409: CodeAlreadyUsed,
    422: ValidationFailed,
    429: RateLimited,
}

_BY_DETAIL: Dict[str, Type[ArenaError]] = {
    "invalid_code": NotFound,
    "event_not_found": EventNotFound,
    "event_not_active": NotActive,
    "code_already_used": CodeAlreadyUsed,
    "result_already_submitted": ResultAlreadySubmitted,
}


def error_for_response(status_code: int, detail: Any) -> ArenaError:
    """Map an HTTP error response back onto the taxonomy (used by the client)."""
    # Request validation errors carry a list of field errors instead of a code.
    code = detail if isinstance(detail, str) else None
    if code in _BY_DETAIL:
        return _BY_DETAIL[code](code)
    if status_code in _BY_STATUS:
        return _BY_STATUS[status_code](code)
    if status_code == 404:
        return NotFound(code)
    return ServerError(code)


__all__ = [
    "ArenaError",
    "CodeAlreadyUsed",
    "EventNotFound",
    "Forbidden",
    "NotActive",
    "NotFound",
    "RateLimited",
    "ResultAlreadySubmitted",
    "ServerError",
    "Unauthorized",
    "ValidationFailed",
    "error_for_response",
]
