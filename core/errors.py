"""
core/errors.py -- Domain error taxonomy shared by every layer.

Each error carries two strings that end up in the JSON envelope:
  client_msg -- user-facing message ("clientMsg" on the wire)
  error      -- internal diagnostic ("error" on the wire)

Expected domain failures (duplicate, not found, denied) are raised as one of
these classes and rendered by a single exception handler in api/main.py.
Unexpected failures are NOT wrapped here -- they propagate to the catch-all
middleware, which reports them as Internal.

Layer rule: core/ is the kernel. No imports from api/, auth/, or projects/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map onto an HTTP status and envelope."""

    status_code: int = 500
    default_client_msg: str = "Something went wrong. Try again later!"

    def __init__(self, client_msg: str | None = None, error: str = "") -> None:
        self.client_msg = client_msg if client_msg is not None else self.default_client_msg
        self.error = error
        super().__init__(error or self.client_msg)


class InvalidInput(AppError):
    """Missing or malformed input (400)."""

    status_code = 400
    default_client_msg = "Not enough information provided."


class Unauthenticated(AppError):
    """No credentials, bad credentials, or no session (401)."""

    status_code = 401
    default_client_msg = "Unauthorized."


class Forbidden(AppError):
    """A presented token was rejected (403)."""

    status_code = 403
    default_client_msg = "Forbidden."


class AccessDenied(Forbidden):
    """Authenticated, but the principal lacks rights on the resource.

    Reported as 401 to match the rest of the API surface; refresh-token
    rejection is the only 403 case.
    """

    status_code = 401
    default_client_msg = "You don't have access to this project."


class NotFound(AppError):
    status_code = 404
    default_client_msg = "Not found."


class Conflict(AppError):
    """Uniqueness violation (409)."""

    status_code = 409
    default_client_msg = "This value is already in use."


class Internal(AppError):
    status_code = 500


class ServiceUnavailable(AppError):
    """The store did not answer within the configured timeout (503)."""

    status_code = 503
    default_client_msg = "The service is temporarily unavailable. Try again later!"
