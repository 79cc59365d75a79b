# app/core/errors.py
"""
Error taxonomy shared by services and routers.

Services raise these; app.main maps them to HTTP responses with a
``{"detail": ..., "code": ...}`` body.
"""

from __future__ import annotations


class BloomPointError(Exception):
    """Base class for errors that carry an HTTP status and a stable code."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgument(BloomPointError):
    """Caller-supplied input failed validation. Never retried."""

    status_code = 400
    code = "invalid_argument"


class Unauthenticated(BloomPointError):
    status_code = 401
    code = "unauthenticated"


class Forbidden(BloomPointError):
    status_code = 403
    code = "forbidden"


class NotFound(BloomPointError):
    """Identity resolved but the backing record does not exist."""

    status_code = 404
    code = "not_found"


class StoreUnavailable(BloomPointError):
    """
    The database call failed (network, timeout, driver error).

    Surfaced as a generic 500; retry policy belongs to the store client.
    """

    status_code = 500
    code = "store_unavailable"
