"""Domain errors raised by service layers and translated to HTTP by routes."""


class PayplanError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400


class InvalidRequest(PayplanError):
    status_code = 400


class NotFound(PayplanError):
    status_code = 404


class Conflict(PayplanError):
    status_code = 409


class RateLimited(PayplanError):
    status_code = 429
