"""Failure taxonomy for calls against the remote market.

Two recoverable kinds exist. ``RateLimitError`` means the server asked us to
slow down and the operation may be retried after a backoff. ``RequestError``
covers every other transport or parsing failure and only allows aborting the
current operation. Anything else is fatal and must propagate.
"""
from enum import Enum, auto


class ErrorKind(Enum):
    """How callers are expected to react to a failure."""

    RATE_LIMITED = auto()
    REQUEST_FAILED = auto()
    FATAL = auto()


class RequestError(Exception):
    """A request to the market failed (network, status code, or bad body)."""

    kind = ErrorKind.REQUEST_FAILED

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(RequestError):
    """The market answered with a rate-limit status."""

    kind = ErrorKind.RATE_LIMITED


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to the reaction it calls for."""
    if isinstance(exc, RequestError):
        return exc.kind
    return ErrorKind.FATAL
