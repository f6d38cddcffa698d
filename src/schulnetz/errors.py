"""Error hierarchy for the SchulNetz client.

Two families live here:

* Session errors (``SchulNetzError`` and subclasses) are raised and propagated.
  Any of them inside ``login``/``fetch_page``/the heartbeat ends the session,
  so callers check ``session.logged_in`` to decide whether to log in again.
  The transient/permanent split mirrors what a retry policy would need to
  know, even though the session itself never retries.

* Record exceptions (``RecordException`` and subclasses) are produced by the
  parsers and the linker. They carry an ``ExceptionLevel`` and are collected
  into the result objects instead of escaping, so one broken row never costs
  the rest of the document.
"""

from enum import IntEnum


class SchulNetzError(Exception):
    """Base exception for all session errors."""

    pass


class TransientError(SchulNetzError):
    """Temporary failure that may succeed after logging in again.

    Examples: connection refused, timeouts, unexpected status codes.
    """

    pass


class TransportError(TransientError):
    """An HTTP request did not produce a usable response."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class NoResponseError(TransportError):
    """No HTTP response was received at all."""

    def __init__(self, url: str, reason: str = "NO HTTP RESPONSE") -> None:
        super().__init__(url, reason)


class UnexpectedStatusError(TransportError):
    """The response status was not 200 and the caller did not ignore it."""

    def __init__(self, url: str, status: int) -> None:
        super().__init__(url, str(status))
        self.status = status


class NoDataError(TransportError):
    """The response arrived but had an empty body."""

    def __init__(self, url: str) -> None:
        super().__init__(url, "NO DATA")


class PermanentError(SchulNetzError):
    """Failure that won't go away by repeating the same call."""

    pass


class NotLoggedInError(PermanentError):
    """An operation that needs a live session was called without one."""

    pass


class LockAcquisitionError(PermanentError):
    """Waiting for the state lock or a stable-state slot was cancelled.

    Happens when a logout forcefully takes the lock while the caller is queued.
    """

    pass


class AuthenticationError(PermanentError):
    """The portal did not accept the credentials."""

    pass


class PageVerificationError(PermanentError):
    """A page did not contain the navigation link carrying id and transid."""

    pass


class ExceptionLevel(IntEnum):
    INFO = 0
    WARN = 1
    ERROR = 2
    FATAL = 3


class RecordException(Exception):
    """A recoverable problem found while parsing or linking records."""

    kind = "RecordException"

    def __init__(
        self,
        function: str,
        message: str,
        level: ExceptionLevel = ExceptionLevel.ERROR,
    ) -> None:
        super().__init__(message)
        self.function = function
        self.message = message
        self.level = level

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(function={self.function!r}, "
            f"message={self.message!r}, level={self.level.name})"
        )


class ParserException(RecordException):
    kind = "ParserException"


class LinkerException(RecordException):
    kind = "LinkerException"


class UnexpectedException(RecordException):
    """Wraps an arbitrary exception raised while handling a single record."""

    kind = "UnexpectedException"

    @classmethod
    def wrap(cls, function: str, exc: BaseException) -> "UnexpectedException":
        return cls(function, f"{type(exc).__name__}: {exc}", ExceptionLevel.ERROR)
