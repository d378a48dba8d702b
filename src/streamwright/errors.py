"""Errors raised while assembling a streamed completion.

Every fatal outcome of a stream is a :class:`StreamError`.  The driver
raises exactly one of them and never hands back a partial message.
"""

from __future__ import annotations

from typing import Any


class StreamError(Exception):
    """Base for all stream assembly failures."""


class DecodeError(StreamError):
    """A ``data:`` line did not carry valid JSON."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


class MalformedEvent(StreamError):
    """A field the assembler reads is missing or has the wrong shape."""

    def __init__(self, message: str, event_type: str | None = None):
        super().__init__(message)
        self.event_type = event_type


class IndexOutOfRange(StreamError):
    """An event referenced a content index that was never started,
    or a block started out of sequence."""

    def __init__(self, message: str, index: int):
        super().__init__(message)
        self.index = index


class SegmentClosed(StreamError):
    """A delta or stop arrived for a block whose stop already fired."""

    def __init__(self, message: str, index: int):
        super().__init__(message)
        self.index = index


class VariantMismatch(StreamError):
    """The delta kind does not match the addressed block's variant."""

    def __init__(self, message: str, index: int):
        super().__init__(message)
        self.index = index


class ToolArgumentParseError(StreamError):
    """Accumulated tool input did not parse as a JSON object."""

    def __init__(self, message: str, index: int, partial_json: str = ""):
        super().__init__(message)
        self.index = index
        self.partial_json = partial_json


class SinkError(StreamError):
    """The caller's text callback raised.

    ``original`` is the caller's own exception; it is also chained as
    ``__cause__``.
    """

    def __init__(self, original: BaseException):
        super().__init__(f"streaming callback raised: {original!r}")
        self.original = original


class ProtocolErrorEvent(StreamError):
    """The provider sent an explicit ``error`` event."""

    def __init__(self, payload: dict[str, Any]):
        error = payload.get("error")
        if not isinstance(error, dict):
            error = {}
        self.payload = payload
        self.error_type: str | None = error.get("type")
        self.message: str = error.get("message") or "unknown streaming error"
        super().__init__(f"received error event: {self.error_type}: {self.message}")


class TruncatedStream(StreamError):
    """The transport ended before ``message_stop`` was seen."""


class StreamCancelled(StreamError):
    """The background read was cancelled before a terminal event."""


class APIStatusError(Exception):
    """The provider answered the request with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_type: str | None = None,
        body: Any = None,
    ):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.error_type = error_type
        self.body = body
