"""Error taxonomy for the wire protocol engine."""

from __future__ import annotations


SQLSTATE_INTERNAL_ERROR = "XX000"


class ProtocolError(RuntimeError):
    pass


class TransportError(ProtocolError):
    """I/O failure on a single connection's stream (reset, broken pipe, timeout)."""


class EndOfStream(ProtocolError):
    """The peer closed the stream at a frame boundary."""


class FramingError(ProtocolError):
    """Malformed length field or oversized message."""


class TruncatedStream(FramingError):
    """The stream ended part-way through a frame."""


class HandlerError(ProtocolError):
    """Query handler failure, reported to the client as an ErrorResponse."""

    def __init__(self, message: str, sqlstate: str = SQLSTATE_INTERNAL_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.sqlstate = sqlstate


class ListenerError(RuntimeError):
    """The server could not start accepting connections."""
