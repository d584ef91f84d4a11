"""Frame codec, handshake and dispatch for the PostgreSQL v3 wire protocol."""

from .dispatcher import DispatchOutcome, QueryDispatcher, QueryHandler
from .errors import (
    EndOfStream,
    FramingError,
    HandlerError,
    ListenerError,
    ProtocolError,
    TransportError,
    TruncatedStream,
)
from .handshake import StartupPacket, run_handshake
from .transport import read_exactly

__all__ = [
    "DispatchOutcome",
    "EndOfStream",
    "FramingError",
    "HandlerError",
    "ListenerError",
    "ProtocolError",
    "QueryDispatcher",
    "QueryHandler",
    "StartupPacket",
    "TransportError",
    "TruncatedStream",
    "read_exactly",
    "run_handshake",
]
