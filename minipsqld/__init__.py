"""PostgreSQL wire-protocol test double with a programmable query handler."""

from .config.options import with_server_version, with_time_zone
from .config.schema import ServerConfig
from .protocol.errors import HandlerError, ListenerError
from .server import Server

__all__ = [
    "HandlerError",
    "ListenerError",
    "Server",
    "ServerConfig",
    "with_server_version",
    "with_time_zone",
]
