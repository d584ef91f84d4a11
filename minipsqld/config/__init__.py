"""Configuration schema, loading and server options."""

from .loader import initialize_config, load_config
from .options import (
    ServerOption,
    apply_options,
    with_handler,
    with_listen_host,
    with_max_concurrent_connections,
    with_max_message_size,
    with_port,
    with_server_version,
    with_socket_timeout,
    with_time_zone,
)
from .schema import AppConfig, LoggingConfig, ServerConfig, parse_config

__all__ = [
    "AppConfig",
    "LoggingConfig",
    "ServerConfig",
    "ServerOption",
    "apply_options",
    "initialize_config",
    "load_config",
    "parse_config",
    "with_handler",
    "with_listen_host",
    "with_max_concurrent_connections",
    "with_max_message_size",
    "with_port",
    "with_server_version",
    "with_socket_timeout",
    "with_time_zone",
]
