"""Dataclasses for top-level application config."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
VALID_LOG_FORMATS = {"ecs_json"}
VALID_LOG_SINKS = {"stdout", "file"}

DEFAULT_HANDLER = "minipsqld.handlers:accept_all"


@dataclass(frozen=True, slots=True)
class ServerConfig:
    port: int = 5432
    listen_host: str = "0.0.0.0"
    server_version: str = "0.0"
    time_zone: str = "UTC"
    socket_timeout_seconds: float = 30.0
    max_concurrent_connections: int = 256
    max_message_size_bytes: int = 1_048_576
    handler: str = DEFAULT_HANDLER


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    fmt: str = "ecs_json"
    sink: str = "stdout"
    file_path: str | None = None
    service_name: str = "minipsqld"


@dataclass(slots=True)
class AppConfig:
    environment: str = "development"
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_server_config(config: ServerConfig) -> ServerConfig:
    if config.port < 0 or config.port > 65535:
        raise ValueError("server port must be between 0 and 65535")
    if not config.listen_host.strip():
        raise ValueError("server listen_host must not be empty")
    if config.socket_timeout_seconds <= 0:
        raise ValueError("server socket_timeout_seconds must be greater than zero")
    if config.max_concurrent_connections < 1 or config.max_concurrent_connections > 5000:
        raise ValueError("server max_concurrent_connections must be between 1 and 5000")
    if config.max_message_size_bytes < 8:
        raise ValueError("server max_message_size_bytes must be at least 8")
    if "\x00" in config.server_version or "\x00" in config.time_zone:
        raise ValueError("server parameter values must not contain NUL bytes")
    module_name, _, attribute = config.handler.partition(":")
    if not module_name.strip() or not attribute.strip():
        raise ValueError(f"server handler '{config.handler}' must look like 'module:attribute'")
    return config


def parse_config(data: dict[str, Any]) -> AppConfig:
    environment = str(data.get("environment", "development"))

    server_raw = data.get("server", {})
    if not isinstance(server_raw, dict):
        raise ValueError("'server' must be an object")
    defaults = ServerConfig()
    server_config = validate_server_config(
        ServerConfig(
            port=int(server_raw.get("port", defaults.port)),
            listen_host=str(server_raw.get("listen_host", defaults.listen_host)),
            server_version=str(server_raw.get("server_version", defaults.server_version)),
            time_zone=str(server_raw.get("time_zone", defaults.time_zone)),
            socket_timeout_seconds=float(server_raw.get("socket_timeout_seconds", defaults.socket_timeout_seconds)),
            max_concurrent_connections=int(
                server_raw.get("max_concurrent_connections", defaults.max_concurrent_connections)
            ),
            max_message_size_bytes=int(server_raw.get("max_message_size_bytes", defaults.max_message_size_bytes)),
            handler=str(server_raw.get("handler", defaults.handler)).strip(),
        )
    )

    logging_raw = data.get("logging", {})
    if not isinstance(logging_raw, dict):
        raise ValueError("'logging' must be an object")
    level = str(logging_raw.get("level", "INFO")).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"invalid log level '{level}'")
    log_format = str(logging_raw.get("format", "ecs_json"))
    if log_format not in VALID_LOG_FORMATS:
        raise ValueError(f"invalid log format '{log_format}'")
    sink = str(logging_raw.get("sink", "stdout"))
    if sink not in VALID_LOG_SINKS:
        raise ValueError(f"invalid log sink '{sink}'")
    file_path = logging_raw.get("file_path")
    if sink == "file" and not file_path:
        raise ValueError("'logging.file_path' is required when sink is 'file'")

    logging_config = LoggingConfig(
        level=level,
        fmt=log_format,
        sink=sink,
        file_path=str(file_path) if file_path else None,
        service_name=str(logging_raw.get("service_name", "minipsqld")),
    )

    return AppConfig(
        environment=environment,
        server=server_config,
        logging=logging_config,
    )
