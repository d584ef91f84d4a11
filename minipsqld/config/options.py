"""Named server options applied over a base config."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable

from minipsqld.config.schema import ServerConfig, validate_server_config


ServerOption = Callable[[ServerConfig], ServerConfig]


def with_server_version(version: str) -> ServerOption:
    def _apply(config: ServerConfig) -> ServerConfig:
        return replace(config, server_version=version)

    return _apply


def with_time_zone(time_zone: str) -> ServerOption:
    def _apply(config: ServerConfig) -> ServerConfig:
        return replace(config, time_zone=time_zone)

    return _apply


def with_listen_host(host: str) -> ServerOption:
    def _apply(config: ServerConfig) -> ServerConfig:
        return replace(config, listen_host=host)

    return _apply


def with_port(port: int) -> ServerOption:
    def _apply(config: ServerConfig) -> ServerConfig:
        return replace(config, port=int(port))

    return _apply


def with_socket_timeout(seconds: float) -> ServerOption:
    def _apply(config: ServerConfig) -> ServerConfig:
        return replace(config, socket_timeout_seconds=float(seconds))

    return _apply


def with_max_concurrent_connections(limit: int) -> ServerOption:
    def _apply(config: ServerConfig) -> ServerConfig:
        return replace(config, max_concurrent_connections=int(limit))

    return _apply


def with_max_message_size(size_bytes: int) -> ServerOption:
    def _apply(config: ServerConfig) -> ServerConfig:
        return replace(config, max_message_size_bytes=int(size_bytes))

    return _apply


def with_handler(path: str) -> ServerOption:
    def _apply(config: ServerConfig) -> ServerConfig:
        return replace(config, handler=path)

    return _apply


def apply_options(config: ServerConfig, options: Iterable[ServerOption]) -> ServerConfig:
    """Apply options in order; the result is validated once at the end."""
    for option in options:
        config = option(config)
    return validate_server_config(config)
