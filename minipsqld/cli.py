"""CLI entry point for minipsqld."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import time
from typing import Sequence

from minipsqld.config.loader import initialize_config, load_config
from minipsqld.config.options import (
    ServerOption,
    with_handler,
    with_listen_host,
    with_port,
    with_server_version,
    with_time_zone,
)
from minipsqld.core.logging import configure_logging
from minipsqld.handlers import load_handler
from minipsqld.server import Server


DEFAULT_CONFIG = Path(__file__).parent / "config" / "defaults.yml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="minipsqld")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create starter config")
    init_parser.add_argument("--config", type=Path, default=Path("./config/minipsqld.yml"))
    init_parser.add_argument("--force", action="store_true")

    serve_parser = subparsers.add_parser("serve", help="Start the wire-protocol server")
    serve_parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)
    serve_parser.add_argument("--host", type=str, default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--server-version", type=str, default=None)
    serve_parser.add_argument("--time-zone", type=str, default=None)
    serve_parser.add_argument("--handler", type=str, default=None, help="Query handler as 'module:attribute'")
    serve_parser.add_argument(
        "--once",
        action="store_true",
        help="Start the server, print status, then stop immediately",
    )

    show_parser = subparsers.add_parser("show-config", help="Print the effective configuration")
    show_parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)

    return parser


def _cli_options(args: argparse.Namespace) -> list[ServerOption]:
    options: list[ServerOption] = []
    if args.host is not None:
        options.append(with_listen_host(args.host))
    if args.port is not None:
        options.append(with_port(args.port))
    if args.server_version is not None:
        options.append(with_server_version(args.server_version))
    if args.time_zone is not None:
        options.append(with_time_zone(args.time_zone))
    if args.handler is not None:
        options.append(with_handler(args.handler))
    return options


def cmd_init(config_path: Path, force: bool) -> int:
    initialize_config(config_path, force=force)
    print(f"wrote config: {config_path}")
    return 0


def cmd_serve(config_path: Path, *, options: list[ServerOption], once: bool = False) -> int:
    config = load_config(config_path, options=options)
    configure_logging(config.logging)
    server = Server(config.server)
    server.register_handler(load_handler(server.config.handler))
    server.start()
    try:
        print(json.dumps(server.status(), indent=2))
        if once:
            return 0
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        return 0
    finally:
        server.stop()
    return 0


def cmd_show_config(config_path: Path) -> int:
    config = load_config(config_path)
    payload = {
        "environment": config.environment,
        "server": {
            "listen_host": config.server.listen_host,
            "port": config.server.port,
            "server_version": config.server.server_version,
            "time_zone": config.server.time_zone,
            "socket_timeout_seconds": config.server.socket_timeout_seconds,
            "max_concurrent_connections": config.server.max_concurrent_connections,
            "max_message_size_bytes": config.server.max_message_size_bytes,
            "handler": config.server.handler,
        },
        "logging": {
            "level": config.logging.level,
            "format": config.logging.fmt,
            "sink": config.logging.sink,
            "file_path": config.logging.file_path,
        },
    }
    print(json.dumps(payload, indent=2))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args.config, args.force)
    if args.command == "serve":
        return cmd_serve(args.config, options=_cli_options(args), once=args.once)
    if args.command == "show-config":
        return cmd_show_config(args.config)

    parser.error(f"unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
