"""Stock query handlers and handler loading."""

from __future__ import annotations

import importlib

from minipsqld.protocol.dispatcher import QueryHandler


class HandlerLoadError(RuntimeError):
    pass


def accept_all(query: bytes) -> None:
    """Acknowledge every query with the default ``OK`` completion tag."""
    _ = query
    return None


def command_tag(query: bytes) -> bytes:
    """Answer with the leading keyword of the query, e.g. ``SELECT``."""
    words = query.strip().rstrip(b";").split(None, 1)
    if not words:
        return b"EMPTY"
    return words[0].upper()


def load_handler(path: str) -> QueryHandler:
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise HandlerLoadError(f"handler path '{path}' must look like 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
    except Exception as exc:
        raise HandlerLoadError(f"failed to import module '{module_name}': {exc}") from exc

    handler = getattr(module, attribute, None)
    if handler is None:
        raise HandlerLoadError(f"module '{module_name}' does not expose '{attribute}'")
    if not callable(handler):
        raise HandlerLoadError(f"'{path}' is not callable")
    return handler
