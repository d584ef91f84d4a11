"""Structured ECS logging for server and session events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
import json
import logging
from pathlib import Path

from minipsqld.config.schema import LoggingConfig


def _strip_empty(value: object) -> object | None:
    if isinstance(value, dict):
        cleaned = {key: _strip_empty(item) for key, item in value.items()}
        return {key: item for key, item in cleaned.items() if item is not None} or None
    if isinstance(value, list):
        cleaned_list = [_strip_empty(item) for item in value]
        return [item for item in cleaned_list if item is not None] or None
    if value in ("", None):
        return None
    return value


class ECSJsonFormatter(logging.Formatter):
    def __init__(self, service_name: str = "minipsqld") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, UTC).isoformat(timespec="microseconds")
        payload: dict[str, object] = {
            "@timestamp": timestamp,
            "message": record.getMessage(),
            "log": {
                "level": record.levelname.lower(),
                "logger": record.name,
            },
            "service": {
                "name": getattr(record, "service_name", self.service_name),
            },
            "event": {
                "kind": "event",
                "category": getattr(record, "event_category", "network"),
                "action": getattr(record, "event_action", None),
                "type": getattr(record, "event_type", None),
                "outcome": getattr(record, "event_outcome", None),
            },
            "session": {
                "id": getattr(record, "session_id", None),
            },
            "source": {
                "ip": getattr(record, "source_ip", None),
                "port": getattr(record, "source_port", None),
            },
            "minipsqld": {
                "payload": getattr(record, "payload", None),
            },
        }
        if record.exc_info:
            payload["error"] = {"stack_trace": self.formatException(record.exc_info)}
        cleaned = _strip_empty(payload) or {}
        return json.dumps(cleaned, separators=(",", ":"), default=str)


def _sink_handler(config: LoggingConfig, formatter: logging.Formatter) -> logging.Handler:
    if config.sink == "file":
        file_path = config.file_path or "logs/minipsqld.log"
        log_file = Path(file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: LoggingConfig, force: bool = False) -> None:
    root = logging.getLogger("minipsqld")
    if getattr(root, "_minipsqld_configured", False) and not force:
        return

    formatter = ECSJsonFormatter(service_name=config.service_name)
    root.setLevel(config.level)
    for existing in list(root.handlers):
        existing.close()
    root.handlers.clear()
    root.addHandler(_sink_handler(config, formatter))
    root.propagate = False
    setattr(root, "_minipsqld_configured", True)


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if name.startswith("minipsqld"):
        parent = logging.getLogger("minipsqld")
        if parent.handlers:
            logger.setLevel(level)
            logger.propagate = True
            return logger

    handler = logging.StreamHandler()
    handler.setFormatter(ECSJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


@dataclass(slots=True)
class EventLogger:
    logger: logging.Logger
    service_name: str = "minipsqld"

    def emit(
        self,
        *,
        message: str,
        action: str,
        session_id: str | None = None,
        source_ip: str | None = None,
        source_port: int | None = None,
        outcome: str | None = None,
        event_type: str | None = None,
        payload: dict[str, object] | None = None,
        level: str = "INFO",
    ) -> None:
        self.logger.log(
            getattr(logging, level.upper(), logging.INFO),
            message,
            extra={
                "service_name": self.service_name,
                "event_action": action,
                "event_category": "network",
                "event_type": event_type,
                "event_outcome": outcome,
                "session_id": session_id,
                "source_ip": source_ip,
                "source_port": source_port or None,
                "payload": payload or {},
            },
        )
