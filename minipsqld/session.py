"""Per-connection session lifecycle."""

from __future__ import annotations

from enum import Enum
import socket
import threading
from uuid import uuid4

from minipsqld.config.schema import ServerConfig
from minipsqld.core.logging import EventLogger
from minipsqld.protocol import codec
from minipsqld.protocol.dispatcher import DispatchOutcome, QueryDispatcher, QueryHandler
from minipsqld.protocol.errors import EndOfStream, FramingError, TransportError
from minipsqld.protocol.handshake import run_handshake


class SessionState(Enum):
    HANDSHAKING = "handshaking"
    READY = "ready"
    DISPATCHING = "dispatching"
    CLOSED = "closed"


class Session:
    """Owns one client connection from accept until close.

    The handshake runs once, then frames are read and dispatched until the
    client terminates, the stream ends, or a framing/transport error occurs.
    Every exit path closes the socket; errors never escape ``run``.
    """

    def __init__(
        self,
        conn: socket.socket,
        client_address: tuple[str, int],
        *,
        config: ServerConfig,
        handler: QueryHandler,
        event_logger: EventLogger,
    ) -> None:
        self.conn = conn
        self.config = config
        self.source_ip = str(client_address[0])
        self.source_port = int(client_address[1])
        self.session_id = f"pg-{self.source_ip}-{uuid4().hex[:12]}"
        self.state = SessionState.HANDSHAKING
        self._event_logger = event_logger
        self._dispatcher = QueryDispatcher(handler, record=self._record)
        self._close_lock = threading.Lock()

    def run(self) -> None:
        self.conn.settimeout(self.config.socket_timeout_seconds)
        self._record(action="connection_open", message="connection opened", event_type="access", outcome="success")
        try:
            self._serve()
        except EndOfStream:
            self._record(action="connection_close", message="connection closed by client", event_type="end")
        except FramingError as exc:
            self._record(
                action="framing_error",
                message="malformed frame, closing session",
                payload={"error": str(exc)},
                outcome="failure",
                level="WARNING",
            )
        except TransportError as exc:
            self._record(
                action="transport_error",
                message="connection error, closing session",
                payload={"error": str(exc)},
                outcome="failure",
                level="WARNING",
            )
        finally:
            self.close()

    def _serve(self) -> None:
        startup = run_handshake(self.conn, self.config)
        if startup.declined_requests:
            self._record(
                action="secure_channel_declined",
                message="secure channel request declined",
                payload={"count": startup.declined_requests},
            )
        self._record(
            action="handshake_complete",
            message="startup handshake complete",
            payload={
                "protocol_version": startup.protocol_version,
                "user": startup.parameters.get("user", ""),
                "database": startup.parameters.get("database", ""),
                "application_name": startup.parameters.get("application_name", ""),
            },
            outcome="success",
        )

        self._transition(SessionState.HANDSHAKING, SessionState.READY)
        while self.state is SessionState.READY:
            tag, payload = codec.read_frame(self.conn, max_message_size=self.config.max_message_size_bytes)
            if not self._transition(SessionState.READY, SessionState.DISPATCHING):
                return
            outcome = self._dispatcher.dispatch(self.conn, tag, payload)
            if outcome is DispatchOutcome.TERMINATE:
                return
            self._transition(SessionState.DISPATCHING, SessionState.READY)

    def _transition(self, expected: SessionState, target: SessionState) -> bool:
        with self._close_lock:
            if self.state is not expected:
                return False
            self.state = target
            return True

    def close(self) -> None:
        """Close the socket; safe to call from another thread to unblock reads."""
        with self._close_lock:
            if self.state is SessionState.CLOSED:
                return
            self.state = SessionState.CLOSED
        try:
            self.conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.conn.close()
        self._record(action="session_closed", message="session closed", event_type="end", level="DEBUG")

    def _record(
        self,
        *,
        action: str,
        message: str,
        payload: dict[str, object] | None = None,
        outcome: str | None = None,
        event_type: str | None = None,
        level: str = "INFO",
    ) -> None:
        self._event_logger.emit(
            message=message,
            action=action,
            session_id=self.session_id,
            source_ip=self.source_ip,
            source_port=self.source_port,
            outcome=outcome,
            event_type=event_type,
            payload=payload,
            level=level,
        )
