"""Listener that runs one session thread per accepted connection."""

from __future__ import annotations

import socket
import socketserver
import threading
from typing import Any, Iterable

from minipsqld.config.options import ServerOption, apply_options
from minipsqld.config.schema import ServerConfig
from minipsqld.core.logging import EventLogger, get_logger
from minipsqld.protocol.dispatcher import QueryHandler
from minipsqld.protocol.errors import ListenerError
from minipsqld.session import Session


class _ThreadingTCPServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(
        self,
        *args: Any,
        max_concurrent_connections: int = 256,
        on_reject: Any = None,
        **kwargs: Any,
    ) -> None:
        self._connection_slots = threading.BoundedSemaphore(max(1, int(max_concurrent_connections)))
        self._on_reject = on_reject
        super().__init__(*args, **kwargs)

    def process_request(self, request: Any, client_address: Any) -> None:
        if not self._connection_slots.acquire(blocking=False):
            try:
                request.close()
            except OSError:
                pass
            if self._on_reject is not None:
                self._on_reject(client_address)
            return
        try:
            super().process_request(request, client_address)
        except Exception:
            self._connection_slots.release()
            raise

    def process_request_thread(self, request: Any, client_address: Any) -> None:
        try:
            super().process_request_thread(request, client_address)
        finally:
            self._connection_slots.release()


class Server:
    """PostgreSQL wire-protocol test double.

    ``options`` are applied in order over ``config`` before anything binds, so
    the effective configuration is fixed for the lifetime of the server.
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        query_handler: QueryHandler | None = None,
        options: Iterable[ServerOption] = (),
    ) -> None:
        self.config = apply_options(config or ServerConfig(), options)
        self.logger = get_logger("minipsqld.server")
        self.event_logger = EventLogger(logger=get_logger("minipsqld.session"))
        self.running = False
        self._query_handler = query_handler
        self._server: _ThreadingTCPServer | None = None
        self._thread: threading.Thread | None = None
        self._bound_host: str | None = None
        self._bound_port: int | None = None
        self._sessions: set[Session] = set()
        self._sessions_lock = threading.Lock()
        self._stopping = False

    @property
    def query_handler(self) -> QueryHandler | None:
        return self._query_handler

    def register_handler(self, handler: QueryHandler) -> None:
        if self.running:
            raise RuntimeError("cannot replace the query handler while the server is running")
        self._query_handler = handler

    @property
    def bound_endpoint(self) -> tuple[str, int] | None:
        if self._bound_host is None or self._bound_port is None:
            return None
        return (self._bound_host, self._bound_port)

    def start(self) -> None:
        if self.running:
            return
        if self._query_handler is None:
            raise ListenerError("query handler is not registered")
        with self._sessions_lock:
            self._stopping = False
        host = self.config.listen_host
        try:
            self._server = _ThreadingTCPServer(
                (host, self.config.port),
                self._build_handler(),
                max_concurrent_connections=self.config.max_concurrent_connections,
                on_reject=self._record_rejection,
            )
        except OSError as exc:
            raise ListenerError(f"failed to listen on {host}:{self.config.port}: {exc}") from exc
        self._bound_host = host
        self._bound_port = int(self._server.server_address[1])
        self._thread = threading.Thread(target=self._server.serve_forever, name="minipsqld-acceptor", daemon=True)
        self._thread.start()
        self.running = True
        self.event_logger.emit(
            message="server started",
            action="service_start",
            event_type="start",
            payload={
                "host": self._bound_host,
                "port": self._bound_port,
                "server_version": self.config.server_version,
                "time_zone": self.config.time_zone,
            },
        )

    def stop(self) -> None:
        with self._sessions_lock:
            self._stopping = True
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        self._thread = None
        with self._sessions_lock:
            sessions = list(self._sessions)
        for session in sessions:
            session.close()
        was_running = self.running
        self.running = False
        self._bound_host = None
        self._bound_port = None
        if was_running:
            self.event_logger.emit(message="server stopped", action="service_stop", event_type="end")

    def status(self) -> dict[str, Any]:
        with self._sessions_lock:
            active_sessions = len(self._sessions)
        endpoint = self.bound_endpoint
        return {
            "running": self.running,
            "host": endpoint[0] if endpoint else None,
            "port": endpoint[1] if endpoint else None,
            "server_version": self.config.server_version,
            "time_zone": self.config.time_zone,
            "active_sessions": active_sessions,
            "max_concurrent_connections": self.config.max_concurrent_connections,
        }

    def _build_handler(self) -> type[socketserver.BaseRequestHandler]:
        server = self

        class PostgresHandler(socketserver.BaseRequestHandler):
            def handle(self) -> None:
                server._handle_client(self.request, self.client_address)

        return PostgresHandler

    def _handle_client(self, conn: socket.socket, client_address: tuple[str, int]) -> None:
        handler = self._query_handler
        if handler is None:
            conn.close()
            return
        session = Session(
            conn,
            client_address,
            config=self.config,
            handler=handler,
            event_logger=self.event_logger,
        )
        with self._sessions_lock:
            if self._stopping:
                conn.close()
                return
            self._sessions.add(session)
        try:
            session.run()
        finally:
            with self._sessions_lock:
                self._sessions.discard(session)

    def _record_rejection(self, client_address: tuple[str, int]) -> None:
        self.event_logger.emit(
            message="connection rejected, too many concurrent sessions",
            action="connection_rejected",
            source_ip=str(client_address[0]),
            source_port=int(client_address[1]),
            outcome="failure",
            level="WARNING",
        )
