"""Post-handshake frame routing."""

from __future__ import annotations

from enum import Enum
from typing import Callable

from minipsqld.protocol import codec
from minipsqld.protocol.errors import HandlerError
from minipsqld.protocol.transport import Transport


QueryHandler = Callable[[bytes], bytes | str | None]
EventRecorder = Callable[..., None]

DEFAULT_COMMAND_TAG = b"OK"


class DispatchOutcome(Enum):
    CONTINUE = "continue"
    TERMINATE = "terminate"


class QueryDispatcher:
    """Turns one inbound frame into zero or more outbound frames.

    Only simple queries (``Q``) and Terminate (``X``) are acted on; every other
    message type is discarded without a reply.
    """

    def __init__(self, handler: QueryHandler, record: EventRecorder | None = None) -> None:
        self.handler = handler
        self._record = record

    def dispatch(self, transport: Transport, tag: bytes, payload: bytes) -> DispatchOutcome:
        if tag == codec.TAG_TERMINATE:
            self._emit("terminate", "terminate received")
            return DispatchOutcome.TERMINATE
        if tag == codec.TAG_QUERY:
            self._simple_query(transport, payload)
            return DispatchOutcome.CONTINUE
        self._emit(
            "message_ignored",
            "unsupported message ignored",
            payload={"message_type": tag.decode("latin-1")},
            level="DEBUG",
        )
        return DispatchOutcome.CONTINUE

    def _simple_query(self, transport: Transport, payload: bytes) -> None:
        query = payload[:-1] if payload.endswith(b"\x00") else payload
        query_text = query.decode("utf-8", errors="replace")
        try:
            result = self.invoke(query)
        except HandlerError as exc:
            self._emit(
                "query_error",
                "query handler failed",
                payload={"query": query_text, "sqlstate": exc.sqlstate, "error": exc.message},
                outcome="failure",
                level="WARNING",
            )
            codec.write_error_response(transport, exc.message, exc.sqlstate)
        else:
            self._emit("query", "query handled", payload={"query": query_text}, outcome="success")
            codec.write_command_complete(transport, DEFAULT_COMMAND_TAG if result is None else result)
        codec.write_ready_for_query(transport)

    def invoke(self, query: bytes) -> bytes | None:
        """Call the handler, normalising its result and wrapping its failures."""
        try:
            result = self.handler(query)
        except HandlerError:
            raise
        except Exception as exc:
            raise HandlerError(str(exc) or type(exc).__name__) from exc
        if result is None:
            return None
        if isinstance(result, str):
            return result.encode("utf-8", errors="replace")
        if isinstance(result, (bytes, bytearray)):
            return bytes(result)
        raise HandlerError(f"query handler returned unsupported type {type(result).__name__}")

    def _emit(self, action: str, message: str, **kwargs: object) -> None:
        if self._record is not None:
            self._record(action=action, message=message, **kwargs)
