from __future__ import annotations

import socket

import pytest


class MemoryTransport:
    """In-memory stand-in for a connected socket.

    ``chunk_size`` caps how many bytes a single ``recv`` returns so short
    reads can be exercised; ``error`` is raised once the inbound bytes run out.
    """

    def __init__(self, inbound: bytes = b"", *, chunk_size: int | None = None, error: OSError | None = None) -> None:
        self._inbound = bytearray(inbound)
        self.chunk_size = chunk_size
        self.error = error
        self.sent = bytearray()
        self.recv_calls = 0

    @property
    def remaining(self) -> int:
        return len(self._inbound)

    def recv(self, bufsize: int) -> bytes:
        self.recv_calls += 1
        if not self._inbound and self.error is not None:
            raise self.error
        size = bufsize if self.chunk_size is None else min(bufsize, self.chunk_size)
        chunk = bytes(self._inbound[:size])
        del self._inbound[:size]
        return chunk

    def sendall(self, data: bytes) -> None:
        self.sent.extend(data)


class StubEventLogger:
    def __init__(self) -> None:
        self.emits: list[dict[str, object]] = []

    def emit(self, **kwargs: object) -> None:
        self.emits.append(kwargs)

    def actions(self) -> list[object]:
        return [item["action"] for item in self.emits]


@pytest.fixture
def memory_transport() -> type[MemoryTransport]:
    return MemoryTransport


@pytest.fixture
def event_logger() -> StubEventLogger:
    return StubEventLogger()


@pytest.fixture
def socket_pair():
    server_side, client_side = socket.socketpair()
    server_side.settimeout(2.0)
    client_side.settimeout(2.0)
    try:
        yield server_side, client_side
    finally:
        server_side.close()
        client_side.close()
