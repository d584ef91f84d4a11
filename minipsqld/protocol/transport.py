"""Exact-length reads over a stream socket."""

from __future__ import annotations

from typing import Protocol

from minipsqld.protocol.errors import EndOfStream, TransportError, TruncatedStream


class Transport(Protocol):
    def recv(self, bufsize: int, /) -> bytes: ...

    def sendall(self, data: bytes, /) -> None: ...


def read_exactly(transport: Transport, size: int) -> bytes:
    """Read exactly ``size`` bytes, retrying short reads until satisfied.

    Raises ``EndOfStream`` if the stream ends before any byte arrives,
    ``TruncatedStream`` if it ends after a partial read, and ``TransportError``
    for any socket failure, including timeouts.
    """
    if size <= 0:
        return b""
    chunks = bytearray()
    while len(chunks) < size:
        try:
            chunk = transport.recv(size - len(chunks))
        except OSError as exc:
            raise TransportError(f"error reading from connection: {exc}") from exc
        if not chunk:
            if not chunks:
                raise EndOfStream("connection closed by peer")
            raise TruncatedStream(f"stream ended after {len(chunks)} of {size} bytes")
        chunks.extend(chunk)
    return bytes(chunks)


def write_all(transport: Transport, data: bytes) -> None:
    try:
        transport.sendall(data)
    except OSError as exc:
        raise TransportError(f"error writing to connection: {exc}") from exc
