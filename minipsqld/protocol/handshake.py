"""Startup exchange for a newly accepted connection."""

from __future__ import annotations

from dataclasses import dataclass, field

from minipsqld.config.schema import ServerConfig
from minipsqld.protocol import codec
from minipsqld.protocol.errors import EndOfStream, FramingError, TruncatedStream
from minipsqld.protocol.transport import Transport, read_exactly


SSL_REQUEST_CODE = 80877103
GSSENC_REQUEST_CODE = 80877104
PROTOCOL_VERSION_3 = 196608

_SECURE_CHANNEL_CODES = frozenset({SSL_REQUEST_CODE, GSSENC_REQUEST_CODE})
_MIN_STARTUP_LENGTH = 8


@dataclass(slots=True)
class StartupPacket:
    protocol_version: int
    parameters: dict[str, str] = field(default_factory=dict)
    declined_requests: int = 0


def parameter_entries(config: ServerConfig) -> list[tuple[str, str]]:
    return [
        ("TimeZone", config.time_zone),
        ("server_version", config.server_version),
    ]


def read_startup_body(transport: Transport, *, max_message_size: int) -> bytes:
    header = read_exactly(transport, 4)
    length = codec.decode_length(header)
    if length < _MIN_STARTUP_LENGTH:
        raise FramingError(f"invalid startup packet length {length}")
    if length > max_message_size:
        raise FramingError(f"startup packet length {length} exceeds limit {max_message_size}")
    try:
        return read_exactly(transport, length - 4)
    except EndOfStream as exc:
        raise TruncatedStream("stream ended inside startup packet") from exc


def run_handshake(transport: Transport, config: ServerConfig) -> StartupPacket:
    """Consume the startup packet and emit the fixed backend greeting.

    Secure-channel requests are answered with ``N`` and the real startup
    packet that follows on the same stream is read in their place.
    """
    declined = 0
    while True:
        body = read_startup_body(transport, max_message_size=config.max_message_size_bytes)
        request_code = codec.decode_length(body[:4])
        if request_code not in _SECURE_CHANNEL_CODES:
            break
        codec.write_decline(transport)
        declined += 1

    codec.write_authentication_ok(transport)
    for name, value in parameter_entries(config):
        codec.write_parameter_status(transport, name, value)
    codec.write_ready_for_query(transport)
    return StartupPacket(
        protocol_version=request_code,
        parameters=parse_startup_params(body),
        declined_requests=declined,
    )


def parse_startup_params(body: bytes) -> dict[str, str]:
    params: dict[str, str] = {}
    parts = body[4:].split(b"\x00")
    for idx in range(0, len(parts) - 1, 2):
        key_raw = parts[idx]
        if not key_raw:
            break
        params[key_raw.decode("utf-8", errors="replace")] = parts[idx + 1].decode("utf-8", errors="replace")
    return params
