"""PostgreSQL v3 backend message framing."""

from __future__ import annotations

import struct

from minipsqld.protocol.errors import EndOfStream, FramingError, SQLSTATE_INTERNAL_ERROR, TruncatedStream
from minipsqld.protocol.transport import Transport, read_exactly, write_all


DEFAULT_MAX_MESSAGE_SIZE_BYTES = 1_048_576

TAG_AUTHENTICATION = b"R"
TAG_PARAMETER_STATUS = b"S"
TAG_READY_FOR_QUERY = b"Z"
TAG_COMMAND_COMPLETE = b"C"
TAG_ERROR_RESPONSE = b"E"
TAG_QUERY = b"Q"
TAG_TERMINATE = b"X"

STATUS_IDLE = b"I"
DECLINE = b"N"

_LENGTH = struct.Struct("!I")


def build_message(tag: bytes, payload: bytes) -> bytes:
    return tag + _LENGTH.pack(len(payload) + 4) + payload


def cstring(value: str | bytes) -> bytes:
    if isinstance(value, str):
        value = value.encode("utf-8", errors="replace")
    return bytes(value) + b"\x00"


AUTHENTICATION_OK = build_message(TAG_AUTHENTICATION, _LENGTH.pack(0))
READY_FOR_QUERY_IDLE = build_message(TAG_READY_FOR_QUERY, STATUS_IDLE)


def build_parameter_status(name: str, value: str) -> bytes:
    return build_message(TAG_PARAMETER_STATUS, cstring(name) + cstring(value))


def build_command_complete(tag: str | bytes) -> bytes:
    if isinstance(tag, str):
        tag = tag.replace("\x00", "")
    else:
        tag = bytes(tag).replace(b"\x00", b"")
    return build_message(TAG_COMMAND_COMPLETE, cstring(tag))


def build_error_response(message: str, sqlstate: str = SQLSTATE_INTERNAL_ERROR) -> bytes:
    payload = (
        b"S" + cstring("ERROR")
        + b"V" + cstring("ERROR")
        + b"C" + cstring(sqlstate)
        + b"M" + cstring(message.replace("\x00", ""))
        + b"\x00"
    )
    return build_message(TAG_ERROR_RESPONSE, payload)


def decode_length(raw: bytes) -> int:
    return _LENGTH.unpack(raw)[0]


def read_frame(
    transport: Transport,
    *,
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE_BYTES,
) -> tuple[bytes, bytes]:
    """Read one tagged frame and return ``(tag, payload)``.

    ``EndOfStream`` is only raised when the peer closes before the tag byte;
    a close anywhere after it is a ``TruncatedStream``.
    """
    tag = read_exactly(transport, 1)
    try:
        length = decode_length(read_exactly(transport, 4))
        if length < 4:
            raise FramingError(f"invalid message length {length}")
        if length > max_message_size:
            raise FramingError(f"message length {length} exceeds limit {max_message_size}")
        payload = read_exactly(transport, length - 4)
    except EndOfStream as exc:
        raise TruncatedStream(f"stream ended inside {tag!r} message") from exc
    return (tag, payload)


def write_authentication_ok(transport: Transport) -> None:
    write_all(transport, AUTHENTICATION_OK)


def write_ready_for_query(transport: Transport) -> None:
    write_all(transport, READY_FOR_QUERY_IDLE)


def write_parameter_status(transport: Transport, name: str, value: str) -> None:
    write_all(transport, build_parameter_status(name, value))


def write_command_complete(transport: Transport, tag: str | bytes) -> None:
    write_all(transport, build_command_complete(tag))


def write_error_response(transport: Transport, message: str, sqlstate: str = SQLSTATE_INTERNAL_ERROR) -> None:
    write_all(transport, build_error_response(message, sqlstate))


def write_decline(transport: Transport) -> None:
    write_all(transport, DECLINE)
