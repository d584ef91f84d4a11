import pytest

from minipsqld.protocol import codec
from minipsqld.protocol.dispatcher import DispatchOutcome, QueryDispatcher
from minipsqld.protocol.errors import HandlerError


class _RecordingHandler:
    def __init__(self, result: object = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.queries: list[bytes] = []

    def __call__(self, query: bytes) -> object:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.result


def test_select_one_with_no_result_completes_ok(memory_transport) -> None:
    handler = _RecordingHandler()
    transport = memory_transport()
    outcome = QueryDispatcher(handler).dispatch(transport, b"Q", b"SELECT 1\x00")
    assert outcome is DispatchOutcome.CONTINUE
    assert handler.queries == [b"SELECT 1"]
    assert bytes(transport.sent) == bytes.fromhex("43 00000007 4f4b00 5a 00000005 49")


def test_handler_result_becomes_command_tag(memory_transport) -> None:
    transport = memory_transport()
    QueryDispatcher(_RecordingHandler(result=b"OK!!!")).dispatch(transport, b"Q", b"SELECT 1\x00")
    assert bytes(transport.sent) == codec.build_command_complete(b"OK!!!") + codec.READY_FOR_QUERY_IDLE


def test_text_result_is_utf8_encoded(memory_transport) -> None:
    transport = memory_transport()
    QueryDispatcher(_RecordingHandler(result="UPDATE 2")).dispatch(transport, b"Q", b"UPDATE t SET x = 1\x00")
    assert bytes(transport.sent).startswith(b"C\x00\x00\x00\x0dUPDATE 2\x00")


def test_query_without_terminator_is_passed_through(memory_transport) -> None:
    handler = _RecordingHandler()
    QueryDispatcher(handler).dispatch(memory_transport(), b"Q", b"SELECT 2")
    assert handler.queries == [b"SELECT 2"]


def test_handler_error_sends_error_response_then_ready(memory_transport) -> None:
    transport = memory_transport()
    handler = _RecordingHandler(error=HandlerError("relation \"missing\" does not exist", "42P01"))
    outcome = QueryDispatcher(handler).dispatch(transport, b"Q", b"SELECT * FROM missing\x00")
    assert outcome is DispatchOutcome.CONTINUE
    assert bytes(transport.sent) == (
        codec.build_error_response("relation \"missing\" does not exist", "42P01") + codec.READY_FOR_QUERY_IDLE
    )


def test_unexpected_handler_exception_is_internal_error(memory_transport) -> None:
    transport = memory_transport()
    QueryDispatcher(_RecordingHandler(error=ValueError("boom"))).dispatch(transport, b"Q", b"SELECT 1\x00")
    assert bytes(transport.sent) == codec.build_error_response("boom", "XX000") + codec.READY_FOR_QUERY_IDLE


def test_unsupported_result_type_is_reported_as_error(memory_transport) -> None:
    transport = memory_transport()
    QueryDispatcher(_RecordingHandler(result=42)).dispatch(transport, b"Q", b"SELECT 1\x00")
    tag, _payload = codec.read_frame(memory_transport(bytes(transport.sent)))
    assert tag == b"E"
    assert bytes(transport.sent).endswith(codec.READY_FOR_QUERY_IDLE)


def test_session_remains_usable_after_handler_error(memory_transport) -> None:
    transport = memory_transport()
    handler = _RecordingHandler(error=HandlerError("first fails"))
    dispatcher = QueryDispatcher(handler)
    dispatcher.dispatch(transport, b"Q", b"SELECT 1\x00")
    handler.error = None
    transport.sent.clear()
    assert dispatcher.dispatch(transport, b"Q", b"SELECT 1\x00") is DispatchOutcome.CONTINUE
    assert bytes(transport.sent) == codec.build_command_complete(b"OK") + codec.READY_FOR_QUERY_IDLE


def test_terminate_writes_nothing(memory_transport) -> None:
    transport = memory_transport()
    handler = _RecordingHandler()
    assert QueryDispatcher(handler).dispatch(transport, b"X", b"") is DispatchOutcome.TERMINATE
    assert bytes(transport.sent) == b""
    assert handler.queries == []


@pytest.mark.parametrize("tag", [b"P", b"B", b"E", b"S", b"H", b"p", b"\x00"])
def test_unsupported_messages_are_ignored(memory_transport, tag: bytes) -> None:
    transport = memory_transport()
    handler = _RecordingHandler()
    assert QueryDispatcher(handler).dispatch(transport, tag, b"anything\x00") is DispatchOutcome.CONTINUE
    assert bytes(transport.sent) == b""
    assert handler.queries == []


def test_dispatch_records_events() -> None:
    events: list[dict[str, object]] = []
    dispatcher = QueryDispatcher(_RecordingHandler(error=HandlerError("nope")), record=lambda **kw: events.append(kw))

    class _Sink:
        def sendall(self, data: bytes) -> None:
            return None

    dispatcher.dispatch(_Sink(), b"Q", b"SELECT 1\x00")  # type: ignore[arg-type]
    dispatcher.dispatch(_Sink(), b"X", b"")  # type: ignore[arg-type]
    assert [event["action"] for event in events] == ["query_error", "terminate"]
    assert events[0]["payload"] == {"query": "SELECT 1", "sqlstate": "XX000", "error": "nope"}


def test_unencodable_error_message_still_answers(memory_transport) -> None:
    def _handler(query: bytes) -> bytes:
        raise ValueError("bad token " + query.decode("utf-8", errors="surrogateescape"))

    transport = memory_transport()
    outcome = QueryDispatcher(_handler).dispatch(transport, b"Q", b"SELECT \xff\x00")
    assert outcome is DispatchOutcome.CONTINUE
    sent = bytes(transport.sent)
    assert sent.endswith(codec.READY_FOR_QUERY_IDLE)
    tag, payload = codec.read_frame(memory_transport(sent))
    assert tag == b"E"
    assert b"Mbad token SELECT ?\x00" in payload


def test_unencodable_text_result_still_completes(memory_transport) -> None:
    transport = memory_transport()
    handler = _RecordingHandler(result=b"SELECT \xff".decode("utf-8", errors="surrogateescape"))
    QueryDispatcher(handler).dispatch(transport, b"Q", b"SELECT 1\x00")
    assert bytes(transport.sent) == codec.build_command_complete(b"SELECT ?") + codec.READY_FOR_QUERY_IDLE


def test_nul_in_result_does_not_split_command_tag(memory_transport) -> None:
    transport = memory_transport()
    QueryDispatcher(_RecordingHandler(result=b"INSERT\x00 0 1")).dispatch(transport, b"Q", b"INSERT\x00")
    assert bytes(transport.sent) == b"C\x00\x00\x00\x0fINSERT 0 1\x00" + codec.READY_FOR_QUERY_IDLE
