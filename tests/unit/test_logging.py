import json
import logging

from minipsqld.config.schema import LoggingConfig
from minipsqld.core.logging import ECSJsonFormatter, EventLogger, configure_logging, get_logger


def test_ecs_log_output_to_file(tmp_path) -> None:
    log_file = tmp_path / "events.log"
    config = LoggingConfig(
        level="INFO",
        fmt="ecs_json",
        sink="file",
        file_path=str(log_file),
        service_name="minipsqld-test",
    )
    configure_logging(config, force=True)
    emitter = EventLogger(
        logger=get_logger("minipsqld.test.logging"),
        service_name="minipsqld-test",
    )
    emitter.emit(
        message="query handled",
        action="query",
        session_id="pg-10.0.0.5-abc",
        source_ip="10.0.0.5",
        source_port=55670,
        outcome="success",
        payload={"query": "SELECT 1"},
    )

    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines() if line.strip()]
    record = [item for item in records if item["log"]["logger"] == "minipsqld.test.logging"][-1]
    assert record["@timestamp"]
    assert record["service"]["name"] == "minipsqld-test"
    assert record["event"]["action"] == "query"
    assert record["event"]["outcome"] == "success"
    assert record["session"]["id"] == "pg-10.0.0.5-abc"
    assert record["source"]["ip"] == "10.0.0.5"
    assert record["source"]["port"] == 55670
    assert record["minipsqld"]["payload"] == {"query": "SELECT 1"}


def test_debug_events_are_filtered_at_info(tmp_path) -> None:
    log_file = tmp_path / "filtered.log"
    configure_logging(LoggingConfig(level="INFO", sink="file", file_path=str(log_file)), force=True)
    emitter = EventLogger(logger=get_logger("minipsqld.test.filtered"))
    emitter.emit(message="noise", action="message_ignored", level="DEBUG")
    emitter.emit(message="signal", action="framing_error", level="WARNING")

    lines = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines() if line.strip()]
    lines = [line for line in lines if line["log"]["logger"] == "minipsqld.test.filtered"]
    assert [line["event"]["action"] for line in lines] == ["framing_error"]
    assert lines[0]["log"]["level"] == "warning"


def test_formatter_strips_empty_fields() -> None:
    record = logging.LogRecord("minipsqld.x", logging.INFO, __file__, 1, "hello", None, None)
    rendered = json.loads(ECSJsonFormatter().format(record))
    assert rendered["message"] == "hello"
    assert "session" not in rendered
    assert "source" not in rendered
    assert rendered["service"]["name"] == "minipsqld"
