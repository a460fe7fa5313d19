import io
import json
import logging
import threading

from zolastreams.eventlog import (
    BusinessEventLogger,
    CorrelationId,
    LogContext,
    StructuredLogEntry,
    StructuredLoggingLayer,
    get_business_logger,
    log_dex_trade,
    log_error,
    log_performance,
)

LOGGER_NAME = "zolastreams.eventlog"


def test_correlation_id():
    id1 = CorrelationId()
    id2 = CorrelationId.from_string("test-123")
    assert id1.as_str() != ""
    assert id2.as_str() == "test-123"
    assert id1.as_str() != id2.as_str()
    assert str(id2) == "test-123"


def test_log_context():
    context = (
        LogContext()
        .with_correlation_id(CorrelationId.from_string("test-123"))
        .with_component("test_component")
        .with_field("custom_field", "value")
        .with_user_id("user-456")
    )
    assert context.correlation_id.as_str() == "test-123"
    assert context.component == "test_component"
    assert context.user_id == "user-456"
    assert context.fields.get("custom_field") == "value"


def test_log_context_builders_do_not_mutate_original():
    base = LogContext()
    derived = base.with_field("a", 1).with_request_id("req-1")
    assert base.fields == {}
    assert base.request_id is None
    assert derived.request_id == "req-1"
    assert derived.fields == {"a": 1}


def test_log_context_to_dict():
    context = LogContext().with_correlation_id(CorrelationId.from_string("abc")).with_component("c")
    assert context.to_dict() == {
        "correlation_id": "abc",
        "user_id": None,
        "request_id": None,
        "component": "c",
        "fields": {},
    }


def test_structured_log_entry_serialization():
    entry = StructuredLogEntry(
        timestamp="2023-01-01T00:00:00Z",
        level="INFO",
        message="Test message",
        module="test::module",
        location="test.rs:42",
        context=LogContext().with_component("test"),
        fields={},
    )
    text = entry.to_json()
    assert "Test message" in text
    assert "INFO" in text
    assert "test::module" in text
    assert json.loads(text)["context"]["component"] == "test"


def test_layer_context_default_and_set():
    layer = StructuredLoggingLayer(io.StringIO())
    assert layer.get_context() == LogContext()
    layer.set_context(LogContext().with_component("x"))
    assert layer.get_context().component == "x"


def test_layer_context_is_per_thread():
    layer = StructuredLoggingLayer(io.StringIO())
    layer.set_context(LogContext().with_component("main"))
    seen = []

    def worker():
        seen.append(layer.get_context().component)

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join()
    assert seen == [None]
    assert layer.get_context().component == "main"


def test_layer_emits_json_line():
    stream = io.StringIO()
    layer = StructuredLoggingLayer(stream)
    log = logging.getLogger("zolastreams.tests.emit")
    log.setLevel(logging.DEBUG)
    log.propagate = False
    log.addHandler(layer)
    try:
        log.warning(
            "hello %s",
            "world",
            extra={"count": 3, "ratio": 1.5, "flag": True, "label": "x", "items": [1]},
        )
    finally:
        log.removeHandler(layer)
    data = json.loads(stream.getvalue().strip())
    assert data["message"] == "hello world"
    assert data["level"] == "WARN"
    assert data["module"] == "zolastreams.tests.emit"
    assert data["location"].endswith(".py:" + data["location"].rsplit(":", 1)[1])
    assert data["fields"] == {
        "count": 3,
        "ratio": 1.5,
        "flag": True,
        "label": "x",
        "items": "[1]",
    }


def test_layer_drops_non_finite_floats():
    stream = io.StringIO()
    layer = StructuredLoggingLayer(stream)
    log = logging.getLogger("zolastreams.tests.nan")
    log.setLevel(logging.DEBUG)
    log.propagate = False
    log.addHandler(layer)
    try:
        log.info("nan", extra={"bad": float("nan"), "good": 2.0})
    finally:
        log.removeHandler(layer)
    data = json.loads(stream.getvalue().strip())
    assert data["fields"] == {"good": 2.0}
    assert data["level"] == "INFO"


def test_business_event_logger_dex_trade(caplog):
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    business = BusinessEventLogger()
    correlation_id = CorrelationId()
    business.log_dex_trade("raydium", "SOL/USDC", 1000.0, 100.0, correlation_id)
    context = business.layer.get_context()
    assert context.component == "dex_processor"
    assert context.fields["event_type"] == "dex_trade"
    assert context.fields["trading_pair"] == "SOL/USDC"
    assert context.fields["volume_usd"] == 1000.0
    assert context.correlation_id == correlation_id
    record = caplog.records[-1]
    assert record.getMessage() == "DEX trade processed"
    assert record.levelno == logging.INFO
    assert record.program_id == "raydium"


def test_business_event_logger_error(caplog):
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    business = BusinessEventLogger()
    business.log_error(
        "kafka_consumer", "connection_error", "Failed to connect to broker", None
    )
    context = business.layer.get_context()
    assert context.component == "kafka_consumer"
    assert context.fields["error_type"] == "connection_error"
    assert context.correlation_id is None
    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert record.getMessage() == "Error occurred"


def test_business_event_logger_performance_levels(caplog):
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    business = BusinessEventLogger()
    business.log_performance("message_processing", 15.5, True, CorrelationId())
    assert caplog.records[-1].levelno == logging.INFO
    business.log_performance("message_processing", 15.5, False)
    assert caplog.records[-1].levelno == logging.WARNING
    context = business.layer.get_context()
    assert context.fields["success"] is False
    assert context.fields["duration_ms"] == 15.5


def test_global_logger_functions(caplog):
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    assert get_business_logger() is get_business_logger()
    log_dex_trade("orca", "ETH/SOL", 10.0, 2.0)
    assert get_business_logger().layer.get_context().fields["program_id"] == "orca"
    log_error("comp", "kind", "msg")
    assert get_business_logger().layer.get_context().component == "comp"
    log_performance("op", 1.0, True)
    assert get_business_logger().layer.get_context().fields["operation"] == "op"
    messages = [r.getMessage() for r in caplog.records]
    assert messages[-3:] == ["DEX trade processed", "Error occurred", "Operation completed"]