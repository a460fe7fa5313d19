import time

import pytest

from zolastreams.timing import (
    MetricsSink,
    Timer,
    default_sink,
    record_batch_processed,
    record_dex_trade,
    record_event_processed,
)


@pytest.fixture(autouse=True)
def clean_sink():
    default_sink().reset()
    yield
    default_sink().reset()


def test_timer_records_duration_on_exit():
    with Timer("test_operation_scope") as timer:
        time.sleep(0.001)
    samples = default_sink().histograms["bitquery_sdk_test_operation_scope_duration_seconds"]
    assert len(samples) == 1
    assert 0 < samples[0] <= timer.elapsed()


def test_timer_elapsed_grows():
    timer = Timer("growth")
    first = timer.elapsed()
    time.sleep(0.001)
    assert timer.elapsed() > first


def test_record_event_processed():
    record_event_processed("sample_event", True)
    record_event_processed("another_sample_event", False)
    record_event_processed("sample_event", True)
    counters = default_sink().counters
    name = "bitquery_sdk_events_processed_total"
    assert counters[(name, (("status", "success"), ("type", "sample_event")))] == 2
    assert counters[(name, (("status", "failure"), ("type", "another_sample_event")))] == 1


def test_record_batch_processed():
    record_batch_processed(150, 75.5)
    record_batch_processed(0, 0.1)
    histograms = default_sink().histograms
    assert histograms["bitquery_sdk_batch_size"] == [150.0, 0.0]
    assert histograms["bitquery_sdk_batch_duration_ms"] == [75.5, 0.1]


def test_record_dex_trade():
    record_dex_trade("binance", "BTC/USD", 50000.0, 100, "trade_topic", 0)
    record_dex_trade("coinbase", "ETH/USD", 2500.0, 50, "trade_topic", 1)
    sink = default_sink()
    assert sink.counters[
        ("dex_trades_processed_total", (("exchange", "binance"), ("token_pair", "BTC/USD")))
    ] == 1
    assert sink.histograms["trade_value_usd"] == [50000.0, 2500.0]
    assert sink.gauges[("kafka_consumer_lag", (("partition", "0"), ("topic", "trade_topic")))] == 100.0
    assert sink.gauges[("kafka_consumer_lag", (("partition", "1"), ("topic", "trade_topic")))] == 50.0


def test_sink_reset_clears_everything():
    sink = MetricsSink()
    sink.increment("c", 3)
    sink.observe("h", 1.5)
    sink.set_gauge("g", 7, {"a": "b"})
    assert sink.counters[("c", ())] == 3
    sink.reset()
    assert (sink.counters, sink.histograms, sink.gauges) == ({}, {}, {})


def test_gauge_overwrites_previous_value():
    sink = MetricsSink()
    sink.set_gauge("g", 1)
    sink.set_gauge("g", 2)
    assert sink.gauges == {("g", ()): 2.0}