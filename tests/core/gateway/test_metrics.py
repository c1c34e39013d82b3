"""Unit tests for gateway metrics: MeterCounter, MetricsSink."""

import threading

from openapi_glue.core.gateway.metrics import Counter, MeterCounter, MetricsSink


def test_meter_counter_mark() -> None:
    c = MeterCounter("x")
    c.mark()
    c.mark(4)
    assert c.count == 5
    assert isinstance(c, Counter)


def test_meter_counter_threads() -> None:
    c = MeterCounter()

    def _work() -> None:
        for _ in range(1000):
            c.mark()

    threads = [threading.Thread(target=_work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert c.count == 8000


def test_sink_mapping() -> None:
    sink = MetricsSink.for_operations(["getWidget", "WidgetList"])
    assert set(sink) == {"getWidget_total", "WidgetList_total"}
    assert len(sink) == 2
    assert sink.suffix == {"total": "_total"}


def test_mark_total_only_known_counters() -> None:
    sink = MetricsSink.for_operations(["getWidget"], suffix={"total": ".count"})
    marked = sink.mark_total("getWidget", "WidgetList")
    assert marked == ["getWidget.count"]
    assert sink["getWidget.count"].count == 1  # type: ignore[attr-defined]


def test_mark_total_same_name_once() -> None:
    sink = MetricsSink.for_operations(["getWidget"])
    sink.mark_total("getWidget", "getWidget")
    assert sink["getWidget_total"].count == 1  # type: ignore[attr-defined]


def test_custom_counter() -> None:
    class Recorder:
        def __init__(self) -> None:
            self.calls = 0

        def mark(self, n: int = 1) -> None:
            self.calls += n

    r = Recorder()
    sink = MetricsSink({"op_total": r})
    sink.mark_total("op")
    assert r.calls == 1
