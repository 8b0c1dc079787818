from __future__ import annotations

import pytest

from app.monitoring.registry import MetricsRegistry


def test_counter_renders_labelled_samples():
    registry = MetricsRegistry()
    counter = registry.counter("events_total", "Events seen.", label_names=("event",))

    counter.labels("join").inc()
    counter.labels("join").inc(2)
    counter.labels('say "hi"').inc()

    output = registry.render()
    assert "# TYPE events_total counter" in output
    assert 'events_total{event="join"} 3' in output
    assert 'events_total{event="say \\"hi\\""} 1' in output
    assert counter.value("join") == 3


def test_gauge_supports_set_inc_and_dec():
    registry = MetricsRegistry()
    gauge = registry.gauge("connections", "Open connections.")

    gauge.set(5)
    gauge.inc()
    gauge.dec(2)

    assert gauge.value() == 4
    assert "connections 4" in registry.render()


def test_unset_metric_renders_zero():
    registry = MetricsRegistry()
    registry.gauge("idle", "Never touched.")

    assert "idle 0" in registry.render()


def test_counter_rejects_negative_increment_and_label_mismatch():
    registry = MetricsRegistry()
    counter = registry.counter("errors_total", "Errors.", label_names=("event",))

    with pytest.raises(ValueError):
        counter.labels("x").inc(-1)
    with pytest.raises(ValueError):
        counter.labels("x", "y")
    with pytest.raises(AttributeError):
        counter.labels("x").set(3)


def test_duplicate_registration_is_rejected():
    registry = MetricsRegistry()
    registry.counter("dup_total", "First.")

    with pytest.raises(ValueError):
        registry.gauge("dup_total", "Second.")
