"""Prometheus metrics instrumentation for NoteX."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, generate_latest

note_mutations_total = Counter(
    "notex_note_mutations_total",
    "Note mutations grouped by operation and outcome",
    labelnames=("operation", "result"),
)

change_events_published_total = Counter(
    "notex_change_events_published_total",
    "Change events handed to the broadcast registry",
    labelnames=("type",),
)

change_event_deliveries_total = Counter(
    "notex_change_event_deliveries_total",
    "Per-subscriber deliveries grouped by result",
    labelnames=("result",),
)

subscriber_evictions_total = Counter(
    "notex_subscriber_evictions_total",
    "Subscribers removed by the registry",
    labelnames=("reason",),
)

active_subscribers_gauge = Gauge(
    "notex_active_subscribers",
    "Currently registered change-stream subscribers",
)


def record_mutation(operation: str, result: str) -> None:
    note_mutations_total.labels(operation=operation, result=result).inc()


def record_event_published(event_type: str) -> None:
    change_events_published_total.labels(type=event_type).inc()


def record_deliveries(delivered: int, failed: int = 0) -> None:
    if delivered:
        change_event_deliveries_total.labels(result="delivered").inc(delivered)
    if failed:
        change_event_deliveries_total.labels(result="failed").inc(failed)


def record_eviction(reason: str) -> None:
    subscriber_evictions_total.labels(reason=reason).inc()


def set_active_subscribers(count: int) -> None:
    active_subscribers_gauge.set(count)


def latest_metrics() -> bytes:
    return generate_latest()


__all__ = [
    "record_mutation",
    "record_event_published",
    "record_deliveries",
    "record_eviction",
    "set_active_subscribers",
    "latest_metrics",
]
