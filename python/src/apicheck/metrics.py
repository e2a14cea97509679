"""Prometheus metrics definitions for apicheck.

Application-level metrics use the ``apicheck_`` prefix.  HTTP-level
metrics (request count, duration, sizes) come from
``prometheus-fastapi-instrumentator`` under the same namespace.

Counters reset to zero on restart.
"""

from __future__ import annotations

from prometheus_client import Counter

_initialized: bool = False

# Record lookups by outcome: found, not_found, invalid_id
record_lookups_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Safe to call more than once; collectors are registered in the global
    registry only on the first call.  When metrics are disabled the
    module-level references stay ``None``.
    """
    global _initialized, record_lookups_total

    if _initialized:
        return

    record_lookups_total = Counter(
        "apicheck_record_lookups_total",
        "Total get-record lookups by outcome",
        ["outcome"],
    )

    _initialized = True


def observe_record_lookup(outcome: str) -> None:
    """Increment the record lookup counter if metrics are enabled."""
    if record_lookups_total is not None:
        record_lookups_total.labels(outcome=outcome).inc()
