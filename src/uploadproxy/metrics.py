"""Prometheus metrics definitions for the upload proxy.

Custom metrics use the ``uploadproxy_`` prefix. HTTP-level metrics (request
count, duration, sizes) come from ``prometheus-fastapi-instrumentator``.

Counters reset to zero on restart.
"""

from __future__ import annotations

from prometheus_client import Counter

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Upload outcome counter  (labels: outcome)
# ---------------------------------------------------------------------------
uploads_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_forwarded_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Called once when metrics are enabled. When metrics are disabled the
    module-level references stay ``None`` and nothing is registered in the
    global registry.
    """
    global _initialized
    global uploads_total, bytes_forwarded_total

    if _initialized:
        return

    uploads_total = Counter(
        "uploadproxy_uploads_total",
        "Total upload requests by outcome",
        ["outcome"],
    )

    bytes_forwarded_total = Counter(
        "uploadproxy_bytes_forwarded_total",
        "Total payload bytes forwarded to the storage backend",
    )

    _initialized = True


def record_outcome(outcome: str, forwarded_bytes: int = 0) -> None:
    """Count one finished upload request. No-op when metrics are disabled."""
    if uploads_total is not None:
        uploads_total.labels(outcome=outcome).inc()
    if forwarded_bytes and bytes_forwarded_total is not None:
        bytes_forwarded_total.inc(forwarded_bytes)
