"""Prometheus metrics for the share service.

Usage::

    from buildshare.observability.metrics import SHARE_RESOLUTIONS_TOTAL

    SHARE_RESOLUTIONS_TOTAL.labels(outcome="resolved").inc()
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    generate_latest,
)

# ---------------------------------------------------------------------------
# Share access
# ---------------------------------------------------------------------------

SHARE_RESOLUTIONS_TOTAL = Counter(
    "share_resolutions_total",
    "Share resolution attempts by outcome (resolved or the denial code).",
    labelnames=["outcome"],
    registry=REGISTRY,
)

SHARE_COMMENTS_TOTAL = Counter(
    "share_comments_total",
    "Viewer comment submissions by outcome.",
    labelnames=["outcome"],
    registry=REGISTRY,
)

SHARE_VIEW_INCREMENT_FAILURES_TOTAL = Counter(
    "share_view_increment_failures_total",
    "View-count increments that failed to persist (access was still granted).",
    registry=REGISTRY,
)


def render_latest() -> tuple[bytes, str]:
    """Return (payload, content_type) for a /metrics response."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
