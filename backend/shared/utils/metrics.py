"""
Metrics for the match data worker.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
SOURCE_REQUESTS = Counter(
    "otr_source_requests_total",
    "Total external match source HTTP requests",
    ["endpoint", "status"],
)
MATCHES_PROCESSED = Counter(
    "otr_matches_processed_total",
    "Matches handled by the worker, by outcome",
    ["outcome"],
)
BEATMAPS_FETCHED = Counter(
    "otr_beatmaps_fetched_total",
    "Beatmap fetches issued by the deduplicator, by result",
    ["result"],
)
BEATMAPS_INSERTED = Counter(
    "otr_beatmaps_inserted_total",
    "Beatmaps inserted into the store",
)
AUTOMATION_REJECTIONS = Counter(
    "otr_automation_rejections_total",
    "Entities rejected by automation checks",
    ["entity", "reason"],
)

# ── Histograms ──────────────────────────────────────────────────────────
SOURCE_LATENCY = Histogram(
    "otr_source_latency_seconds",
    "External match source request latency in seconds",
    ["endpoint"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
MATCH_PROCESSING = Histogram(
    "otr_match_processing_seconds",
    "Time to fetch, materialize, check and persist a single match",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if labels:
            histogram.labels(**labels).observe(elapsed)
        else:
            histogram.observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
