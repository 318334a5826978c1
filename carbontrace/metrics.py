# -*- coding: utf-8 -*-
"""
Prometheus Metrics - carbontrace

Metrics for the carbon aggregation and simulation engine. Recording is a
no-op when ``enable_metrics`` is switched off in the configuration.

Metrics:
    1. ct_tree_edits_total (Counter, labels: operation)
    2. ct_footprint_mismatches_total (Counter, labels: view)
    3. ct_tokens_total (Counter, labels: direction)
    4. ct_corrupt_tokens_total (Counter, labels: stage)
    5. ct_token_size_bytes (Histogram)
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Histogram

from carbontrace.config import get_config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Tree edits by operation
ct_tree_edits_total = Counter(
    "ct_tree_edits_total",
    "Total edit operations applied to carbon trees",
    labelnames=["operation"],
)

# 2. Declared/aggregate CO2eq mismatches by view
ct_footprint_mismatches_total = Counter(
    "ct_footprint_mismatches_total",
    "Total declared footprints lower than the sum of their components",
    labelnames=["view"],
)

# 3. Simulation tokens encoded/decoded
ct_tokens_total = Counter(
    "ct_tokens_total",
    "Total simulation tokens processed",
    labelnames=["direction"],
)

# 4. Corrupt simulation tokens by failing stage
ct_corrupt_tokens_total = Counter(
    "ct_corrupt_tokens_total",
    "Total simulation tokens that could not be decoded",
    labelnames=["stage"],
)

# 5. Size of produced tokens
ct_token_size_bytes = Histogram(
    "ct_token_size_bytes",
    "Length of encoded simulation tokens",
    buckets=(64, 256, 1024, 4096, 16384, 65536, 262144),
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_edit(operation: str) -> None:
    """Record one edit operation (add, delete, reset, swap, modify, bulk_count)."""
    if not get_config().enable_metrics:
        return
    ct_tree_edits_total.labels(operation=operation).inc()


def record_mismatch(view: str) -> None:
    """Record a declared/aggregate mismatch in the ``original`` or ``current`` view."""
    if not get_config().enable_metrics:
        return
    ct_footprint_mismatches_total.labels(view=view).inc()


def record_token(direction: str, size: int) -> None:
    """Record an encoded (``direction="encode"``) or decoded token."""
    if not get_config().enable_metrics:
        return
    ct_tokens_total.labels(direction=direction).inc()
    if direction == "encode":
        ct_token_size_bytes.observe(size)


def record_corrupt_token(stage: str) -> None:
    """Record a token that failed to decode at ``stage``."""
    if not get_config().enable_metrics:
        return
    ct_corrupt_tokens_total.labels(stage=stage).inc()


__all__ = [
    "ct_tree_edits_total",
    "ct_footprint_mismatches_total",
    "ct_tokens_total",
    "ct_corrupt_tokens_total",
    "ct_token_size_bytes",
    "record_edit",
    "record_mismatch",
    "record_token",
    "record_corrupt_token",
]
