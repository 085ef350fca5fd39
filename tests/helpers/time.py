"""Shared, deterministic timestamps for tests."""

from datetime import UTC, datetime


# Fixed reference time so recency and hour-of-day features are reproducible.
# 14:00 UTC keeps same-day fixture visits in the same hour bucket.
FIXED_NOW = datetime(2024, 3, 12, 14, 0, 0, tzinfo=UTC)
