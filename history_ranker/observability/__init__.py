"""Observability module for logging."""

from history_ranker.observability.logging import (
    bind_query_context,
    clear_query_context,
    configure_logging,
)


__all__ = [
    "bind_query_context",
    "clear_query_context",
    "configure_logging",
]
