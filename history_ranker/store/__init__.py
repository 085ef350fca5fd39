"""History storage for pages, visits, edges, sessions, and model weights.

This module provides:
- Value types for browsing history records
- Repository protocols consumed by the ranking engine
- An in-memory store and a SQLite store implementing those protocols
"""

from history_ranker.store.errors import (
    MigrationError,
    PageNotFoundError,
    StoreConnectionError,
    StoreError,
)
from history_ranker.store.memory import InMemoryHistoryStore
from history_ranker.store.migrations import CURRENT_VERSION, MigrationManager
from history_ranker.store.models import Edge, Page, Session, Visit, clamp_unit
from history_ranker.store.protocols import HistoryRepository, ModelWeightStore
from history_ranker.store.store import SqliteHistoryStore


__all__ = [
    # Errors
    "MigrationError",
    "PageNotFoundError",
    "StoreConnectionError",
    "StoreError",
    # Migrations
    "CURRENT_VERSION",
    "MigrationManager",
    # Models
    "Edge",
    "Page",
    "Session",
    "Visit",
    "clamp_unit",
    # Protocols
    "HistoryRepository",
    "ModelWeightStore",
    # Stores
    "InMemoryHistoryStore",
    "SqliteHistoryStore",
]
