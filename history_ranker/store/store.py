"""SQLite history store implementation."""

import json
import sqlite3
import threading
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from history_ranker.store.errors import PageNotFoundError, StoreConnectionError
from history_ranker.store.migrations import CURRENT_VERSION, MigrationManager
from history_ranker.store.models import Edge, Page, Session, Visit


logger = structlog.get_logger()


@dataclass
class TransactionContext:
    """Context for a single write transaction.

    Attributes:
        tx_id: Short transaction identifier for log correlation.
        start_time_ns: perf_counter_ns at transaction start.
        operation: Operation name.
        affected_rows: Rows touched so far.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = 0

    def add_affected_rows(self, count: int) -> None:
        """Add to the affected row count."""
        self.affected_rows += count


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SqliteHistoryStore:
    """SQLite store for pages, visits, edges, sessions, and model weights.

    Implements ``HistoryRepository`` and ``ModelWeightStore``. Uses WAL mode
    and versioned schema migrations. A single connection is shared across
    threads and guarded by a lock, so the engine's parallel data load and its
    background weight saves can use the same store instance.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the history store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._log = logger.bind(component="store", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        """
        if self._conn is not None:
            return

        in_memory = str(self._db_path) == ":memory:"
        if not in_memory:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._log.info("connecting_to_database")

        try:
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreConnectionError(f"Cannot open {self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row

        if not in_memory:
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")

        migration_mgr = MigrationManager(conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()
        self._conn = conn

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._log.info("database_closed")

    def __enter__(self) -> "SqliteHistoryStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Generator[TransactionContext]:
        """Context manager for write transactions with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        with self._lock:
            conn = self._ensure_connected()
            tx_id = str(uuid.uuid4())[:8]
            start_ns = time.perf_counter_ns()
            ctx = TransactionContext(
                tx_id=tx_id, start_time_ns=start_ns, operation=operation
            )

            try:
                yield ctx
                conn.commit()
            except Exception:
                conn.rollback()
                duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
                self._log.error(
                    "transaction_failed",
                    tx_id=tx_id,
                    op=operation,
                    duration_ms=round(duration_ms, 2),
                )
                raise

            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._log.debug(
                "transaction_complete",
                tx_id=tx_id,
                op=operation,
                affected_rows=ctx.affected_rows,
                duration_ms=round(duration_ms, 2),
            )

    def _fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            conn = self._ensure_connected()
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreConnectionError(f"Query failed: {e}") from e

    # ===== Writes (navigation collaborator side) =====

    def upsert_page(self, page: Page) -> None:
        """Insert or replace a page.

        Args:
            page: Page to store.
        """
        with self._transaction("upsert_page") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO pages (
                    page_id, url, title, domain, first_visit, last_visit,
                    visit_count, total_active_time, personal_score
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(page_id) DO UPDATE SET
                    url = excluded.url,
                    title = excluded.title,
                    domain = excluded.domain,
                    first_visit = excluded.first_visit,
                    last_visit = excluded.last_visit,
                    visit_count = excluded.visit_count,
                    total_active_time = excluded.total_active_time,
                    personal_score = excluded.personal_score
                """,
                (
                    page.page_id,
                    page.url,
                    page.title,
                    page.domain,
                    page.first_visit.isoformat(),
                    page.last_visit.isoformat(),
                    page.visit_count,
                    page.total_active_time,
                    page.personal_score,
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def add_visit(self, visit: Visit) -> None:
        """Insert a visit (replacing one with the same visit_id).

        Args:
            visit: Visit to store.
        """
        with self._transaction("add_visit") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT OR REPLACE INTO visits (
                    visit_id, page_id, session_id, start_time, total_active_time,
                    end_time, from_page_id, is_back_navigation
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    visit.visit_id,
                    visit.page_id,
                    visit.session_id,
                    visit.start_time.isoformat(),
                    visit.total_active_time,
                    _to_iso(visit.end_time),
                    visit.from_page_id,
                    1 if visit.is_back_navigation else 0,
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def upsert_edge(self, edge: Edge) -> None:
        """Insert or replace the edge with the same (from, to) identity.

        Args:
            edge: Edge to store.
        """
        with self._transaction("upsert_edge") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO edges (
                    from_page_id, to_page_id, session_id, count,
                    first_traversal, last_traversal
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(from_page_id, to_page_id) DO UPDATE SET
                    session_id = excluded.session_id,
                    count = excluded.count,
                    first_traversal = excluded.first_traversal,
                    last_traversal = excluded.last_traversal
                """,
                (
                    edge.from_page_id,
                    edge.to_page_id,
                    edge.session_id,
                    edge.count,
                    edge.first_traversal.isoformat(),
                    edge.last_traversal.isoformat(),
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def upsert_session(self, session: Session) -> None:
        """Insert or replace a session.

        Args:
            session: Session to store.
        """
        with self._transaction("upsert_session") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT OR REPLACE INTO sessions (
                    session_id, start_time, last_activity_at,
                    total_active_time, is_active, end_time
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    session.session_id,
                    session.start_time.isoformat(),
                    session.last_activity_at.isoformat(),
                    session.total_active_time,
                    1 if session.is_active else 0,
                    _to_iso(session.end_time),
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def get_page(self, page_id: str) -> Page:
        """Get a page by ID.

        Args:
            page_id: The page ID to look up.

        Returns:
            The stored page.

        Raises:
            PageNotFoundError: If the page does not exist.
        """
        rows = self._fetch_all("SELECT * FROM pages WHERE page_id = ?", (page_id,))
        if not rows:
            raise PageNotFoundError(page_id)
        return self._row_to_page(rows[0])

    # ===== HistoryRepository =====

    def get_all_pages(self) -> list[Page]:
        """Return every stored page."""
        rows = self._fetch_all("SELECT * FROM pages ORDER BY page_id")
        return [self._row_to_page(row) for row in rows]

    def get_all_visits(self) -> list[Visit]:
        """Return every stored visit, oldest first."""
        rows = self._fetch_all("SELECT * FROM visits ORDER BY start_time, visit_id")
        return [
            Visit(
                visit_id=row["visit_id"],
                page_id=row["page_id"],
                session_id=row["session_id"],
                start_time=datetime.fromisoformat(row["start_time"]),
                total_active_time=row["total_active_time"],
                end_time=_from_iso(row["end_time"]),
                from_page_id=row["from_page_id"],
                is_back_navigation=bool(row["is_back_navigation"]),
            )
            for row in rows
        ]

    def get_all_edges(self) -> list[Edge]:
        """Return every stored edge."""
        rows = self._fetch_all(
            "SELECT * FROM edges ORDER BY from_page_id, to_page_id"
        )
        return [
            Edge(
                from_page_id=row["from_page_id"],
                to_page_id=row["to_page_id"],
                session_id=row["session_id"],
                count=row["count"],
                first_traversal=datetime.fromisoformat(row["first_traversal"]),
                last_traversal=datetime.fromisoformat(row["last_traversal"]),
            )
            for row in rows
        ]

    def get_all_sessions(self) -> list[Session]:
        """Return every stored session."""
        rows = self._fetch_all("SELECT * FROM sessions ORDER BY start_time")
        return [
            Session(
                session_id=row["session_id"],
                start_time=datetime.fromisoformat(row["start_time"]),
                last_activity_at=datetime.fromisoformat(row["last_activity_at"]),
                total_active_time=row["total_active_time"],
                is_active=bool(row["is_active"]),
                end_time=_from_iso(row["end_time"]),
            )
            for row in rows
        ]

    def update_personal_score(self, page_id: str, score: float) -> None:
        """Persist a page's personal score.

        Args:
            page_id: Page to update.
            score: New score, clamped into [0, 1] by the caller.

        Raises:
            PageNotFoundError: If the page does not exist.
        """
        with self._transaction("update_personal_score") as ctx:
            cursor = self._ensure_connected().execute(
                "UPDATE pages SET personal_score = ? WHERE page_id = ?",
                (score, page_id),
            )
            if cursor.rowcount == 0:
                raise PageNotFoundError(page_id)
            ctx.add_affected_rows(cursor.rowcount)

    # ===== ModelWeightStore =====

    def get_model_weights(self, key: str) -> dict[str, Any] | None:
        """Load a JSON weight record.

        Args:
            key: Metadata key.

        Returns:
            The decoded record, or None if absent or not a JSON object.
        """
        rows = self._fetch_all("SELECT value FROM metadata WHERE key = ?", (key,))
        if not rows:
            return None
        try:
            value = json.loads(rows[0]["value"])
        except json.JSONDecodeError:
            self._log.warning("metadata_value_invalid_json", key=key)
            return None
        return value if isinstance(value, dict) else None

    def save_model_weights(self, key: str, weights: dict[str, Any]) -> None:
        """Store a weight record as JSON.

        Args:
            key: Metadata key.
            weights: JSON-serializable record.
        """
        payload = json.dumps(weights, sort_keys=True)
        with self._transaction("save_model_weights") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO metadata (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, payload, datetime.now(UTC).isoformat()),
            )
            ctx.add_affected_rows(cursor.rowcount)

    # ===== Statistics =====

    def stats(self) -> dict[str, int]:
        """Row counts per table plus the schema version."""
        counts: dict[str, int] = {}
        for table in ("pages", "visits", "edges", "sessions", "metadata"):
            rows = self._fetch_all(f"SELECT COUNT(*) AS n FROM {table}")  # noqa: S608
            counts[table] = rows[0]["n"]
        rows = self._fetch_all("SELECT MAX(version) AS v FROM schema_version")
        counts["schema_version"] = rows[0]["v"] or 0
        return counts

    @staticmethod
    def _row_to_page(row: sqlite3.Row) -> Page:
        return Page(
            page_id=row["page_id"],
            url=row["url"],
            title=row["title"],
            domain=row["domain"],
            first_visit=datetime.fromisoformat(row["first_visit"]),
            last_visit=datetime.fromisoformat(row["last_visit"]),
            visit_count=row["visit_count"],
            total_active_time=row["total_active_time"],
            personal_score=row["personal_score"],
        )
