"""SQLite schema migrations for the history store."""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from history_ranker.store.errors import MigrationError


logger = structlog.get_logger()

# Current schema version
CURRENT_VERSION = 2


@dataclass(frozen=True)
class Migration:
    """A database migration.

    Attributes:
        version: Target version after applying this migration.
        description: Human-readable description.
        up_sql: SQL to apply the migration.
        down_sql: SQL to rollback the migration.
    """

    version: int
    description: str
    up_sql: str
    down_sql: str


# All migrations in order
MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Initial schema with pages, visits, edges, and sessions",
        up_sql="""
-- Pages: one row per stable page key
CREATE TABLE IF NOT EXISTS pages (
    page_id TEXT PRIMARY KEY,
    url TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    domain TEXT NOT NULL DEFAULT '',
    first_visit TEXT NOT NULL,
    last_visit TEXT NOT NULL,
    visit_count INTEGER NOT NULL DEFAULT 0,
    total_active_time REAL NOT NULL DEFAULT 0,
    personal_score REAL NOT NULL DEFAULT 0.5
);
CREATE INDEX IF NOT EXISTS idx_pages_domain ON pages(domain);

-- Sessions: browsing sessions scoping visits
CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    start_time TEXT NOT NULL,
    last_activity_at TEXT NOT NULL,
    total_active_time REAL NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 0,
    end_time TEXT
);

-- Visits: append-only visit log
CREATE TABLE IF NOT EXISTS visits (
    visit_id TEXT PRIMARY KEY,
    page_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    start_time TEXT NOT NULL,
    total_active_time REAL NOT NULL DEFAULT 0,
    end_time TEXT,
    from_page_id TEXT,
    is_back_navigation INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_visits_page_id ON visits(page_id);
CREATE INDEX IF NOT EXISTS idx_visits_session_id ON visits(session_id);

-- Edges: aggregated page-to-page transitions
CREATE TABLE IF NOT EXISTS edges (
    from_page_id TEXT NOT NULL,
    to_page_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    count INTEGER NOT NULL DEFAULT 1,
    first_traversal TEXT NOT NULL,
    last_traversal TEXT NOT NULL,
    PRIMARY KEY (from_page_id, to_page_id)
);
""",
        down_sql="""
DROP TABLE IF EXISTS edges;
DROP INDEX IF EXISTS idx_visits_session_id;
DROP INDEX IF EXISTS idx_visits_page_id;
DROP TABLE IF EXISTS visits;
DROP TABLE IF EXISTS sessions;
DROP INDEX IF EXISTS idx_pages_domain;
DROP TABLE IF EXISTS pages;
""",
    ),
    Migration(
        version=2,
        description="Add metadata table for model weights",
        up_sql="""
-- Metadata: JSON values keyed by name (ranking model weights)
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
""",
        down_sql="""
DROP TABLE IF EXISTS metadata;
""",
    ),
]


def get_migrations_to_apply(current_version: int) -> list[Migration]:
    """Get migrations that need to be applied.

    Args:
        current_version: The current schema version.

    Returns:
        List of migrations to apply in order.
    """
    return [m for m in MIGRATIONS if m.version > current_version]


class MigrationManager:
    """Manages SQLite schema migrations."""

    VERSION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL,
    description TEXT
);
"""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize the migration manager.

        Args:
            connection: SQLite connection to manage.
        """
        self._conn = connection
        self._log = logger.bind(component="store", operation="migration")

    def ensure_version_table(self) -> None:
        """Ensure the schema_version table exists."""
        self._conn.execute(self.VERSION_TABLE_SQL)
        self._conn.commit()

    def get_current_version(self) -> int:
        """Get the current schema version.

        Returns:
            Current version number, or 0 if no migrations applied.
        """
        self.ensure_version_table()
        row = self._conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def apply_migrations(self) -> list[int]:
        """Apply all pending migrations.

        Returns:
            List of version numbers that were applied.

        Raises:
            MigrationError: If a migration script fails.
        """
        current = self.get_current_version()
        pending = get_migrations_to_apply(current)

        if not pending:
            self._log.debug("no_migrations_pending", current_version=current)
            return []

        applied: list[int] = []

        for migration in pending:
            self._log.info(
                "applying_migration",
                version=migration.version,
                description=migration.description,
            )

            try:
                self._conn.executescript(migration.up_sql)
                self._conn.execute(
                    """
                    INSERT INTO schema_version (version, applied_at, description)
                    VALUES (?, ?, ?)
                    """,
                    (
                        migration.version,
                        datetime.now(UTC).isoformat(),
                        migration.description,
                    ),
                )
                self._conn.commit()
                applied.append(migration.version)

                self._log.info("migration_applied", version=migration.version)

            except sqlite3.Error as e:
                self._log.error(
                    "migration_failed",
                    version=migration.version,
                    error=str(e),
                )
                self._conn.rollback()
                raise MigrationError(migration.version, str(e)) from e

        return applied

    def rollback_to(self, target_version: int) -> list[int]:
        """Rollback to a specific version.

        Args:
            target_version: The version to rollback to.

        Returns:
            List of version numbers that were rolled back.

        Raises:
            ValueError: If target version is invalid.
        """
        if target_version < 0:
            msg = f"Invalid target version: {target_version}"
            raise ValueError(msg)

        rolled_back: list[int] = []
        by_version = {m.version: m for m in MIGRATIONS}

        while (current := self.get_current_version()) > target_version:
            migration = by_version.get(current)
            if migration is None:
                break

            self._log.info(
                "rolling_back_migration",
                version=migration.version,
                description=migration.description,
            )
            try:
                self._conn.executescript(migration.down_sql)
                self._conn.execute(
                    "DELETE FROM schema_version WHERE version = ?",
                    (migration.version,),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._log.error(
                    "rollback_failed",
                    version=migration.version,
                    error=str(e),
                )
                self._conn.rollback()
                raise MigrationError(migration.version, str(e)) from e
            rolled_back.append(migration.version)

        return rolled_back

    def get_applied_migrations(self) -> list[dict[str, str | int]]:
        """Get list of applied migrations.

        Returns:
            List of dicts with version, applied_at, and description.
        """
        self.ensure_version_table()
        cursor = self._conn.execute(
            """
            SELECT version, applied_at, description
            FROM schema_version
            ORDER BY version
            """
        )
        return [
            {"version": row[0], "applied_at": row[1], "description": row[2]}
            for row in cursor.fetchall()
        ]
