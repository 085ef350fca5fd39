"""Domain exceptions for the history store.

Infrastructure errors (database issues) are separated from domain errors
(missing records).
"""


class StoreError(Exception):
    """Base exception for all history store errors."""


class StoreConnectionError(StoreError):
    """Raised when the database connection is missing or broken."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class PageNotFoundError(StoreError):
    """Raised when a page_id does not exist in the store."""

    def __init__(self, page_id: str) -> None:
        """Initialize the error with the missing page ID.

        Args:
            page_id: The page ID that was not found.
        """
        self.page_id = page_id
        super().__init__(f"Page not found: {page_id}")


class MigrationError(StoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
