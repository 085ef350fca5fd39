"""Ranking engine errors.

None of these reach callers of ``rank`` or the feedback methods; the engine
logs them and degrades. They surface from lower-level helpers and from
``initialize``/``refresh_data`` when a load is cancelled.
"""


class RankingError(Exception):
    """Base exception for the ranking engine."""


class DataUnavailableError(RankingError):
    """Raised when the history repository cannot be read."""

    def __init__(self, source: str, message: str) -> None:
        """Initialize the error.

        Args:
            source: Which collection failed (pages, visits, edges, sessions).
            message: Underlying error message.
        """
        self.source = source
        super().__init__(f"Failed to load {source}: {message}")


class LoadCancelledError(RankingError):
    """Raised when a data load is cancelled through its token."""

    def __init__(self, stage: str) -> None:
        """Initialize the error.

        Args:
            stage: Load stage at which cancellation was observed.
        """
        self.stage = stage
        super().__init__(f"Data load cancelled during {stage}")


class WeightPersistenceError(RankingError):
    """Raised when model weights cannot be saved or loaded."""

    def __init__(self, key: str, message: str) -> None:
        """Initialize the error.

        Args:
            key: Metadata key of the weight record.
            message: Underlying error message.
        """
        self.key = key
        super().__init__(f"Weight record {key!r}: {message}")
