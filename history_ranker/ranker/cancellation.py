"""Cooperative cancellation for data loads."""

from threading import Event

from history_ranker.ranker.errors import LoadCancelledError


class CancellationToken:
    """Flag a caller sets to abandon an in-progress data load."""

    def __init__(self) -> None:
        self._event = Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise LoadCancelledError if cancellation was requested.

        Args:
            stage: Load stage, reported in the error.
        """
        if self._event.is_set():
            raise LoadCancelledError(stage)
