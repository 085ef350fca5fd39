"""Interfaces the ranking engine consumes from its storage collaborator."""

from typing import Any, Protocol, runtime_checkable

from history_ranker.store.models import Edge, Page, Session, Visit


@runtime_checkable
class HistoryRepository(Protocol):
    """Bulk reads of browsing history plus the one write the engine needs.

    Implementations may be backed by any store; the engine tolerates a
    slightly stale snapshot and never locks the underlying data.
    """

    def get_all_pages(self) -> list[Page]:
        """Return every known page."""
        ...

    def get_all_visits(self) -> list[Visit]:
        """Return every recorded visit."""
        ...

    def get_all_edges(self) -> list[Edge]:
        """Return every aggregated navigation edge."""
        ...

    def get_all_sessions(self) -> list[Session]:
        """Return every browsing session."""
        ...

    def update_personal_score(self, page_id: str, score: float) -> None:
        """Persist a page's personal score.

        Raises:
            PageNotFoundError: If the page does not exist.
        """
        ...


@runtime_checkable
class ModelWeightStore(Protocol):
    """Key/value persistence for ranking model weights."""

    def get_model_weights(self, key: str) -> dict[str, Any] | None:
        """Return the stored weight record, or None if absent."""
        ...

    def save_model_weights(self, key: str, weights: dict[str, Any]) -> None:
        """Store a weight record under key, replacing any previous one."""
        ...
