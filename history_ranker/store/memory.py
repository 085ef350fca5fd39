"""In-memory history store.

Implements both ``HistoryRepository`` and ``ModelWeightStore``. Used when
embedding the engine without a database and as a test double; read and
write failures can be injected to exercise the engine's degradation paths.
"""

import copy
from collections.abc import Iterable
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from history_ranker.store.errors import PageNotFoundError, StoreConnectionError
from history_ranker.store.models import Edge, Page, Session, Visit


@dataclass
class InMemoryHistoryStore:
    """Thread-safe in-memory store.

    Attributes:
        fail_reads: Raise StoreConnectionError from every bulk read.
        fail_score_updates: Raise StoreConnectionError from score updates.
        fail_weight_saves: Raise StoreConnectionError from weight saves.
        weight_saves: Number of successful weight saves.
        score_updates: Number of successful personal score updates.
    """

    fail_reads: bool = False
    fail_score_updates: bool = False
    fail_weight_saves: bool = False
    weight_saves: int = 0
    score_updates: int = 0

    _pages: dict[str, Page] = field(default_factory=dict, repr=False)
    _visits: list[Visit] = field(default_factory=list, repr=False)
    _edges: dict[tuple[str, str], Edge] = field(default_factory=dict, repr=False)
    _sessions: dict[str, Session] = field(default_factory=dict, repr=False)
    _metadata: dict[str, dict[str, Any]] = field(default_factory=dict, repr=False)
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    @classmethod
    def from_records(
        cls,
        pages: Iterable[Page] = (),
        visits: Iterable[Visit] = (),
        edges: Iterable[Edge] = (),
        sessions: Iterable[Session] = (),
    ) -> "InMemoryHistoryStore":
        """Build a store pre-populated with records."""
        store = cls()
        for page in pages:
            store.upsert_page(page)
        for visit in visits:
            store.add_visit(visit)
        for edge in edges:
            store.upsert_edge(edge)
        for session in sessions:
            store.upsert_session(session)
        return store

    # ===== Writes (navigation collaborator side) =====

    def upsert_page(self, page: Page) -> None:
        """Insert or replace a page."""
        with self._lock:
            self._pages[page.page_id] = page

    def add_visit(self, visit: Visit) -> None:
        """Append a visit."""
        with self._lock:
            self._visits.append(visit)

    def upsert_edge(self, edge: Edge) -> None:
        """Insert or replace the edge with the same (from, to) identity."""
        with self._lock:
            self._edges[(edge.from_page_id, edge.to_page_id)] = edge

    def upsert_session(self, session: Session) -> None:
        """Insert or replace a session."""
        with self._lock:
            self._sessions[session.session_id] = session

    def get_page(self, page_id: str) -> Page:
        """Return a page by id.

        Raises:
            PageNotFoundError: If the page does not exist.
        """
        with self._lock:
            page = self._pages.get(page_id)
        if page is None:
            raise PageNotFoundError(page_id)
        return page

    # ===== HistoryRepository =====

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise StoreConnectionError("Injected read failure")

    def get_all_pages(self) -> list[Page]:
        """Return every known page."""
        self._check_reads()
        with self._lock:
            return list(self._pages.values())

    def get_all_visits(self) -> list[Visit]:
        """Return every recorded visit."""
        self._check_reads()
        with self._lock:
            return list(self._visits)

    def get_all_edges(self) -> list[Edge]:
        """Return every aggregated edge."""
        self._check_reads()
        with self._lock:
            return list(self._edges.values())

    def get_all_sessions(self) -> list[Session]:
        """Return every session."""
        self._check_reads()
        with self._lock:
            return list(self._sessions.values())

    def update_personal_score(self, page_id: str, score: float) -> None:
        """Persist a page's personal score."""
        if self.fail_score_updates:
            raise StoreConnectionError("Injected score update failure")
        with self._lock:
            page = self._pages.get(page_id)
            if page is None:
                raise PageNotFoundError(page_id)
            self._pages[page_id] = page.with_personal_score(score)
            self.score_updates += 1

    # ===== ModelWeightStore =====

    def get_model_weights(self, key: str) -> dict[str, Any] | None:
        """Return a copy of the stored weight record, or None."""
        self._check_reads()
        with self._lock:
            record = self._metadata.get(key)
            return copy.deepcopy(record) if record is not None else None

    def save_model_weights(self, key: str, weights: dict[str, Any]) -> None:
        """Store a copy of the weight record."""
        if self.fail_weight_saves:
            raise StoreConnectionError("Injected weight save failure")
        with self._lock:
            self._metadata[key] = copy.deepcopy(weights)
            self.weight_saves += 1
