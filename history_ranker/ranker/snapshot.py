"""Immutable per-load view of the history used for scoring."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from history_ranker.config.schemas import RankingConfig
from history_ranker.signals.navigation import NavigationModel
from history_ranker.signals.recency import RecencyModel
from history_ranker.signals.regularity import RegularityModel
from history_ranker.signals.session import SessionContextModel
from history_ranker.signals.time_of_day import TimeOfDayModel
from history_ranker.store.models import Edge, Page, Session, Visit
from history_ranker.text.bm25 import TextRelevanceEngine


@dataclass(frozen=True)
class HistoryRecords:
    """Raw records read from the repository.

    Attributes:
        pages: All pages.
        visits: All visits.
        edges: All edges.
        sessions: All sessions.
    """

    pages: list[Page] = field(default_factory=list)
    visits: list[Visit] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    sessions: list[Session] = field(default_factory=list)


@dataclass(frozen=True)
class RankingSnapshot:
    """Indices and signal models built from one set of records.

    A snapshot is never mutated; a data refresh builds a new one and swaps
    the reference, so scoring needs no locks.
    """

    pages: dict[str, Page]
    text: TextRelevanceEngine
    navigation: NavigationModel
    recency: RecencyModel
    time_of_day: TimeOfDayModel
    session: SessionContextModel
    regularity: RegularityModel
    counts: dict[str, int]
    built_at: datetime

    @classmethod
    def build(cls, records: HistoryRecords, config: RankingConfig) -> "RankingSnapshot":
        """Build all indices and models.

        Args:
            records: Repository records.
            config: Ranking configuration.

        Returns:
            The new snapshot.
        """
        return cls(
            pages={page.page_id: page for page in records.pages},
            text=TextRelevanceEngine(records.pages, config),
            navigation=NavigationModel(records.edges, config.navigation),
            recency=RecencyModel(records.visits, config.recency),
            time_of_day=TimeOfDayModel(records.visits, config.time_of_day, config.zone()),
            session=SessionContextModel(records.pages, records.visits),
            regularity=RegularityModel(records.visits),
            counts={
                "pages": len(records.pages),
                "visits": len(records.visits),
                "edges": len(records.edges),
                "sessions": len(records.sessions),
            },
            built_at=datetime.now(UTC),
        )

    @classmethod
    def empty(cls, config: RankingConfig) -> "RankingSnapshot":
        """Snapshot with no pages; every query ranks to an empty list."""
        return cls.build(HistoryRecords(), config)

    @property
    def is_empty(self) -> bool:
        """Whether the snapshot holds no pages."""
        return not self.pages
