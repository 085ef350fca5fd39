"""Current-session domain context."""

import math
from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from history_ranker.store.models import Page, Visit


@dataclass(frozen=True)
class SessionContext:
    """Visits per domain within one browsing session.

    Attributes:
        session_id: The session, or None when no current page is known.
        domain_counts: Visit count per domain.
    """

    session_id: str | None = None
    domain_counts: Counter[str] = field(default_factory=Counter)

    def weight(self, domain: str) -> float:
        """``ln(1 + visits to domain in this session)``."""
        return math.log1p(self.domain_counts.get(domain, 0))


EMPTY_CONTEXT = SessionContext()


class SessionContextModel:
    """Builds the session context for the page the user is currently on.

    The current session is the session of the most recent visit to the
    current page.
    """

    def __init__(self, pages: Iterable[Page], visits: Iterable[Visit]) -> None:
        self._domains = {page.page_id: page.domain for page in pages}
        self._latest_session: dict[str, tuple[datetime, str]] = {}
        self._by_session: dict[str, list[Visit]] = defaultdict(list)

        for visit in visits:
            self._by_session[visit.session_id].append(visit)
            latest = self._latest_session.get(visit.page_id)
            if latest is None or visit.start_time >= latest[0]:
                self._latest_session[visit.page_id] = (visit.start_time, visit.session_id)

    def current_session(self, current_page_id: str | None) -> str | None:
        """Session of the most recent visit to the current page."""
        if current_page_id is None:
            return None
        latest = self._latest_session.get(current_page_id)
        return latest[1] if latest else None

    def context_for(self, current_page_id: str | None) -> SessionContext:
        """Domain counts for the current session.

        Args:
            current_page_id: Page the user is on, if known.

        Returns:
            The session context; empty when no session can be determined.
        """
        session_id = self.current_session(current_page_id)
        if session_id is None:
            return EMPTY_CONTEXT

        counts: Counter[str] = Counter()
        for visit in self._by_session.get(session_id, ()):
            domain = self._domains.get(visit.page_id)
            if domain is not None:
                counts[domain] += 1
        return SessionContext(session_id=session_id, domain_counts=counts)
