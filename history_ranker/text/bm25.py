"""BM25 text relevance over page titles and URLs."""

import math
from collections.abc import Iterable

import structlog

from history_ranker.config.schemas import RankingConfig
from history_ranker.store.models import Page
from history_ranker.text.fuzzy import FuzzyMatcher
from history_ranker.text.index import IndexedDocument, InvertedIndex
from history_ranker.text.models import TextMatch
from history_ranker.text.tokenizer import Tokenizer


logger = structlog.get_logger()


class TextRelevanceEngine:
    """Two-field BM25 with substring bonuses and a fuzzy fallback.

    Only documents sharing at least one token with the query are scored.
    The final query token also matches vocabulary tokens it is a prefix of,
    so partially typed words find their pages; for each query token a
    document contributes its best-scoring alternative.
    """

    def __init__(self, pages: Iterable[Page], config: RankingConfig | None = None) -> None:
        """Build the index.

        Args:
            pages: Pages to index.
            config: Ranking configuration (defaults when omitted).
        """
        self._config = config or RankingConfig()
        self._tokenizer = Tokenizer(self._config.tokenizer)
        self._index = InvertedIndex(pages, self._tokenizer)
        self._fuzzy = FuzzyMatcher(self._index, self._config.fuzzy)
        self._log = logger.bind(component="text")

    @property
    def index(self) -> InvertedIndex:
        """The underlying inverted index."""
        return self._index

    @property
    def tokenizer(self) -> Tokenizer:
        """Tokenizer shared by documents and queries."""
        return self._tokenizer

    def idf(self, token: str) -> float:
        """BM25 inverse document frequency (always positive)."""
        n = len(self._index)
        df = self._index.document_frequency(token)
        return math.log((n - df + 0.5) / (df + 0.5) + 1)

    def _field_tf(self, freq: int, length: int, avg_len: float, b: float, weight: float) -> float:
        if freq == 0:
            return 0.0
        k1 = self._config.bm25.k1
        norm = length / avg_len if avg_len > 0 else 0.0
        return (weight * freq * (k1 + 1)) / (freq + k1 * (1 - b + b * norm))

    def term_score(self, doc: IndexedDocument, token: str) -> float:
        """``idf * (TF_title + TF_url)`` for one token in one document."""
        bm25 = self._config.bm25
        tf_title = self._field_tf(
            doc.title_tf[token],
            doc.title_len,
            self._index.avg_title_len,
            bm25.b_title,
            bm25.weight_title,
        )
        tf_url = self._field_tf(
            doc.url_tf[token],
            doc.url_len,
            self._index.avg_url_len,
            bm25.b_url,
            bm25.weight_url,
        )
        return self.idf(token) * (tf_title + tf_url)

    def substring_bonus(self, query: str, doc: IndexedDocument) -> float:
        """Bonus for the raw lowercased query appearing in the URL or title."""
        if not query:
            return 0.0
        bonus_cfg = self._config.substring_bonus
        bonus = 0.0
        if doc.url.startswith(query):
            bonus += bonus_cfg.url_prefix
        elif query in doc.url:
            bonus += bonus_cfg.url_contains
        if doc.title.startswith(query):
            bonus += bonus_cfg.title_prefix
        elif query in doc.title:
            bonus += bonus_cfg.title_contains
        return bonus

    def _term_groups(self, tokens: list[str]) -> list[list[str]]:
        groups = [[t] for t in tokens]
        if groups:
            groups[-1].extend(self._index.expand_prefix(tokens[-1]))
        return groups

    def compute_scores(self, query: str) -> list[TextMatch]:
        """Score candidate pages for a query.

        Args:
            query: Raw query text.

        Returns:
            Matches with non-negative scores, unordered. Empty for a blank
            query or when nothing matches.
        """
        raw = query.strip().lower()
        if not raw:
            return []

        tokens = self._tokenizer.query(raw)
        groups = self._term_groups(tokens)
        candidates = self._index.candidates(t for group in groups for t in group)

        threshold = self._config.min_text_score
        matches: list[TextMatch] = []
        for doc_id in candidates:
            doc = self._index.documents[doc_id]
            score = sum(
                max(self.term_score(doc, token) for token in group)
                for group in groups
            )
            score += self.substring_bonus(raw, doc)
            if math.isfinite(score) and score >= threshold:
                matches.append(TextMatch(page_id=doc.page_id, score=score))

        fuzzy_cfg = self._config.fuzzy
        if (
            not matches
            and fuzzy_cfg.enabled
            and len(raw) > fuzzy_cfg.min_query_length
        ):
            matches = self._fuzzy.match(tokens)
            self._log.debug(
                "text_fuzzy_fallback",
                query_length=len(raw),
                matched=len(matches),
            )

        return matches
