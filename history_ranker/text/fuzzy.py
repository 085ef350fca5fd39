"""Approximate matching of query tokens against the index vocabulary."""

from collections.abc import Callable

import structlog
from rapidfuzz import process
from rapidfuzz.distance import JaroWinkler, Levenshtein

from history_ranker.config.schemas import FuzzyConfig
from history_ranker.text.index import InvertedIndex
from history_ranker.text.models import TextMatch


logger = structlog.get_logger()

_SCORERS: dict[str, Callable[..., float]] = {
    "jaro_winkler": JaroWinkler.normalized_similarity,
    "levenshtein": Levenshtein.normalized_similarity,
}


class FuzzyMatcher:
    """Typo-tolerant fallback over the vocabulary of an inverted index.

    Each query token is compared with every vocabulary token. A document's
    score is the mean, over query tokens, of the best similarity any of its
    tokens reached (0 for query tokens it has no similar token for).
    Documents whose mean falls below the threshold are dropped.
    """

    def __init__(self, index: InvertedIndex, config: FuzzyConfig) -> None:
        self._index = index
        self._config = config
        self._scorer = _SCORERS[config.algorithm]

    def match(self, query_tokens: list[str]) -> list[TextMatch]:
        """Score documents by approximate token similarity.

        Args:
            query_tokens: Tokenized query.

        Returns:
            Matches with scores in [threshold, 1], unordered.
        """
        if not query_tokens or not self._index.vocabulary:
            return []

        threshold = self._config.threshold
        best: dict[int, list[float]] = {}

        for position, token in enumerate(query_tokens):
            similar = process.extract(
                token,
                self._index.vocabulary,
                scorer=self._scorer,
                score_cutoff=threshold,
                limit=None,
            )
            for _choice, similarity, vocab_pos in similar:
                vocab_token = self._index.vocabulary[vocab_pos]
                for doc_id in self._index.postings(vocab_token):
                    sims = best.setdefault(doc_id, [0.0] * len(query_tokens))
                    sims[position] = max(sims[position], float(similarity))

        matches: list[TextMatch] = []
        for doc_id, sims in best.items():
            score = sum(sims) / len(sims)
            if score >= threshold:
                matches.append(
                    TextMatch(
                        page_id=self._index.documents[doc_id].page_id,
                        score=score,
                        fuzzy=True,
                    )
                )

        logger.debug(
            "fuzzy_fallback_complete",
            query_tokens=len(query_tokens),
            matched=len(matches),
            algorithm=self._config.algorithm,
        )
        return matches
