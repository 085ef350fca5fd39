"""Inverted index over page titles and URLs."""

import bisect
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from history_ranker.store.models import Page
from history_ranker.text.tokenizer import Tokenizer


# Upper bound on vocabulary tokens a trailing query prefix may expand to
MAX_PREFIX_EXPANSIONS = 32


@dataclass(frozen=True)
class IndexedDocument:
    """Per-document field statistics.

    Attributes:
        page_id: Page key.
        title: Lowercased title, used for substring bonuses.
        url: Lowercased URL, used for substring bonuses.
        title_tf: Term frequencies in the title.
        url_tf: Term frequencies in the URL.
        title_len: Number of title tokens.
        url_len: Number of URL tokens.
    """

    page_id: str
    title: str
    url: str
    title_tf: Counter[str]
    url_tf: Counter[str]
    title_len: int
    url_len: int


class InvertedIndex:
    """Token to document postings plus per-field length statistics.

    Postings cover both fields, so the document frequency of a token counts
    documents containing it in the title or the URL. The vocabulary is kept
    sorted to answer prefix lookups with a binary search.
    """

    def __init__(self, pages: Iterable[Page], tokenizer: Tokenizer) -> None:
        """Build the index.

        Args:
            pages: Pages to index.
            tokenizer: Tokenizer applied to titles and URLs.
        """
        self._docs: list[IndexedDocument] = []
        self._postings: dict[str, set[int]] = {}

        for page in pages:
            title_tokens = tokenizer.title(page.title)
            url_tokens = tokenizer.url(page.url)
            doc_id = len(self._docs)
            self._docs.append(
                IndexedDocument(
                    page_id=page.page_id,
                    title=page.title.lower(),
                    url=page.url.lower(),
                    title_tf=Counter(title_tokens),
                    url_tf=Counter(url_tokens),
                    title_len=len(title_tokens),
                    url_len=len(url_tokens),
                )
            )
            for token in set(title_tokens) | set(url_tokens):
                self._postings.setdefault(token, set()).add(doc_id)

        n = len(self._docs)
        self.avg_title_len = sum(d.title_len for d in self._docs) / n if n else 0.0
        self.avg_url_len = sum(d.url_len for d in self._docs) / n if n else 0.0
        self._vocabulary = sorted(self._postings)

    def __len__(self) -> int:
        return len(self._docs)

    @property
    def documents(self) -> list[IndexedDocument]:
        """Indexed documents, addressed by position."""
        return self._docs

    @property
    def vocabulary(self) -> list[str]:
        """Sorted distinct tokens."""
        return self._vocabulary

    def document_frequency(self, token: str) -> int:
        """Number of documents containing the token in either field."""
        return len(self._postings.get(token, ()))

    def postings(self, token: str) -> set[int]:
        """Document positions containing the token."""
        return self._postings.get(token, set())

    def expand_prefix(self, prefix: str, limit: int = MAX_PREFIX_EXPANSIONS) -> list[str]:
        """Vocabulary tokens that start with ``prefix``, excluding itself.

        Args:
            prefix: Partial token.
            limit: Maximum number of expansions.

        Returns:
            Matching tokens in lexical order.
        """
        if not prefix:
            return []
        start = bisect.bisect_right(self._vocabulary, prefix)
        expansions: list[str] = []
        for token in self._vocabulary[start:]:
            if not token.startswith(prefix) or len(expansions) >= limit:
                break
            expansions.append(token)
        return expansions

    def candidates(self, tokens: Iterable[str]) -> set[int]:
        """Documents sharing at least one of ``tokens``."""
        found: set[int] = set()
        for token in tokens:
            found |= self._postings.get(token, set())
        return found
