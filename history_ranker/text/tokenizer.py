"""Title, URL, and query tokenizers."""

import re
from dataclasses import dataclass
from typing import Literal

from history_ranker.text.stemmer import STOPWORDS, stem


_TITLE_SPLIT = re.compile(r"[\W_]+")
_URL_SPLIT = re.compile(r"[/?#:.\-_=]+")

TokenizerVariant = Literal["plain", "stemmed"]


def tokenize_title(text: str) -> list[str]:
    """Lowercase and split on any run of non-alphanumeric characters.

    Args:
        text: Title or query text.

    Returns:
        Non-empty tokens in order.
    """
    return [t for t in _TITLE_SPLIT.split(text.lower()) if t]


def tokenize_url(url: str) -> list[str]:
    """Lowercase and split on URL punctuation (``/ ? # : . - _ =``).

    Args:
        url: Page URL.

    Returns:
        Non-empty tokens in order.
    """
    return [t for t in _URL_SPLIT.split(url.lower()) if t.strip()]


@dataclass(frozen=True)
class Tokenizer:
    """Tokenizer for one variant.

    The ``stemmed`` variant removes stopwords and applies the light suffix
    stemmer. A title or query made only of stopwords keeps its (stemmed)
    tokens, so such pages and queries stay matchable.

    Attributes:
        variant: ``plain`` or ``stemmed``.
    """

    variant: TokenizerVariant = "plain"

    def _normalize(self, tokens: list[str]) -> list[str]:
        if self.variant == "plain":
            return tokens
        kept = [t for t in tokens if t not in STOPWORDS]
        return [stem(t) for t in (kept or tokens)]

    def title(self, text: str) -> list[str]:
        """Tokenize a page title."""
        return self._normalize(tokenize_title(text))

    def url(self, url: str) -> list[str]:
        """Tokenize a page URL."""
        return self._normalize(tokenize_url(url))

    def query(self, text: str) -> list[str]:
        """Tokenize a query the same way as titles."""
        return self.title(text)
