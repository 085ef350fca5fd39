"""Text relevance: tokenization, inverted index, BM25, and fuzzy fallback."""

from history_ranker.text.bm25 import TextRelevanceEngine
from history_ranker.text.fuzzy import FuzzyMatcher
from history_ranker.text.index import IndexedDocument, InvertedIndex
from history_ranker.text.models import TextMatch
from history_ranker.text.stemmer import STOPWORDS, stem
from history_ranker.text.tokenizer import Tokenizer, tokenize_title, tokenize_url


__all__ = [
    "STOPWORDS",
    "FuzzyMatcher",
    "IndexedDocument",
    "InvertedIndex",
    "TextMatch",
    "TextRelevanceEngine",
    "Tokenizer",
    "stem",
    "tokenize_title",
    "tokenize_url",
]
