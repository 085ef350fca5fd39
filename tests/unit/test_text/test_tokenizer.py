"""Unit tests for tokenizers and the suffix stemmer."""

import pytest

from history_ranker.text import Tokenizer, stem, tokenize_title, tokenize_url


class TestTokenizeTitle:
    """Tests for title tokenization."""

    def test_splits_on_non_alphanumeric_runs(self) -> None:
        """Test punctuation and whitespace runs separate tokens."""
        assert tokenize_title("GitHub - torvalds/linux") == ["github", "torvalds", "linux"]

    def test_underscore_is_a_separator(self) -> None:
        """Test underscores split tokens."""
        assert tokenize_title("snake_case_name") == ["snake", "case", "name"]

    def test_keeps_digits(self) -> None:
        """Test digits stay inside tokens."""
        assert tokenize_title("Python 3.12 release") == ["python", "3", "12", "release"]

    def test_empty_string(self) -> None:
        """Test empty text yields no tokens."""
        assert tokenize_title("") == []
        assert tokenize_title("  --  ") == []


class TestTokenizeUrl:
    """Tests for URL tokenization."""

    def test_splits_on_url_punctuation(self) -> None:
        """Test the URL separators split tokens."""
        tokens = tokenize_url("https://github.com/torvalds/linux?tab=readme#top")
        assert tokens == ["https", "github", "com", "torvalds", "linux", "tab", "readme", "top"]

    def test_hyphen_and_underscore(self) -> None:
        """Test hyphens and underscores split tokens."""
        assert tokenize_url("site.org/my-page_name") == ["site", "org", "my", "page", "name"]

    def test_lowercases(self) -> None:
        """Test URLs are lowercased."""
        assert tokenize_url("HTTPS://Example.COM") == ["https", "example", "com"]


class TestTokenizer:
    """Tests for the tokenizer variants."""

    def test_plain_keeps_stopwords(self) -> None:
        """Test the plain variant keeps every token unchanged."""
        tokenizer = Tokenizer("plain")
        assert tokenizer.title("The running dogs") == ["the", "running", "dogs"]

    def test_stemmed_removes_stopwords_and_stems(self) -> None:
        """Test the stemmed variant drops stopwords and stems the rest."""
        tokenizer = Tokenizer("stemmed")
        assert tokenizer.title("The running dogs") == ["run", "dog"]

    def test_stemmed_keeps_all_stopword_titles(self) -> None:
        """Test a title made only of stopwords is still tokenized."""
        tokenizer = Tokenizer("stemmed")
        assert tokenizer.title("The and") == ["the", "and"]

    def test_query_uses_title_rules(self) -> None:
        """Test queries are tokenized like titles."""
        tokenizer = Tokenizer("plain")
        assert tokenizer.query("torvalds/linux") == tokenizer.title("torvalds/linux")

    def test_url_variant_applies(self) -> None:
        """Test the stemmed variant also applies to URLs."""
        tokenizer = Tokenizer("stemmed")
        assert tokenizer.url("https://blog.org/posts") == ["http", "blog", "org", "post"]


class TestStem:
    """Tests for the light suffix stemmer."""

    @pytest.mark.parametrize(
        ("word", "expected"),
        [
            ("caresses", "caress"),
            ("ponies", "pony"),
            ("cats", "cat"),
            ("hopped", "hop"),
            ("running", "run"),
            ("connection", "connect"),
            ("relational", "relate"),
            ("darkness", "dark"),
            ("quickly", "quick"),
        ],
    )
    def test_suffixes(self, word: str, expected: str) -> None:
        """Test common suffixes are stripped."""
        assert stem(word) == expected

    def test_short_words_unchanged(self) -> None:
        """Test words of three characters or fewer are kept."""
        assert stem("bus") == "bus"
        assert stem("is") == "is"

    def test_non_alpha_unchanged(self) -> None:
        """Test tokens with digits are kept."""
        assert stem("mp3s") == "mp3s"

    def test_protected_endings(self) -> None:
        """Test -ss, -us and -is endings are not treated as plurals."""
        assert stem("class") == "class"
        assert stem("status") == "status"
        assert stem("analysis") == "analysis"
