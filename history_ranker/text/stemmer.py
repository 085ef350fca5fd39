"""Light English suffix stemmer and stopword list.

A simplified Porter-style stemmer: it only strips the suffixes that matter
most for short page titles (plurals, -ing, -ed, -tion, -ness, -ment, -ly).
It is not a full Porter implementation.
"""

STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "from",
    "has", "have", "in", "into", "is", "it", "its", "of", "on", "or", "that",
    "the", "their", "this", "to", "was", "were", "will", "with", "you", "your",
})

_VOWELS = frozenset("aeiou")


def _has_vowel(stem: str) -> bool:
    return any(ch in _VOWELS for ch in stem)


def _undouble(stem: str) -> str:
    """Collapse a trailing doubled consonant (running -> run)."""
    if (
        len(stem) > 2
        and stem[-1] == stem[-2]
        and stem[-1] not in _VOWELS
        and stem[-1] not in "lsz"
    ):
        return stem[:-1]
    return stem


def stem(word: str) -> str:
    """Stem a lowercase word.

    Words of three characters or fewer and words containing digits are
    returned unchanged.

    Args:
        word: Lowercase token.

    Returns:
        The stemmed token.
    """
    if len(word) <= 3 or not word.isalpha():
        return word

    # Step 1: plurals
    if word.endswith("sses"):
        word = word[:-2]
    elif word.endswith("ies") and len(word) > 4:
        word = word[:-3] + "y"
    elif word.endswith("s") and not word.endswith(("ss", "us", "is")):
        word = word[:-1]

    # Step 2: verb endings
    if word.endswith("ing") and len(word) > 5 and _has_vowel(word[:-3]):
        word = _undouble(word[:-3])
    elif word.endswith("ed") and len(word) > 4 and _has_vowel(word[:-2]):
        word = _undouble(word[:-2])

    # Step 3: derivational suffixes
    if word.endswith("ational"):
        word = word[:-7] + "ate"
    elif word.endswith("ation") and len(word) > 6:
        word = word[:-5] + "ate"
    elif word.endswith("tion") and len(word) > 5:
        word = word[:-4] + "t"
    elif word.endswith("ness") and len(word) > 5:
        word = word[:-4]
    elif word.endswith("ment") and len(word) > 6:
        word = word[:-4]
    elif word.endswith("ly") and len(word) > 4:
        word = word[:-2]

    return word
