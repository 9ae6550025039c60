"""Title normalization for fuzzy comparison."""

import re
from typing import Optional

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_ARTICLES = re.compile(r"\b(the|a|an)\b")


def normalize_title(title: Optional[str]) -> str:
    """
    Canonicalize a title so that cosmetic differences do not affect matching.

    Lower-cases, turns punctuation into spaces, drops the articles
    "the", "a" and "an" and collapses whitespace. Never fails; ``None``
    and empty input give an empty string.
    """
    if not title:
        return ""
    text = _NON_WORD.sub(" ", title.lower())
    text = _WHITESPACE.sub(" ", text).strip()
    text = _ARTICLES.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()
