"""Word normalization, tokenization, and stop-word filtering.

WHY: Subtitle text arrives with capitals, quotes, ellipses, and inverted
Spanish punctuation ("¿Qué?", "Él."). The ledger needs one canonical form
per word so "Él" and "él." count as the same entry, while accented and
non-Latin letters survive intact.

HOW: Lowercase, then trim characters from both ends while their Unicode
general category is neither a letter (L*) nor a number (N*). Interior
characters are untouched, so "sub-título" and "l'homme" stay whole.

RULES:
- normalize() is idempotent: normalize(normalize(x)) == normalize(x)
- normalize() returns "" when nothing remains; callers must drop it
- tokenize() splits on whitespace runs, is lazy and order-preserving
- is_stop_word() never mutates state; unknown languages have no stop words
"""

from __future__ import annotations

import unicodedata
from typing import Iterator

from rewind_vocab.config import DEFAULT_LANGUAGE, STOP_WORDS


def _is_word_char(ch: str) -> bool:
    category = unicodedata.category(ch)
    return category[0] in ("L", "N")


def normalize(raw: str) -> str:
    """Normalize a raw token: lowercase, strip edge punctuation.

    Args:
        raw: A single whitespace-free token as it appeared in the text.

    Returns:
        The normalized word, or "" if the token had no letters or digits.
    """
    word = raw.lower()

    start = 0
    end = len(word)
    while start < end and not _is_word_char(word[start]):
        start += 1
    while end > start and not _is_word_char(word[end - 1]):
        end -= 1

    return word[start:end]


def tokenize(text: str) -> Iterator[str]:
    """Split text into normalized word tokens, dropping empties."""
    for token in text.split():
        word = normalize(token)
        if word:
            yield word


def is_stop_word(word: str, language: str = DEFAULT_LANGUAGE) -> bool:
    """True if word is a function word in the given language's closed set."""
    return word in STOP_WORDS.get(language, frozenset())
