"""Configuration constants, stop-word sets, mastery labels, and .env loading.

WHY: Centralizes every tunable value (timeouts, thresholds, storage path,
target language, export deck name) so both humans and coding agents can
find and override them without digging through pipeline logic.

HOW: python-dotenv loads the .env file on import. Constants are module-level
values read from the environment with sensible defaults. Closed data sets
(stop words, mastery labels, language aliases) are plain dicts and sets.

RULES:
- All defaults can be overridden via environment variables
- Time values ending in _S are float seconds, _MS are integer milliseconds
- STOP_WORDS maps ISO 639-1 codes to closed frozensets of function words
- Mastery is a 3-level user-driven scale: 0 new, 1 learning, 2 known
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the process is started)
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


# ---------------------------------------------------------------------------
# Storage and language
# ---------------------------------------------------------------------------

DB_PATH = Path(os.getenv("REWIND_DB_PATH", "rewind_vocab.db"))
DEFAULT_LANGUAGE = os.getenv("REWIND_LANGUAGE", "es")
FILTER_STOP_WORDS = os.getenv("REWIND_FILTER_STOP_WORDS", "true").lower() == "true"

# ---------------------------------------------------------------------------
# Segment detection
# ---------------------------------------------------------------------------

REWIND_THRESHOLD_S = 1.0
"""A backward seek must exceed this many seconds to count as a replay."""

KEY_REWIND_STEP_S = _env_float("REWIND_KEY_STEP_S", 5.0)

# ---------------------------------------------------------------------------
# Transcript acquisition
# ---------------------------------------------------------------------------

BRIDGE_TIMEOUT_S = _env_float("REWIND_BRIDGE_TIMEOUT_S", 2.0)
STRATEGY_TIMEOUT_S = _env_float("REWIND_STRATEGY_TIMEOUT_S", 15.0)
HTTP_TIMEOUT_S = _env_float("REWIND_HTTP_TIMEOUT_S", 10.0)
TEXT_TRACK_POLL_INTERVAL_S = 0.5
TEXT_TRACK_POLL_ATTEMPTS = _env_int("REWIND_TEXT_TRACK_POLL_ATTEMPTS", 4)

WATCH_PAGE_URL = os.getenv("REWIND_WATCH_PAGE_URL", "https://www.youtube.com/watch")
PLAYER_RESPONSE_MARKER = "ytInitialPlayerResponse"
SUBTITLE_FORMAT_PARAM = "fmt"
SUBTITLE_STRUCTURED_FORMAT = "json3"

LANGUAGE_ALIASES: dict[str, set[str]] = {
    "es": {"es", "spa"},
    "en": {"en", "eng"},
    "fr": {"fr", "fra", "fre"},
    "de": {"de", "deu", "ger"},
    "it": {"it", "ita"},
    "pt": {"pt", "por"},
}


def language_matches(track_language: str | None, target: str) -> bool:
    """True if a track language tag names the target language.

    Accepts ISO 639-2 aliases ("spa") and regional tags ("es-419").
    """
    if not track_language:
        return False
    primary = track_language.lower().split("-")[0]
    return primary in LANGUAGE_ALIASES.get(target, {target})


# ---------------------------------------------------------------------------
# Vocabulary ledger
# ---------------------------------------------------------------------------

MASTERY_MIN = 0
MASTERY_MAX = 2
MASTERY_LABELS: dict[int, str] = {0: "new", 1: "learning", 2: "known"}

CONTEXT_LIMIT = 10
"""Maximum number of context sentences returned per word (newest first)."""

EXPORT_DECK_NAME = os.getenv("REWIND_DECK_NAME", "Rewind Vocabulary")

SUBTITLE_WARNING_INTERVAL_S = 30.0

# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------

API_HOST = os.getenv("REWIND_API_HOST", "127.0.0.1")
API_PORT = _env_int("REWIND_API_PORT", 8000)

# ---------------------------------------------------------------------------
# Stop words: common function words that add noise to vocabulary tracking
# ---------------------------------------------------------------------------

STOP_WORDS: dict[str, frozenset[str]] = {
    "es": frozenset({
        "a", "al", "algo", "con", "de", "del", "el", "en", "es", "eso",
        "esta", "este", "esto", "hay", "la", "las", "le", "les", "lo",
        "los", "me", "mi", "muy", "más", "no", "nos", "o", "para", "pero",
        "por", "que", "qué", "se", "si", "sin", "su", "sus", "sí", "te",
        "tu", "tú", "un", "una", "y", "ya", "yo",
    }),
    "en": frozenset({
        "a", "an", "and", "are", "as", "at", "be", "but", "by", "do",
        "for", "from", "he", "i", "in", "is", "it", "me", "my", "not",
        "of", "on", "or", "she", "so", "that", "the", "they", "this",
        "to", "was", "we", "with", "you",
    }),
}
