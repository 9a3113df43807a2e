"""Vocabulary ledger: word upserts, contexts, queries, export, and stats.

WHY: Every replayed segment ends here. The ledger must count encounters
exactly once per occurrence even when batches race, keep one record per
(language, word), remember where each word was heard, and fold the batch
into the active session without letting a session problem lose words.

HOW: log_occurrences() runs one BEGIN IMMEDIATE transaction per batch.
Each entry is upserted inside its own SAVEPOINT with an in-SQL increment
(encounters = encounters + 1), so a failing entry is skipped and the rest
of the batch commits. Session bookkeeping runs last in a separate
SAVEPOINT; if it fails, only that savepoint rolls back and the failure is
logged as SessionBookkeepingFailure.

RULES:
- Entries are normalized again on the way in; empty words are skipped
- encounters never decreases; first_seen is set once
- A context row is appended only when the entry carries a sentence
- mastery_level is clamped to [MASTERY_MIN, MASTERY_MAX]; learned mirrors
  mastery_level == MASTERY_MAX
- delete_word() cascades to contexts via the foreign key
- get_contexts() returns at most CONTEXT_LIMIT rows, newest first
"""

from __future__ import annotations

import logging
import sqlite3
import time
import unicodedata
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from rewind_vocab.config import (
    CONTEXT_LIMIT,
    DB_PATH,
    DEFAULT_LANGUAGE,
    EXPORT_DECK_NAME,
    MASTERY_MAX,
    MASTERY_MIN,
)
from rewind_vocab.core.models import (
    ContextRecord,
    LogResult,
    SessionRecord,
    WordOccurrence,
    WordRecord,
    make_word_id,
)
from rewind_vocab.core.normalizer import normalize
from rewind_vocab.errors import SessionBookkeepingFailure, WordNotFound
from rewind_vocab.ledger.export import ExportResult, build_learning_set
from rewind_vocab.ledger.session import SessionService
from rewind_vocab.ledger.store import (
    LedgerDatabase,
    row_to_context,
    row_to_word,
    savepoint,
)

logger = logging.getLogger(__name__)

WORD_FILTERS = ("all", "known", "learning", "new", "excluded", "default")
WORD_SORTS = ("alpha", "recent", "mastery", "frequency")

_FILTER_SQL = {
    "all": "1 = 1",
    "known": "excluded = 0 AND mastery_level = {}".format(MASTERY_MAX),
    "learning": "excluded = 0 AND mastery_level > {} AND mastery_level < {}".format(
        MASTERY_MIN, MASTERY_MAX
    ),
    "new": "excluded = 0 AND mastery_level = {}".format(MASTERY_MIN),
    "excluded": "excluded = 1",
    "default": "excluded = 0 AND mastery_level < {}".format(MASTERY_MAX),
}

_SORT_SQL = {
    "recent": "last_seen DESC, id",
    "mastery": "mastery_level DESC, encounters DESC, id",
    "frequency": "encounters DESC, id",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def clamp_mastery(level: int) -> int:
    return max(MASTERY_MIN, min(MASTERY_MAX, int(level)))


def _alpha_key(word: str) -> tuple:
    folded = unicodedata.normalize("NFKD", word)
    base = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return (base.casefold(), word)


class VocabularyLedger:
    """Persistent vocabulary state backed by SQLite.

    WHY: The HTTP surface, the CLI, and the orchestrator all mutate the
    same records; one class owning the database and the session service
    keeps every write on the same lock and transaction rules.

    RULES:
    - Construct once per process (see server.app for the singleton)
    - close() releases the database; the ledger is unusable afterwards
    """

    def __init__(
        self,
        db_path: Union[str, Path] = DB_PATH,
        deck_name: str = EXPORT_DECK_NAME,
    ) -> None:
        self.db = LedgerDatabase(db_path)
        self.sessions = SessionService(self.db)
        self.sessions.init()
        self.deck_name = deck_name

    def close(self) -> None:
        self.db.close()

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def log_occurrences(
        self,
        entries: Iterable[WordOccurrence],
        video_id: Optional[str] = None,
        video_title: str = "",
        language: str = DEFAULT_LANGUAGE,
    ) -> LogResult:
        """Record a batch of word occurrences from one replayed segment.

        Args:
            entries: Occurrences; words may be raw or already normalized.
            video_id: Identity of the video the batch came from.
            video_title: Human-readable title stored with each context.
            language: ISO 639-1 code forming half of each word key.

        Returns:
            LogResult with new/updated/total counts and skipped entries.
        """
        result = LogResult()
        now = _now_ms()

        with self.db.transaction() as conn:
            for entry in entries:
                word = normalize(str(entry.word or ""))
                if not word:
                    result.skipped += 1
                    continue

                try:
                    with savepoint(conn, "entry"):
                        is_new = self._upsert(conn, entry, word, video_id, video_title, language, now)
                except Exception:
                    logger.exception("Failed to log %r; continuing batch", word)
                    result.skipped += 1
                    continue

                if is_new:
                    result.new_words += 1
                else:
                    result.updated_words += 1
                result.total_logged += 1

            try:
                with savepoint(conn, "session"):
                    self.sessions.record_activity(
                        conn, result.total_logged, result.new_words, video_id
                    )
            except (sqlite3.Error, LookupError) as exc:
                failure = SessionBookkeepingFailure(str(exc))
                logger.warning("Session update failed: %s", failure)

        logger.debug(
            "Logged %d words (%d new, %d updated, %d skipped) for %s",
            result.total_logged, result.new_words, result.updated_words, result.skipped, video_id,
        )
        return result

    @staticmethod
    def _upsert(
        conn: sqlite3.Connection,
        entry: WordOccurrence,
        word: str,
        video_id: Optional[str],
        video_title: str,
        language: str,
        now: int,
    ) -> bool:
        word_id = make_word_id(language, word)
        cur = conn.execute(
            "UPDATE words SET encounters = encounters + 1, last_seen = ? WHERE id = ?",
            (now, word_id),
        )
        is_new = cur.rowcount == 0
        if is_new:
            conn.execute(
                "INSERT INTO words (id, word, language, encounters, first_seen, last_seen) "
                "VALUES (?, ?, ?, 1, ?, ?)",
                (word_id, word, language, now, now),
            )

        if entry.sentence:
            conn.execute(
                "INSERT INTO contexts "
                "(word_id, sentence, video_id, video_title, timestamp_ms, captured_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (word_id, entry.sentence, video_id, video_title or "",
                 int(entry.timestamp_ms or 0), now),
            )
        return is_new

    # ------------------------------------------------------------------
    # Words
    # ------------------------------------------------------------------

    def get_word(self, word_id: str) -> WordRecord:
        with self.db.read() as conn:
            row = conn.execute("SELECT * FROM words WHERE id = ?", (word_id,)).fetchone()
        if row is None:
            raise WordNotFound(word_id)
        return row_to_word(row)

    def query_words(
        self,
        filter: str = "all",
        search: Optional[str] = None,
        sort: str = "frequency",
        language: Optional[str] = None,
    ) -> List[WordRecord]:
        """List word records.

        Raises:
            ValueError: Unknown filter or sort name.
        """
        if filter not in _FILTER_SQL:
            raise ValueError("Unknown filter {!r}. Expected one of: {}".format(
                filter, ", ".join(WORD_FILTERS)))
        if sort not in WORD_SORTS:
            raise ValueError("Unknown sort {!r}. Expected one of: {}".format(
                sort, ", ".join(WORD_SORTS)))

        clauses = [_FILTER_SQL[filter]]
        params: List[Any] = []
        if search:
            clauses.append("instr(word, ?) > 0")
            params.append(search.lower())
        if language:
            clauses.append("language = ?")
            params.append(language)

        sql = "SELECT * FROM words WHERE {}".format(" AND ".join(clauses))
        if sort != "alpha":
            sql += " ORDER BY {}".format(_SORT_SQL[sort])

        with self.db.read() as conn:
            words = [row_to_word(row) for row in conn.execute(sql, params)]

        if sort == "alpha":
            words.sort(key=lambda w: _alpha_key(w.word))
        return words

    def update_word(
        self,
        word_id: str,
        mastery_level: Optional[int] = None,
        excluded: Optional[bool] = None,
    ) -> WordRecord:
        """Apply a user edit. Out-of-range mastery is clamped, not rejected."""
        with self.db.transaction() as conn:
            row = conn.execute("SELECT * FROM words WHERE id = ?", (word_id,)).fetchone()
            if row is None:
                raise WordNotFound(word_id)

            if mastery_level is not None:
                level = clamp_mastery(mastery_level)
                conn.execute(
                    "UPDATE words SET mastery_level = ?, learned = ? WHERE id = ?",
                    (level, int(level == MASTERY_MAX), word_id),
                )
            if excluded is not None:
                conn.execute(
                    "UPDATE words SET excluded = ? WHERE id = ?", (int(bool(excluded)), word_id)
                )
            row = conn.execute("SELECT * FROM words WHERE id = ?", (word_id,)).fetchone()
        return row_to_word(row)

    def delete_word(self, word_id: str) -> None:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM words WHERE id = ?", (word_id,))
            if cur.rowcount == 0:
                raise WordNotFound(word_id)
        logger.info("Deleted word %s", word_id)

    def get_contexts(self, word_id: str, limit: int = CONTEXT_LIMIT) -> List[ContextRecord]:
        with self.db.read() as conn:
            rows = conn.execute(
                "SELECT * FROM contexts WHERE word_id = ? "
                "ORDER BY captured_at DESC, id DESC LIMIT ?",
                (word_id, limit),
            ).fetchall()
        return [row_to_context(row) for row in rows]

    # ------------------------------------------------------------------
    # Export and stats
    # ------------------------------------------------------------------

    def export_learning_set(self) -> ExportResult:
        words = self.query_words(filter="default", sort="frequency")
        pairs = []
        for word in words:
            contexts = self.get_contexts(word.id, limit=1)
            pairs.append((word, contexts[0] if contexts else None))
        return build_learning_set(pairs, deck_name=self.deck_name)

    def get_stats(self) -> Dict[str, Any]:
        with self.db.read() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total, "
                "COALESCE(SUM(CASE WHEN mastery_level = ? THEN 1 ELSE 0 END), 0) AS learned, "
                "COALESCE(SUM(encounters), 0) AS encounters "
                "FROM words WHERE excluded = 0",
                (MASTERY_MAX,),
            ).fetchone()
            total_sessions = conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0]

        current = self.sessions.current()
        return {
            "total_words": row["total"],
            "learned_words": row["learned"],
            "total_encounters": row["encounters"],
            "total_sessions": total_sessions,
            "current_session": current.to_dict() if current else None,
        }

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self) -> SessionRecord:
        return self.sessions.start()

    def stop_session(self) -> Optional[SessionRecord]:
        return self.sessions.stop()

    def get_session_state(self) -> Dict[str, Any]:
        return self.sessions.state()
