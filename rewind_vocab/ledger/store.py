"""SQLite storage for words, contexts, sessions, and the active-session pointer.

WHY: The ledger needs keyed collections with secondary indexes and real
transactions spanning several of them, durable across restarts. SQLite
gives all of that from the standard library with a single file.

HOW: One connection per LedgerDatabase, shared across threads and guarded
by a threading.Lock. transaction() takes the lock and opens a
BEGIN IMMEDIATE transaction so concurrent batches serialize on the write
lock instead of interleaving. savepoint() nests a partial rollback scope
inside a running transaction. Rows are converted to the dataclasses in
core.models here so callers never see sqlite3.Row.

RULES:
- Foreign keys are ON; contexts cascade when their word is deleted
- isolation_level=None: every transaction is begun explicitly
- Booleans are stored as 0/1, video_ids as a JSON array
- The meta table holds process-wide pointers (active_session_id)
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from rewind_vocab.core.models import ContextRecord, SessionRecord, WordRecord

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS words (
    id              TEXT PRIMARY KEY,
    word            TEXT NOT NULL,
    language        TEXT NOT NULL,
    encounters      INTEGER NOT NULL DEFAULT 1,
    first_seen      INTEGER NOT NULL,
    last_seen       INTEGER NOT NULL,
    mastery_level   INTEGER NOT NULL DEFAULT 0,
    excluded        INTEGER NOT NULL DEFAULT 0,
    learned         INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_words_encounters ON words(encounters DESC);
CREATE INDEX IF NOT EXISTS idx_words_last_seen ON words(last_seen DESC);
CREATE INDEX IF NOT EXISTS idx_words_mastery ON words(mastery_level);
CREATE INDEX IF NOT EXISTS idx_words_excluded ON words(excluded);

CREATE TABLE IF NOT EXISTS contexts (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    word_id         TEXT NOT NULL REFERENCES words(id) ON DELETE CASCADE,
    sentence        TEXT NOT NULL,
    video_id        TEXT,
    video_title     TEXT NOT NULL DEFAULT '',
    timestamp_ms    INTEGER NOT NULL DEFAULT 0,
    captured_at     INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_contexts_word ON contexts(word_id);
CREATE INDEX IF NOT EXISTS idx_contexts_video ON contexts(video_id);

CREATE TABLE IF NOT EXISTS sessions (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    date                TEXT NOT NULL,
    start_time          INTEGER NOT NULL,
    end_time            INTEGER NOT NULL,
    words_encountered   INTEGER NOT NULL DEFAULT 0,
    new_words           INTEGER NOT NULL DEFAULT 0,
    rewinds             INTEGER NOT NULL DEFAULT 0,
    video_ids           TEXT NOT NULL DEFAULT '[]'
);

CREATE INDEX IF NOT EXISTS idx_sessions_date ON sessions(date);

CREATE TABLE IF NOT EXISTS meta (
    key     TEXT PRIMARY KEY,
    value   TEXT
);
"""


def row_to_word(row: sqlite3.Row) -> WordRecord:
    return WordRecord(
        id=row["id"],
        word=row["word"],
        language=row["language"],
        encounters=row["encounters"],
        first_seen=row["first_seen"],
        last_seen=row["last_seen"],
        mastery_level=row["mastery_level"],
        excluded=bool(row["excluded"]),
        learned=bool(row["learned"]),
    )


def row_to_context(row: sqlite3.Row) -> ContextRecord:
    return ContextRecord(
        id=row["id"],
        word_id=row["word_id"],
        sentence=row["sentence"],
        video_id=row["video_id"],
        video_title=row["video_title"],
        timestamp_ms=row["timestamp_ms"],
        captured_at=row["captured_at"],
    )


def row_to_session(row: sqlite3.Row) -> SessionRecord:
    return SessionRecord(
        id=row["id"],
        date=row["date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        words_encountered=row["words_encountered"],
        new_words=row["new_words"],
        rewinds=row["rewinds"],
        video_ids=json.loads(row["video_ids"] or "[]"),
    )


@contextmanager
def savepoint(conn: sqlite3.Connection, name: str) -> Iterator[None]:
    """Run a block inside SAVEPOINT ``name``; roll back only the block on error."""
    conn.execute("SAVEPOINT {}".format(name))
    try:
        yield
    except BaseException:
        conn.execute("ROLLBACK TO SAVEPOINT {}".format(name))
        conn.execute("RELEASE SAVEPOINT {}".format(name))
        raise
    conn.execute("RELEASE SAVEPOINT {}".format(name))


class LedgerDatabase:
    """Owns the SQLite connection and the write lock.

    RULES:
    - Use transaction() for writes and read() for reads
    - close() is idempotent; the object is unusable afterwards
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = db_path
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self._open()

    def _open(self) -> None:
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR IGNORE INTO meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
        self._conn = conn
        logger.debug("Opened ledger database at %s", self.db_path)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _ensure_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("LedgerDatabase is closed")
        return self._conn

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            yield self._ensure_conn()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Exclusive write transaction: commit on success, roll back on error."""
        with self._lock:
            conn = self._ensure_conn()
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # meta
    # ------------------------------------------------------------------

    @staticmethod
    def get_meta(conn: sqlite3.Connection, key: str) -> Optional[str]:
        row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    @staticmethod
    def set_meta(conn: sqlite3.Connection, key: str, value: Optional[str]) -> None:
        if value is None:
            conn.execute("DELETE FROM meta WHERE key = ?", (key,))
        else:
            conn.execute(
                "INSERT INTO meta (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
