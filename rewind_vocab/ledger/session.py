"""Active learning session: the single process-wide session pointer.

WHY: Only one session may be active at a time, and that fact must survive
a restart and hold across every process that opens the same database
(the API server and the CLI, for instance). The pointer therefore lives
in the database itself, as one row in the meta table, behind an explicit
service rather than a module global.

HOW: Every operation reads the pointer inside the same transaction that
acts on it. init() drops a pointer whose session row is gone. start()
creates a session row and stores its id; stop() stamps end_time and
clears the pointer. record_activity() is called by the ledger inside its
own batch transaction.

RULES:
- start() while a session is active is a no-op returning that session
- stop() with no active session is a no-op
- Only the session id is persisted as the pointer, never the record
- record_activity() bumps end_time, counters, and the distinct video list
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from datetime import date
from typing import Optional

from rewind_vocab.core.models import SessionRecord
from rewind_vocab.ledger.store import LedgerDatabase, row_to_session

logger = logging.getLogger(__name__)

ACTIVE_SESSION_KEY = "active_session_id"


def _now_ms() -> int:
    return int(time.time() * 1000)


class SessionService:
    """Reads and writes the active-session pointer of one ledger database.

    RULES:
    - The pointer is read from the meta table on every call, never cached,
      so several processes sharing one database file agree on it
    """

    def __init__(self, db: LedgerDatabase) -> None:
        self._db = db

    def _pointer(self, conn: sqlite3.Connection) -> Optional[int]:
        raw = self._db.get_meta(conn, ACTIVE_SESSION_KEY)
        return int(raw) if raw else None

    @property
    def active_id(self) -> Optional[int]:
        with self._db.read() as conn:
            return self._pointer(conn)

    @property
    def active(self) -> bool:
        return self.active_id is not None

    def init(self) -> None:
        """Drop a persisted pointer whose session row is gone."""
        with self._db.transaction() as conn:
            active_id = self._pointer(conn)
            if active_id is not None and self._get(conn, active_id) is None:
                logger.warning("Active session %s no longer exists; clearing pointer", active_id)
                self._db.set_meta(conn, ACTIVE_SESSION_KEY, None)
                active_id = None
        if active_id is not None:
            logger.info("Resumed active session %d", active_id)

    def start(self) -> SessionRecord:
        with self._db.transaction() as conn:
            active_id = self._pointer(conn)
            if active_id is not None:
                existing = self._get(conn, active_id)
                if existing is not None:
                    return existing

            now = _now_ms()
            cur = conn.execute(
                "INSERT INTO sessions (date, start_time, end_time) VALUES (?, ?, ?)",
                (date.today().isoformat(), now, now),
            )
            session_id = cur.lastrowid
            self._db.set_meta(conn, ACTIVE_SESSION_KEY, str(session_id))
            record = self._get(conn, session_id)

        logger.info("Started session %d", session_id)
        return record

    def stop(self) -> Optional[SessionRecord]:
        with self._db.transaction() as conn:
            session_id = self._pointer(conn)
            if session_id is None:
                return None
            conn.execute(
                "UPDATE sessions SET end_time = ? WHERE id = ?", (_now_ms(), session_id)
            )
            self._db.set_meta(conn, ACTIVE_SESSION_KEY, None)
            record = self._get(conn, session_id)

        logger.info("Stopped session %d", session_id)
        return record

    def current(self) -> Optional[SessionRecord]:
        with self._db.read() as conn:
            active_id = self._pointer(conn)
            if active_id is None:
                return None
            return self._get(conn, active_id)

    def state(self) -> dict:
        active_id = self.active_id
        return {"active": active_id is not None, "session_id": active_id}

    def record_activity(
        self,
        conn: sqlite3.Connection,
        words: int,
        new_words: int,
        video_id: Optional[str],
    ) -> None:
        """Fold one logged batch into the active session (inside a transaction)."""
        active_id = self._pointer(conn)
        if active_id is None:
            return
        session = self._get(conn, active_id)
        if session is None:
            raise LookupError("Active session {} not found".format(active_id))

        video_ids = list(session.video_ids)
        if video_id and video_id not in video_ids:
            video_ids.append(video_id)

        conn.execute(
            "UPDATE sessions SET words_encountered = words_encountered + ?, "
            "new_words = new_words + ?, rewinds = rewinds + 1, "
            "video_ids = ?, end_time = ? WHERE id = ?",
            (words, new_words, json.dumps(video_ids), _now_ms(), active_id),
        )

    @staticmethod
    def _get(conn: sqlite3.Connection, session_id: int) -> Optional[SessionRecord]:
        row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return row_to_session(row) if row else None
