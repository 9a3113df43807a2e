"""FastAPI application exposing the vocabulary ledger command surface.

WHY: Presentation layers (a browser extension popup, curl, scripts) need
to log replayed words, browse and edit the word list, read example
sentences, export flashcards, and start or stop sessions. An HTTP API
with OpenAPI docs gives all of them one contract.

HOW: A single FastAPI app with endpoints grouped by tags (words, export,
sessions, health). The ledger is a process-wide singleton opened in the
lifespan handler (or earlier via init_ledger()) and closed on shutdown.
Handlers are plain functions because the ledger does blocking SQLite I/O;
FastAPI runs them in its threadpool and the ledger serializes writes.

RULES:
- Error responses use the ErrorResponse schema
- WordNotFound maps to 404, unknown filter/sort to 422 (enum validation)
- Only one ledger per process; init_ledger() replaces and closes any prior one
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Union

from fastapi import FastAPI, HTTPException, Query

from rewind_vocab import __version__
from rewind_vocab.config import API_HOST, API_PORT, DB_PATH
from rewind_vocab.core.models import WordOccurrence
from rewind_vocab.errors import WordNotFound
from rewind_vocab.ledger.ledger import VocabularyLedger
from rewind_vocab.server.models import (
    ContextListResponse,
    ContextOut,
    DeleteResponse,
    ErrorResponse,
    ExportResponse,
    HealthResponse,
    LogRequest,
    LogResponse,
    SessionOut,
    SessionStartResponse,
    SessionStateResponse,
    StatsResponse,
    WordFilter,
    WordListResponse,
    WordOut,
    WordSort,
    WordUpdate,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Ledger singleton
# ---------------------------------------------------------------------------

_ledger: Optional[VocabularyLedger] = None


def init_ledger(db_path: Union[str, Path] = DB_PATH) -> VocabularyLedger:
    """Open the process-wide ledger, closing any previous one."""
    global _ledger
    close_ledger()
    _ledger = VocabularyLedger(db_path)
    logger.info("Ledger opened at %s", db_path)
    return _ledger


def close_ledger() -> None:
    global _ledger
    if _ledger is not None:
        _ledger.close()
        _ledger = None


def get_ledger() -> VocabularyLedger:
    if _ledger is None:
        raise HTTPException(status_code=503, detail="Ledger is not initialized")
    return _ledger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the ledger on startup unless one is already open; close on shutdown."""
    if _ledger is None:
        init_ledger()
    yield
    close_ledger()


app = FastAPI(
    lifespan=lifespan,
    title="Rewind Vocabulary API",
    description=(
        "Vocabulary ledger built from replayed video segments. Log the words "
        "of each replay, browse and edit the word list, read example "
        "sentences, export a flashcard deck, and manage learning sessions."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


def _not_found(exc: WordNotFound) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


# ---------------------------------------------------------------------------
# Endpoints: Words
# ---------------------------------------------------------------------------


@app.post(
    "/words/log",
    response_model=LogResponse,
    tags=["words"],
    summary="Log one replayed segment's words",
    description=(
        "Upsert each word (increment its encounter count or create it), append "
        "a context sentence when given, and fold the batch into the active "
        "session. Entries that normalize to nothing are skipped."
    ),
)
def log_words(request: LogRequest) -> LogResponse:
    entries = [WordOccurrence(w.word, w.sentence, w.timestamp_ms) for w in request.words]
    result = get_ledger().log_occurrences(
        entries,
        video_id=request.video_id,
        video_title=request.video_title,
        language=request.language,
    )
    return LogResponse(**result.to_dict())


@app.get(
    "/words",
    response_model=WordListResponse,
    tags=["words"],
    summary="List words",
    description=(
        "Filter by mastery/exclusion, search by case-insensitive substring, "
        "and sort. Default sort is most encountered first."
    ),
)
def list_words(
    filter: WordFilter = Query(WordFilter.all, description="Which words to include."),
    search: Optional[str] = Query(None, description="Case-insensitive substring."),
    sort: WordSort = Query(WordSort.frequency, description="Result order."),
) -> WordListResponse:
    words = get_ledger().query_words(filter=filter.value, search=search, sort=sort.value)
    return WordListResponse(words=[WordOut(**w.to_dict()) for w in words])


@app.patch(
    "/words/{word_id}",
    response_model=WordOut,
    tags=["words"],
    summary="Update a word's mastery or exclusion",
    description="Mastery levels outside 0..2 are clamped.",
    responses={
        404: {"model": ErrorResponse, "description": "Word not found"},
    },
)
def update_word(word_id: str, update: WordUpdate) -> WordOut:
    try:
        word = get_ledger().update_word(
            word_id, mastery_level=update.mastery_level, excluded=update.excluded
        )
    except WordNotFound as exc:
        raise _not_found(exc)
    return WordOut(**word.to_dict())


@app.delete(
    "/words/{word_id}",
    response_model=DeleteResponse,
    tags=["words"],
    summary="Delete a word and its contexts",
    responses={
        404: {"model": ErrorResponse, "description": "Word not found"},
    },
)
def delete_word(word_id: str) -> DeleteResponse:
    try:
        get_ledger().delete_word(word_id)
    except WordNotFound as exc:
        raise _not_found(exc)
    return DeleteResponse(deleted=True)


@app.get(
    "/words/{word_id}/contexts",
    response_model=ContextListResponse,
    tags=["words"],
    summary="Example sentences for a word",
    description="Newest first, at most 10.",
)
def list_contexts(word_id: str) -> ContextListResponse:
    contexts = get_ledger().get_contexts(word_id)
    return ContextListResponse(contexts=[ContextOut(**c.to_dict()) for c in contexts])


# ---------------------------------------------------------------------------
# Endpoints: Export and stats
# ---------------------------------------------------------------------------


@app.get(
    "/export",
    response_model=ExportResponse,
    tags=["export"],
    summary="Export the learning set as TSV",
    description=(
        "One row per non-excluded word below the top mastery level: word, "
        "newest example sentence with source and time, and tags."
    ),
)
def export_learning_set() -> ExportResponse:
    result = get_ledger().export_learning_set()
    return ExportResponse(tsv=result.tsv, word_count=result.word_count)


@app.get(
    "/stats",
    response_model=StatsResponse,
    tags=["export"],
    summary="Totals and active session snapshot",
)
def get_stats() -> StatsResponse:
    return StatsResponse(**get_ledger().get_stats())


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions/start",
    response_model=SessionStartResponse,
    tags=["sessions"],
    summary="Start a learning session",
    description=(
        "Returns the session state and a snapshot of the active session. "
        "If a session is already active it is returned unchanged."
    ),
)
def start_session() -> SessionStartResponse:
    record = get_ledger().start_session()
    return SessionStartResponse(
        active=True, session_id=record.id, session=SessionOut(**record.to_dict())
    )


@app.post(
    "/sessions/stop",
    response_model=SessionStateResponse,
    tags=["sessions"],
    summary="Stop the active session",
    description="Stamps the end time and clears the active pointer. No-op when idle.",
)
def stop_session() -> SessionStateResponse:
    get_ledger().stop_session()
    return SessionStateResponse(active=False, session_id=None)


@app.get(
    "/sessions/state",
    response_model=SessionStateResponse,
    tags=["sessions"],
    summary="Whether a session is active",
)
def session_state() -> SessionStateResponse:
    return SessionStateResponse(**get_ledger().get_session_state())


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check.",
)
def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api(host: str = API_HOST, port: int = API_PORT) -> None:
    """Entry point for the rewind-vocab-api console script."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
