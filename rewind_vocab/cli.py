"""Command-line interface for the rewind vocabulary ledger.

WHY: The ledger is useful outside the HTTP server: checking stats, listing
words, exporting a deck, toggling a session, or feeding a subtitle file
through the full pipeline offline to see what a replay would log.

HOW: argparse with one subcommand per operation. Every subcommand opens
the ledger at --db (default from config), does its work, and closes it.
ingest-vtt pushes the file into a MarkupInbox and runs the real
acquisition chain and orchestrator against it, so the same code path as a
live replay is exercised. Results go to stdout; status and errors to
stderr.

RULES:
- Exit code 1 on any handled error, with "Error: ..." on stderr
- logging.basicConfig is only called here (and in run_api via uvicorn)
- words/stats/session output is JSON unless --plain is given
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rewind_vocab import __version__
from rewind_vocab.acquisition.chain import TranscriptAcquirer, build_default_chain
from rewind_vocab.acquisition.sources import MarkupInbox, SubtitleCheck
from rewind_vocab.acquisition.subtitles import parse_vtt
from rewind_vocab.config import (
    API_HOST,
    API_PORT,
    DB_PATH,
    DEFAULT_LANGUAGE,
    FILTER_STOP_WORDS,
    MASTERY_LABELS,
)
from rewind_vocab.core.cues import CueStore
from rewind_vocab.core.models import ReplaySegment
from rewind_vocab.errors import RewindVocabError
from rewind_vocab.ledger.ledger import WORD_FILTERS, WORD_SORTS, VocabularyLedger
from rewind_vocab.orchestrator import ReplayOrchestrator

logger = logging.getLogger(__name__)


def _status(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def _print_json(data: object) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


class _FileSite:
    """Site adapter for a subtitle file on disk."""

    def __init__(self, video_id: str, title: str) -> None:
        self._video_id = video_id
        self._title = title

    def video_id(self) -> Optional[str]:
        return self._video_id

    def video_title(self) -> str:
        return self._title

    def check_subtitles(self) -> Optional[SubtitleCheck]:
        return None


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_serve(args: argparse.Namespace) -> None:
    from rewind_vocab.server.app import init_ledger, run_api

    init_ledger(args.db)
    run_api(host=args.host, port=args.port)


def _cmd_stats(ledger: VocabularyLedger, args: argparse.Namespace) -> None:
    stats = ledger.get_stats()
    if args.plain:
        for key in ("total_words", "learned_words", "total_encounters", "total_sessions"):
            print("{}: {}".format(key, stats[key]))
        print("session active: {}".format("yes" if stats["current_session"] else "no"))
    else:
        _print_json(stats)


def _cmd_words(ledger: VocabularyLedger, args: argparse.Namespace) -> None:
    words = ledger.query_words(filter=args.filter, search=args.search, sort=args.sort)
    if args.limit:
        words = words[:args.limit]
    if args.plain:
        for w in words:
            print("{}\t{}\t{}".format(w.word, w.encounters, MASTERY_LABELS.get(w.mastery_level, "?")))
    else:
        _print_json([w.to_dict() for w in words])


def _cmd_export(ledger: VocabularyLedger, args: argparse.Namespace) -> None:
    result = ledger.export_learning_set()
    if args.output:
        Path(args.output).write_text(result.tsv + "\n", encoding="utf-8")
        _status("Exported {} word(s) to {}".format(result.word_count, args.output))
    else:
        print(result.tsv)


def _cmd_session(ledger: VocabularyLedger, args: argparse.Namespace) -> None:
    if args.action == "start":
        session = ledger.start_session()
        _status("Session {} active".format(session.id))
    elif args.action == "stop":
        session = ledger.stop_session()
        _status("Session {} stopped".format(session.id) if session else "No active session")
    _print_json(ledger.get_session_state())


def _cmd_ingest_vtt(ledger: VocabularyLedger, args: argparse.Namespace) -> None:
    path = Path(args.vtt_file)
    if not path.exists():
        raise RewindVocabError("File not found: {}".format(path))

    text = path.read_text(encoding="utf-8")
    cues = parse_vtt(text)
    video_id = args.video_id or path.stem
    start_s = args.start
    end_s = args.end if args.end is not None else max(c.end_ms for c in cues) / 1000.0

    inbox = MarkupInbox()
    inbox.push(video_id, text)
    acquirer = TranscriptAcquirer(
        build_default_chain(markup_source=inbox), CueStore(), language=args.language
    )
    orchestrator = ReplayOrchestrator(
        _FileSite(video_id, args.title or path.stem),
        acquirer,
        ledger,
        language=args.language,
        filter_stop_words=not args.keep_stop_words,
    )

    asyncio.run(orchestrator.navigate(video_id))
    result = orchestrator.handle_segment(ReplaySegment(start_s=start_s, end_s=end_s))
    if result is None:
        _status("No words to log in {:.1f}s-{:.1f}s".format(start_s, end_s))
        return
    _print_json(result.to_dict())


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser; separate from main() so tests can inspect it."""
    parser = argparse.ArgumentParser(
        prog="rewind_vocab",
        description="Vocabulary ledger built from replayed video segments.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--db",
        default=str(DB_PATH),
        help="SQLite database path (default: %(default)s).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=API_HOST, help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=API_PORT, help="Port (default: %(default)s).")

    stats = sub.add_parser("stats", help="Show totals and the active session.")
    stats.add_argument("--plain", action="store_true", help="Plain text instead of JSON.")

    words = sub.add_parser("words", help="List words.")
    words.add_argument("--filter", choices=WORD_FILTERS, default="all")
    words.add_argument("--search", default=None, help="Case-insensitive substring.")
    words.add_argument("--sort", choices=WORD_SORTS, default="frequency")
    words.add_argument("--limit", type=int, default=0, help="Maximum rows (0 = all).")
    words.add_argument("--plain", action="store_true", help="Tab-separated instead of JSON.")

    export = sub.add_parser("export", help="Export the learning set as TSV.")
    export.add_argument("-o", "--output", default=None, help="Write to a file instead of stdout.")

    session = sub.add_parser("session", help="Start, stop, or inspect the session.")
    session.add_argument("action", choices=("start", "stop", "state"))

    ingest = sub.add_parser(
        "ingest-vtt", help="Log the words of a WebVTT file over a time range."
    )
    ingest.add_argument("vtt_file", help="Path to a .vtt subtitle file.")
    ingest.add_argument("--start", type=float, default=0.0, help="Range start in seconds.")
    ingest.add_argument("--end", type=float, default=None, help="Range end (default: last cue).")
    ingest.add_argument("--video-id", default=None, help="Video identity (default: file stem).")
    ingest.add_argument("--title", default=None, help="Video title (default: file stem).")
    ingest.add_argument("--language", default=DEFAULT_LANGUAGE, help="Default: %(default)s.")
    ingest.add_argument(
        "--keep-stop-words",
        action="store_true",
        default=not FILTER_STOP_WORDS,
        help="Log function words too.",
    )

    return parser


_COMMANDS = {
    "stats": _cmd_stats,
    "words": _cmd_words,
    "export": _cmd_export,
    "session": _cmd_session,
    "ingest-vtt": _cmd_ingest_vtt,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m rewind_vocab`` and the rewind-vocab script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.command == "serve":
        _cmd_serve(args)
        return

    try:
        ledger = VocabularyLedger(args.db)
    except Exception as e:
        print("Error: could not open {}: {}".format(args.db, e), file=sys.stderr)
        sys.exit(1)

    try:
        _COMMANDS[args.command](ledger, args)
    except (RewindVocabError, ValueError, OSError) as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)
    finally:
        ledger.close()


if __name__ == "__main__":
    main()
