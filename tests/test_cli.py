"""Tests for the command-line interface.

WHY: The CLI is the offline way to inspect and feed the ledger. These
tests run main() with explicit argv against a ledger file in tmp_path and
check stdout, stderr, and exit codes.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from rewind_vocab.cli import build_parser, main


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "cli.db")


@pytest.fixture
def vtt_file(tmp_path, vtt_text):
    path = tmp_path / "episodio.vtt"
    path.write_text(vtt_text, encoding="utf-8")
    return str(path)


class TestParser:
    def test_words_defaults(self):
        args = build_parser().parse_args(["words"])
        assert args.filter == "all"
        assert args.sort == "frequency"
        assert args.limit == 0
        assert args.plain is False

    def test_command_required(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([])
        assert exc_info.value.code == 2

    def test_unknown_filter_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["words", "--filter", "bogus"])

    def test_ingest_options(self):
        args = build_parser().parse_args(
            ["ingest-vtt", "a.vtt", "--start", "10", "--end", "12.5", "--video-id", "abc"]
        )
        assert args.start == 10.0
        assert args.end == 12.5
        assert args.video_id == "abc"


class TestIngestVtt:
    def test_logs_whole_file(self, db, vtt_file, capsys):
        main(["--db", db, "ingest-vtt", vtt_file, "--video-id", "abc", "--title", "Serie"])

        result = json.loads(capsys.readouterr().out)
        assert result == {"new_words": 4, "updated_words": 1, "total_logged": 5, "skipped": 0}

        main(["--db", db, "words", "--plain"])
        lines = capsys.readouterr().out.strip().split("\n")
        assert lines[0] == "está\t2\tnew"
        assert sorted(line.split("\t")[0] for line in lines) == ["casa", "dónde", "está", "él"]

    def test_time_range(self, db, vtt_file, capsys):
        main(["--db", db, "ingest-vtt", vtt_file, "--start", "13", "--end", "15"])
        assert json.loads(capsys.readouterr().out)["total_logged"] == 2

    def test_keep_stop_words(self, db, vtt_file, capsys):
        main(["--db", db, "ingest-vtt", vtt_file, "--start", "13", "--end", "15", "--keep-stop-words"])
        assert json.loads(capsys.readouterr().out)["total_logged"] == 4

    def test_video_id_defaults_to_file_stem(self, db, vtt_file, capsys):
        main(["--db", db, "ingest-vtt", vtt_file, "--end", "12"])
        capsys.readouterr()
        main(["--db", db, "words"])
        words = json.loads(capsys.readouterr().out)
        assert {w["word"] for w in words} == {"dónde", "está", "él"}

    def test_empty_range(self, db, vtt_file, capsys):
        main(["--db", db, "ingest-vtt", vtt_file, "--start", "100", "--end", "110"])
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "No words to log" in captured.err

    def test_missing_file(self, db, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--db", db, "ingest-vtt", str(tmp_path / "nope.vtt")])
        assert exc_info.value.code == 1
        assert "Error: File not found" in capsys.readouterr().err

    def test_not_a_vtt_file(self, db, tmp_path, capsys):
        path = tmp_path / "bad.vtt"
        path.write_text("", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["--db", db, "ingest-vtt", str(path)])
        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().err


class TestLedgerCommands:
    def test_stats_json(self, db, capsys):
        main(["--db", db, "stats"])
        assert json.loads(capsys.readouterr().out)["total_words"] == 0

    def test_stats_plain(self, db, capsys):
        main(["--db", db, "stats", "--plain"])
        out = capsys.readouterr().out
        assert "total_words: 0" in out
        assert "session active: no" in out

    def test_session_start_state_stop(self, db, capsys):
        main(["--db", db, "session", "start"])
        captured = capsys.readouterr()
        assert json.loads(captured.out) == {"active": True, "session_id": 1}
        assert "Session 1 active" in captured.err

        main(["--db", db, "session", "state"])
        assert json.loads(capsys.readouterr().out)["active"] is True

        main(["--db", db, "session", "stop"])
        captured = capsys.readouterr()
        assert json.loads(captured.out) == {"active": False, "session_id": None}
        assert "Session 1 stopped" in captured.err

    def test_words_limit(self, db, vtt_file, capsys):
        main(["--db", db, "ingest-vtt", vtt_file])
        capsys.readouterr()
        main(["--db", db, "words", "--limit", "1"])
        words = json.loads(capsys.readouterr().out)
        assert [w["word"] for w in words] == ["está"]

    def test_export_to_file(self, db, vtt_file, tmp_path, capsys):
        main(["--db", db, "ingest-vtt", vtt_file, "--title", "Serie"])
        capsys.readouterr()
        out_path = tmp_path / "deck.tsv"

        main(["--db", db, "export", "-o", str(out_path)])

        assert "Exported 4 word(s)" in capsys.readouterr().err
        lines = out_path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "#separator:tab"
        assert len(lines) == 8

    def test_export_to_stdout(self, db, capsys):
        main(["--db", db, "export"])
        assert capsys.readouterr().out.startswith("#separator:tab\n#html:false\n")

    def test_unopenable_database(self, tmp_path, capsys):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["--db", str(blocker / "cli.db"), "stats"])
        assert exc_info.value.code == 1
        assert "Error: could not open" in capsys.readouterr().err


class TestServe:
    def test_serve_opens_ledger_and_runs_api(self, db):
        with patch("rewind_vocab.server.app.init_ledger") as init_ledger, \
                patch("rewind_vocab.server.app.run_api") as run_api:
            main(["--db", db, "serve", "--port", "9001"])
        init_ledger.assert_called_once_with(db)
        run_api.assert_called_once_with(host="127.0.0.1", port=9001)
