"""Tests for the JSON3 and WebVTT subtitle parsers.

WHY: Both parsers sit at the trust boundary with whatever the host page or
network returns. They must turn good payloads into identical cues and
turn bad ones into MalformedInput naming the strategy, never a crash.
"""

from __future__ import annotations

import json

import pytest

from rewind_vocab.acquisition.subtitles import (
    parse_json3,
    parse_vtt,
    parse_vtt_timestamp,
    strip_tags,
)
from rewind_vocab.core.models import Cue, CueSegment
from rewind_vocab.errors import AcquisitionFailure, MalformedInput


class TestStripTags:
    def test_removes_inline_markup(self):
        assert strip_tags("<c.colorE5E5E5>hola</c> <i>mundo</i>") == "hola mundo"

    def test_removes_karaoke_timestamps(self):
        assert strip_tags("uno<00:00:01.200><c> dos</c>") == "uno dos"

    def test_collapses_whitespace(self):
        assert strip_tags("  a\n\n b\t c ") == "a b c"


# ---------------------------------------------------------------------------
# JSON3
# ---------------------------------------------------------------------------


class TestParseJson3:
    def test_parses_events_into_cues(self, json3_body):
        cues = parse_json3(json3_body)
        assert [c.text for c in cues] == ["¿Dónde está él?", "Está en la casa."]
        assert cues[0].start_ms == 10000
        assert cues[0].end_ms == 12000
        assert cues[1] == Cue(
            start_ms=13500,
            end_ms=15000,
            text="Está en la casa.",
            segments=(CueSegment("Está en la casa.", 0),),
        )

    def test_keeps_segment_offsets(self, json3_body):
        cues = parse_json3(json3_body)
        assert cues[0].segments == (
            CueSegment("¿Dónde", 0),
            CueSegment("está", 400),
            CueSegment("él?", 900),
        )

    def test_events_without_text_are_dropped(self, json3_body):
        cues = parse_json3(json3_body)
        assert all(c.text for c in cues)
        assert len(cues) == 2

    @pytest.mark.parametrize("body", ["", "   \n"])
    def test_empty_body_is_malformed(self, body):
        with pytest.raises(MalformedInput) as exc_info:
            parse_json3(body, strategy="bridge")
        assert exc_info.value.strategy == "bridge"

    def test_non_json_body_is_malformed(self):
        with pytest.raises(MalformedInput, match="not valid JSON"):
            parse_json3("<html>consent</html>")

    def test_schema_mismatch_is_malformed(self):
        with pytest.raises(MalformedInput, match="Unexpected subtitle payload"):
            parse_json3(json.dumps({"events": "nope"}))

    def test_missing_events_is_malformed(self):
        with pytest.raises(MalformedInput):
            parse_json3(json.dumps({"wireMagic": "pb3"}))

    def test_no_text_anywhere_is_malformed(self):
        with pytest.raises(MalformedInput, match="no caption text"):
            parse_json3(json.dumps({"events": [{"tStartMs": 0, "segs": [{"utf8": "\n"}]}]}))

    def test_malformed_input_is_an_acquisition_failure(self):
        with pytest.raises(AcquisitionFailure):
            parse_json3("")


# ---------------------------------------------------------------------------
# WebVTT
# ---------------------------------------------------------------------------


class TestParseVttTimestamp:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("00:00:10.000", 10000),
            ("01:02:03.456", 3723456),
            ("00:13.500", 13500),
            ("00:01,500", 1500),
            ("00:00:01,250", 1250),
        ],
    )
    def test_formats(self, value, expected):
        assert parse_vtt_timestamp(value) == expected

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_vtt_timestamp("10")


class TestParseVtt:
    def test_parses_cues(self, vtt_text):
        cues = parse_vtt(vtt_text)
        assert cues == [
            Cue(start_ms=10000, end_ms=12000, text="¿Dónde está él?"),
            Cue(start_ms=13500, end_ms=15000, text="Está en la casa."),
        ]

    def test_crlf_line_endings(self, vtt_text):
        cues = parse_vtt(vtt_text.replace("\n", "\r\n"))
        assert len(cues) == 2

    def test_multiline_cue_text_is_joined(self):
        text = "WEBVTT\n\n00:01.000 --> 00:02.000\nprimera línea\nsegunda línea\n"
        assert parse_vtt(text)[0].text == "primera línea segunda línea"

    def test_cue_without_blank_separator(self):
        text = "WEBVTT\n\n00:01.000 --> 00:02.000\nuno\n00:02.000 --> 00:03.000\ndos\n"
        assert [c.text for c in parse_vtt(text)] == ["uno", "dos"]

    def test_tag_only_cue_is_skipped(self):
        text = "WEBVTT\n\n00:01.000 --> 00:02.000\n<c></c>\n\n00:02.000 --> 00:03.000\ndos\n"
        assert [c.text for c in parse_vtt(text)] == ["dos"]

    def test_bad_timing_line_is_skipped(self):
        text = "WEBVTT\n\nxx --> yy\nroto\n\n00:02.000 --> 00:03.000\nbien\n"
        assert [c.text for c in parse_vtt(text)] == ["bien"]

    def test_empty_document_is_malformed(self):
        with pytest.raises(MalformedInput, match="empty"):
            parse_vtt("")

    def test_no_timing_lines_is_malformed(self):
        with pytest.raises(MalformedInput, match="no timestamp"):
            parse_vtt("WEBVTT\n\nNOTE nothing here\n")

    def test_no_cue_text_is_malformed(self):
        with pytest.raises(MalformedInput, match="no cue text"):
            parse_vtt("WEBVTT\n\n00:01.000 --> 00:02.000\n\n")
