"""Tests for the cue store and interval matcher.

WHY: The orchestrator's fallback depends on telling "no transcript" (None)
apart from "nothing matched", and word timestamps depend on sub-segment
offsets. Both are easy to break with an off-by-one in the overlap test.
"""

from __future__ import annotations

from rewind_vocab.core.cues import CueStore, seconds_to_ms
from rewind_vocab.core.models import Cue


class TestSecondsToMs:
    def test_rounds_to_nearest(self):
        assert seconds_to_ms(9.0) == 9000
        assert seconds_to_ms(0.1 + 0.2) == 300


class TestLoadAndReset:
    def test_new_store_is_empty(self):
        store = CueStore()
        assert store.video_id is None
        assert not store.loaded
        assert len(store) == 0

    def test_load_sets_identity_and_source(self, sample_cues):
        store = CueStore()
        store.load("abc", sample_cues, source="bridge")
        assert store.video_id == "abc"
        assert store.loaded
        assert store.source == "bridge"
        assert len(store) == 2

    def test_reset_switches_identity_and_drops_cues(self, loaded_store):
        loaded_store.reset("xyz")
        assert loaded_store.video_id == "xyz"
        assert not loaded_store.loaded
        assert loaded_store.source is None

    def test_cues_returns_copy(self, loaded_store):
        cues = loaded_store.cues
        cues.clear()
        assert len(loaded_store) == 2


class TestGetWordsInRange:
    """get_words_in_range() overlap semantics."""

    def test_none_when_nothing_loaded(self):
        assert CueStore().get_words_in_range(0, 100) is None

    def test_overlapping_range_matches(self, loaded_store):
        words = loaded_store.get_words_in_range(9, 11)
        assert [w.word for w in words] == ["¿Dónde", "está", "él?"]
        assert all(w.sentence == "¿Dónde está él?" for w in words)
        assert all(w.timestamp_ms == 10000 for w in words)

    def test_gap_range_returns_none(self, loaded_store):
        assert loaded_store.get_words_in_range(12.5, 13.0) is None

    def test_cue_does_not_overlap_later_range(self):
        store = CueStore()
        store.load("v", [Cue(10000, 12000, "uno dos")])
        assert store.get_words_in_range(13, 15) is None

    def test_touching_boundaries_overlap(self, loaded_store):
        assert loaded_store.get_words_in_range(12.0, 12.0) is not None
        assert loaded_store.get_words_in_range(15.0, 20.0) is not None

    def test_spanning_range_returns_all_cues_in_order(self, loaded_store):
        words = loaded_store.get_words_in_range(0, 60)
        assert [w.word for w in words] == ["¿Dónde", "está", "él?", "Está", "en", "la", "casa."]

    def test_unsorted_cues_are_scanned(self):
        store = CueStore()
        store.load("v", [Cue(20000, 21000, "tarde"), Cue(1000, 2000, "temprano")])
        words = store.get_words_in_range(0, 3)
        assert [w.word for w in words] == ["temprano"]

    def test_segment_offsets_become_timestamps(self, segmented_cue):
        store = CueStore()
        store.load("v", [segmented_cue])
        words = store.get_words_in_range(10, 11)
        assert [(w.word, w.timestamp_ms) for w in words] == [
            ("¿Dónde", 10000),
            ("está", 10400),
            ("él?", 10900),
        ]

    def test_empty_cue_text_is_skipped(self):
        store = CueStore()
        store.load("v", [Cue(0, 1000, "")])
        assert store.get_words_in_range(0, 1) is None
