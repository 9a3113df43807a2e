"""Tests for the vocabulary ledger: upserts, edits, queries, contexts, stats.

WHY: The ledger is the only durable state. Miscounted encounters, lost
contexts, or a session problem rolling back a whole batch would all be
silent data loss, so each rule gets a test against a real SQLite file.
"""

from __future__ import annotations

import itertools
import sqlite3
import threading

import pytest

from rewind_vocab.core.models import WordOccurrence
from rewind_vocab.errors import RewindVocabError, WordNotFound
from rewind_vocab.ledger.ledger import VocabularyLedger, clamp_mastery


def _occ(word, sentence="", ts=0):
    return WordOccurrence(word=word, sentence=sentence, timestamp_ms=ts)


@pytest.fixture
def ticking_clock(monkeypatch):
    """Make each batch one millisecond later than the previous one."""
    ticks = itertools.count(1_700_000_000_000)
    monkeypatch.setattr("rewind_vocab.ledger.ledger._now_ms", lambda: next(ticks))


# ---------------------------------------------------------------------------
# log_occurrences
# ---------------------------------------------------------------------------


class TestLogOccurrences:
    def test_variants_collapse_into_one_record(self, ledger):
        result = ledger.log_occurrences([_occ("Él"), _occ("él.")], video_id="abc")

        assert result.new_words == 1
        assert result.updated_words == 1
        assert result.total_logged == 2
        word = ledger.get_word("es:él")
        assert word.word == "él"
        assert word.encounters == 2

    def test_language_is_part_of_the_key(self, ledger):
        ledger.log_occurrences([_occ("no")], language="es")
        ledger.log_occurrences([_occ("no")], language="en")
        assert ledger.get_word("es:no").encounters == 1
        assert ledger.get_word("en:no").language == "en"

    def test_empty_words_are_skipped(self, ledger):
        result = ledger.log_occurrences([_occ("..."), _occ(""), _occ("¿sí?")])
        assert result.skipped == 2
        assert result.total_logged == 1

    def test_first_seen_kept_last_seen_advances(self, ledger, ticking_clock):
        ledger.log_occurrences([_occ("casa")])
        first = ledger.get_word("es:casa")
        ledger.log_occurrences([_occ("casa")])
        second = ledger.get_word("es:casa")

        assert second.first_seen == first.first_seen
        assert second.last_seen > first.last_seen
        assert second.encounters == 2

    def test_context_only_when_sentence_present(self, ledger):
        ledger.log_occurrences(
            [_occ("casa", "Está en la casa.", 13500), _occ("casa")],
            video_id="abc",
            video_title="Serie",
        )
        contexts = ledger.get_contexts("es:casa")
        assert len(contexts) == 1
        assert contexts[0].sentence == "Está en la casa."
        assert contexts[0].video_id == "abc"
        assert contexts[0].video_title == "Serie"
        assert contexts[0].timestamp_ms == 13500

    def test_failing_entry_does_not_lose_the_batch(self, ledger, monkeypatch):
        original = VocabularyLedger._upsert

        def flaky(conn, entry, word, *args):
            is_new = original(conn, entry, word, *args)
            if word == "malo":
                raise sqlite3.IntegrityError("constraint failed")
            return is_new

        monkeypatch.setattr(VocabularyLedger, "_upsert", staticmethod(flaky))

        result = ledger.log_occurrences([_occ("bueno", "bueno y malo"), _occ("malo", "bueno y malo")])

        assert result.total_logged == 1
        assert result.skipped == 1
        assert ledger.get_word("es:bueno").encounters == 1
        with pytest.raises(WordNotFound):
            ledger.get_word("es:malo")
        assert ledger.get_contexts("es:malo") == []

    def test_non_database_error_does_not_lose_the_batch(self, ledger):
        """A bad timestamp fails one entry after its word row was written."""
        result = ledger.log_occurrences(
            [_occ("hola", "hola amigo", 0), WordOccurrence("amigo", "hola amigo", "12s")]
        )

        assert result.total_logged == 1
        assert result.skipped == 1
        assert ledger.get_word("es:hola").encounters == 1
        assert len(ledger.get_contexts("es:hola")) == 1
        with pytest.raises(WordNotFound):
            ledger.get_word("es:amigo")
        assert ledger.get_contexts("es:amigo") == []

    def test_persists_across_reopen(self, tmp_path):
        path = tmp_path / "persist.db"
        first = VocabularyLedger(path)
        first.log_occurrences([_occ("casa", "la casa")])
        first.close()

        second = VocabularyLedger(path)
        try:
            assert second.get_word("es:casa").encounters == 1
            assert len(second.get_contexts("es:casa")) == 1
        finally:
            second.close()


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------


class TestUpdateWord:
    @pytest.mark.parametrize("requested, stored", [(99, 2), (-5, 0), (1, 1), (2, 2)])
    def test_mastery_is_clamped(self, ledger, requested, stored):
        ledger.log_occurrences([_occ("casa")])
        word = ledger.update_word("es:casa", mastery_level=requested)
        assert word.mastery_level == stored
        assert word.learned is (stored == 2)

    def test_learned_cleared_when_mastery_drops(self, ledger):
        ledger.log_occurrences([_occ("casa")])
        ledger.update_word("es:casa", mastery_level=2)
        word = ledger.update_word("es:casa", mastery_level=1)
        assert not word.learned

    def test_exclude_keeps_mastery(self, ledger):
        ledger.log_occurrences([_occ("casa")])
        ledger.update_word("es:casa", mastery_level=1)
        word = ledger.update_word("es:casa", excluded=True)
        assert word.excluded
        assert word.mastery_level == 1

    def test_unknown_word(self, ledger):
        with pytest.raises(WordNotFound, match="es:nada"):
            ledger.update_word("es:nada", mastery_level=1)

    def test_clamp_helper(self):
        assert clamp_mastery(3) == 2
        assert clamp_mastery(-1) == 0


class TestDeleteWord:
    def test_delete_cascades_contexts(self, ledger):
        ledger.log_occurrences([_occ("casa", "la casa"), _occ("perro", "el perro")])

        ledger.delete_word("es:casa")

        with pytest.raises(WordNotFound):
            ledger.get_word("es:casa")
        assert ledger.get_contexts("es:casa") == []
        assert len(ledger.get_contexts("es:perro")) == 1
        with ledger.db.read() as conn:
            orphans = conn.execute(
                "SELECT COUNT(*) FROM contexts WHERE word_id = 'es:casa'"
            ).fetchone()[0]
        assert orphans == 0

    def test_delete_missing_word(self, ledger):
        with pytest.raises(WordNotFound):
            ledger.delete_word("es:nada")

    def test_relogging_after_delete_starts_fresh(self, ledger):
        ledger.log_occurrences([_occ("casa"), _occ("casa")])
        ledger.delete_word("es:casa")
        result = ledger.log_occurrences([_occ("casa")])
        assert result.new_words == 1
        assert ledger.get_word("es:casa").encounters == 1

    def test_missing_word_error_is_not_a_lookup_error(self, ledger):
        """A missing word surfaces only as WordNotFound, never as a KeyError."""
        with pytest.raises(WordNotFound) as exc_info:
            ledger.delete_word("es:nada")
        assert isinstance(exc_info.value, RewindVocabError)
        assert not isinstance(exc_info.value, LookupError)
        assert str(exc_info.value) == "Word not found: es:nada"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@pytest.fixture
def populated(ledger, ticking_clock):
    ledger.log_occurrences([_occ(w) for w in ["casa", "casa", "casa", "perro", "perro"]])
    ledger.log_occurrences([_occ("árbol"), _occ("zapato")])
    ledger.log_occurrences([_occ("ábaco")])
    ledger.update_word("es:perro", mastery_level=2)
    ledger.update_word("es:árbol", mastery_level=1)
    ledger.update_word("es:zapato", excluded=True)
    return ledger


def _words(records):
    return [r.word for r in records]


class TestQueryWords:
    def test_frequency_sort_is_default(self, populated):
        assert _words(populated.query_words())[:2] == ["casa", "perro"]

    def test_alpha_sort_folds_accents(self, populated):
        assert _words(populated.query_words(sort="alpha")) == [
            "ábaco", "árbol", "casa", "perro", "zapato",
        ]

    def test_recent_sort(self, populated):
        assert _words(populated.query_words(sort="recent"))[0] == "ábaco"

    def test_mastery_sort(self, populated):
        assert _words(populated.query_words(sort="mastery"))[:2] == ["perro", "árbol"]

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("known", {"perro"}),
            ("learning", {"árbol"}),
            ("new", {"casa", "ábaco"}),
            ("excluded", {"zapato"}),
            ("default", {"casa", "árbol", "ábaco"}),
            ("all", {"casa", "perro", "árbol", "zapato", "ábaco"}),
        ],
    )
    def test_filters(self, populated, name, expected):
        assert set(_words(populated.query_words(filter=name))) == expected

    def test_search_is_case_insensitive_substring(self, populated):
        assert _words(populated.query_words(search="AS")) == ["casa"]

    def test_search_keeps_surrounding_spaces(self, populated):
        assert populated.query_words(search=" ca") == []
        assert _words(populated.query_words(search="ca")) == ["casa"]

    def test_search_and_filter_combine(self, populated):
        assert populated.query_words(filter="known", search="cas") == []

    def test_unknown_filter_or_sort(self, populated):
        with pytest.raises(ValueError, match="filter"):
            populated.query_words(filter="bogus")
        with pytest.raises(ValueError, match="sort"):
            populated.query_words(sort="bogus")


class TestContexts:
    def test_newest_first_and_limited(self, ledger, ticking_clock):
        for i in range(12):
            ledger.log_occurrences([_occ("casa", "frase {}".format(i))])

        contexts = ledger.get_contexts("es:casa")

        assert len(contexts) == 10
        assert [c.sentence for c in contexts] == ["frase {}".format(i) for i in range(11, 1, -1)]

    def test_ties_broken_by_insertion_order(self, ledger):
        ledger.log_occurrences([_occ("casa", "uno"), _occ("casa", "dos")])
        assert [c.sentence for c in ledger.get_contexts("es:casa")] == ["dos", "uno"]

    def test_unknown_word_has_no_contexts(self, ledger):
        assert ledger.get_contexts("es:nada") == []


class TestStats:
    def test_empty_ledger(self, ledger):
        assert ledger.get_stats() == {
            "total_words": 0,
            "learned_words": 0,
            "total_encounters": 0,
            "total_sessions": 0,
            "current_session": None,
        }

    def test_counts_skip_excluded_words(self, populated):
        stats = populated.get_stats()
        assert stats["total_words"] == 4
        assert stats["learned_words"] == 1
        assert stats["total_encounters"] == 7

    def test_current_session_reported(self, ledger):
        session = ledger.start_session()
        stats = ledger.get_stats()
        assert stats["total_sessions"] == 1
        assert stats["current_session"]["id"] == session.id


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestThreadSafety:
    """Concurrent batches never lose an encounter."""

    THREADS = 8
    BATCHES = 25

    def _hammer(self, ledgers):
        errors = []

        def log_many(target):
            try:
                for _ in range(self.BATCHES):
                    target.log_occurrences([_occ("casa")], video_id="abc")
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=log_many, args=(ledgers[i % len(ledgers)],))
            for i in range(self.THREADS)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return errors

    def test_concurrent_batches_on_one_ledger(self, ledger):
        errors = self._hammer([ledger])

        assert len(errors) == 0
        assert ledger.get_word("es:casa").encounters == self.THREADS * self.BATCHES

    def test_concurrent_batches_across_connections(self, tmp_path):
        path = tmp_path / "shared.db"
        ledgers = [VocabularyLedger(path), VocabularyLedger(path)]
        try:
            ledgers[0].start_session()
            errors = self._hammer(ledgers)

            assert len(errors) == 0
            total = self.THREADS * self.BATCHES
            assert ledgers[1].get_word("es:casa").encounters == total
            session = ledgers[1].sessions.current()
            assert session.rewinds == total
            assert session.words_encountered == total
        finally:
            for opened in ledgers:
                opened.close()
