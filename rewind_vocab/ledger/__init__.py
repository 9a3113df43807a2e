"""Durable vocabulary state: words, contexts, sessions, and export."""

from rewind_vocab.ledger.export import ExportResult
from rewind_vocab.ledger.ledger import VocabularyLedger

__all__ = ["ExportResult", "VocabularyLedger"]
