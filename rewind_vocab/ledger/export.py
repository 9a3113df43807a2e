"""Tab-separated flashcard export of the words still being learned.

WHY: Learners review unfamiliar words in a spaced-repetition app. The
export is a plain TSV with import directives in comment lines, so it can be
pasted or imported without any mapping step.

HOW: build_learning_set() receives words with their newest context already
resolved and produces the document. Each row is front (word), back (quoted
sentence with source and time, or a placeholder), and a tag column.

RULES:
- Header lines: #separator:tab, #html:false, #deck:<name>, #tags column:3
- Excluded words and words at MASTERY_MAX are skipped
- Back: "sentence" (title, m:ss); title falls back to "Unknown video"
- Tags: mastery::<label> encounters::<n>
- Tabs and newlines inside fields are replaced with spaces
- word_count counts data rows only
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from rewind_vocab.config import EXPORT_DECK_NAME, MASTERY_LABELS, MASTERY_MAX
from rewind_vocab.core.models import ContextRecord, WordRecord

NO_CONTEXT = "(no context)"
UNKNOWN_VIDEO = "Unknown video"


@dataclass
class ExportResult:
    tsv: str
    word_count: int

    def to_dict(self) -> dict:
        return {"tsv": self.tsv, "word_count": self.word_count}


def format_timestamp(ms: int) -> str:
    """Format video-relative milliseconds as m:ss."""
    total_sec = max(0, int(ms)) // 1000
    return "{}:{:02d}".format(total_sec // 60, total_sec % 60)


def _field(text: str) -> str:
    return " ".join(text.replace("\t", " ").split())


def format_back(context: Optional[ContextRecord]) -> str:
    if context is None:
        return NO_CONTEXT
    title = context.video_title or UNKNOWN_VIDEO
    return '"{}" ({}, {})'.format(
        _field(context.sentence), _field(title), format_timestamp(context.timestamp_ms)
    )


def build_learning_set(
    words: Iterable[Tuple[WordRecord, Optional[ContextRecord]]],
    deck_name: str = EXPORT_DECK_NAME,
) -> ExportResult:
    lines: List[str] = [
        "#separator:tab",
        "#html:false",
        "#deck:{}".format(deck_name),
        "#tags column:3",
    ]
    count = 0

    for word, context in words:
        if word.excluded or word.mastery_level >= MASTERY_MAX:
            continue
        mastery = MASTERY_LABELS.get(word.mastery_level, "new")
        tags = "mastery::{} encounters::{}".format(mastery, word.encounters)
        lines.append("\t".join([_field(word.word), format_back(context), tags]))
        count += 1

    return ExportResult(tsv="\n".join(lines), word_count=count)
