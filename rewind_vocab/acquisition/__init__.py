"""Transcript acquisition: collaborator protocols, parsers, strategies, and the chain."""

from rewind_vocab.acquisition.chain import TranscriptAcquirer, build_default_chain
from rewind_vocab.acquisition.strategies import (
    BridgeStrategy,
    CaptionMarkupStrategy,
    OnScreenTextStrategy,
    PageDocumentStrategy,
    SubtitleFileStrategy,
    TextTrackStrategy,
)

__all__ = [
    "BridgeStrategy",
    "CaptionMarkupStrategy",
    "OnScreenTextStrategy",
    "PageDocumentStrategy",
    "SubtitleFileStrategy",
    "TextTrackStrategy",
    "TranscriptAcquirer",
    "build_default_chain",
]
