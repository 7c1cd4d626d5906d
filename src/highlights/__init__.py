"""Highlight clip synthesis."""

from src.highlights.synthesizer import (
    EVENT_PRIORITY,
    HIGHLIGHT_TYPES,
    HighlightClip,
    HighlightSynthesizer,
    describe_event,
    filter_clips,
    group_by_player,
    group_by_type,
    merge_overlapping,
    top_clips,
)

__all__ = [
    "EVENT_PRIORITY",
    "HIGHLIGHT_TYPES",
    "HighlightClip",
    "HighlightSynthesizer",
    "describe_event",
    "filter_clips",
    "group_by_player",
    "group_by_type",
    "merge_overlapping",
    "top_clips",
]
