"""Pattern extraction and scoring."""

from saydo.patterns.confidence import calculate_pattern_confidence
from saydo.patterns.extractors import (
    LabeledItem,
    TimingObservation,
    extract_category_pattern,
    extract_completion_pattern,
    extract_priority_pattern,
    extract_recurring_pattern,
    extract_tag_pattern,
    extract_timing_pattern,
)

__all__ = [
    "LabeledItem",
    "TimingObservation",
    "calculate_pattern_confidence",
    "extract_category_pattern",
    "extract_completion_pattern",
    "extract_priority_pattern",
    "extract_recurring_pattern",
    "extract_tag_pattern",
    "extract_timing_pattern",
]
