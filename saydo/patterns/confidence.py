"""Confidence scoring for learned patterns."""

from typing import Mapping

MAX_CONFIDENCE = 100

# Each observation closes 10% of the remaining gap to full confidence, so a
# single observation scores 10 and the score saturates towards 100.
_GAP_RETAINED_PER_OBSERVATION = 0.9


def _quality_multiplier(pattern_data: Mapping) -> float:
    """Scale in (0, 1] reflecting how much evidence the payload itself holds."""
    multiplier = 1.0

    if "most_used_categories" in pattern_data and not pattern_data["most_used_categories"]:
        multiplier *= 0.5

    if "most_common_tags" in pattern_data and not pattern_data["most_common_tags"]:
        multiplier *= 0.5

    if "preferred_creation_hours" in pattern_data:
        observed = (
            pattern_data.get("preferred_creation_hours")
            or pattern_data.get("preferred_due_days")
            or pattern_data.get("completion_times")
        )
        if not observed:
            multiplier *= 0.5
        elif len(set(pattern_data.get("preferred_due_days") or [])) == 1:
            # Due dates all on one weekday say little about weekly habits.
            multiplier *= 0.8

    if "detected_recurring" in pattern_data and not pattern_data["detected_recurring"]:
        multiplier *= 0.5

    return multiplier


def calculate_pattern_confidence(pattern_data: Mapping, frequency: int) -> int:
    """Score how trustworthy a pattern is, from 0 to 100.

    Non-decreasing in ``frequency`` for any fixed ``pattern_data``; the payload
    only contributes a constant quality factor.
    """
    if frequency <= 0:
        return 0

    base = MAX_CONFIDENCE * (1 - _GAP_RETAINED_PER_OBSERVATION ** frequency)
    score = round(base * _quality_multiplier(pattern_data or {}))
    return max(0, min(MAX_CONFIDENCE, int(score)))
