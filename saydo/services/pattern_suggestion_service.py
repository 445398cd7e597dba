"""Smart defaults for new tasks and reminders, derived from learned patterns."""

from collections import Counter
from typing import Optional

import structlog

from saydo.config import get_settings
from saydo.models.pattern import (
    PatternSuggestions,
    PatternType,
    RecurrenceSuggestion,
    SuggestionContext,
    UserPattern,
)
from saydo.services.pattern_store import PatternStore

logger = structlog.get_logger(__name__)

MAX_SUGGESTED_TAGS = 5


class PatternSuggestionService:
    """Suggests category, tags, priority, due time and recurrence."""

    def __init__(self, store: Optional[PatternStore] = None):
        self.store = store or PatternStore()
        self.settings = get_settings()

    def _best(self, patterns: list[UserPattern], pattern_type: PatternType) -> Optional[dict]:
        """Payload of the most trusted pattern of a type, if confident enough.

        ``patterns`` are already ordered by confidence, then recency.
        """
        for pattern in patterns:
            if pattern.pattern_type != pattern_type:
                continue
            if pattern.confidence_score < self.settings.pattern_min_suggestion_confidence:
                return None
            return pattern.pattern_data
        return None

    def suggest_category(self, patterns: list[UserPattern]) -> Optional[str]:
        data = self._best(patterns, PatternType.CATEGORY)
        ranked = (data or {}).get("most_used_categories") or []
        return ranked[0]["category"] if ranked else None

    def suggest_tags(
        self,
        patterns: list[UserPattern],
        title: str = "",
        description: Optional[str] = None,
    ) -> list[str]:
        """Top three tags, plus whole tag sets when one of their tags is mentioned."""
        data = self._best(patterns, PatternType.TAGS) or {}
        suggestions = [t["tag"] for t in (data.get("most_common_tags") or [])[:3]]

        text = f"{title} {description or ''}".lower()
        if text.strip():
            for combo in (data.get("tag_combinations") or [])[:5]:
                if any(tag.lower() in text for tag in combo["tags"]):
                    suggestions.extend(tag for tag in combo["tags"] if tag not in suggestions)

        return list(dict.fromkeys(suggestions))[:MAX_SUGGESTED_TAGS]

    def suggest_priority(
        self, patterns: list[UserPattern], category: Optional[str] = None
    ) -> Optional[str]:
        data = self._best(patterns, PatternType.PRIORITY)
        if not data:
            return None
        by_context = data.get("priority_by_context") or {}
        if category and category in by_context:
            return by_context[category]
        return data.get("default_priority")

    def suggest_due_time(self, patterns: list[UserPattern]) -> Optional[str]:
        """The due time the user picks most often."""
        data = self._best(patterns, PatternType.TIMING)
        due_times = (data or {}).get("preferred_due_times") or []
        if not due_times:
            return None
        return Counter(due_times).most_common(1)[0][0]

    def suggest_recurrence(
        self, patterns: list[UserPattern], title: str
    ) -> Optional[RecurrenceSuggestion]:
        """Reuse the schedule of a recurring reminder with a matching title.

        Falls back to the user's most common recurrence frequency.
        """
        data = self._best(patterns, PatternType.RECURRING)
        detected = (data or {}).get("detected_recurring") or []
        if not detected:
            return None

        title_lower = title.lower()
        for item in detected:
            known = item["title"].lower()
            if known in title_lower or title_lower in known:
                return RecurrenceSuggestion(
                    frequency=item["frequency"],
                    time=item.get("common_time"),
                    day=item.get("common_day"),
                )

        most_common = Counter(item["frequency"] for item in detected).most_common(1)
        return RecurrenceSuggestion(frequency=most_common[0][0])

    async def get_all_suggestions(
        self, user_id: str, context: SuggestionContext
    ) -> PatternSuggestions:
        """Every suggestion for a task/reminder being created.

        Patterns are read once; unavailable patterns yield no suggestions.
        """
        patterns = await self.store.get_user_patterns(user_id)
        title = context.title or ""

        tags = self.suggest_tags(patterns, title, context.description)
        suggestions = PatternSuggestions(
            category=None if context.category else self.suggest_category(patterns),
            tags=tags or None,
            priority=self.suggest_priority(patterns, context.category),
            due_time=self.suggest_due_time(patterns),
            recurrence=self.suggest_recurrence(patterns, title) if title else None,
        )

        logger.info(
            "pattern_suggestions_generated",
            user_id=user_id,
            patterns_available=len(patterns),
            suggested=sorted(suggestions.model_dump(exclude_none=True)),
        )
        return suggestions
