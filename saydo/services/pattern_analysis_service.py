"""Pattern analysis: learn every pattern type from a user's history.

A run fetches the user's recent tasks and reminders, recomputes one pattern
per type from the whole collection, saves each immediately, then rescores
everything stored for the user. Saves are independent: one failing does not
stop the others, and there is no transaction spanning the run.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog

from saydo.config import Settings, get_settings
from saydo.models.activity import Reminder, Task
from saydo.models.pattern import AnalysisResult, PatternType
from saydo.patterns import (
    LabeledItem,
    TimingObservation,
    calculate_pattern_confidence,
    extract_category_pattern,
    extract_completion_pattern,
    extract_priority_pattern,
    extract_recurring_pattern,
    extract_tag_pattern,
    extract_timing_pattern,
)
from saydo.patterns.extractors import DEFAULT_PRIORITY
from saydo.services.activity_repository import ActivityRepository
from saydo.services.pattern_store import PatternStore

logger = structlog.get_logger(__name__)


class PatternAnalysisError(Exception):
    """A run could not complete (history unavailable or deadline exceeded)."""


@dataclass
class AnalysisDependencies:
    """Collaborators of the analysis service."""

    store: PatternStore = field(default_factory=PatternStore)
    activity: ActivityRepository = field(default_factory=ActivityRepository)
    settings: Settings = field(default_factory=get_settings)
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))


def _timing_observations(
    tasks: list[Task], reminders: list[Reminder], tz: tzinfo
) -> list[TimingObservation]:
    observations = [
        TimingObservation(
            created_at=task.created_at,
            due_date=task.due_date,
            due_time=task.due_time,
            completed_at=task.completed_at,
        )
        for task in tasks
    ]
    for reminder in reminders:
        at = reminder.reminder_time
        if at.tzinfo is not None:
            at = at.astimezone(tz)
        observations.append(
            TimingObservation(
                created_at=reminder.created_at,
                due_date=at.date(),
                due_time=at.strftime("%H:%M"),
                completed_at=reminder.reminder_time if reminder.is_completed else None,
            )
        )
    return observations


def _labeled_task(task: Task) -> LabeledItem:
    return LabeledItem(priority=task.priority.value, category=task.category, tags=tuple(task.tags))


def _labeled_reminder(reminder: Reminder) -> LabeledItem:
    priority = reminder.priority.value if reminder.priority else DEFAULT_PRIORITY
    return LabeledItem(priority=priority, tags=tuple(reminder.tags))


class PatternAnalysisService:
    """Runs the fetch, extract, save, rescore and report cycle for one user."""

    def __init__(self, deps: Optional[AnalysisDependencies] = None):
        self.deps = deps or AnalysisDependencies()

    async def analyze(self, user_id: str) -> AnalysisResult:
        """Learn all pattern types for ``user_id`` from their history.

        Raises:
            PatternAnalysisError: If the history cannot be read or the run
                exceeds the configured deadline
        """
        settings = self.deps.settings
        try:
            async with asyncio.timeout(settings.pattern_analysis_timeout_seconds):
                return await self._run(user_id)
        except TimeoutError as e:
            logger.error(
                "pattern_analysis_timeout",
                user_id=user_id,
                timeout_seconds=settings.pattern_analysis_timeout_seconds,
            )
            raise PatternAnalysisError("Pattern analysis timed out") from e

    async def _run(self, user_id: str) -> AnalysisResult:
        settings = self.deps.settings
        tz = ZoneInfo(settings.pattern_timezone)
        as_of = self.deps.clock()

        try:
            tasks = await self.deps.activity.fetch_tasks(user_id, settings.pattern_history_limit)
            reminders = await self.deps.activity.fetch_reminders(
                user_id, settings.pattern_history_limit
            )
        except Exception as e:
            logger.error(
                "pattern_history_fetch_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PatternAnalysisError(f"Failed to load activity history: {e}") from e

        logger.info(
            "pattern_analysis_started",
            user_id=user_id,
            tasks=len(tasks),
            reminders=len(reminders),
        )

        labeled_tasks = [_labeled_task(t) for t in tasks]
        labeled_all = labeled_tasks + [_labeled_reminder(r) for r in reminders]
        categorized = [item for item in labeled_tasks if item.category]
        tagged = [item for item in labeled_all if item.tags]
        recurring = [r for r in reminders if r.is_recurring and r.recurrence_pattern]
        timing_items = _timing_observations(tasks, reminders, tz)

        # Timing is always learned; every other type needs items to learn from.
        extractions: list[tuple[PatternType, int, Callable[[], dict]]] = [
            (PatternType.TIMING, len(timing_items), lambda: extract_timing_pattern(timing_items, tz)),
        ]
        if categorized:
            extractions.append(
                (PatternType.CATEGORY, len(categorized), lambda: extract_category_pattern(categorized))
            )
        if labeled_all:
            extractions.append(
                (PatternType.PRIORITY, len(labeled_all), lambda: extract_priority_pattern(labeled_all))
            )
        if tagged:
            extractions.append((PatternType.TAGS, len(tagged), lambda: extract_tag_pattern(tagged)))
        if tasks:
            extractions.append(
                (PatternType.COMPLETION, len(tasks), lambda: extract_completion_pattern(tasks, as_of, tz))
            )
        if recurring:
            extractions.append(
                (PatternType.RECURRING, len(recurring), lambda: extract_recurring_pattern(recurring, tz))
            )

        learned: list[PatternType] = []
        for pattern_type, observed, extract in extractions:
            if await self._extract_and_save(user_id, pattern_type, observed, extract, as_of):
                learned.append(pattern_type)

        total_patterns, rescore_failures = await self.rescore(user_id)

        logger.info(
            "pattern_analysis_completed",
            user_id=user_id,
            patterns_learned=[p.value for p in learned],
            total_patterns=total_patterns,
            rescore_failures=rescore_failures,
        )

        return AnalysisResult(
            patterns_learned=learned,
            tasks_analyzed=len(tasks),
            reminders_analyzed=len(reminders),
            total_patterns=total_patterns,
            rescore_failures=rescore_failures,
        )

    async def _extract_and_save(
        self,
        user_id: str,
        pattern_type: PatternType,
        observed: int,
        extract: Callable[[], dict],
        as_of: datetime,
    ) -> bool:
        try:
            pattern_data = extract()
        except Exception as e:
            logger.error(
                "pattern_extraction_failed",
                user_id=user_id,
                pattern_type=pattern_type.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        result = await self.deps.store.save_pattern(
            user_id,
            pattern_type,
            pattern_data,
            metadata={"items_analyzed": observed, "analyzed_at": as_of.isoformat()},
            frequency=observed,
        )
        if not result["success"]:
            logger.warning(
                "pattern_not_learned",
                user_id=user_id,
                pattern_type=pattern_type.value,
                error=result.get("error"),
            )
            return False
        return True

    async def rescore(self, user_id: str) -> tuple[int, int]:
        """Recompute confidence for every stored pattern of the user.

        Only rows whose score changed are written. Write failures are logged
        and counted rather than raised.

        Returns:
            (number of patterns read back, number of failed writes)
        """
        patterns = await self.deps.store.get_user_patterns(user_id)
        failures = 0

        for pattern in patterns:
            confidence = calculate_pattern_confidence(pattern.pattern_data, pattern.frequency)
            if confidence == pattern.confidence_score:
                continue
            try:
                await self.deps.store.update_confidence(pattern.id, confidence)
            except Exception as e:
                failures += 1
                logger.warning(
                    "pattern_rescore_write_failed",
                    user_id=user_id,
                    pattern_id=str(pattern.id),
                    error=str(e),
                )

        if failures:
            logger.warning("pattern_rescore_incomplete", user_id=user_id, failures=failures)

        return len(patterns), failures
