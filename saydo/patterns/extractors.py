"""Pattern extractors.

Each extractor folds a whole collection of activity records into one
fixed-shape payload for its pattern type. Extractors are pure: they never
mutate their input and never read the wall clock, so the same input always
yields the same payload. Rankings break ties by first appearance.

Days of the week follow the web client's convention: Sunday=0 ... Saturday=6.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Iterable, Optional, Sequence

from saydo.models.activity import Reminder, Task, TaskStatus

UNCATEGORIZED = "uncategorized"
DEFAULT_PRIORITY = "medium"

MAX_TAG_COMBINATIONS = 20
MAX_OVERDUE_CATEGORIES = 5
MAX_OVERDUE_PRIORITIES = 3


@dataclass(frozen=True)
class TimingObservation:
    """Timestamps of one task or reminder relevant to timing habits."""

    created_at: Optional[datetime] = None
    due_date: Optional[date] = None
    due_time: Optional[str] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class LabeledItem:
    """How one task or reminder was labeled by the user."""

    priority: str = DEFAULT_PRIORITY
    category: Optional[str] = None
    tags: tuple[str, ...] = field(default_factory=tuple)


def _localize(value: datetime, tz: Optional[tzinfo]) -> datetime:
    if tz is not None and value.tzinfo is not None:
        return value.astimezone(tz)
    return value


def day_of_week(value: date) -> int:
    """Sunday=0 ... Saturday=6."""
    return value.isoweekday() % 7


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def _ranked(counts: Counter) -> list:
    return [key for key, _ in counts.most_common()]


def _most_common(counts: Counter) -> Optional[str]:
    ranked = counts.most_common(1)
    return ranked[0][0] if ranked else None


def _mean(values: Sequence[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def extract_timing_pattern(
    items: Iterable[TimingObservation], tz: Optional[tzinfo] = None
) -> dict:
    """Collect when items are created, due and completed.

    Every list is a multiset (one entry per observation) sorted ascending.
    Items without a due date contribute neither a due day nor a due time.
    """
    creation_hours: list[int] = []
    creation_days: list[int] = []
    due_times: list[str] = []
    due_days: list[int] = []
    completion_hours: list[int] = []
    durations: list[float] = []

    for item in items:
        created_at = _localize(item.created_at, tz) if item.created_at else None
        completed_at = _localize(item.completed_at, tz) if item.completed_at else None

        if created_at:
            creation_hours.append(created_at.hour)
            creation_days.append(day_of_week(created_at))
        if item.due_date:
            due_days.append(day_of_week(item.due_date))
            if item.due_time:
                due_times.append(item.due_time)
        if completed_at:
            completion_hours.append(completed_at.hour)
            if created_at:
                durations.append(hours_between(created_at, completed_at))

    return {
        "preferred_creation_hours": sorted(creation_hours),
        "preferred_creation_days": sorted(creation_days),
        "preferred_due_times": sorted(due_times),
        "preferred_due_days": sorted(due_days),
        "completion_times": sorted(completion_hours),
        "average_time_to_complete": _mean(durations),
    }


def extract_category_pattern(items: Iterable[LabeledItem]) -> dict:
    """Rank categories and learn which tags and priority go with each."""
    category_counts: Counter = Counter()
    category_tags: dict[str, Counter] = defaultdict(Counter)
    category_priorities: dict[str, Counter] = defaultdict(Counter)

    for item in items:
        if not item.category:
            continue
        category_counts[item.category] += 1
        category_tags[item.category].update(item.tags)
        category_priorities[item.category][item.priority] += 1

    return {
        "most_used_categories": [
            {"category": category, "count": count}
            for category, count in category_counts.most_common()
        ],
        "category_tag_combinations": {
            category: _ranked(tags) for category, tags in category_tags.items() if tags
        },
        "category_priority_map": {
            category: _most_common(priorities)
            for category, priorities in category_priorities.items()
        },
    }


def extract_priority_pattern(items: Iterable[LabeledItem]) -> dict:
    """Find the user's default priority and the usual priority per category."""
    priority_counts: Counter = Counter()
    by_category: dict[str, Counter] = defaultdict(Counter)

    for item in items:
        priority_counts[item.priority] += 1
        if item.category:
            by_category[item.category][item.priority] += 1

    return {
        "default_priority": _most_common(priority_counts) or DEFAULT_PRIORITY,
        "priority_by_context": {
            category: _most_common(counts) for category, counts in by_category.items()
        },
    }


def extract_tag_pattern(items: Iterable[LabeledItem]) -> dict:
    """Rank tags, tag sets used together, and each tag's usual labels.

    Every item carrying more than one tag contributes one observation of its
    exact tag set; the order tags were entered in does not matter.
    """
    tag_counts: Counter = Counter()
    combinations: Counter = Counter()
    tag_categories: dict[str, Counter] = defaultdict(Counter)
    tag_priorities: dict[str, Counter] = defaultdict(Counter)

    for item in items:
        unique_tags = list(dict.fromkeys(item.tags))
        for tag in unique_tags:
            tag_counts[tag] += 1
            if item.category:
                tag_categories[tag][item.category] += 1
            tag_priorities[tag][item.priority] += 1
        if len(unique_tags) > 1:
            combinations[tuple(sorted(unique_tags))] += 1

    return {
        "most_common_tags": [
            {"tag": tag, "count": count} for tag, count in tag_counts.most_common()
        ],
        "tag_combinations": [
            {"tags": list(tags), "count": count}
            for tags, count in combinations.most_common(MAX_TAG_COMBINATIONS)
        ],
        "tag_category_map": {tag: _ranked(counts) for tag, counts in tag_categories.items()},
        "tag_priority_map": {
            tag: _most_common(counts) for tag, counts in tag_priorities.items()
        },
    }


def _is_overdue(task: Task, as_of: date, tz: Optional[tzinfo]) -> bool:
    if task.due_date is None or task.status == TaskStatus.CANCELLED:
        return False
    if task.completed_at is not None:
        return _localize(task.completed_at, tz).date() > task.due_date
    return not task.is_completed and task.due_date < as_of


def extract_completion_pattern(
    tasks: Iterable[Task], as_of: datetime, tz: Optional[tzinfo] = None
) -> dict:
    """Measure how fast and how reliably tasks get done.

    ``as_of`` is the reference instant for deciding whether an open task with
    a past due date is overdue.
    """
    hours_by_category: dict[str, list[float]] = defaultdict(list)
    hours_by_priority: dict[str, list[float]] = defaultdict(list)
    totals: Counter = Counter()
    completed: Counter = Counter()
    overdue_categories: Counter = Counter()
    overdue_priorities: Counter = Counter()
    today = _localize(as_of, tz).date()

    for task in tasks:
        category = task.category or UNCATEGORIZED
        priority = task.priority.value

        if task.completed_at is not None:
            hours = hours_between(task.created_at, task.completed_at)
            hours_by_category[category].append(hours)
            hours_by_priority[priority].append(hours)

        totals[category] += 1
        if task.is_completed:
            completed[category] += 1

        if _is_overdue(task, today, tz):
            overdue_categories[category] += 1
            overdue_priorities[priority] += 1

    return {
        "average_completion_time_by_category": {
            category: _mean(hours) for category, hours in hours_by_category.items()
        },
        "average_completion_time_by_priority": {
            priority: _mean(hours) for priority, hours in hours_by_priority.items()
        },
        "completion_rate_by_category": {
            category: round(completed[category] / total, 4)
            for category, total in totals.items()
        },
        "overdue_patterns": {
            "categories": [c for c, _ in overdue_categories.most_common(MAX_OVERDUE_CATEGORIES)],
            "priorities": [p for p, _ in overdue_priorities.most_common(MAX_OVERDUE_PRIORITIES)],
        },
    }


def extract_recurring_pattern(
    reminders: Iterable[Reminder], tz: Optional[tzinfo] = None
) -> dict:
    """List recurring reminders and count how often each recurrence is used."""
    detected: list[dict] = []
    frequency: Counter = Counter()

    for reminder in reminders:
        if not (reminder.is_recurring and reminder.recurrence_pattern):
            continue
        at = _localize(reminder.reminder_time, tz)
        detected.append({
            "title": reminder.title,
            "frequency": reminder.recurrence_pattern,
            "common_time": at.strftime("%H:%M"),
            "common_day": day_of_week(at),
        })
        frequency[reminder.recurrence_pattern] += 1

    return {
        "detected_recurring": detected,
        "recurrence_frequency": dict(frequency),
    }
