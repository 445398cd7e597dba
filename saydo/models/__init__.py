"""Models package exports."""

from saydo.models.activity import Reminder, ReminderType, Task, TaskPriority, TaskStatus
from saydo.models.pattern import (
    AnalysisResult,
    AnalyzePatternsRequest,
    AnalyzePatternsResponse,
    PatternFailureResponse,
    PatternSuggestions,
    PatternType,
    SuggestionContext,
    UserPattern,
)
from saydo.models.user import AuthenticatedUser

__all__ = [
    "AnalysisResult",
    "AnalyzePatternsRequest",
    "AnalyzePatternsResponse",
    "AuthenticatedUser",
    "PatternFailureResponse",
    "PatternSuggestions",
    "PatternType",
    "Reminder",
    "ReminderType",
    "SuggestionContext",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "UserPattern",
]
