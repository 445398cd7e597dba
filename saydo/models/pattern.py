"""Pattern models for the pattern-learning engine."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PatternType(str, Enum):
    """Dimensions along which user behavior is learned."""

    TIMING = "timing"
    CATEGORY = "category"
    PRIORITY = "priority"
    TAGS = "tags"
    COMPLETION = "completion"
    RECURRING = "recurring"


def _json_object(value: Any) -> dict:
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


class UserPattern(BaseModel):
    """A learned pattern, one per user and pattern type."""

    id: UUID
    user_id: UUID
    pattern_type: PatternType
    pattern_data: dict = Field(default_factory=dict)
    frequency: int = Field(default=1, ge=0)
    confidence_score: int = Field(default=10, ge=0, le=100)
    first_seen_at: datetime
    last_seen_at: datetime
    metadata: dict = Field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserPattern":
        """Build a UserPattern from a ``user_patterns`` record.

        JSON columns may arrive as text when no codec is registered on the
        connection, and numeric confidence values are rounded to integers.

        Raises:
            pydantic.ValidationError: If the row is malformed
            ValueError: If a JSON column holds invalid JSON
        """
        data = dict(row)
        data["pattern_data"] = _json_object(data.get("pattern_data"))
        data["metadata"] = _json_object(data.get("metadata"))
        if data.get("confidence_score") is not None:
            data["confidence_score"] = int(round(float(data["confidence_score"])))
        return cls.model_validate(data)


class AnalysisResult(BaseModel):
    """Summary of one analysis run for a user."""

    patterns_learned: list[PatternType] = Field(default_factory=list)
    tasks_analyzed: int = 0
    reminders_analyzed: int = 0
    total_patterns: int = 0
    rescore_failures: int = 0


class CamelModel(BaseModel):
    """Base for HTTP payloads exchanged with the web client in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyzePatternsRequest(CamelModel):
    """Body of ``POST /patterns/analyze``."""

    user_id: UUID


class AnalyzePatternsResponse(CamelModel):
    """Successful analysis envelope."""

    success: bool = True
    patterns_learned: list[PatternType]
    tasks_analyzed: int
    reminders_analyzed: int
    total_patterns: int
    rescore_failures: int = 0


class PatternFailureResponse(BaseModel):
    """Failure envelope returned for unrecoverable analysis errors."""

    success: bool = False
    error: str


class SuggestionContext(CamelModel):
    """Partially filled task/reminder the user is creating."""

    title: Optional[str] = Field(default=None, max_length=500)
    description: Optional[str] = Field(default=None, max_length=4000)
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    priority: Optional[str] = None


class RecurrenceSuggestion(CamelModel):
    frequency: str
    time: Optional[str] = None
    day: Optional[int] = Field(default=None, ge=0, le=6)


class PatternSuggestions(CamelModel):
    """Smart defaults derived from learned patterns."""

    category: Optional[str] = None
    tags: Optional[list[str]] = None
    priority: Optional[str] = None
    due_time: Optional[str] = None
    recurrence: Optional[RecurrenceSuggestion] = None
