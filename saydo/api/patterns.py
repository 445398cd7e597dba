"""Pattern learning API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
import structlog

from saydo.api.dependencies import get_current_user
from saydo.models.pattern import (
    AnalyzePatternsRequest,
    AnalyzePatternsResponse,
    PatternFailureResponse,
    PatternSuggestions,
    PatternType,
    SuggestionContext,
    UserPattern,
)
from saydo.models.user import AuthenticatedUser
from saydo.services.pattern_analysis_service import (
    PatternAnalysisError,
    PatternAnalysisService,
)
from saydo.services.pattern_store import PatternStore
from saydo.services.pattern_suggestion_service import PatternSuggestionService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/patterns", tags=["Patterns"])


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=PatternFailureResponse(error=error).model_dump(),
    )


def _format_pattern(pattern: UserPattern) -> dict:
    """Format a stored pattern for API response."""
    return {
        "id": str(pattern.id),
        "patternType": pattern.pattern_type.value,
        "patternData": pattern.pattern_data,
        "frequency": pattern.frequency,
        "confidenceScore": pattern.confidence_score,
        "firstSeenAt": pattern.first_seen_at.isoformat(),
        "lastSeenAt": pattern.last_seen_at.isoformat(),
    }


@router.post(
    "/analyze",
    response_model=AnalyzePatternsResponse,
    responses={403: {"model": PatternFailureResponse}, 500: {"model": PatternFailureResponse}},
)
async def analyze_patterns(
    body: AnalyzePatternsRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Re-learn every pattern for the caller from their full history.

    Callers may only analyze their own patterns. Meant to be triggered on
    demand or by a periodic job.
    """
    if body.user_id != current_user.id:
        logger.warning(
            "pattern_analysis_forbidden",
            caller_id=str(current_user.id),
            requested_user_id=str(body.user_id),
        )
        return _failure(403, "Forbidden")

    service = PatternAnalysisService()
    try:
        result = await service.analyze(str(body.user_id))
    except PatternAnalysisError as e:
        return _failure(500, str(e))
    except Exception as e:
        logger.error(
            "pattern_analysis_unexpected_error",
            user_id=str(body.user_id),
            error=str(e),
            error_type=type(e).__name__,
        )
        return _failure(500, "Failed to analyze patterns")

    return AnalyzePatternsResponse(
        patterns_learned=result.patterns_learned,
        tasks_analyzed=result.tasks_analyzed,
        reminders_analyzed=result.reminders_analyzed,
        total_patterns=result.total_patterns,
        rescore_failures=result.rescore_failures,
    )


@router.get("")
async def list_patterns(
    pattern_type: Optional[PatternType] = Query(default=None, description="Filter by pattern type"),
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> dict:
    """List the caller's learned patterns, most confident first."""
    store = PatternStore()
    patterns = await store.get_user_patterns(str(current_user.id), pattern_type)

    return {
        "success": True,
        "patterns": [_format_pattern(p) for p in patterns],
    }


@router.post(
    "/suggestions",
    response_model=PatternSuggestions,
    response_model_exclude_none=True,
)
async def get_suggestions(
    context: SuggestionContext,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> PatternSuggestions:
    """Smart defaults for a task or reminder the caller is creating."""
    service = PatternSuggestionService()
    return await service.get_all_suggestions(str(current_user.id), context)
