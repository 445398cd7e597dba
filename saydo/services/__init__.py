"""Services package exports."""

from saydo.services.logging_service import configure_logging, get_logger
from saydo.services.pattern_analysis_service import (
    AnalysisDependencies,
    PatternAnalysisError,
    PatternAnalysisService,
)
from saydo.services.pattern_store import PatternStore

__all__ = [
    "AnalysisDependencies",
    "PatternAnalysisError",
    "PatternAnalysisService",
    "PatternStore",
    "configure_logging",
    "get_logger",
]
