"""API package exports."""

from saydo.api.middleware import CorrelationIdMiddleware
from saydo.api.patterns import router as patterns_router
from saydo.api.routes import router

__all__ = ["router", "patterns_router", "CorrelationIdMiddleware"]
