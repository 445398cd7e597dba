"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from saydo import __version__
from saydo.api.middleware import CorrelationIdMiddleware
from saydo.api.patterns import router as patterns_router
from saydo.api.routes import router
from saydo.config import get_settings
from saydo.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    from saydo.database import close_database, init_database, run_migrations

    try:
        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - pattern endpoints will fail until it is reachable",
        )

    refresh_service = None
    if settings.pattern_refresh_enabled:
        try:
            from saydo.services.pattern_refresh_service import PatternRefreshService

            refresh_service = PatternRefreshService()
            refresh_service.start()
        except Exception as e:
            logger.warning(
                "pattern_refresh_start_failed",
                error=str(e),
                note="Continuing without periodic pattern refresh",
            )

    logger.info(
        "application_started",
        version=__version__,
        log_level=settings.log_level,
        pattern_refresh_enabled=settings.pattern_refresh_enabled,
    )

    yield

    if refresh_service is not None:
        await refresh_service.stop()

    await close_database()
    logger.info("application_shutdown")


app = FastAPI(
    title="Saydo - Pattern Learning API",
    description="Learns task and reminder habits and turns them into smart defaults",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 with the first failing field instead of FastAPI's 422."""
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning(
        "validation_error",
        correlation_id=correlation_id,
        detail=detail,
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "detail": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(patterns_router)
app.include_router(router)
