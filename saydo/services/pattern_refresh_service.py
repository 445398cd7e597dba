"""Background job re-learning patterns for recently active users."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from saydo.config import get_settings
from saydo.services.activity_repository import ActivityRepository
from saydo.services.pattern_analysis_service import (
    PatternAnalysisError,
    PatternAnalysisService,
)

logger = structlog.get_logger(__name__)


class PatternRefreshService:
    """Periodically runs pattern analysis for users with new activity."""

    def __init__(
        self,
        analysis: Optional[PatternAnalysisService] = None,
        activity: Optional[ActivityRepository] = None,
    ):
        self.settings = get_settings()
        self.analysis = analysis or PatternAnalysisService()
        self.activity = activity or ActivityRepository()
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._last_tick: Optional[datetime] = None

    def start(self):
        """Start the refresh loop as an asyncio background task."""
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            "pattern_refresh_started",
            interval_seconds=self.settings.pattern_refresh_interval_seconds,
        )

    async def stop(self):
        """Stop the refresh loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("pattern_refresh_stopped")

    async def _poll_loop(self):
        interval = self.settings.pattern_refresh_interval_seconds

        while self._running:
            try:
                await self.refresh_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("pattern_refresh_error", error=str(e))

            try:
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break

    async def refresh_once(self) -> int:
        """Analyze every user active since the previous tick.

        The first tick looks back one interval. Active users are read in
        pages of ``pattern_refresh_batch_size`` until a short page comes
        back, all bounded by the same tick time. A failed analysis is logged
        and the remaining users are still processed.

        Returns:
            Number of users whose analysis succeeded
        """
        now = datetime.now(timezone.utc)
        since = self._last_tick or now - timedelta(
            seconds=self.settings.pattern_refresh_interval_seconds
        )
        batch_size = max(self.settings.pattern_refresh_batch_size, 1)

        total = 0
        refreshed = 0
        while True:
            user_ids = await self.activity.list_active_users(since, now, batch_size, total)
            if user_ids:
                logger.info("pattern_refresh_found_users", count=len(user_ids), offset=total)
            total += len(user_ids)

            for user_id in user_ids:
                try:
                    await self.analysis.analyze(user_id)
                    refreshed += 1
                except PatternAnalysisError as e:
                    logger.warning("pattern_refresh_user_failed", user_id=user_id, error=str(e))
                except Exception as e:
                    logger.error(
                        "pattern_refresh_user_error",
                        user_id=user_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )

            if len(user_ids) < batch_size:
                break

        self._last_tick = now

        if total:
            logger.info("pattern_refresh_completed", refreshed=refreshed, total=total)
        return refreshed
