"""Unit tests for PatternRefreshService."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from saydo.config import Settings
from saydo.services.pattern_analysis_service import PatternAnalysisError
from saydo.services.pattern_refresh_service import PatternRefreshService


@pytest.fixture
def analysis():
    analysis = MagicMock()
    analysis.analyze = AsyncMock()
    return analysis


@pytest.fixture
def activity():
    activity = MagicMock()
    activity.list_active_users = AsyncMock(return_value=[])
    return activity


@pytest.fixture
def service(analysis, activity):
    return PatternRefreshService(analysis=analysis, activity=activity)


class TestRefreshOnce:
    @pytest.mark.asyncio
    async def test_no_active_users(self, service, analysis):
        refreshed = await service.refresh_once()

        assert refreshed == 0
        analysis.analyze.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_analyzes_each_active_user(self, service, analysis, activity):
        activity.list_active_users.return_value = ["user-a", "user-b"]

        refreshed = await service.refresh_once()

        assert refreshed == 2
        assert [c.args[0] for c in analysis.analyze.await_args_list] == ["user-a", "user-b"]

    @pytest.mark.asyncio
    async def test_failed_user_does_not_stop_batch(self, service, analysis, activity):
        activity.list_active_users.return_value = ["user-a", "user-b"]
        analysis.analyze.side_effect = [PatternAnalysisError("timed out"), None]

        refreshed = await service.refresh_once()

        assert refreshed == 1
        assert analysis.analyze.await_count == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_batch(self, service, analysis, activity):
        activity.list_active_users.return_value = ["user-a", "user-b"]
        analysis.analyze.side_effect = [KeyError("pattern_data"), None]

        refreshed = await service.refresh_once()

        assert refreshed == 1
        assert [c.args[0] for c in analysis.analyze.await_args_list] == ["user-a", "user-b"]

    @pytest.mark.asyncio
    async def test_first_tick_looks_back_one_interval(self, service, activity):
        before = datetime.now(timezone.utc)

        await service.refresh_once()

        since, until, limit, offset = activity.list_active_users.await_args.args
        interval = timedelta(seconds=service.settings.pattern_refresh_interval_seconds)
        assert since == until - interval
        assert before <= until <= datetime.now(timezone.utc)
        assert limit == service.settings.pattern_refresh_batch_size
        assert offset == 0

    @pytest.mark.asyncio
    async def test_next_tick_starts_at_previous_tick(self, service, activity):
        await service.refresh_once()
        first_tick = service._last_tick

        await service.refresh_once()

        since = activity.list_active_users.await_args.args[0]
        assert since == first_tick


class TestRefreshPaging:
    @pytest.fixture
    def active_users(self, activity):
        users = ["u1", "u2", "u3"]

        async def list_active_users(since, until, limit, offset=0):
            return users[offset:offset + limit]

        activity.list_active_users.side_effect = list_active_users
        return users

    @pytest.mark.asyncio
    async def test_users_beyond_batch_size_are_refreshed(
        self, service, analysis, activity, active_users
    ):
        service.settings = Settings(pattern_refresh_batch_size=2)

        refreshed = await service.refresh_once()

        assert refreshed == 3
        assert [c.args[0] for c in analysis.analyze.await_args_list] == active_users
        assert [c.args[3] for c in activity.list_active_users.await_args_list] == [0, 2]

    @pytest.mark.asyncio
    async def test_full_last_page_reads_one_more(self, service, analysis, activity, active_users):
        service.settings = Settings(pattern_refresh_batch_size=3)

        refreshed = await service.refresh_once()

        assert refreshed == 3
        assert [c.args[3] for c in activity.list_active_users.await_args_list] == [0, 3]

    @pytest.mark.asyncio
    async def test_pages_share_one_window(self, service, activity, active_users):
        service.settings = Settings(pattern_refresh_batch_size=1)

        await service.refresh_once()

        windows = {c.args[:2] for c in activity.list_active_users.await_args_list}
        assert len(windows) == 1
        assert service._last_tick == next(iter(windows))[1]

    @pytest.mark.asyncio
    async def test_listing_failure_keeps_previous_tick(self, service, activity):
        await service.refresh_once()
        first_tick = service._last_tick
        activity.list_active_users.side_effect = ConnectionError("database unavailable")

        with pytest.raises(ConnectionError):
            await service.refresh_once()

        assert service._last_tick == first_tick


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, service, activity):
        service.start()
        await asyncio.sleep(0)

        await service.stop()

        assert service._running is False
        assert service._task.done()
        activity.list_active_users.assert_awaited()

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self, service, activity):
        activity.list_active_users.side_effect = ConnectionError("database unavailable")

        service.start()
        await asyncio.sleep(0)
        await service.stop()

        assert service._task.done()
