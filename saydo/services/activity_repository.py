"""Read-only access to a user's tasks and reminders."""

from datetime import datetime
from typing import Callable, Optional, TypeVar
from uuid import UUID

import asyncpg
import structlog
from pydantic import ValidationError

from saydo.database import get_pool
from saydo.models.activity import Reminder, Task

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _parse_rows(rows: list, parse: Callable[[dict], T], entity: str, user_id: str) -> list[T]:
    """Parse every row, logging and dropping the ones that do not validate."""
    parsed = []
    skipped = 0
    for row in rows:
        try:
            parsed.append(parse(row))
        except ValidationError as e:
            skipped += 1
            logger.warning(
                "malformed_row_skipped",
                entity=entity,
                user_id=user_id,
                row_id=str(row.get("id")),
                errors=e.errors(include_url=False),
            )
    if skipped:
        logger.info("rows_skipped", entity=entity, user_id=user_id, skipped=skipped)
    return parsed


class ActivityRepository:
    """Fetches the history the pattern engine learns from.

    Reads are windowed to the most recent ``limit`` rows. Database errors
    propagate to the caller.
    """

    def __init__(self, pool: Optional[asyncpg.Pool] = None):
        self._pool = pool

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        return await get_pool()

    async def fetch_tasks(self, user_id: str, limit: int) -> list[Task]:
        """Most recent tasks first."""
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, user_id, title, description, priority, status, due_date, due_time,
                       category, tags, source_recording_id, created_at, completed_at
                FROM tasks
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                UUID(user_id),
                limit,
            )
        return _parse_rows(rows, Task.from_row, "task", user_id)

    async def fetch_reminders(self, user_id: str, limit: int) -> list[Reminder]:
        """Most recent reminders first."""
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, user_id, title, description, reminder_time, is_recurring,
                       recurrence_pattern, is_completed, is_snoozed, snooze_until, tags,
                       priority, type, source_recording_id, created_at
                FROM reminders
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                UUID(user_id),
                limit,
            )
        return _parse_rows(rows, Reminder.from_row, "reminder", user_id)

    async def list_active_users(
        self, since: datetime, until: datetime, limit: int, offset: int = 0
    ) -> list[str]:
        """Users who created a task or reminder in ``[since, until)``.

        Pages are ordered by user id so consecutive offsets over the same
        window never skip or repeat a user.
        """
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT DISTINCT user_id
                FROM (
                    SELECT user_id FROM tasks WHERE created_at >= $1 AND created_at < $2
                    UNION ALL
                    SELECT user_id FROM reminders WHERE created_at >= $1 AND created_at < $2
                ) activity
                ORDER BY user_id
                LIMIT $3 OFFSET $4
                """,
                since,
                until,
                limit,
                offset,
            )
        return [str(row["user_id"]) for row in rows]
