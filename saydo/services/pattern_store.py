"""Persistence for learned patterns (``user_patterns`` table)."""

import asyncio
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import structlog
from pydantic import ValidationError

from saydo.config import get_settings
from saydo.database import get_pool
from saydo.models.pattern import PatternType, UserPattern

logger = structlog.get_logger(__name__)

# Errors worth retrying: the table may not exist yet while migrations run,
# and pooled connections can drop between acquire and execute.
TRANSIENT_ERRORS = (
    asyncpg.exceptions.UndefinedTableError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.CannotConnectNowError,
    ConnectionError,
)


class PatternStore:
    """Reads and writes one pattern row per user and pattern type."""

    def __init__(self, pool: Optional[asyncpg.Pool] = None):
        self._pool = pool
        self.settings = get_settings()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        return await get_pool()

    async def save_pattern(
        self,
        user_id: str,
        pattern_type: PatternType,
        pattern_data: dict,
        metadata: Optional[dict] = None,
        frequency: int = 1,
    ) -> dict:
        """Insert or overwrite the user's pattern of the given type.

        A new row starts at the configured initial confidence. An existing
        row keeps its ``first_seen_at`` and confidence; its payload,
        frequency, metadata and ``last_seen_at`` are replaced.

        Transient database errors are retried after each configured delay.
        Failures are logged and reported in the result, never raised.

        Returns:
            ``{"success": True, "pattern_id": str}`` or
            ``{"success": False, "error": str}``
        """
        pattern_type = PatternType(pattern_type)
        delays = self.settings.pattern_save_retry_delays_list
        log = logger.bind(user_id=user_id, pattern_type=pattern_type.value)

        for attempt in range(len(delays) + 1):
            now = datetime.now(timezone.utc)
            try:
                pool = await self._get_pool()
                async with pool.acquire() as conn:
                    pattern_id = await conn.fetchval(
                        """
                        INSERT INTO user_patterns
                        (id, user_id, pattern_type, pattern_data, frequency, confidence_score,
                         first_seen_at, last_seen_at, metadata, created_at, updated_at)
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $7, $8, $7, $7)
                        ON CONFLICT (user_id, pattern_type) DO UPDATE
                        SET pattern_data = EXCLUDED.pattern_data,
                            frequency = EXCLUDED.frequency,
                            metadata = EXCLUDED.metadata,
                            last_seen_at = EXCLUDED.last_seen_at,
                            updated_at = EXCLUDED.updated_at
                        RETURNING id
                        """,
                        uuid4(),
                        UUID(user_id),
                        pattern_type.value,
                        pattern_data,
                        max(frequency, 1),
                        self.settings.pattern_initial_confidence,
                        now,
                        metadata or {},
                    )
            except TRANSIENT_ERRORS as e:
                if attempt < len(delays):
                    log.warning(
                        "pattern_save_retrying",
                        attempt=attempt + 1,
                        max_retries=len(delays),
                        delay_seconds=delays[attempt],
                        error=str(e),
                    )
                    await asyncio.sleep(delays[attempt])
                    continue
                log.error("pattern_save_retries_exhausted", error=str(e))
                return {"success": False, "error": str(e)}
            except Exception as e:
                log.error("pattern_save_failed", error=str(e), error_type=type(e).__name__)
                return {"success": False, "error": str(e) or "Failed to save pattern"}

            if attempt > 0:
                log.info("pattern_saved_after_retry", retries=attempt)
            log.info("pattern_saved", pattern_id=str(pattern_id), frequency=frequency)
            return {"success": True, "pattern_id": str(pattern_id)}

        return {"success": False, "error": "Failed to save pattern after all retries"}

    async def get_user_patterns(
        self,
        user_id: str,
        pattern_type: Optional[PatternType] = None,
    ) -> list[UserPattern]:
        """List a user's patterns, most confident and most recent first.

        Never raises: a failed query is logged and yields an empty list, and
        malformed rows are logged and skipped.
        """
        query = """
            SELECT id, user_id, pattern_type, pattern_data, frequency, confidence_score,
                   first_seen_at, last_seen_at, metadata
            FROM user_patterns
            WHERE user_id = $1
        """
        args: list = []

        try:
            args.append(UUID(user_id))
            if pattern_type is not None:
                query += " AND pattern_type = $2"
                args.append(PatternType(pattern_type).value)
            query += " ORDER BY confidence_score DESC, last_seen_at DESC"

            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
        except Exception as e:
            logger.error(
                "pattern_retrieval_failed",
                user_id=user_id,
                pattern_type=pattern_type,
                error=str(e),
            )
            return []

        patterns = []
        for row in rows:
            try:
                patterns.append(UserPattern.from_row(row))
            except (ValidationError, ValueError) as e:
                logger.warning(
                    "malformed_pattern_row_skipped",
                    user_id=user_id,
                    pattern_id=str(row.get("id")),
                    error=str(e),
                )
        return patterns

    async def update_confidence(self, pattern_id: UUID, confidence_score: int) -> None:
        """Write a recomputed confidence score.

        Raises:
            asyncpg.PostgresError: If the update fails
        """
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE user_patterns
                SET confidence_score = $1, updated_at = $2
                WHERE id = $3
                """,
                confidence_score,
                datetime.now(timezone.utc),
                pattern_id,
            )

