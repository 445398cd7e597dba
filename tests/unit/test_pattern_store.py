"""Unit tests for PatternStore."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest

from saydo.models.pattern import PatternType
from saydo.services.pattern_store import PatternStore


@pytest.fixture
def store(mock_pool):
    pool, _ = mock_pool
    return PatternStore(pool=pool)


def pattern_row(user_id: str, **overrides) -> dict:
    now = datetime.now(timezone.utc)
    row = {
        "id": uuid4(),
        "user_id": UUID(user_id),
        "pattern_type": "category",
        "pattern_data": {"most_used_categories": [{"category": "work", "count": 3}]},
        "frequency": 3,
        "confidence_score": 27,
        "first_seen_at": now,
        "last_seen_at": now,
        "metadata": {},
    }
    row.update(overrides)
    return row


class TestSavePattern:
    @pytest.mark.asyncio
    async def test_upserts_by_user_and_type(self, store, user_id, mock_pool):
        _, conn = mock_pool
        pattern_id = uuid4()
        conn.fetchval.return_value = pattern_id

        result = await store.save_pattern(
            user_id, PatternType.TIMING, {"preferred_due_times": ["09:00"]}
        )

        assert result == {"success": True, "pattern_id": str(pattern_id)}
        sql = conn.fetchval.call_args[0][0]
        assert "ON CONFLICT (user_id, pattern_type) DO UPDATE" in sql
        assert "first_seen_at" not in sql.split("DO UPDATE")[1]

    @pytest.mark.asyncio
    async def test_new_row_defaults(self, store, user_id, mock_pool):
        _, conn = mock_pool
        conn.fetchval.return_value = uuid4()

        await store.save_pattern(user_id, "tags", {"most_common_tags": []})

        # call_args[0] = (sql, id, user_id, type, data, frequency, confidence, now, metadata)
        args = conn.fetchval.call_args[0]
        assert args[2] == UUID(user_id)
        assert args[3] == "tags"
        assert args[5] == 1
        assert args[6] == 10
        assert args[8] == {}

    @pytest.mark.asyncio
    async def test_passes_frequency_and_metadata(self, store, user_id, mock_pool):
        _, conn = mock_pool
        conn.fetchval.return_value = uuid4()

        await store.save_pattern(
            user_id,
            PatternType.PRIORITY,
            {"default_priority": "high"},
            metadata={"items_analyzed": 12},
            frequency=12,
        )

        args = conn.fetchval.call_args[0]
        assert args[5] == 12
        assert args[8] == {"items_analyzed": 12}

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self, store, user_id, mock_pool):
        _, conn = mock_pool
        pattern_id = uuid4()
        conn.fetchval.side_effect = [
            ConnectionResetError("connection reset by peer"),
            pattern_id,
        ]

        with patch("saydo.services.pattern_store.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await store.save_pattern(user_id, PatternType.TIMING, {})

        assert result["success"] is True
        assert result["pattern_id"] == str(pattern_id)
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_gives_up_after_all_retries(self, store, user_id, mock_pool):
        _, conn = mock_pool
        conn.fetchval.side_effect = ConnectionError("connection reset")

        with patch("saydo.services.pattern_store.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await store.save_pattern(user_id, PatternType.TIMING, {})

        assert result == {"success": False, "error": "connection reset"}
        assert conn.fetchval.await_count == 4
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_other_errors_fail_without_retry(self, store, user_id, mock_pool):
        _, conn = mock_pool
        conn.fetchval.side_effect = RuntimeError("check constraint violated")

        with patch("saydo.services.pattern_store.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await store.save_pattern(user_id, PatternType.TIMING, {})

        assert result["success"] is False
        assert "check constraint" in result["error"]
        sleep.assert_not_awaited()


class TestGetUserPatterns:
    @pytest.mark.asyncio
    async def test_returns_parsed_patterns(self, store, user_id, mock_pool):
        _, conn = mock_pool
        conn.fetch.return_value = [pattern_row(user_id)]

        patterns = await store.get_user_patterns(user_id)

        assert len(patterns) == 1
        assert patterns[0].pattern_type == PatternType.CATEGORY
        assert patterns[0].confidence_score == 27

    @pytest.mark.asyncio
    async def test_orders_by_confidence_then_recency(self, store, user_id, mock_pool):
        _, conn = mock_pool

        await store.get_user_patterns(user_id)

        sql = conn.fetch.call_args[0][0]
        assert "ORDER BY confidence_score DESC, last_seen_at DESC" in sql

    @pytest.mark.asyncio
    async def test_filters_by_type(self, store, user_id, mock_pool):
        _, conn = mock_pool

        await store.get_user_patterns(user_id, PatternType.RECURRING)

        call_args = conn.fetch.call_args[0]
        assert "pattern_type = $2" in call_args[0]
        assert call_args[2] == "recurring"

    @pytest.mark.asyncio
    async def test_decodes_json_text_columns(self, store, user_id, mock_pool):
        _, conn = mock_pool
        conn.fetch.return_value = [
            pattern_row(
                user_id,
                pattern_data=json.dumps({"default_priority": "low"}),
                metadata=None,
                confidence_score=42.6,
            )
        ]

        patterns = await store.get_user_patterns(user_id)

        assert patterns[0].pattern_data == {"default_priority": "low"}
        assert patterns[0].metadata == {}
        assert patterns[0].confidence_score == 43

    @pytest.mark.asyncio
    async def test_skips_malformed_rows(self, store, user_id, mock_pool):
        _, conn = mock_pool
        conn.fetch.return_value = [
            pattern_row(user_id, pattern_type="mood"),
            pattern_row(user_id, pattern_type="timing"),
        ]

        patterns = await store.get_user_patterns(user_id)

        assert [p.pattern_type for p in patterns] == [PatternType.TIMING]

    @pytest.mark.asyncio
    async def test_returns_empty_on_database_error(self, store, user_id, mock_pool):
        _, conn = mock_pool
        conn.fetch.side_effect = OSError("server closed the connection")

        patterns = await store.get_user_patterns(user_id)

        assert patterns == []

    @pytest.mark.asyncio
    async def test_returns_empty_when_pool_unavailable(self, user_id):
        store = PatternStore()

        with patch(
            "saydo.services.pattern_store.get_pool",
            new_callable=AsyncMock,
            side_effect=RuntimeError("Database pool not initialized"),
        ):
            patterns = await store.get_user_patterns(user_id)

        assert patterns == []


class TestUpdateConfidence:
    @pytest.mark.asyncio
    async def test_writes_score(self, store, mock_pool):
        _, conn = mock_pool
        pattern_id = uuid4()

        await store.update_confidence(pattern_id, 65)

        call_args = conn.execute.call_args[0]
        assert call_args[1] == 65
        assert call_args[3] == pattern_id
