"""
Redis Cache Tests - EEM-OMEC Scoring Engine
tests/test_redis_cache.py

Tests for Redis caching of scoring results: cache hits, misses,
version-keyed invalidation, and graceful degradation.
"""
from decimal import Decimal
from fnmatch import fnmatch

import pytest
import redis
from unittest.mock import patch, MagicMock
from pydantic import BaseModel

from eem_omec.models.scoring import ScoringResult
from eem_omec.scoring.evaluator import RubricEvaluator
from eem_omec.scoring.thresholds import NumericTier, TierTable
from eem_omec.services.redis_cache import RedisCache
from eem_omec.services.cache import get_cache, reset_cache, result_key, result_pattern
from eem_omec.services.rubric_source import StaticRubricSource
from eem_omec.services.rule_store import RuleSetStore
from eem_omec.services.scoring_service import ScoringService


class MockModel(BaseModel):
    """Mock Pydantic model for testing."""
    id: str
    name: str


class TestRedisCache:
    """Tests for the RedisCache class."""

    def test_redis_cache_init(self):
        """Test RedisCache initialization."""
        with patch('eem_omec.services.redis_cache.redis.from_url') as mock_from_url:
            cache = RedisCache("redis://cache:6379/1")
            mock_from_url.assert_called_once_with(
                "redis://cache:6379/1",
                decode_responses=True,
                socket_connect_timeout=5,
            )
            assert cache.client is not None

    def test_cache_set_and_get(self):
        """Test setting and getting cached values."""
        with patch('eem_omec.services.redis_cache.redis.from_url') as mock_from_url:
            mock_client = MagicMock()
            mock_from_url.return_value = mock_client

            cache = RedisCache()
            model = MockModel(id="123", name="Test")

            cache.set("test:key", model, 300)
            mock_client.setex.assert_called_once_with(
                "test:key",
                300,
                model.model_dump_json(by_alias=True),
            )

            mock_client.get.return_value = model.model_dump_json()
            result = cache.get("test:key", MockModel)
            assert result is not None
            assert result.id == "123"
            assert result.name == "Test"

    def test_cache_get_miss(self):
        """Test cache miss returns None."""
        with patch('eem_omec.services.redis_cache.redis.from_url') as mock_from_url:
            mock_client = MagicMock()
            mock_client.get.return_value = None
            mock_from_url.return_value = mock_client

            cache = RedisCache()
            assert cache.get("nonexistent:key", MockModel) is None

    def test_cache_delete_pattern(self):
        """Test deleting cache entries by pattern."""
        with patch('eem_omec.services.redis_cache.redis.from_url') as mock_from_url:
            mock_client = MagicMock()
            mock_client.scan_iter.return_value = ["key:1", "key:2", "key:3"]
            mock_client.delete.return_value = 1
            mock_from_url.return_value = mock_client

            cache = RedisCache()
            removed = cache.delete_pattern("key:*")

            mock_client.scan_iter.assert_called_once_with(match="key:*")
            assert mock_client.delete.call_count == 3
            assert removed == 3

    def test_scoring_result_round_trip_uses_camel_case(self):
        with patch('eem_omec.services.redis_cache.redis.from_url') as mock_from_url:
            mock_client = MagicMock()
            mock_from_url.return_value = mock_client
            cache = RedisCache()
            result = ScoringResult(total_score=3, max_possible_score=4, percentage=75, rule_set_version="v1")

            cache.set("k", result, 60)
            stored = mock_client.setex.call_args[0][2]
            assert '"totalScore":3.0' in stored

            mock_client.get.return_value = stored
            assert cache.get("k", ScoringResult) == result


class TestCacheSingleton:
    """Tests for the cache singleton."""

    def teardown_method(self):
        """Reset cache after each test."""
        reset_cache()

    def test_get_cache_returns_instance(self):
        with patch('eem_omec.services.cache.RedisCache') as mock_cache_class:
            mock_instance = MagicMock()
            mock_instance.ping.return_value = True
            mock_cache_class.return_value = mock_instance

            reset_cache()
            assert get_cache() is mock_instance

    def test_get_cache_returns_none_when_redis_unavailable(self):
        with patch('eem_omec.services.cache.RedisCache') as mock_cache_class:
            mock_instance = MagicMock()
            mock_instance.ping.side_effect = redis.ConnectionError("Redis unavailable")
            mock_cache_class.return_value = mock_instance

            reset_cache()
            assert get_cache() is None

    def test_get_cache_singleton_behavior(self):
        with patch('eem_omec.services.cache.RedisCache') as mock_cache_class:
            mock_cache_class.return_value = MagicMock()

            reset_cache()
            assert get_cache() is get_cache()
            assert mock_cache_class.call_count == 1

    def test_get_cache_disabled(self):
        with patch('eem_omec.services.cache.settings') as mock_settings, \
                patch('eem_omec.services.cache.RedisCache') as mock_cache_class:
            mock_settings.CACHE_ENABLED = False
            reset_cache()
            assert get_cache() is None
            mock_cache_class.assert_not_called()


class TestResultKeys:

    def test_key_layout(self):
        assert result_key("abc123", "t9", "101") == "scoring:abc123:t9:101"
        assert result_pattern("abc123") == "scoring:abc123:*"

    def test_pattern_covers_every_tier_version(self):
        pattern = result_pattern("abc123")
        assert fnmatch(result_key("abc123", "t1", "101"), pattern)
        assert fnmatch(result_key("abc123", "t2", "101"), pattern)
        assert not fnmatch(result_key("zzz", "t1", "101"), pattern)


# =============================================================================
# SCORING SERVICE + CACHE
# =============================================================================

def _row(column, score, expected="yes"):
    return {"column": column, "name": column, "score": score, "type": "select", "expectedValue": expected}


class SwappableSource:
    def __init__(self, records):
        self.records = records

    def fetch_records(self):
        return list(self.records)


@pytest.fixture
def mock_cache():
    cache = MagicMock()
    cache.get.return_value = None
    return cache


class TestScoringServiceCache:

    @pytest.mark.asyncio
    async def test_miss_scores_and_stores(self, scoring_service, mock_cache, submission_source):
        scoring_service.cache = mock_cache
        scoring_service.cache_ttl = 120

        result = await scoring_service.evaluate_by_id("101")

        key = result_key(
            scoring_service.rule_set().version,
            scoring_service.evaluator.tier_table.version,
            "101",
        )
        mock_cache.get.assert_called_once_with(key, ScoringResult)
        mock_cache.set.assert_called_once_with(key, result, 120)
        assert submission_source.calls == ["101"]

    @pytest.mark.asyncio
    async def test_hit_skips_survey_backend(self, scoring_service, mock_cache, submission_source):
        cached = ScoringResult(total_score=1, max_possible_score=2, percentage=50, rule_set_version="x")
        mock_cache.get.return_value = cached
        scoring_service.cache = mock_cache

        assert await scoring_service.evaluate_by_id("101") is cached
        assert submission_source.calls == []

    @pytest.mark.asyncio
    async def test_reload_changes_key_and_drops_old_version(self, mock_cache, submission_source):
        source = SwappableSource([_row("q1", "5")])
        service = ScoringService(RuleSetStore(source), submissions=submission_source, cache=mock_cache)
        old_version = service.rule_set().version

        source.records = [_row("q1", "5"), _row("q2", "1")]
        service.reload_rules()
        new_version = service.rule_set().version

        assert new_version != old_version
        mock_cache.delete_pattern.assert_called_once_with(result_pattern(old_version))

        await service.evaluate_by_id("101")
        tiers = service.evaluator.tier_table.version
        mock_cache.get.assert_called_once_with(result_key(new_version, tiers, "101"), ScoringResult)

    @pytest.mark.asyncio
    async def test_redis_errors_do_not_fail_scoring(self, scoring_service, mock_cache):
        mock_cache.get.side_effect = redis.ConnectionError("down")
        mock_cache.set.side_effect = redis.ConnectionError("down")
        scoring_service.cache = mock_cache

        result = await scoring_service.evaluate_by_id("101")
        assert result.total_score == 7

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_ignored(self, scoring_service, mock_cache):
        mock_cache.get.side_effect = ValueError("bad json")
        scoring_service.cache = mock_cache

        result = await scoring_service.evaluate_by_id("101")
        assert result.total_score == 7

    @pytest.mark.asyncio
    async def test_tier_change_is_not_served_from_cache(self, rubric_records, submission_source):
        """Two deployments sharing one Redis, before and after a tier file change."""
        store: dict = {}
        shared = MagicMock()
        shared.get.side_effect = lambda key, model: store.get(key)
        shared.set.side_effect = lambda key, value, ttl: store.__setitem__(key, value)

        def service(tiers):
            return ScoringService(
                RuleSetStore(StaticRubricSource(rubric_records)),
                evaluator=RubricEvaluator(tiers),
                submissions=submission_source,
                cache=shared,
            )

        before = await service(TierTable({})).evaluate_by_id("101")
        after = await service(TierTable({"q2": [NumericTier(Decimal("100"), Decimal("1"))]})).evaluate_by_id("101")

        assert before.total_score == 9
        assert after.total_score == 7
        assert len(store) == 2
        assert submission_source.calls == ["101", "101"]

    def test_tier_version_tracks_content(self):
        one = TierTable({"q2": [NumericTier(Decimal("100"), Decimal("1"))]})
        same = TierTable({"q2": [NumericTier(Decimal("100"), Decimal("1"))]})
        other = TierTable({"q2": [NumericTier(Decimal("100"), Decimal("2"))]})
        assert one.version == same.version
        assert one.version != other.version
        assert TierTable().version != TierTable({}).version

    def test_reload_without_cache(self, rubric_records):
        service = ScoringService(RuleSetStore(StaticRubricSource(rubric_records)))
        assert service.reload_rules().total_rules == 4
