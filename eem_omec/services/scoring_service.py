"""
Scoring Service - EEM-OMEC Scoring Engine
eem_omec/services/scoring_service.py

Public entry points of the engine:

  evaluate(submission)       score an in-memory submission
  evaluate_by_id(id)         fetch from KoboToolbox, score, cache by rubric + tier version
  load_rules()               summary of the current rubric snapshot
  reload_rules()             re-read the rubric and swap the snapshot
  rubric_records()           the admitted rubric rows
"""

from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional

import redis
import structlog

from eem_omec.config import Settings, get_settings
from eem_omec.models.scoring import RuleSetSummary, ScoringResult, ValidationReport
from eem_omec.scoring.evaluator import RubricEvaluator, validate_result
from eem_omec.scoring.rules import RuleSet
from eem_omec.scoring.thresholds import load_tier_table
from eem_omec.services.cache import get_cache, result_key, result_pattern
from eem_omec.services.kobo_client import KoboToolboxClient
from eem_omec.services.redis_cache import RedisCache
from eem_omec.services.rubric_source import CsvRubricSource
from eem_omec.services.rule_store import RuleSetStore

logger = structlog.get_logger(__name__)


class ScoringService:
    def __init__(
        self,
        store: RuleSetStore,
        evaluator: Optional[RubricEvaluator] = None,
        submissions: Optional[KoboToolboxClient] = None,
        cache: Optional[RedisCache] = None,
        cache_ttl: int = 3600,
    ):
        self.store = store
        self.evaluator = evaluator or RubricEvaluator()
        self.submissions = submissions
        self.cache = cache
        self.cache_ttl = cache_ttl

    # -- rubric --------------------------------------------------------------

    def rule_set(self) -> RuleSet:
        return self.store.get()

    def load_rules(self) -> RuleSetSummary:
        return self.store.get().summary()

    def reload_rules(self) -> RuleSetSummary:
        previous = self.store.peek()
        snapshot = self.store.reload()
        if previous is not None and previous.version != snapshot.version:
            self._cache_drop_version(previous.version)
        return snapshot.summary()

    def rubric_records(self) -> List[Dict[str, Any]]:
        return [rule.to_record() for rule in self.store.get()]

    # -- scoring -------------------------------------------------------------

    def evaluate(self, submission: Mapping[str, Any]) -> ScoringResult:
        return self.evaluator.evaluate(self.store.get(), submission)

    async def evaluate_by_id(self, submission_id: str) -> ScoringResult:
        """
        Fetch one submission from the survey backend and score it.

        Raises:
            SubmissionNotFound, UpstreamUnavailable: from the survey backend.
            DataUnavailable: rubric could not be loaded.
        """
        if self.submissions is None:
            raise RuntimeError("ScoringService has no submission source")

        rule_set = self.store.get()
        key = result_key(rule_set.version, self.evaluator.tier_table.version, submission_id)

        cached = self._cache_get(key)
        if cached is not None:
            logger.debug("scoring_cache_hit", key=key)
            return cached

        submission = await self.submissions.fetch_submission(submission_id)
        result = self.evaluator.evaluate(rule_set, submission)
        logger.info(
            "submission_evaluated",
            submission_id=submission_id,
            rule_set_version=rule_set.version,
            total_score=result.total_score,
            percentage=result.percentage,
        )
        self._cache_set(key, result)
        return result

    @staticmethod
    def validate(result: ScoringResult) -> ValidationReport:
        return validate_result(result)

    # -- cache (never fails a request) ---------------------------------------

    def _cache_get(self, key: str) -> Optional[ScoringResult]:
        if self.cache is None:
            return None
        try:
            return self.cache.get(key, ScoringResult)
        except (redis.RedisError, ValueError) as e:
            logger.warning("scoring_cache_read_failed", key=key, error=str(e))
            return None

    def _cache_set(self, key: str, result: ScoringResult) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, result, self.cache_ttl)
        except redis.RedisError as e:
            logger.warning("scoring_cache_write_failed", key=key, error=str(e))

    def _cache_drop_version(self, version: str) -> None:
        if self.cache is None:
            return
        try:
            removed = self.cache.delete_pattern(result_pattern(version))
            logger.info("scoring_cache_invalidated", version=version, removed=removed)
        except redis.RedisError as e:
            logger.warning("scoring_cache_invalidate_failed", version=version, error=str(e))


def build_scoring_service(settings: Optional[Settings] = None) -> ScoringService:
    settings = settings or get_settings()
    return ScoringService(
        store=RuleSetStore(CsvRubricSource(settings.RUBRIC_CSV_PATH)),
        evaluator=RubricEvaluator(load_tier_table(settings.NUMERIC_TIERS_PATH)),
        submissions=KoboToolboxClient.from_settings(settings),
        cache=get_cache(),
        cache_ttl=settings.CACHE_TTL_RESULTS,
    )


@lru_cache
def get_scoring_service() -> ScoringService:
    return build_scoring_service()
