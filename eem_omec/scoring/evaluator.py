# eem_omec/scoring/evaluator.py
"""
Rubric Evaluator
----------------
Scores one survey submission against a RuleSet snapshot.

Per rule (answer looked up by the trailing segment of the rule's column):
    select        rule.score iff answer == expectedValue, else 0
    multiple_max  same exact match per option; options are summed. A
                  space-separated answer under the group key (how KoboToolbox
                  stores select_multiple) counts as one answer per option.
    value         numeric answer scored through the TierTable
    (unknown)     exact match, like select
    unanswered    0

totalScore = Σ awarded, maxPossibleScore = Σ rule scores. Every rule also
feeds one breakdown per classification (section, gender, OMEC potential,
EEM) unless its label is empty or "N/A".
"""
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional

import structlog

from eem_omec.models.scoring import (
    CategoryScore,
    DetailedResult,
    ScoringResult,
    ValidationReport,
)
from eem_omec.scoring.rules import RuleSet, RuleType, ScoringRule
from eem_omec.scoring.thresholds import TierTable
from eem_omec.scoring.utils import ZERO, parse_number, percentage

logger = structlog.get_logger(__name__)

UNCLASSIFIED = frozenset({"", "N/A"})
VALIDATION_TOLERANCE = 0.01


def render_value(value: Any) -> Optional[str]:
    """Canonical string form of an answer, or None when unanswered."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Mapping):
        # validation status {"label": ..., "uid": ...}
        label = value.get("label")
        return render_value(label) if isinstance(label, str) else None
    if isinstance(value, (list, tuple)):
        return None
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    text = str(value)
    return text if text != "" else None


def extract_value(submission: Mapping[str, Any], column: str) -> Optional[str]:
    """Answer for `column`, looked up by its trailing segment."""
    return render_value(submission.get(column.split("/")[-1]))


def expand_selected_options(rule_set: RuleSet, submission: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Copy of `submission` where each multiple_max group answer such as
    {"_0408_equip": "gps vehiculo"} also appears per chosen option.

    Only options the rubric knows are added, and an answer already present
    under an option key is kept as is.
    """
    expanded = dict(submission)
    for group_key, group in rule_set.multiple_max_groups().items():
        answer = render_value(submission.get(group_key))
        if answer is None:
            continue
        chosen = set(answer.split())
        for rule in group.rules:
            option = rule.lookup_key
            if option in chosen and option not in expanded:
                expanded[option] = rule.expected_value or "1"
    return expanded


def _is_classified(label: str) -> bool:
    return label.strip().upper() not in UNCLASSIFIED


@dataclass
class _Bucket:
    score: Decimal = ZERO
    max_score: Decimal = ZERO
    count: int = 0


@dataclass(frozen=True)
class _Scored:
    rule: ScoringRule
    actual: Optional[str]
    awarded: Decimal


class RubricEvaluator:
    """Pure scoring over an immutable RuleSet; holds only the tier table."""

    def __init__(self, tier_table: Optional[TierTable] = None):
        self.tier_table = tier_table if tier_table is not None else TierTable()

    def score_rule(self, rule: ScoringRule, actual: Optional[str]) -> Decimal:
        if actual is None:
            return ZERO
        if rule.rule_type is RuleType.VALUE:
            number = parse_number(actual)
            if number is None:
                return ZERO
            return self.tier_table.score(rule.column, number, rule.score)
        return rule.score if actual == rule.expected_value else ZERO

    def evaluate(self, rule_set: RuleSet, submission: Mapping[str, Any]) -> ScoringResult:
        """
        Score `submission` against every rule in `rule_set`.

        Never raises for bad answers; anything unparseable scores 0.
        """
        answers = expand_selected_options(rule_set, submission)
        scored: List[_Scored] = []
        for rule in rule_set.rules:
            actual = extract_value(answers, rule.column)
            scored.append(_Scored(rule, actual, self.score_rule(rule, actual)))

        total = sum((s.awarded for s in scored), ZERO)
        max_possible = sum((s.rule.score for s in scored), ZERO)

        result = ScoringResult(
            total_score=float(total),
            max_possible_score=float(max_possible),
            percentage=float(percentage(total, max_possible)),
            detailed_results=[self._detail(s) for s in scored],
            section_scores=self._aggregate(scored, lambda r: r.section),
            gender_scores=self._aggregate(scored, lambda r: r.gender),
            omec_potential_scores=self._aggregate(scored, lambda r: r.potential),
            eem_scores=self._aggregate(scored, lambda r: r.eem),
            rule_set_version=rule_set.version,
        )
        logger.debug(
            "submission_scored",
            rule_set_version=rule_set.version,
            rules=len(scored),
            answered=sum(1 for s in scored if s.actual is not None),
            total_score=result.total_score,
            percentage=result.percentage,
        )
        return result

    @staticmethod
    def _detail(s: _Scored) -> DetailedResult:
        rule = s.rule
        return DetailedResult(
            column=rule.column,
            question=rule.name,
            section=rule.section,
            gender=rule.gender,
            omec_potential=rule.potential,
            eem=rule.eem,
            expected_value=rule.expected_value,
            actual_value=s.actual,
            score=float(s.awarded),
            max_score=float(rule.score),
            type=rule.type,
        )

    @staticmethod
    def _aggregate(
        scored: List[_Scored],
        label_of: Callable[[ScoringRule], str],
    ) -> List[CategoryScore]:
        buckets: Dict[str, _Bucket] = {}
        for s in scored:
            label = label_of(s.rule).strip()
            if not _is_classified(label):
                continue
            bucket = buckets.setdefault(label, _Bucket())
            bucket.score += s.awarded
            bucket.max_score += s.rule.score
            bucket.count += 1
        return [
            CategoryScore(
                label=label,
                score=float(b.score),
                max_score=float(b.max_score),
                percentage=float(percentage(b.score, b.max_score)),
                question_count=b.count,
            )
            for label, b in buckets.items()
        ]


def validate_result(result: ScoringResult) -> ValidationReport:
    """Recompute totals from the detailed rows and compare."""
    expected_total = sum(d.score for d in result.detailed_results)
    expected_max = sum(d.max_score for d in result.detailed_results)
    issues: List[str] = []

    if abs(expected_total - result.total_score) > VALIDATION_TOLERANCE:
        issues.append(
            f"Total score mismatch: expected {expected_total:.2f}, got {result.total_score:.2f}"
        )
    if abs(expected_max - result.max_possible_score) > VALIDATION_TOLERANCE:
        issues.append(
            f"Max score mismatch: expected {expected_max:.2f}, got {result.max_possible_score:.2f}"
        )
    for detail in result.detailed_results:
        if detail.score > detail.max_score + VALIDATION_TOLERANCE:
            issues.append(f"Score above max for {detail.column}")

    return ValidationReport(
        is_valid=not issues,
        issues=issues,
        expected_total=round(expected_total, 2),
        expected_max=round(expected_max, 2),
        actual_total=result.total_score,
        actual_max=result.max_possible_score,
    )
