# eem_omec/scoring/rules.py
"""
Rubric Rules
------------
Turns raw rubric rows into an immutable, ordered RuleSet.

A row is admitted iff:
    column  non-empty and not one of the form-metadata markers (start/end/today)
    score   present and non-empty
    type    present and non-empty

Admitted rows keep their input order. A score that does not parse as a
finite, non-negative number becomes 0; the row stays in the set so that
it still shows up in the detailed results.

Header spellings accepted (case-insensitive):
    gender         <- gender | genero
    potential      <- potential | potencial_omec
    eem            <- eem
    expectedValue  <- expectedValue | expected_value | value
Any other column is ignored.
"""
import hashlib
import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import structlog

from eem_omec.models.scoring import (
    MultipleMaxGroupSummary,
    MultipleMaxOption,
    RuleSetSummary,
)
from eem_omec.scoring.utils import ZERO, parse_number

logger = structlog.get_logger(__name__)

STRUCTURAL_COLUMNS = frozenset({"start", "end", "today"})

# Canonical field -> accepted header spellings, first match wins
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "column":         ("column",),
    "name":           ("name",),
    "section":        ("section",),
    "gender":         ("gender", "genero"),
    "potential":      ("potential", "potencial_omec"),
    "eem":            ("eem",),
    "expected_value": ("expectedvalue", "expected_value", "value"),
    "score":          ("score",),
    "type":           ("type",),
}


class RuleType(str, Enum):
    """Matching strategies the evaluator knows about."""
    SELECT = "select"
    MULTIPLE_MAX = "multiple_max"
    VALUE = "value"


@dataclass(frozen=True)
class ScoringRule:
    """One rubric row: how to score one answer."""
    column: str
    name: str
    section: str
    gender: str
    potential: str
    eem: str
    expected_value: str
    score: Decimal
    type: str   # lower-cased; may be a type the evaluator does not know

    @property
    def lookup_key(self) -> str:
        """Trailing path segment, the key answers are stored under."""
        return self.column.split("/")[-1]

    @property
    def group_key(self) -> str:
        """Leading path segment; options of one multiple_max question share it."""
        return self.column.split("/")[0]

    @property
    def rule_type(self) -> Optional[RuleType]:
        try:
            return RuleType(self.type)
        except ValueError:
            return None

    def to_record(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "name": self.name,
            "section": self.section,
            "gender": self.gender,
            "potential": self.potential,
            "eem": self.eem,
            "expectedValue": self.expected_value,
            "score": float(self.score),
            "type": self.type,
        }


@dataclass(frozen=True)
class MultipleMaxGroup:
    """Options of one multiple_max question, grouped by leading column segment."""
    group_key: str
    question_name: str
    rules: Tuple[ScoringRule, ...]

    @property
    def max_possible_score(self) -> Decimal:
        return sum((r.score for r in self.rules if r.score > 0), ZERO)


@dataclass(frozen=True)
class RuleSet:
    """Immutable snapshot of the rubric. Safe to share between requests."""
    rules: Tuple[ScoringRule, ...]
    version: str
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self) -> Iterator[ScoringRule]:
        return iter(self.rules)

    @property
    def max_possible_score(self) -> Decimal:
        return sum((r.score for r in self.rules), ZERO)

    def rules_by_type(self) -> Dict[str, int]:
        counts = {t.value: 0 for t in RuleType}
        for rule in self.rules:
            counts[rule.type] = counts.get(rule.type, 0) + 1
        return counts

    def rules_by_column(self) -> Dict[str, int]:
        return dict(Counter(r.column for r in self.rules))

    def duplicate_columns(self) -> Dict[str, int]:
        return {col: n for col, n in self.rules_by_column().items() if n > 1}

    def labels(self, attr: str) -> List[str]:
        """Distinct classified values of one label field, in first-seen order."""
        seen: Dict[str, None] = {}
        for rule in self.rules:
            label = getattr(rule, attr).strip()
            if label and label.upper() != "N/A":
                seen.setdefault(label, None)
        return list(seen)

    def multiple_max_groups(self) -> Dict[str, MultipleMaxGroup]:
        grouped: Dict[str, List[ScoringRule]] = {}
        for rule in self.rules:
            if rule.rule_type is RuleType.MULTIPLE_MAX:
                grouped.setdefault(rule.group_key, []).append(rule)
        return {
            key: MultipleMaxGroup(
                group_key=key,
                question_name=members[0].name.split("/")[0],
                rules=tuple(members),
            )
            for key, members in grouped.items()
        }

    def summary(self) -> RuleSetSummary:
        return RuleSetSummary(
            version=self.version,
            loaded_at=self.loaded_at,
            total_rules=len(self.rules),
            max_possible_score=float(self.max_possible_score),
            rules_by_type=self.rules_by_type(),
            rules_by_column=self.rules_by_column(),
            duplicate_columns=self.duplicate_columns(),
            sections=self.labels("section"),
            gender_categories=self.labels("gender"),
            omec_potential_categories=self.labels("potential"),
            eem_categories=self.labels("eem"),
            multiple_max_groups=[
                MultipleMaxGroupSummary(
                    group_key=group.group_key,
                    question_name=group.question_name,
                    section=group.rules[0].section,
                    gender=group.rules[0].gender,
                    omec_potential=group.rules[0].potential,
                    eem=group.rules[0].eem,
                    max_possible_score=float(group.max_possible_score),
                    options=[
                        MultipleMaxOption(
                            option_key=r.lookup_key,
                            name=r.name,
                            expected_value=r.expected_value,
                            score=float(r.score),
                            column=r.column,
                        )
                        for r in group.rules
                    ],
                )
                for group in self.multiple_max_groups().values()
            ],
        )


# =============================================================================
# LOADING
# =============================================================================

def normalize_record(raw: Mapping[str, Any]) -> Dict[str, str]:
    """Map a raw row onto canonical field names. Missing fields become ""."""
    lowered: Dict[str, str] = {}
    for key, value in raw.items():
        lowered.setdefault(
            str(key).strip().lower(),
            "" if value is None else str(value).strip(),
        )
    return {
        name: next((lowered[a] for a in aliases if a in lowered), "")
        for name, aliases in FIELD_ALIASES.items()
    }


def is_scoring_record(record: Mapping[str, str]) -> bool:
    column = record.get("column", "")
    return (
        bool(column)
        and column not in STRUCTURAL_COLUMNS
        and bool(record.get("score", ""))
        and bool(record.get("type", ""))
    )


def _parse_score(column: str, raw_score: str) -> Decimal:
    score = parse_number(raw_score)
    if score is None:
        logger.warning("rubric_score_unparseable", column=column, score=raw_score)
        return ZERO
    if score < 0:
        logger.warning("rubric_score_negative", column=column, score=raw_score)
        return ZERO
    # "-0" parses to Decimal("-0")
    return score + ZERO


def build_rule(record: Mapping[str, str]) -> ScoringRule:
    rule = ScoringRule(
        column=record["column"],
        name=record.get("name", ""),
        section=record.get("section", ""),
        gender=record.get("gender", ""),
        potential=record.get("potential", ""),
        eem=record.get("eem", ""),
        expected_value=record.get("expected_value", ""),
        score=_parse_score(record["column"], record["score"]),
        type=record["type"].lower(),
    )
    if rule.rule_type is None:
        logger.warning("rubric_unknown_rule_type", column=rule.column, type=rule.type)
    return rule


def fingerprint(rules: Iterable[ScoringRule]) -> str:
    """Content hash of the admitted rules; changes whenever scoring could."""
    payload = json.dumps(
        [
            [r.column, r.name, r.section, r.gender, r.potential, r.eem,
             r.expected_value, str(r.score), r.type]
            for r in rules
        ],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def load_rules(records: Iterable[Mapping[str, Any]]) -> RuleSet:
    """
    Build a RuleSet from raw rubric rows.

    Args:
        records: Rows as header -> cell mappings, in file order.

    Returns:
        RuleSet holding every admitted row, in input order.
    """
    rules: List[ScoringRule] = []
    skipped = 0
    for raw in records:
        record = normalize_record(raw)
        if not is_scoring_record(record):
            skipped += 1
            continue
        rules.append(build_rule(record))

    rule_set = RuleSet(rules=tuple(rules), version=fingerprint(rules))

    duplicates = rule_set.duplicate_columns()
    if duplicates:
        logger.warning("rubric_duplicate_columns", columns=sorted(duplicates))

    logger.info(
        "rubric_loaded",
        version=rule_set.version,
        rules=len(rule_set),
        skipped=skipped,
        by_type=rule_set.rules_by_type(),
    )
    return rule_set
