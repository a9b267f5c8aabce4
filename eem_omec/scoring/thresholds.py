# eem_omec/scoring/thresholds.py
"""
Numeric Tier Table
------------------
Scores `value` rules. Columns with a tier table score by the first tier
whose threshold the answer reaches (thresholds checked high to low),
capped at the rule's score. Columns without one score min(answer, rule.score).

Default tiers:
    _0309_tam_ha_001             area in hectares   >=10000 -> 3, >=1000 -> 2, >=100 -> 1
    _040502_num_guardabosq_x_ha  rangers per ha     >=5 -> 3, >=2 -> 2, >=1 -> 1

Override file (NUMERIC_TIERS_PATH), JSON:
    {"<column>": [[threshold, score], ...]}
    {"<column>": [{"threshold": t, "score": s}, ...]}
Entries replace the default table for the same column.
"""
import hashlib
import json
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import structlog

from eem_omec.core.exceptions import DataUnavailable
from eem_omec.scoring.utils import ZERO, parse_number

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NumericTier:
    threshold: Decimal
    score: Decimal


def _tiers(*pairs: Tuple[str, str]) -> Tuple[NumericTier, ...]:
    return tuple(NumericTier(Decimal(t), Decimal(s)) for t, s in pairs)


DEFAULT_NUMERIC_TIERS: Dict[str, Tuple[NumericTier, ...]] = {
    "_0309_tam_ha_001": _tiers(("10000", "3"), ("1000", "2"), ("100", "1")),
    "_040502_num_guardabosq_x_ha": _tiers(("5", "3"), ("2", "2"), ("1", "1")),
}


class TierTable:
    """Column -> ordered tiers. Lookup by full column, then trailing segment."""

    def __init__(self, tiers: Optional[Mapping[str, Iterable[NumericTier]]] = None):
        source = DEFAULT_NUMERIC_TIERS if tiers is None else tiers
        self._tiers: Dict[str, Tuple[NumericTier, ...]] = {
            column: tuple(sorted(entries, key=lambda t: t.threshold, reverse=True))
            for column, entries in source.items()
        }
        self.version = self._fingerprint()

    def __contains__(self, column: str) -> bool:
        return self.tiers_for(column) is not None

    def __len__(self) -> int:
        return len(self._tiers)

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(self._tiers)

    def _fingerprint(self) -> str:
        """Content hash of the table; changes whenever a value score could."""
        payload = json.dumps(
            {
                column: [[str(t.threshold), str(t.score)] for t in tiers]
                for column, tiers in sorted(self._tiers.items())
            },
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]

    def tiers_for(self, column: str) -> Optional[Tuple[NumericTier, ...]]:
        if column in self._tiers:
            return self._tiers[column]
        return self._tiers.get(column.split("/")[-1])

    def score(self, column: str, value: Decimal, max_score: Decimal) -> Decimal:
        """
        Score one numeric answer.

        Non-positive answers score 0 whatever the table says.
        """
        if value <= 0 or max_score <= 0:
            return ZERO
        tiers = self.tiers_for(column)
        if tiers is None:
            return min(value, max_score)
        for tier in tiers:
            if value >= tier.threshold:
                return min(tier.score, max_score)
        return ZERO

    def merged(self, overrides: "TierTable") -> "TierTable":
        """New table: this one with `overrides` replacing whole columns."""
        combined = dict(self._tiers)
        combined.update(overrides._tiers)
        return TierTable(combined)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TierTable":
        """Parse the JSON override shape. Raises ValueError on bad entries."""
        if not isinstance(data, Mapping):
            raise ValueError("tier table must be an object keyed by column")
        parsed: Dict[str, Tuple[NumericTier, ...]] = {}
        for column, entries in data.items():
            if not isinstance(entries, list):
                raise ValueError(f"tiers for {column!r} must be a list")
            parsed[str(column)] = tuple(_parse_tier(column, e) for e in entries)
        return cls(parsed)


def _parse_tier(column: str, entry: Any) -> NumericTier:
    if isinstance(entry, Mapping):
        raw_threshold, raw_score = entry.get("threshold"), entry.get("score")
    elif isinstance(entry, (list, tuple)) and len(entry) == 2:
        raw_threshold, raw_score = entry
    else:
        raise ValueError(f"bad tier for {column!r}: {entry!r}")
    threshold, score = parse_number(raw_threshold), parse_number(raw_score)
    if threshold is None or score is None or score < 0:
        raise ValueError(f"bad tier for {column!r}: {entry!r}")
    return NumericTier(threshold=threshold, score=score)


def load_tier_table(path: Optional[Union[str, Path]] = None) -> TierTable:
    """
    Default table, with the columns in `path` (if given) replacing defaults.

    Raises:
        DataUnavailable: the override file is missing or malformed.
    """
    table = TierTable()
    if path is None:
        return table
    path = Path(path)
    try:
        overrides = TierTable.from_mapping(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError) as e:
        raise DataUnavailable(str(path), str(e)) from e
    logger.info("numeric_tiers_loaded", path=str(path), columns=list(overrides.columns))
    return table.merged(overrides)
