"""
RuleSet Store - EEM-OMEC Scoring Engine
eem_omec/services/rule_store.py

Holds the current RuleSet snapshot. Loading is lazy and happens at most
once; reload builds a complete new snapshot before publishing it, so a
reader sees either the old rubric or the new one, never a mix.
"""

import threading
from typing import Optional

import structlog

from eem_omec.scoring.rules import RuleSet, load_rules
from eem_omec.services.rubric_source import RubricSource

logger = structlog.get_logger(__name__)


class RuleSetStore:
    def __init__(self, source: RubricSource):
        self.source = source
        self._snapshot: Optional[RuleSet] = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    def peek(self) -> Optional[RuleSet]:
        """Current snapshot without triggering a load."""
        return self._snapshot

    def get(self) -> RuleSet:
        """
        Current snapshot, loading it on first use.

        Raises:
            DataUnavailable: the first load failed (nothing is published).
        """
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._build()
            return self._snapshot

    def reload(self) -> RuleSet:
        """
        Re-read the source and publish a new snapshot.

        Raises:
            DataUnavailable: source unreadable; the previous snapshot stays.
        """
        with self._lock:
            previous = self._snapshot
            snapshot = self._build()
            self._snapshot = snapshot
        logger.info(
            "rule_set_reloaded",
            previous_version=previous.version if previous else None,
            version=snapshot.version,
            rules=len(snapshot),
        )
        return snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None

    def _build(self) -> RuleSet:
        return load_rules(self.source.fetch_records())
