"""
RuleSet Store Tests - EEM-OMEC Scoring Engine
tests/test_rule_store.py

Lazy loading, atomic reload, failed reloads and concurrent first use.
"""
import threading

import pytest

from eem_omec.core.exceptions import DataUnavailable
from eem_omec.services.rubric_source import StaticRubricSource
from eem_omec.services.rule_store import RuleSetStore


class SwitchableSource:
    """Serves `records` until `fail` is set; counts reads."""

    def __init__(self, records):
        self.records = records
        self.fail = False
        self.reads = 0

    def fetch_records(self):
        self.reads += 1
        if self.fail:
            raise DataUnavailable("memory", "switched off")
        return list(self.records)


def _row(column, score="1"):
    return {"column": column, "name": column, "score": score, "type": "select", "expectedValue": "yes"}


class TestRuleSetStore:

    def test_get_loads_lazily_once(self):
        source = SwitchableSource([_row("q1")])
        store = RuleSetStore(source)
        assert not store.loaded
        assert store.peek() is None

        first = store.get()
        second = store.get()

        assert first is second
        assert source.reads == 1
        assert store.loaded

    def test_reload_swaps_snapshot(self):
        source = SwitchableSource([_row("q1")])
        store = RuleSetStore(source)
        old = store.get()

        source.records = [_row("q1"), _row("q2")]
        new = store.reload()

        assert store.get() is new
        assert len(old) == 1
        assert len(new) == 2
        assert old.version != new.version

    def test_failed_reload_keeps_previous_snapshot(self):
        source = SwitchableSource([_row("q1")])
        store = RuleSetStore(source)
        old = store.get()

        source.fail = True
        with pytest.raises(DataUnavailable):
            store.reload()

        assert store.get() is old

    def test_failed_first_load_publishes_nothing(self):
        source = SwitchableSource([_row("q1")])
        source.fail = True
        store = RuleSetStore(source)

        with pytest.raises(DataUnavailable):
            store.get()
        assert not store.loaded

        source.fail = False
        assert len(store.get()) == 1

    def test_invalidate_forces_reload(self):
        source = SwitchableSource([_row("q1")])
        store = RuleSetStore(source)
        store.get()

        store.invalidate()
        source.records = [_row("q9")]

        assert [r.column for r in store.get()] == ["q9"]
        assert source.reads == 2

    def test_concurrent_first_use_loads_once(self):
        source = SwitchableSource([_row(f"q{i}") for i in range(50)])
        store = RuleSetStore(source)
        seen = []

        def worker():
            seen.append(store.get())

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert source.reads == 1
        assert all(s is seen[0] for s in seen)

    def test_static_source_returns_copies(self):
        source = StaticRubricSource([_row("q1")])
        source.fetch_records()[0]["column"] = "changed"
        assert source.fetch_records()[0]["column"] == "q1"
