# tests/conftest.py

"""
Pytest Fixtures - Shared rubrics, submissions and API clients

RUBRIC REFERENCE (rubric_records):
- q1            select        "yes" -> 5   section A / Mujeres / Alto
- q2            value         tiers        section B / N/A     / Medio
- equip/gps     multiple_max  "1"   -> 1   section B
- equip/drone   multiple_max  "1"   -> 2   section B
- start/end/today metadata rows, plus one row without a score
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from eem_omec.core.dependencies import get_kobo_client, get_scoring_service
from eem_omec.core.exceptions import SubmissionNotFound
from eem_omec.main import app
from eem_omec.scoring.evaluator import RubricEvaluator
from eem_omec.scoring.rules import load_rules
from eem_omec.scoring.thresholds import NumericTier, TierTable
from eem_omec.services.kobo_client import flatten_submission
from eem_omec.services.rubric_source import StaticRubricSource
from eem_omec.services.rule_store import RuleSetStore
from eem_omec.services.scoring_service import ScoringService


# =============================================================================
# RUBRIC FIXTURES
# =============================================================================

def rule_row(column, score, type_, expected="", section="", gender="", potential="", name=None):
    return {
        "column": column,
        "name": name if name is not None else column,
        "section": section,
        "gender": gender,
        "potential": potential,
        "expectedValue": expected,
        "score": score,
        "type": type_,
    }


@pytest.fixture
def rubric_records() -> List[Dict[str, str]]:
    return [
        rule_row("start", "", ""),
        rule_row("end", "", ""),
        rule_row("today", "", ""),
        rule_row("q1", "5", "select", "yes", "A", "Mujeres", "Alto"),
        rule_row("q2", "3", "value", "", "B", "N/A", "Medio"),
        rule_row("equip/gps", "1", "multiple_max", "1", "B", name="Equipment/GPS"),
        rule_row("equip/drone", "2", "multiple_max", "1", "B", name="Equipment/Drone"),
        rule_row("notes", "", "select", "x", "C"),
    ]


@pytest.fixture
def q2_tiers() -> TierTable:
    """q2 answers of 100 or more earn 1 point."""
    return TierTable({"q2": [NumericTier(Decimal("100"), Decimal("1"))]})


@pytest.fixture
def rule_set(rubric_records):
    return load_rules(rubric_records)


@pytest.fixture
def evaluator(q2_tiers) -> RubricEvaluator:
    return RubricEvaluator(q2_tiers)


# =============================================================================
# SUBMISSION SOURCE DOUBLE
# =============================================================================

class FakeSubmissionSource:
    """In-memory stand-in for KoboToolboxClient."""

    def __init__(self, submissions: Optional[Dict[str, Dict[str, Any]]] = None):
        self.submissions = submissions or {}
        self.calls: List[str] = []
        self.form_id = "test-form"
        self.configured = True

    async def fetch_submission(self, submission_id: str) -> Dict[str, Any]:
        self.calls.append(submission_id)
        if submission_id not in self.submissions:
            raise SubmissionNotFound(submission_id)
        return flatten_submission(self.submissions[submission_id])


@pytest.fixture
def submission_source() -> FakeSubmissionSource:
    return FakeSubmissionSource({
        "101": {"_id": 101, "grp/q1": "yes", "grp/q2": "150", "gps": "1"},
    })


@pytest.fixture
def scoring_service(rubric_records, evaluator, submission_source) -> ScoringService:
    return ScoringService(
        store=RuleSetStore(StaticRubricSource(rubric_records)),
        evaluator=evaluator,
        submissions=submission_source,
    )


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture
def client(scoring_service, submission_source):
    """TestClient wired to in-memory rubric and submissions."""
    app.dependency_overrides[get_scoring_service] = lambda: scoring_service
    app.dependency_overrides[get_kobo_client] = lambda: submission_source
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
