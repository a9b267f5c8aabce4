# eem_omec/models/scoring.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, Dict, Any, List


class CamelModel(BaseModel):
    """Serialises with camelCase keys, accepts either spelling on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# SCORING RESULT
# =============================================================================

class DetailedResult(CamelModel):
    """Outcome of one rubric rule against one submission."""
    column: str
    question: str
    section: str = ""
    gender: str = ""
    omec_potential: str = ""
    eem: str = ""
    expected_value: str = ""
    actual_value: Optional[str] = None  # None = unanswered
    score: float = Field(ge=0)
    max_score: float = Field(ge=0)
    type: str


class CategoryScore(CamelModel):
    """Aggregate over every rule sharing one classification label."""
    label: str
    score: float = Field(ge=0)
    max_score: float = Field(ge=0)
    percentage: float = Field(ge=0, le=100)
    question_count: int = Field(ge=0)


class ScoringResult(CamelModel):
    total_score: float = Field(ge=0)
    max_possible_score: float = Field(ge=0)
    percentage: float = Field(ge=0, le=100)
    detailed_results: List[DetailedResult] = Field(default_factory=list)
    section_scores: List[CategoryScore] = Field(default_factory=list)
    gender_scores: List[CategoryScore] = Field(default_factory=list)
    omec_potential_scores: List[CategoryScore] = Field(default_factory=list)
    eem_scores: List[CategoryScore] = Field(default_factory=list)
    rule_set_version: str = ""


class ValidationReport(CamelModel):
    """Cross-check of a result's totals against its detailed rows."""
    is_valid: bool
    issues: List[str] = Field(default_factory=list)
    expected_total: float
    expected_max: float
    actual_total: float
    actual_max: float


# =============================================================================
# RULE SET SUMMARY
# =============================================================================

class MultipleMaxOption(CamelModel):
    option_key: str
    name: str
    expected_value: str
    score: float
    column: str


class MultipleMaxGroupSummary(CamelModel):
    group_key: str
    question_name: str
    section: str = ""
    gender: str = ""
    omec_potential: str = ""
    eem: str = ""
    max_possible_score: float
    options: List[MultipleMaxOption] = Field(default_factory=list)


class RuleSetSummary(CamelModel):
    version: str
    loaded_at: datetime
    total_rules: int
    max_possible_score: float
    rules_by_type: Dict[str, int]
    rules_by_column: Dict[str, int]
    duplicate_columns: Dict[str, int] = Field(default_factory=dict)
    sections: List[str] = Field(default_factory=list)
    gender_categories: List[str] = Field(default_factory=list)
    omec_potential_categories: List[str] = Field(default_factory=list)
    eem_categories: List[str] = Field(default_factory=list)
    multiple_max_groups: List[MultipleMaxGroupSummary] = Field(default_factory=list)


# =============================================================================
# API PAYLOADS
# =============================================================================

class ScoringRequest(CamelModel):
    """Body of POST /scoring: a full submission, or the ID of one to fetch."""
    submission: Optional[Dict[str, Any]] = None
    submission_id: Optional[str] = None
    test: bool = False


class ScoringResponse(CamelModel):
    success: bool = True
    result: ScoringResult
    validation: ValidationReport
    timestamp: datetime


class RuleSetResponse(CamelModel):
    success: bool = True
    summary: RuleSetSummary
    timestamp: datetime


class RubricRecord(CamelModel):
    """One admitted rubric row, as loaded."""
    column: str
    name: str
    section: str
    gender: str
    potential: str
    eem: str = ""
    expected_value: str
    score: float
    type: str


class SubmissionOverview(CamelModel):
    """Listing row for one survey submission."""
    id: str
    uuid: Optional[str] = None
    submitted_at: Optional[str] = None
    submitted_by: Optional[str] = None
    validation_status: Optional[str] = None
    area_name: Optional[str] = None
    province: Optional[str] = None


class SubmissionPage(CamelModel):
    count: int
    page: int
    page_size: int
    results: List[SubmissionOverview]
