"""
Custom Exceptions - EEM-OMEC Scoring Engine
eem_omec/core/exceptions.py

Top-level failures of the scoring engine and its collaborators. Malformed
rubric rows and garbled answers are not errors: they score 0.
"""

from typing import Optional


class ScoringEngineError(Exception):
    """Base exception for the scoring engine."""

    pass


class DataUnavailable(ScoringEngineError):
    """Rubric source could not be read."""

    def __init__(self, source: str, reason: str = "unreadable"):
        self.source = source
        self.reason = reason
        super().__init__(f"Rubric source {source} is unavailable: {reason}")


class SubmissionNotFound(ScoringEngineError):
    """Survey backend has no submission with the given ID."""

    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"Submission with ID {submission_id} not found")


class UpstreamUnavailable(ScoringEngineError):
    """Survey backend failed or answered with something that is not data."""

    def __init__(self, message: str = "Survey backend unavailable", status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
