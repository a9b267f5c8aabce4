"""
Core Package - EEM-OMEC Scoring Engine
eem_omec/core/__init__.py

Core infrastructure: dependencies, exceptions.
"""

from eem_omec.core.exceptions import (
    DataUnavailable,
    ScoringEngineError,
    SubmissionNotFound,
    UpstreamUnavailable,
)

__all__ = [
    # Exceptions
    "DataUnavailable",
    "ScoringEngineError",
    "SubmissionNotFound",
    "UpstreamUnavailable",
]
