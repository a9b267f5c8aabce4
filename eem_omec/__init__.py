"""EEM-OMEC Scoring Engine: rubric-based scoring of KoboToolbox conservation-area surveys."""

__version__ = "1.0.0"
