"""
scoring/ - EEM/OMEC Rubric Scoring

Modules:
    utils.py        - Decimal utilities (parsing, rounding, percentages)
    rules.py        - ScoringRule / RuleSet and the rubric loader
    thresholds.py   - Numeric tier table for `value` rules
    evaluator.py    - Per-rule scoring, aggregation, result validation
"""
