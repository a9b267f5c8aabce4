"""
Rubric CSV Source Tests - EEM-OMEC Scoring Engine
tests/test_rubric_source.py
"""
from pathlib import Path

import pytest

from eem_omec.core.exceptions import DataUnavailable
from eem_omec.scoring.evaluator import RubricEvaluator
from eem_omec.scoring.rules import load_rules
from eem_omec.services.kobo_client import flatten_submission
from eem_omec.services.rubric_source import CsvRubricSource

SAMPLE_RUBRIC_CSV = Path(__file__).resolve().parent.parent / "data" / "calculo_eem_omec.csv"

SAMPLE = (
    "column,name,section,genero,potencial_omec,eem,value,score,type\n"
    "start,start,,,,,,,\n"
    " q1 , Question one ,A,Mujeres,Alto,EEM, si ,2,select\n"
    "\n"
    "q2,Question two,B,N/A,NA,,,3,value\n"
)


class TestCsvRubricSource:

    def test_reads_rows_as_trimmed_strings(self, tmp_path):
        path = tmp_path / "rubric.csv"
        path.write_text(SAMPLE, encoding="utf-8")

        records = CsvRubricSource(path).fetch_records()

        assert len(records) == 3
        assert records[1]["column"] == "q1"
        assert records[1]["name"] == "Question one"
        assert records[1]["value"] == "si"
        assert records[0]["score"] == ""

    def test_na_strings_are_not_converted(self, tmp_path):
        path = tmp_path / "rubric.csv"
        path.write_text(SAMPLE, encoding="utf-8")
        records = CsvRubricSource(path).fetch_records()
        assert records[2]["genero"] == "N/A"
        assert records[2]["potencial_omec"] == "NA"

    def test_loads_into_rule_set(self, tmp_path):
        path = tmp_path / "rubric.csv"
        path.write_text(SAMPLE, encoding="utf-8")
        rule_set = load_rules(CsvRubricSource(path).fetch_records())
        assert [r.column for r in rule_set] == ["q1", "q2"]
        assert rule_set.rules[0].gender == "Mujeres"
        assert rule_set.rules[0].expected_value == "si"

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataUnavailable) as exc_info:
            CsvRubricSource(tmp_path / "missing.csv").fetch_records()
        assert exc_info.value.reason == "file not found"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(DataUnavailable):
            CsvRubricSource(path).fetch_records()

    def test_directory_is_not_a_rubric(self, tmp_path):
        with pytest.raises(DataUnavailable):
            CsvRubricSource(tmp_path).fetch_records()


class TestSampleRubric:
    """The rubric shipped in data/."""

    def test_sample_rubric_loads(self):
        rule_set = load_rules(CsvRubricSource(SAMPLE_RUBRIC_CSV).fetch_records())
        summary = rule_set.summary()
        assert summary.total_rules == 16
        assert summary.max_possible_score == 28.0
        assert summary.rules_by_type == {"select": 11, "multiple_max": 3, "value": 2}
        assert summary.gender_categories == ["Equidad"]
        assert [g.group_key for g in summary.multiple_max_groups] == ["_0408_equip"]
        assert summary.duplicate_columns == {}
        assert summary.eem_categories == ["EEM"]

    def test_kobo_select_multiple_answer_scores(self):
        rule_set = load_rules(CsvRubricSource(SAMPLE_RUBRIC_CSV).fetch_records())
        submission = flatten_submission({
            "_id": 7,
            "_04_gestion/_0408_equip": "gps vehiculo",
        })

        result = RubricEvaluator().evaluate(rule_set, submission)

        equipment = {
            d.column: d.score for d in result.detailed_results
            if d.column.startswith("_0408_equip/")
        }
        assert equipment == {
            "_0408_equip/gps": 1.0,
            "_0408_equip/camaras_trampa": 0.0,
            "_0408_equip/vehiculo": 2.0,
        }
        assert result.total_score == 3
        assert [(e.label, e.score) for e in result.eem_scores] == [("EEM", 3.0)]
