"""
Rubric Sources - EEM-OMEC Scoring Engine
eem_omec/services/rubric_source.py

Where rubric rows come from. Every source returns rows as header -> cell
string mappings in file order; interpreting them is the loader's job.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Protocol, Union

import pandas as pd
import structlog

from eem_omec.core.exceptions import DataUnavailable

logger = structlog.get_logger(__name__)


class RubricSource(Protocol):
    def fetch_records(self) -> List[Dict[str, str]]:
        ...


class CsvRubricSource:
    """Reads the rubric CSV (one scoring rule per row) with pandas."""

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding

    def __repr__(self) -> str:
        return f"CsvRubricSource({str(self.path)!r})"

    def fetch_records(self) -> List[Dict[str, str]]:
        """
        Read every row as strings.

        Cells are never converted to NaN/None: an empty cell stays "".
        Leading and trailing whitespace is trimmed from headers and cells.

        Raises:
            DataUnavailable: file missing, unreadable, or not valid CSV.
        """
        if not self.path.is_file():
            raise DataUnavailable(str(self.path), "file not found")
        try:
            frame = pd.read_csv(
                self.path,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding=self.encoding,
            )
        except pd.errors.EmptyDataError as e:
            raise DataUnavailable(str(self.path), "file is empty") from e
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            raise DataUnavailable(str(self.path), str(e)) from e

        frame.columns = [str(c).strip() for c in frame.columns]
        for column in frame.columns:
            frame[column] = frame[column].str.strip()
        records = frame.to_dict(orient="records")
        logger.debug("rubric_csv_read", path=str(self.path), rows=len(records))
        return records


class StaticRubricSource:
    """Rows held in memory; for embedding the engine and for tests."""

    def __init__(self, records: Iterable[Mapping[str, str]]):
        self._records = [dict(r) for r in records]

    def fetch_records(self) -> List[Dict[str, str]]:
        return [dict(r) for r in self._records]
