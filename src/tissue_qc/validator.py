import datetime
import logging
import math
import typing

from dataclasses import dataclass

import pandas as pd
from stairval.notepad import Notepad

from .errors import MalformedRecordError, SchemaError
from .records import (
    CODE,
    CONCENTRATION,
    PARAMETER,
    RECORD_COLUMNS,
    REQUIRED_COLUMNS,
    SAMPLE_DATE,
    SITE,
    SITE_CODE,
    TEST_METHOD,
    UNITS_VALUE,
    WEIGHT_BASIS,
    YEAR,
    MeasurementRecord,
    ParameterRegistry,
    WeightBasis,
)

logger = logging.getLogger(__name__)

REASON = "Reason"


@dataclass
class ValidatedTable:
    """
    Result of validating a simplified table.

    records: accepted rows with canonical columns, normalized WeightBasis labels,
             normalized Parameter names and float Concentration (NaN when missing).
             The original row index is preserved.
    rejected: the offending input rows plus a 'Reason' column.
    """
    records: pd.DataFrame
    rejected: pd.DataFrame


class RecordValidator:
    def __init__(self, registry: ParameterRegistry | None = None):
        self._registry = registry if registry is not None else ParameterRegistry()

    @staticmethod
    def _is_blank(value: typing.Any) -> bool:
        # Handle None, NaN, NaT, pandas NA, and empty/whitespace-only strings
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        try:
            return bool(pd.isna(value))
        except (TypeError, ValueError):
            return False

    @staticmethod
    def _to_concentration(value: typing.Any) -> float | None:
        """
        Concentration parsing:
        - None, NaN, '' → None (missing, excluded from aggregates later)
        - ints, floats and numeric strings → float
        - anything else (e.g. '<0.5', 'n/a', booleans) → MalformedRecordError
        """
        if RecordValidator._is_blank(value):
            return None
        if isinstance(value, bool):
            raise MalformedRecordError(f"Non-numeric concentration {value!r}")
        try:
            number = float(str(value).strip()) if isinstance(value, str) else float(value)
        except (TypeError, ValueError):
            raise MalformedRecordError(f"Non-numeric concentration {value!r}")
        return None if math.isnan(number) else number

    @staticmethod
    def _to_text(value: typing.Any) -> str:
        return "" if RecordValidator._is_blank(value) else str(value).strip()

    @staticmethod
    def _to_year(value: typing.Any) -> int | None:
        if RecordValidator._is_blank(value):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise MalformedRecordError(f"Invalid year {value!r}")

    @staticmethod
    def _to_date(value: typing.Any) -> datetime.date | None:
        if RecordValidator._is_blank(value):
            return None
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        parsed = pd.to_datetime(value, errors="coerce")
        if pd.isna(parsed):
            raise MalformedRecordError(f"Invalid sample date {value!r}")
        return parsed.date()

    def parse_record_row(self, row: typing.Mapping[str, typing.Any]) -> MeasurementRecord:
        """
        Parse a single table row into a MeasurementRecord.
        Raises MalformedRecordError when the row cannot be represented.
        """
        code = self._to_text(row.get(CODE))
        if not code:
            raise MalformedRecordError("Missing sampling code")

        return MeasurementRecord(
            code=code,
            parameter=self._registry.validate(row.get(PARAMETER)),
            test_method=self._to_text(row.get(TEST_METHOD)).upper(),
            weight_basis=WeightBasis.from_label(row.get(WEIGHT_BASIS)),
            concentration=self._to_concentration(row.get(CONCENTRATION)),
            units_value=self._to_text(row.get(UNITS_VALUE)),
            site_code=self._to_text(row.get(SITE_CODE)),
            site=self._to_text(row.get(SITE)),
            year=self._to_year(row.get(YEAR)),
            sample_date=self._to_date(row.get(SAMPLE_DATE)),
        )

    def validate(self, table: pd.DataFrame, notepad: Notepad) -> ValidatedTable:
        """
        Process:
        1) require the columns the checkers depend on (SchemaError otherwise)
        2) parse every row; a malformed row is rejected and noted, the batch goes on
        3) return accepted rows in canonical form together with the rejected rows
        """
        missing = sorted(REQUIRED_COLUMNS - set(table.columns))
        if missing:
            raise SchemaError(f"Table is missing required columns: {missing}")

        accepted_rows: list[dict] = []
        accepted_index: list = []
        rejected_rows: list[dict] = []
        rejected_index: list = []

        for index, row in table.iterrows():
            try:
                record = self.parse_record_row(row)
            except MalformedRecordError as exception:
                notepad.add_error(f"Row {index}: {exception}")
                logger.warning(f"Rejected row {index}: {exception}")
                rejected_rows.append({**row.to_dict(), REASON: str(exception)})
                rejected_index.append(index)
                continue
            accepted_rows.append(record.to_row())
            accepted_index.append(index)

        records = pd.DataFrame(accepted_rows, columns=RECORD_COLUMNS, index=pd.Index(accepted_index))
        records[CONCENTRATION] = records[CONCENTRATION].astype(float)
        records[YEAR] = records[YEAR].astype("Int64")

        rejected = pd.DataFrame(
            rejected_rows,
            columns=list(table.columns) + [REASON],
            index=pd.Index(rejected_index),
        )

        logger.info(f"Validated {len(table)} rows: {len(records)} accepted, {len(rejected)} rejected")
        return ValidatedTable(records=records, rejected=rejected)
