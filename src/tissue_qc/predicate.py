"""
Suspect-record exclusion rule.

One field replicate, CBEEEE REP 4 sampled on the fifth 2009 sampling date, carries
wrong DRY and LIP values for the PCB family measured by method E1668A. Its LIP
values are off by a factor of ten and its DRY values propagate a bad moisture
fraction. The WET values agree with the sibling replicates, so only the
(DRY/LIP, PCB-family) combinations of that one sampling event are excluded; WET
values and non-PCB parameters of the same sample are kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

import pandas as pd

from .records import (
    CODE,
    PARAMETER,
    PCB_TEQ_PARAMETERS,
    PCB_TOTAL_PARAMETERS,
    TEST_METHOD,
    WEIGHT_BASIS,
    MeasurementRecord,
    WeightBasis,
    normalize_parameter,
)

logger = logging.getLogger(__name__)

SUSPECT_CODE = "CBEEEE_REP_4_2009_5"
SUSPECT_TEST_METHODS = frozenset({"E1668A"})
SUSPECT_PARAMETERS = PCB_TOTAL_PARAMETERS | PCB_TEQ_PARAMETERS
SUSPECT_WEIGHT_BASES = frozenset({WeightBasis.LIP, WeightBasis.DRY})


def _basis_label(value: Any) -> str:
    if isinstance(value, WeightBasis):
        return value.value
    return str(value).strip().upper()


@dataclass(frozen=True)
class SuspectRecordPredicate:
    """
    Pure predicate that is True exactly for records to drop from downstream analysis.

    A record matches when its code equals ``code`` AND (its test method is in
    ``test_methods`` OR its parameter is in ``parameters``) AND its weight basis
    is in ``weight_bases``.
    """

    code: str = SUSPECT_CODE
    test_methods: frozenset = field(default=SUSPECT_TEST_METHODS)
    parameters: frozenset = field(default=SUSPECT_PARAMETERS)
    weight_bases: frozenset = field(default=SUSPECT_WEIGHT_BASES)

    def __post_init__(self) -> None:
        # normalize so set membership lines up with validated tables
        object.__setattr__(self, "test_methods", frozenset(str(m).strip().upper() for m in self.test_methods))
        object.__setattr__(self, "parameters", frozenset(normalize_parameter(p) for p in self.parameters))
        object.__setattr__(
            self, "weight_bases", frozenset(WeightBasis.from_label(_basis_label(b)) for b in self.weight_bases)
        )

    @property
    def _basis_labels(self) -> set[str]:
        return {b.value for b in self.weight_bases}

    def __call__(self, record: MeasurementRecord | Mapping[str, Any]) -> bool:
        """
        Evaluate the rule on one record.

        Accepts a MeasurementRecord, or any mapping / pandas row keyed by the
        table column names (Code, TestMethod, Parameter, WeightBasis).
        """
        if isinstance(record, MeasurementRecord):
            code = record.code
            method = record.test_method
            parameter = record.parameter
            basis = record.weight_basis
        else:
            code = record[CODE]
            method = record[TEST_METHOD]
            parameter = record[PARAMETER]
            basis = record[WEIGHT_BASIS]

        if code != self.code:
            return False
        family_match = (
            str(method).strip().upper() in self.test_methods
            or normalize_parameter(parameter) in self.parameters
        )
        return family_match and _basis_label(basis) in self._basis_labels

    def mask(self, table: pd.DataFrame) -> pd.Series:
        """Vectorized form of the predicate: a boolean Series aligned with ``table``."""
        if table.empty:
            return pd.Series(False, index=table.index, dtype=bool)
        methods = table[TEST_METHOD].astype(str).str.strip().str.upper()
        parameters = table[PARAMETER].map(normalize_parameter)
        bases = table[WEIGHT_BASIS].map(_basis_label)
        return (
            (table[CODE] == self.code)
            & (methods.isin(list(self.test_methods)) | parameters.isin(list(self.parameters)))
            & bases.isin(list(self._basis_labels))
        ).astype(bool)

    def exclude(self, table: pd.DataFrame) -> pd.DataFrame:
        """Return the rows that do NOT match the predicate."""
        matched = self.mask(table)
        logger.info(f"Suspect-record rule matched {int(matched.sum())} of {len(table)} rows")
        return table.loc[~matched].copy()

    def filter_records(self, records: Iterable[MeasurementRecord]) -> Iterator[MeasurementRecord]:
        """Yield the records to keep (``keep = not predicate(record)``)."""
        return (record for record in records if not self(record))


DEFAULT_SUSPECT_PREDICATE = SuspectRecordPredicate()
