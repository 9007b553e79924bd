"""
Measurement domain model.

Defines the WeightBasis enumeration, the MeasurementRecord dataclass for one row
of the simplified tissue dataset, and the ParameterRegistry that validates
parameter names.

High-level role in tissue_qc:
- Simplifier produces a table with the canonical columns below.
- RecordValidator parses each row → MeasurementRecord (or rejects it).
- Checkers and the suspect-record predicate work off the validated table.
"""

from __future__ import annotations

import datetime
import math
import pathlib
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .errors import MalformedRecordError, MissingValueError


# ----------------------------------
# Canonical table columns
# ----------------------------------

CODE = "Code"
SITE_CODE = "SiteCode"
SITE = "Site"
YEAR = "Year"
SAMPLE_DATE = "SampleDate"
PARAMETER = "Parameter"
TEST_METHOD = "TestMethod"
WEIGHT_BASIS = "WeightBasis"
CONCENTRATION = "Concentration"
UNITS_VALUE = "UnitsValue"

RECORD_COLUMNS = [
    CODE,
    SITE_CODE,
    SITE,
    YEAR,
    SAMPLE_DATE,
    PARAMETER,
    TEST_METHOD,
    WEIGHT_BASIS,
    CONCENTRATION,
    UNITS_VALUE,
]

# Minimal columns the checkers and the predicate need
REQUIRED_COLUMNS = {CODE, PARAMETER, TEST_METHOD, WEIGHT_BASIS, CONCENTRATION}

# Table column → dataclass attribute
COLUMN_TO_FIELD = {
    CODE: "code",
    SITE_CODE: "site_code",
    SITE: "site",
    YEAR: "year",
    SAMPLE_DATE: "sample_date",
    PARAMETER: "parameter",
    TEST_METHOD: "test_method",
    WEIGHT_BASIS: "weight_basis",
    CONCENTRATION: "concentration",
    UNITS_VALUE: "units_value",
}


class WeightBasis(Enum):
    """
    Normalization basis of a reported concentration.

    DRY and LIP values are derived from WET values by dividing by the solids and
    lipid fractions, so for one sample they are expected to be at least as large.
    """
    WET = "WET"
    DRY = "DRY"
    LIP = "LIP"

    @classmethod
    def from_label(cls, label: str) -> "WeightBasis":
        """
        Convert a free-text weight-basis label into the enum.
        Strips whitespace and normalizes casing; a few long-form aliases are accepted.
        """
        if label is None or (isinstance(label, float) and math.isnan(label)):
            raise MalformedRecordError("Missing weight basis")
        key = re.sub(r"\s+", " ", str(label).strip().upper())
        mapping = {
            "WET": cls.WET,
            "WET WEIGHT": cls.WET,
            "DRY": cls.DRY,
            "DRY WEIGHT": cls.DRY,
            "LIP": cls.LIP,
            "LIPID": cls.LIP,
            "LIPIDS": cls.LIP,
            "LIPID WEIGHT": cls.LIP,
        }
        try:
            return mapping[key]
        except KeyError:
            raise MalformedRecordError(f"Unknown weight basis label: {label!r}")


# ----------------------------------
# Parameter families
# ----------------------------------

PCB_TOTAL_PARAMETERS = frozenset({"PCBS"})
PCB_TEQ_PARAMETERS = frozenset(
    {
        "PCB TOTAL TEQ (ND=0)",
        "PCB TOTAL TEQ (ND=1/2 DL)",
        "PCB TOTAL TEQ (ND=DL)",
    }
)
MOISTURE_PARAMETERS = frozenset({"MOISTURE"})
SOLIDS_PARAMETERS = frozenset({"SOLIDS-TOTAL RESIDUE"})
LIPID_PARAMETERS = frozenset({"LIPIDS"})


def normalize_parameter(name: str) -> str:
    """Trim, upper-case and collapse internal whitespace of a parameter name."""
    return re.sub(r"\s+", " ", str(name).strip()).upper()


class ParameterRegistry:
    """
    Validates parameter names.

    An open registry (``names=None``) accepts any non-empty name. A closed
    registry rejects names it does not know with MalformedRecordError.
    """

    def __init__(self, names: Optional[Iterable[str]] = None):
        if names is None:
            self._names = None
        else:
            self._names = frozenset(normalize_parameter(n) for n in names if str(n).strip())

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "ParameterRegistry":
        """Read one parameter name per line; blank lines and '#' comments are skipped."""
        names = []
        with open(path, encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line and not line.startswith("#"):
                    names.append(line)
        return cls(names)

    @property
    def is_closed(self) -> bool:
        return self._names is not None

    def __contains__(self, name: str) -> bool:
        if self._names is None:
            return bool(str(name).strip())
        return normalize_parameter(name) in self._names

    def validate(self, name) -> str:
        """Return the normalized name or raise MalformedRecordError."""
        if name is None or (isinstance(name, float) and math.isnan(name)) or not str(name).strip():
            raise MalformedRecordError("Missing parameter name")
        normalized = normalize_parameter(name)
        if self._names is not None and normalized not in self._names:
            raise MalformedRecordError(f"Unrecognized parameter: {name!r}")
        return normalized


# ----------------------
# Core domain data class
# ----------------------


@dataclass(frozen=True)
class MeasurementRecord:
    """
    One tissue measurement on one weight basis.

    Attributes:
        code: Sampling-event + replicate identifier (e.g. 'CBEEEE_REP_4_2009_5').
        parameter: Normalized analyte or aggregate name (e.g. 'PCBS').
        test_method: Lab method code (e.g. 'E1668A').
        weight_basis: WET, DRY or LIP.
        concentration: Reported value, or None when missing.
        units_value: Unit string of the concentration.
        site_code: Short location code (e.g. 'CBEEEE').
        site: Human-readable site name.
        year: Sampling year.
        sample_date: Sampling date.
    """

    code: str
    parameter: str
    test_method: str
    weight_basis: WeightBasis
    concentration: Optional[float] = None
    units_value: str = ""
    site_code: str = ""
    site: str = ""
    year: Optional[int] = None
    sample_date: Optional[datetime.date] = None

    def __post_init__(self) -> None:
        if not isinstance(self.code, str) or not self.code.strip():
            raise MalformedRecordError(f"Invalid sampling code: {self.code!r}")
        if not isinstance(self.parameter, str) or not self.parameter.strip():
            raise MalformedRecordError(f"Invalid parameter: {self.parameter!r}")
        if not isinstance(self.weight_basis, WeightBasis):
            raise MalformedRecordError(f"weight_basis must be a WeightBasis, got {self.weight_basis!r}")
        if self.concentration is not None and (
            isinstance(self.concentration, bool) or not isinstance(self.concentration, (int, float))
        ):
            raise MalformedRecordError(f"concentration must be numeric, got {self.concentration!r}")

    @property
    def is_missing(self) -> bool:
        return self.concentration is None or math.isnan(self.concentration)

    def require_concentration(self) -> float:
        """Return the concentration, raising MissingValueError when it is absent."""
        if self.is_missing:
            raise MissingValueError(
                f"No concentration for {self.code} / {self.parameter} / {self.weight_basis.value}"
            )
        return float(self.concentration)

    def to_row(self) -> dict:
        """Return the record keyed by table column names."""
        row = {column: getattr(self, attr) for column, attr in COLUMN_TO_FIELD.items()}
        row[WEIGHT_BASIS] = self.weight_basis.value
        row[CONCENTRATION] = math.nan if self.concentration is None else float(self.concentration)
        return row
