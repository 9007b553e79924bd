"""
Record simplifier.

Turns a loaded raw table (headers already normalized by the loader) into the
canonical MeasurementRecord columns:
  - keeps only the informative raw columns, everything else is dropped
  - derives SiteCode, Site, Year and the per-sampling-event Code
  - removes exact duplicate rows
"""

import datetime
import logging
import re
import typing

import pandas as pd

from .errors import SchemaError
from .records import (
    CODE,
    CONCENTRATION,
    PARAMETER,
    RECORD_COLUMNS,
    SAMPLE_DATE,
    SITE,
    SITE_CODE,
    TEST_METHOD,
    UNITS_VALUE,
    WEIGHT_BASIS,
    YEAR,
)

logger = logging.getLogger(__name__)

# Normalized raw header → canonical column
RAW_COLUMNS = {
    "sample_id": None,  # consumed by Code / SiteCode derivation
    "site_name": SITE,
    "sample_date": SAMPLE_DATE,
    "parameter": PARAMETER,
    "test_method": TEST_METHOD,
    "weight_basis": WEIGHT_BASIS,
    "concentration": CONCENTRATION,
    "units_value": UNITS_VALUE,
}

REQUIRED_RAW_COLUMNS = {
    "sample_id",
    "sample_date",
    "parameter",
    "test_method",
    "weight_basis",
    "concentration",
}


def derive_code(
    sample_id: str,
    year: int,
    sample_date: datetime.date,
    dates_within_year: typing.Sequence[datetime.date],
) -> str:
    """
    Build the sampling-event code ``<sample_id>_<year>_<rank>``.

    ``dates_within_year`` is the sorted list of distinct sampling dates seen in
    ``year`` across the whole dataset; ``rank`` is the 1-based position of
    ``sample_date`` in it. Whitespace in the sample id becomes underscores, so
    'CBEEEE REP 4' sampled on the fifth 2009 date gives 'CBEEEE_REP_4_2009_5'.
    """
    try:
        rank = list(dates_within_year).index(sample_date) + 1
    except ValueError:
        raise ValueError(f"Sample date {sample_date} is not among the {year} sampling dates")
    sample = re.sub(r"\s+", "_", str(sample_id).strip())
    return f"{sample}_{int(year)}_{rank}"


def _is_blank_id(sample_id: typing.Any) -> bool:
    return sample_id is None or pd.isna(sample_id) or not str(sample_id).strip()


def site_code_from_sample_id(sample_id: typing.Any) -> str:
    # 'CBEEEE REP 4' → 'CBEEEE'
    if _is_blank_id(sample_id):
        return ""
    tokens = str(sample_id).split()
    return tokens[0] if tokens else ""


def sampling_dates_by_year(dates: pd.Series) -> dict[int, list[datetime.date]]:
    """Sorted distinct sampling dates, keyed by year. Missing dates are ignored."""
    present = dates.dropna()
    by_year: dict[int, set] = {}
    for day in present:
        by_year.setdefault(day.year, set()).add(day)
    return {year: sorted(days) for year, days in by_year.items()}


def simplify_records(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Project a raw table onto the canonical columns and derive the identifiers.

    Rows whose sample date cannot be parsed get an empty Code and a missing Year;
    the validator rejects them later without stopping the batch.
    """
    missing = sorted(REQUIRED_RAW_COLUMNS - set(raw.columns))
    if missing:
        raise SchemaError(f"Raw table is missing required columns: {missing}")

    dropped = sorted(set(raw.columns) - set(RAW_COLUMNS))
    if dropped:
        logger.debug(f"Dropping uninformative columns: {dropped}")

    working = raw[[c for c in RAW_COLUMNS if c in raw.columns]].copy()
    for optional in ("site_name", "units_value"):
        if optional not in working.columns:
            working[optional] = ""

    # each value is parsed on its own; one odd format must not shift other rows' ranks
    timestamps = pd.to_datetime(working["sample_date"], errors="coerce", format="mixed")
    unparsed = working.index[timestamps.isna() & working["sample_date"].notna()]
    for row in unparsed:
        logger.warning(f"Row {row}: could not parse sample date {working.at[row, 'sample_date']!r}")
    days = pd.Series(
        [ts.date() if not pd.isna(ts) else None for ts in timestamps],
        index=working.index,
        dtype=object,
    )
    dates_by_year = sampling_dates_by_year(days)

    codes = []
    for sample_id, day in zip(working["sample_id"], days):
        if day is None or _is_blank_id(sample_id):
            codes.append("")
            continue
        codes.append(derive_code(sample_id, day.year, day, dates_by_year[day.year]))

    simplified = pd.DataFrame(
        {
            CODE: codes,
            SITE_CODE: working["sample_id"].map(site_code_from_sample_id),
            SITE: working["site_name"].fillna("").astype(str).str.strip(),
            YEAR: timestamps.dt.year.astype("Int64"),
            SAMPLE_DATE: days,
            PARAMETER: working["parameter"],
            TEST_METHOD: working["test_method"],
            WEIGHT_BASIS: working["weight_basis"],
            CONCENTRATION: working["concentration"],
            UNITS_VALUE: working["units_value"].fillna("").astype(str).str.strip(),
        },
        index=working.index,
    )[RECORD_COLUMNS]

    before = len(simplified)
    simplified = simplified.drop_duplicates().reset_index(drop=True)
    if len(simplified) != before:
        logger.info(f"Removed {before - len(simplified)} exact duplicate rows")
    return simplified
