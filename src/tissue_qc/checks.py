"""
Weight-basis consistency checks.

DRY and LIP concentrations are computed from WET concentrations by dividing by
the solids and lipid fractions, both below one. For any parameter, and for any
single sample, that implies

    count(LIP) <= count(DRY) <= count(WET)
    mean(LIP)  >= mean(DRY)  >= mean(WET)

Every check here is a pure function of its input table. ``summarize_*`` return
one row per group with a ``problem`` column; ``check_*`` return only the groups
where ``problem`` is True. A flagged group is normal output, not an error.
"""

import logging
import typing

import pandas as pd

from .config import MissingBasisPolicy
from .errors import SchemaError
from .records import CODE, CONCENTRATION, PARAMETER, TEST_METHOD, WEIGHT_BASIS, WeightBasis

logger = logging.getLogger(__name__)

N_LIP, N_DRY, N_WET = "nLip", "nDry", "nWet"
V_LIP, V_DRY, V_WET = "vLip", "vDry", "vWet"
METHOD = "method"
N = "n"
PROBLEM = "problem"
COMPLETE = "complete"

COUNT_COLUMNS = {N_LIP: WeightBasis.LIP, N_DRY: WeightBasis.DRY, N_WET: WeightBasis.WET}
VALUE_COLUMNS = {V_LIP: WeightBasis.LIP, V_DRY: WeightBasis.DRY, V_WET: WeightBasis.WET}


def _require(records: pd.DataFrame, columns: typing.Iterable[str]) -> None:
    missing = sorted(set(columns) - set(records.columns))
    if missing:
        raise SchemaError(f"Table is missing required columns: {missing}")


def basis_labels(records: pd.DataFrame) -> pd.Series:
    return records[WEIGHT_BASIS].map(lambda b: b.value if isinstance(b, WeightBasis) else str(b).strip().upper())


def basis_counts(records: pd.DataFrame, keys: list[str]) -> pd.DataFrame:
    """
    Count non-missing concentrations per weight basis for each group of ``keys``.

    Every group present in ``records`` gets a row, even when all of its
    concentrations are missing (all counts 0).
    """
    _require(records, keys + [WEIGHT_BASIS, CONCENTRATION])
    labels = basis_labels(records)
    observed = records[CONCENTRATION].notna()
    frame = records[keys].copy()
    for column, basis in COUNT_COLUMNS.items():
        frame[column] = ((labels == basis.value) & observed).astype(int)
    return frame.groupby(keys, sort=True)[list(COUNT_COLUMNS)].sum().astype(int)


def basis_means(records: pd.DataFrame, keys: list[str]) -> pd.DataFrame:
    """
    Mean concentration per weight basis for each group of ``keys``.

    Missing concentrations are skipped; a basis with no observations in a group
    has a NaN mean.
    """
    _require(records, keys + [WEIGHT_BASIS, CONCENTRATION])
    labels = basis_labels(records)
    frame = records[keys].copy()
    for column, basis in VALUE_COLUMNS.items():
        frame[column] = records[CONCENTRATION].astype(float).where(labels == basis.value)
    return frame.groupby(keys, sort=True)[list(VALUE_COLUMNS)].mean()


# ----------------------------------
# Count consistency
# ----------------------------------


def summarize_count_consistency(records: pd.DataFrame) -> pd.DataFrame:
    """One row per Parameter: nLip, nDry, nWet and problem = NOT(nLip <= nDry <= nWet)."""
    counts = basis_counts(records, [PARAMETER])
    counts[PROBLEM] = ~((counts[N_LIP] <= counts[N_DRY]) & (counts[N_DRY] <= counts[N_WET]))
    return counts.reset_index()


def check_count_consistency(records: pd.DataFrame) -> pd.DataFrame:
    """Parameters whose LIP/DRY/WET observation counts are out of order."""
    summary = summarize_count_consistency(records)
    flags = summary.loc[summary[PROBLEM]].reset_index(drop=True)
    logger.info(f"Count consistency: {len(flags)} of {len(summary)} parameters flagged")
    return flags


def summarize_count_consistency_by_record(records: pd.DataFrame) -> pd.DataFrame:
    """
    One row per (Parameter, Code): nDry, nWet and problem = NOT(nDry <= nWet).

    LIP is left out at this grain; lipid-basis values are only reported for a
    few samples, so a per-sample LIP count says little.
    """
    counts = basis_counts(records, [PARAMETER, CODE])[[N_DRY, N_WET]].copy()
    counts[PROBLEM] = ~(counts[N_DRY] <= counts[N_WET])
    return counts.reset_index()


def check_count_consistency_by_record(records: pd.DataFrame) -> pd.DataFrame:
    """(Parameter, Code) pairs with more DRY than WET observations."""
    summary = summarize_count_consistency_by_record(records)
    flags = summary.loc[summary[PROBLEM]].reset_index(drop=True)
    logger.info(f"Count consistency by record: {len(flags)} of {len(summary)} groups flagged")
    return flags


# ----------------------------------
# Value consistency
# ----------------------------------


def _as_policy(missing_basis: MissingBasisPolicy | str) -> MissingBasisPolicy:
    if isinstance(missing_basis, MissingBasisPolicy):
        return missing_basis
    return MissingBasisPolicy.from_label(missing_basis)


def summarize_value_consistency(
    records: pd.DataFrame,
    missing_basis: MissingBasisPolicy | str = MissingBasisPolicy.FLAG,
) -> pd.DataFrame:
    """
    One row per (Code, Parameter) with method, vLip, vDry, vWet, n, complete and problem.

    problem = NOT(vLip >= vDry AND vDry >= vWet). Comparisons involving a NaN
    mean are False, so under MissingBasisPolicy.FLAG an incomplete group is a
    problem; under MissingBasisPolicy.SKIP incomplete groups are never flagged.
    """
    policy = _as_policy(missing_basis)
    _require(records, [CODE, PARAMETER, TEST_METHOD])
    keys = [CODE, PARAMETER]

    means = basis_means(records, keys)
    grouped = records.groupby(keys, sort=True)
    summary = pd.DataFrame(
        {
            METHOD: grouped[TEST_METHOD].first(),
            V_LIP: means[V_LIP],
            V_DRY: means[V_DRY],
            V_WET: means[V_WET],
            N: grouped.size(),
        },
        index=means.index,
    )

    ordered = (summary[V_LIP] >= summary[V_DRY]) & (summary[V_DRY] >= summary[V_WET])
    summary[COMPLETE] = summary[[V_LIP, V_DRY, V_WET]].notna().all(axis=1)
    problem = ~ordered
    if policy is MissingBasisPolicy.SKIP:
        problem = problem & summary[COMPLETE]
    summary[PROBLEM] = problem.astype(bool)
    summary[N] = summary[N].astype(int)
    return summary.reset_index()


def check_value_consistency(
    records: pd.DataFrame,
    missing_basis: MissingBasisPolicy | str = MissingBasisPolicy.FLAG,
) -> pd.DataFrame:
    """(Code, Parameter) groups whose mean concentrations break vLip >= vDry >= vWet."""
    summary = summarize_value_consistency(records, missing_basis)
    flags = summary.loc[summary[PROBLEM]].drop(columns=[COMPLETE]).reset_index(drop=True)
    logger.info(f"Value consistency: {len(flags)} of {len(summary)} groups flagged")
    return flags
