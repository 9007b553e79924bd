"""
Side-by-side comparison of weight bases across field replicates.

Read-only helpers for manual inspection of flagged samples: pick a set of
sampling codes and parameters, then line up the WET, DRY and LIP means so that
replicates of the same site and date can be compared row by row.
"""

import logging

import numpy as np
import pandas as pd

from .checks import V_DRY, V_LIP, V_WET, basis_labels, basis_means
from .records import (
    CODE,
    CONCENTRATION,
    LIPID_PARAMETERS,
    MOISTURE_PARAMETERS,
    PARAMETER,
    SOLIDS_PARAMETERS,
    WeightBasis,
    normalize_parameter,
)

logger = logging.getLogger(__name__)

WET, DRY, LIP = WeightBasis.WET.value, WeightBasis.DRY.value, WeightBasis.LIP.value
WET_DRY_RATIO = "WetDryRatio"
WET_LIP_RATIO = "WetLipRatio"
MOISTURE, SOLIDS, LIPIDS = "Moisture", "Solids", "Lipids"


def compare_bases(records: pd.DataFrame, code_pattern: str = ".*", parameter_pattern: str = ".*") -> pd.DataFrame:
    """
    Pivot the matching rows so each weight basis becomes a column.

    ``code_pattern`` and ``parameter_pattern`` are case-insensitive regular
    expressions searched within Code and Parameter. The result is indexed by
    (Code, Parameter) with columns WET, DRY, LIP holding mean concentrations;
    a basis with no observations is NaN.
    """
    codes = records[CODE].astype(str).str.contains(code_pattern, case=False, regex=True, na=False)
    parameters = records[PARAMETER].astype(str).str.contains(parameter_pattern, case=False, regex=True, na=False)
    selected = records.loc[codes & parameters]
    logger.debug(f"compare_bases selected {len(selected)} of {len(records)} rows")

    means = basis_means(selected, [CODE, PARAMETER])
    return means.rename(columns={V_WET: WET, V_DRY: DRY, V_LIP: LIP})[[WET, DRY, LIP]]


def basis_ratios(pivot: pd.DataFrame) -> pd.DataFrame:
    """
    Add the implied solids fraction (WET / DRY) and lipid fraction (WET / LIP).

    A replicate whose ratio departs from its siblings points to a bad moisture or
    lipid measurement behind its derived DRY or LIP values.
    """
    result = pivot.copy()
    with np.errstate(divide="ignore", invalid="ignore"):
        result[WET_DRY_RATIO] = (result[WET] / result[DRY]).replace([np.inf, -np.inf], np.nan)
        result[WET_LIP_RATIO] = (result[WET] / result[LIP]).replace([np.inf, -np.inf], np.nan)
    return result


def measured_fractions(records: pd.DataFrame, code_pattern: str = ".*") -> pd.DataFrame:
    """
    Measured moisture, solids and lipid content (WET-basis percent) per Code.

    Set next to ``basis_ratios``: the implied solids fraction WET / DRY should
    agree with ``Solids / 100`` (or ``1 - Moisture / 100``) of the same sample.
    Columns with no measurement in a sample are NaN.
    """
    families = {MOISTURE: MOISTURE_PARAMETERS, SOLIDS: SOLIDS_PARAMETERS, LIPIDS: LIPID_PARAMETERS}
    family_of = {name: label for label, names in families.items() for name in names}
    family = records[PARAMETER].map(normalize_parameter).map(family_of)

    codes = records[CODE].astype(str).str.contains(code_pattern, case=False, regex=True, na=False)
    selected = records.loc[codes & (basis_labels(records) == WET) & family.notna(), [CODE, CONCENTRATION]].copy()
    if selected.empty:
        return pd.DataFrame(columns=list(families), index=pd.Index([], name=CODE), dtype=float)

    selected["family"] = family[selected.index]
    selected[CONCENTRATION] = selected[CONCENTRATION].astype(float)
    fractions = selected.groupby([CODE, "family"], sort=True)[CONCENTRATION].mean().unstack("family")
    fractions.columns.name = None
    return fractions.reindex(columns=list(families))
