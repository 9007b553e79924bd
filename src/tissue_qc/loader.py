import logging
import pathlib

import pandas as pd

logger = logging.getLogger(__name__)

# Raw header aliases → normalized raw column names the simplifier understands
RENAME_MAP = {
    "egad_site_name": "site_name",
    "site": "site_name",
    "sample_point_name": "sample_id",
    "sample": "sample_id",
    "date": "sample_date",
    "analyte": "parameter",
    "method": "test_method",
    "basis": "weight_basis",
    "result": "concentration",
    "units": "units_value",
}

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


def normalize_headers(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize all headers to snake_case lowercase and apply renames from RENAME_MAP.
    """
    df = df.copy()
    df.columns = (
        df.columns.astype(str)
        .str.strip()
        .str.replace(r"\s*\(.*?\)", "", regex=True)  # drop any "(…)"
        .str.replace(r"[\s\-]+", "_", regex=True)  # spaces/dashes → underscore
        .str.replace(":", "", regex=False)  # drop colons
        .str.lower()
    )

    # apply specific renames (e.g. "units" → "units_value"), never clobbering a real column
    return df.rename(
        columns={
            orig: target
            for orig, target in RENAME_MAP.items()
            if orig in df.columns and target not in df.columns
        }
    )


def load_table(path: str, sheet_name: str | None = None, normalize: bool = True) -> pd.DataFrame:
    """
    Read one worksheet (or a CSV file) into a DataFrame:
      - first row = header
      - no index column; rows keep a 0-based RangeIndex
      - headers normalized via normalize_headers (skip with normalize=False for
        tables that already carry the canonical MeasurementRecord columns)
    When no sheet is named, the first worksheet is used.
    """
    suffix = pathlib.Path(path).suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        excel = pd.ExcelFile(path, engine="openpyxl")
        target = sheet_name if sheet_name is not None else excel.sheet_names[0]
        if target not in excel.sheet_names:
            raise ValueError(f"Sheet {target!r} not found in {path!r}; have {excel.sheet_names}")
        df = pd.read_excel(excel, sheet_name=target, header=0)
        logger.debug(f"Loaded sheet {target!r} from {path!r}: {len(df)} rows")
    elif suffix == ".csv":
        df = pd.read_csv(path, header=0)
        logger.debug(f"Loaded {path!r}: {len(df)} rows")
    else:
        raise ValueError(f"Unsupported file type {suffix!r} for {path!r}")

    return normalize_headers(df) if normalize else df
