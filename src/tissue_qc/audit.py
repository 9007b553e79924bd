"""
Audit orchestration: validation → consistency checks → suspect-record exclusion.
"""

import logging
import pathlib

from collections import namedtuple
from dataclasses import dataclass

import pandas as pd
from stairval.notepad import Notepad

from .checks import (
    METHOD,
    N,
    N_DRY,
    N_LIP,
    N_WET,
    V_DRY,
    V_LIP,
    V_WET,
    check_count_consistency,
    check_count_consistency_by_record,
    check_value_consistency,
)
from .config import AuditConfig
from .records import CODE, PARAMETER
from .validator import RecordValidator

logger = logging.getLogger(__name__)

AuditEntry = namedtuple("AuditEntry", ["step", "subject", "message", "level"])

# Output file name for each report table
REPORT_FILES = {
    "count_flags": "count_flags.csv",
    "count_flags_by_record": "count_flags_by_record.csv",
    "value_flags": "value_flags.csv",
    "rejected": "rejected.csv",
    "excluded": "excluded_records.csv",
    "filtered": "filtered_records.csv",
}


@dataclass
class AuditReport:
    """
    Everything one audit run produces.

    Attributes:
        count_flags: Parameters with out-of-order LIP/DRY/WET counts.
        count_flags_by_record: (Parameter, Code) pairs with more DRY than WET rows.
        value_flags: (Code, Parameter) groups with out-of-order means.
        rejected: Malformed input rows with the reason they were rejected.
        excluded: Accepted rows matched by the suspect-record predicate.
        filtered: Accepted rows minus the excluded ones, ready for downstream analysis.
    """

    count_flags: pd.DataFrame
    count_flags_by_record: pd.DataFrame
    value_flags: pd.DataFrame
    rejected: pd.DataFrame
    excluded: pd.DataFrame
    filtered: pd.DataFrame

    def entries(self) -> list[AuditEntry]:
        """Render the report as flat (step, subject, message, level) rows."""
        entries: list[AuditEntry] = [
            AuditEntry("validate", "-", f"{len(self.rejected)} rows rejected", "info"),
            AuditEntry("count-consistency", "-", f"{len(self.count_flags)} parameters flagged", "info"),
        ]
        for row in self.count_flags.itertuples(index=False):
            row = row._asdict()
            entries.append(AuditEntry(
                step="count-consistency",
                subject=row[PARAMETER],
                message=f"nLip={row[N_LIP]} nDry={row[N_DRY]} nWet={row[N_WET]}",
                level="warn",
            ))

        entries.append(AuditEntry(
            "count-by-record", "-", f"{len(self.count_flags_by_record)} groups flagged", "info"
        ))
        for row in self.count_flags_by_record.itertuples(index=False):
            row = row._asdict()
            entries.append(AuditEntry(
                step="count-by-record",
                subject=f"{row[CODE]} / {row[PARAMETER]}",
                message=f"nDry={row[N_DRY]} nWet={row[N_WET]}",
                level="warn",
            ))

        entries.append(AuditEntry("value-consistency", "-", f"{len(self.value_flags)} groups flagged", "info"))
        for row in self.value_flags.itertuples(index=False):
            row = row._asdict()
            entries.append(AuditEntry(
                step="value-consistency",
                subject=f"{row[CODE]} / {row[PARAMETER]}",
                message=(
                    f"method={row[METHOD]} vLip={row[V_LIP]:.6g} vDry={row[V_DRY]:.6g} "
                    f"vWet={row[V_WET]:.6g} n={row[N]}"
                ),
                level="warn",
            ))

        entries.append(AuditEntry(
            "suspect-records",
            "-",
            f"{len(self.excluded)} rows excluded, {len(self.filtered)} rows kept",
            "info",
        ))
        return entries

    def write(self, output_dir: pathlib.Path) -> list[pathlib.Path]:
        """Write each table as CSV into ``output_dir``; return the paths written."""
        output_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for attribute, file_name in REPORT_FILES.items():
            path = output_dir / file_name
            getattr(self, attribute).to_csv(path, index=False)
            written.append(path)
        return written


def run_audit(table: pd.DataFrame, config: AuditConfig, notepad: Notepad) -> AuditReport:
    """
    Validate ``table`` and run every check on the accepted rows.

    Raises SchemaError before any check when required columns are missing.
    Malformed rows are recorded on ``notepad`` and in ``AuditReport.rejected``.
    """
    validated = RecordValidator(config.registry).validate(table, notepad)
    records = validated.records

    count_flags = check_count_consistency(records)
    count_flags_by_record = check_count_consistency_by_record(records)
    value_flags = check_value_consistency(records, config.missing_basis)

    suspect = config.predicate.mask(records)
    excluded = records.loc[suspect].copy()
    filtered = records.loc[~suspect].copy()
    if not excluded.empty:
        notepad.add_warning(
            f"Excluded {len(excluded)} suspect rows for sampling code {config.predicate.code!r}"
        )

    return AuditReport(
        count_flags=count_flags,
        count_flags_by_record=count_flags_by_record,
        value_flags=value_flags,
        rejected=validated.rejected,
        excluded=excluded,
        filtered=filtered,
    )
