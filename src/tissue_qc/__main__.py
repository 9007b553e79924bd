"""
Command-line interface for the tissue_qc toolkit.

`audit` loads a tissue-contaminant table, checks that WET/DRY/LIP values are
mutually consistent, applies the suspect-record exclusion rule, and reports the
flagged groups. `compare` lines up the weight bases of selected samples side by
side for manual inspection.
"""

import click
import json
import logging
import pathlib
import re
import sys
import typing
import zipfile

from datetime import datetime
from stairval.notepad import Notepad, create_notepad

import pandas as pd

from .audit import AuditEntry, run_audit
from .compare import basis_ratios, compare_bases, measured_fractions
from .config import AuditConfig
from .loader import load_table
from .simplifier import simplify_records
from .validator import RecordValidator

logger = logging.getLogger(__name__)

# input problems reported as "Error: ..." with exit status 1
READ_ERRORS = (ValueError, OSError, zipfile.BadZipFile, re.error)


@click.group()
def main():
    """tissue_qc: weight-basis consistency audit for tissue contaminant data."""
    pass


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
            force=True,
        )


def _read_records(path: str, sheet_name: typing.Optional[str], simplified: bool) -> pd.DataFrame:
    # raw exports go through header normalization and the simplifier;
    # simplified tables already carry the canonical columns
    if simplified:
        return load_table(path, sheet_name, normalize=False)
    return simplify_records(load_table(path, sheet_name))


def _report_issues(notepad: Notepad) -> None:
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo(click.style("Errors found in validation:", fg="red"), err=True)
        for err in notepad.errors():
            click.echo(f"- {err}", err=True)
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo(click.style("Warnings found in validation:", fg="yellow"), err=True)
        for w in notepad.warnings():
            click.echo(f"- {w}", err=True)


def _prepare_output_dir(base: str) -> pathlib.Path:
    # use YYYY-MM-DD_HH-MM-SS for human-readable timestamps
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    output_dir = pathlib.Path(base) / timestamp
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def _echo_entries(entries: list[AuditEntry]) -> None:
    click.echo(f"{'STEP':20}  {'SUBJECT':40}  {'LEVEL':5}  MESSAGE")
    for entry in entries:
        line = f"{entry.step:20}  {entry.subject:40}  {entry.level:5}  {entry.message}"
        # color by level
        if entry.level == "error":
            click.echo(click.style(line, fg="red"))
        elif entry.level in ("warn", "warning"):
            click.echo(click.style(line, fg="yellow"))
        else:
            click.echo(line)


@main.command(name="audit")
@click.option(
    "-e",
    "--excel-path",
    "excel_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="path to the Excel workbook or CSV file",
)
@click.option("--sheet", "sheet_name", default=None, help="worksheet name (default: first sheet)")
@click.option(
    "--simplified",
    is_flag=True,
    help="input already has Code/Parameter/TestMethod/WeightBasis/Concentration columns",
)
@click.option(
    "--missing-basis",
    type=click.Choice(["flag", "skip"], case_sensitive=False),
    default=None,
    help="how to treat samples lacking a weight basis (default: $TISSUE_QC_MISSING_BASIS or 'flag')",
)
@click.option(
    "--parameters",
    "parameters_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="parameter registry file, one name per line (default: accept any parameter)",
)
@click.option("-r", "--json", "as_json", is_flag=True, help="emit the audit entries as JSON")
@click.option(
    "-o",
    "--output-dir",
    default=None,
    type=click.Path(file_okay=False),
    help="write flag tables and the filtered records as CSV under a timestamped folder here",
)
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def audit(
    excel_file: str,
    sheet_name: typing.Optional[str],
    simplified: bool,
    missing_basis: typing.Optional[str],
    parameters_path: typing.Optional[str],
    as_json: bool,
    output_dir: typing.Optional[str],
    verbose_logging: bool,
    log_file_path: typing.Optional[str],
):
    """
    Run the count- and value-consistency checks and the suspect-record rule.
    Flags are the normal output; the exit code is non-zero only when the input
    cannot be read or lacks required columns.
    """
    _configure_logging(verbose_logging, log_file_path)
    logger.info(f"Beginning audit of '{excel_file}'")

    notepad = create_notepad("audit")
    try:
        config = AuditConfig.from_env().with_overrides(missing_basis, parameters_path)
        logger.info(f"Missing-basis policy: {config.missing_basis.value}")
        table = _read_records(excel_file, sheet_name, simplified)
        report = run_audit(table, config, notepad)
    except READ_ERRORS as e:
        # SchemaError, bad settings, unknown sheet, unsupported or corrupt file
        logger.error(f"Failed to audit '{excel_file}': {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    entries = report.entries()
    if as_json:
        click.echo(json.dumps([entry._asdict() for entry in entries], indent=2))
    else:
        _echo_entries(entries)

    _report_issues(notepad)

    if output_dir:
        target = _prepare_output_dir(output_dir)
        report.write(target)
        click.echo(f"Wrote audit tables to {target}", err=as_json)


@main.command(name="compare")
@click.option(
    "-e",
    "--excel-path",
    "excel_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="path to the Excel workbook or CSV file",
)
@click.option("--sheet", "sheet_name", default=None, help="worksheet name (default: first sheet)")
@click.option("--simplified", is_flag=True, help="input already has the canonical record columns")
@click.option("--code", "code_pattern", default=".*", help="regular expression matched within Code")
@click.option("--parameter", "parameter_pattern", default=".*", help="regular expression matched within Parameter")
@click.option("--ratios", is_flag=True, help="add implied WET/DRY and WET/LIP fractions and the measured moisture, solids and lipid content")
def compare(
    excel_file: str,
    sheet_name: typing.Optional[str],
    simplified: bool,
    code_pattern: str,
    parameter_pattern: str,
    ratios: bool,
):
    """
    Show WET, DRY and LIP means side by side for the selected samples and parameters.
    """
    notepad = create_notepad("compare")
    try:
        table = _read_records(excel_file, sheet_name, simplified)
        records = RecordValidator(AuditConfig.from_env().registry).validate(table, notepad).records
        pivot = compare_bases(records, code_pattern, parameter_pattern)
        fractions = measured_fractions(records, code_pattern) if ratios else None
    except READ_ERRORS as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if ratios:
        pivot = basis_ratios(pivot)
    if pivot.empty:
        click.echo("No matching records.")
    else:
        click.echo(pivot.to_string())
    if fractions is not None and not fractions.empty:
        click.echo("\nMeasured content (WET-basis percent):")
        click.echo(fractions.to_string())
    _report_issues(notepad)


if __name__ == "__main__":
    main()
