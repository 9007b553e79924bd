import math

import pytest

from tissue_qc.errors import MalformedRecordError, MissingValueError
from tissue_qc.records import (
    MeasurementRecord,
    ParameterRegistry,
    WeightBasis,
    normalize_parameter,
)


@pytest.mark.parametrize(
    "label, expected",
    [
        ("WET", WeightBasis.WET),
        (" dry ", WeightBasis.DRY),
        ("Lip", WeightBasis.LIP),
        ("lipid", WeightBasis.LIP),
        ("DRY  WEIGHT", WeightBasis.DRY),
    ],
)
def test_weight_basis_from_label(label, expected):
    assert WeightBasis.from_label(label) == expected


@pytest.mark.parametrize("bad_label", ["", "ASH", "WETT", None, float("nan")])
def test_weight_basis_unknown_label_raises(bad_label):
    """Anything outside {WET, DRY, LIP} is a malformed record, not a silent string."""
    with pytest.raises(MalformedRecordError):
        WeightBasis.from_label(bad_label)


def test_malformed_record_error_is_a_value_error():
    with pytest.raises(ValueError):
        WeightBasis.from_label("ASH")


def test_normalize_parameter_collapses_whitespace_and_case():
    assert normalize_parameter("  pcb total   teq (nd=0) ") == "PCB TOTAL TEQ (ND=0)"


def test_open_registry_accepts_any_nonempty_name():
    registry = ParameterRegistry()
    assert not registry.is_closed
    assert registry.validate("2-chlorobiphenyl") == "2-CHLOROBIPHENYL"
    with pytest.raises(MalformedRecordError):
        registry.validate("   ")
    with pytest.raises(MalformedRecordError):
        registry.validate(None)


def test_closed_registry_rejects_unknown_names():
    registry = ParameterRegistry(["PCBS", "Moisture"])
    assert registry.is_closed
    assert "moisture" in registry
    assert registry.validate("pcbs") == "PCBS"
    with pytest.raises(MalformedRecordError):
        registry.validate("LEAD")


def test_registry_from_file_skips_comments_and_blanks(tmp_path):
    path = tmp_path / "parameters.txt"
    path.write_text("# PCB family\nPCBS\n\nPCB TOTAL TEQ (ND=DL)\n", encoding="utf-8")
    registry = ParameterRegistry.from_file(path)
    assert "PCBS" in registry
    assert "PCB TOTAL TEQ (ND=DL)" in registry
    assert "# PCB family" not in registry


def test_valid_record_instantiation():
    record = MeasurementRecord(
        code="CBEEEE_REP_4_2009_5",
        parameter="PCBS",
        test_method="E1668A",
        weight_basis=WeightBasis.DRY,
        concentration=150.0,
    )
    assert record.require_concentration() == 150.0
    assert not record.is_missing


@pytest.mark.parametrize(
    "kwargs",
    [
        {"code": ""},
        {"parameter": " "},
        {"weight_basis": "DRY"},
        {"concentration": "12.5"},
        {"concentration": True},
    ],
)
def test_invalid_record_raises(kwargs):
    base = dict(code="C_2009_1", parameter="PCBS", test_method="E1668A", weight_basis=WeightBasis.WET)
    base.update(kwargs)
    with pytest.raises(MalformedRecordError):
        MeasurementRecord(**base)


def test_missing_concentration_only_raises_on_request():
    record = MeasurementRecord(code="C_2009_1", parameter="PCBS", test_method="E1668A", weight_basis=WeightBasis.WET)
    assert record.is_missing
    with pytest.raises(MissingValueError):
        record.require_concentration()


def test_to_row_uses_table_columns():
    record = MeasurementRecord(
        code="C_2009_1",
        parameter="PCBS",
        test_method="E1668A",
        weight_basis=WeightBasis.LIP,
        site_code="C",
        year=2009,
    )
    row = record.to_row()
    assert row["Code"] == "C_2009_1"
    assert row["WeightBasis"] == "LIP"
    assert row["SiteCode"] == "C"
    assert row["Year"] == 2009
    assert math.isnan(row["Concentration"])
