import itertools

import pandas as pd
import pytest

from tissue_qc.predicate import DEFAULT_SUSPECT_PREDICATE, SuspectRecordPredicate
from tissue_qc.records import MeasurementRecord, WeightBasis

SUSPECT = "CBEEEE_REP_4_2009_5"
PCB_FAMILY = [
    "PCBS",
    "PCB TOTAL TEQ (ND=0)",
    "PCB TOTAL TEQ (ND=1/2 DL)",
    "PCB TOTAL TEQ (ND=DL)",
]


def _row(code=SUSPECT, parameter="PCBS", method="E1668A", basis="DRY"):
    return {"Code": code, "Parameter": parameter, "TestMethod": method, "WeightBasis": basis}


def test_wet_basis_of_suspect_sample_is_kept():
    assert DEFAULT_SUSPECT_PREDICATE(_row(basis="WET")) is False


def test_dry_basis_of_suspect_sample_is_excluded():
    assert DEFAULT_SUSPECT_PREDICATE(_row(basis="DRY")) is True


@pytest.mark.parametrize(
    "code, parameter, method, basis",
    list(
        itertools.product(
            [SUSPECT, "CBEEEE_REP_1_2009_5", "CBEEEE_REP_4_2009_4"],
            PCB_FAMILY + ["LEAD", "2-CHLOROBIPHENYL", "PCB TOTAL TEQ"],
            ["E1668A", "E6020A"],
            ["WET", "DRY", "LIP"],
        )
    ),
)
def test_predicate_matches_exactly_the_suspect_intersection(code, parameter, method, basis):
    """True only for the suspect code × (method E1668A or PCB family parameter) × {LIP, DRY}."""
    expected = (
        code == SUSPECT
        and (method == "E1668A" or parameter in PCB_FAMILY)
        and basis in {"LIP", "DRY"}
    )
    assert DEFAULT_SUSPECT_PREDICATE(_row(code, parameter, method, basis)) is expected


def test_congener_measured_by_suspect_method_is_excluded():
    # individual congeners carry the method code, not a PCB family name
    assert DEFAULT_SUSPECT_PREDICATE(_row(parameter="2-CHLOROBIPHENYL", basis="LIP"))


@pytest.mark.parametrize(
    "parameter", ["PCB TOTAL TEQ", "PCB TOTAL TEQ (ND=0) ESTIMATED", "PCBS-AROCLOR"]
)
def test_pcb_family_needs_an_exact_name(parameter):
    # sharing a prefix with a family name is not enough
    assert not DEFAULT_SUSPECT_PREDICATE(_row(parameter=parameter, method="CALCULATED"))
    assert DEFAULT_SUSPECT_PREDICATE(_row(parameter="pcb total teq (nd=0)", method="CALCULATED"))

def test_non_pcb_parameter_of_suspect_sample_is_kept():
    assert not DEFAULT_SUSPECT_PREDICATE(_row(parameter="LEAD", method="E6020A", basis="DRY"))


def test_predicate_accepts_measurement_records():
    record = MeasurementRecord(
        code=SUSPECT,
        parameter="PCB TOTAL TEQ (ND=1/2 DL)",
        test_method="CALCULATED",
        weight_basis=WeightBasis.LIP,
        concentration=600.0,
    )
    assert DEFAULT_SUSPECT_PREDICATE(record)


def test_mask_agrees_with_row_evaluation(records_table):
    mask = DEFAULT_SUSPECT_PREDICATE.mask(records_table)
    expected = records_table.apply(DEFAULT_SUSPECT_PREDICATE, axis=1)
    assert mask.tolist() == expected.tolist()
    # PCBS DRY/LIP plus the TEQ DRY/LIP rows of the suspect sample
    assert int(mask.sum()) == 4


def test_exclude_keeps_wet_and_non_pcb_rows(records_table):
    kept = DEFAULT_SUSPECT_PREDICATE.exclude(records_table)
    suspect_rows = kept[kept["Code"] == SUSPECT]
    assert set(zip(suspect_rows["Parameter"], suspect_rows["WeightBasis"])) == {
        ("PCBS", "WET"),
        ("PCB TOTAL TEQ (ND=0)", "WET"),
        ("LEAD", "WET"),
        ("LEAD", "DRY"),
    }
    assert len(kept) == len(records_table) - 4
    # input untouched
    assert len(records_table) == 19


def test_mask_on_empty_table(make_table):
    empty = make_table([])
    assert DEFAULT_SUSPECT_PREDICATE.mask(empty).empty


def test_filter_records_drops_matching_records():
    records = [
        MeasurementRecord(code=SUSPECT, parameter="PCBS", test_method="E1668A", weight_basis=basis)
        for basis in WeightBasis
    ]
    kept = list(DEFAULT_SUSPECT_PREDICATE.filter_records(records))
    assert [r.weight_basis for r in kept] == [WeightBasis.WET]


def test_custom_predicate_normalizes_constants():
    predicate = SuspectRecordPredicate(
        code="A_2011_2",
        test_methods={"e1668a"},
        parameters={"pcbs"},
        weight_bases={"dry"},
    )
    assert predicate.weight_bases == frozenset({WeightBasis.DRY})
    assert predicate(_row(code="A_2011_2", parameter="PCBS", method="OTHER", basis="DRY"))
    assert not predicate(_row(code="A_2011_2", parameter="PCBS", method="OTHER", basis="LIP"))


def test_predicate_is_immutable():
    with pytest.raises(AttributeError):
        DEFAULT_SUSPECT_PREDICATE.code = "OTHER"


def test_mask_handles_weight_basis_enums():
    table = pd.DataFrame([_row(basis=WeightBasis.LIP), _row(basis=WeightBasis.WET)])
    assert DEFAULT_SUSPECT_PREDICATE.mask(table).tolist() == [True, False]
