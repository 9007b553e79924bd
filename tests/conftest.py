import datetime

import pandas as pd
import pytest

from tissue_qc.records import RECORD_COLUMNS


def _record_row(code, parameter, method, basis, concentration, units="NG/G"):
    site_code = code.split("_")[0]
    year = int(code.split("_")[-2]) if code.count("_") >= 2 else 2009
    return {
        "Code": code,
        "SiteCode": site_code,
        "Site": f"{site_code} SITE",
        "Year": year,
        "SampleDate": datetime.date(year, 8, 5),
        "Parameter": parameter,
        "TestMethod": method,
        "WeightBasis": basis,
        "Concentration": concentration,
        "UnitsValue": units,
    }


@pytest.fixture
def make_table():
    """
    Factory for simplified tables.
    Each row is (Code, Parameter, TestMethod, WeightBasis, Concentration).
    """

    def _make(rows) -> pd.DataFrame:
        table = pd.DataFrame([_record_row(*row) for row in rows], columns=RECORD_COLUMNS)
        table["Concentration"] = table["Concentration"].astype(float)
        return table

    return _make


@pytest.fixture
def records_table(make_table) -> pd.DataFrame:
    """
    A small simplified dataset with one sample per behavior of interest:
    - X_2009_5 / 2-CHLOROBIPHENYL: LIP below DRY (value inversion)
    - CBEEEE_REP_4_2009_5: the suspect replicate, PCB family by E1668A plus a metal
    - CBEEEE_REP_1_2009_5: a sibling replicate with consistent values
    - Y_2010_1 / MERCURY: WET only
    - Z_2010_1 / LEAD: more DRY than WET observations
    """
    return make_table(
        [
            ("X_2009_5", "2-CHLOROBIPHENYL", "E1668A", "WET", 8.55),
            ("X_2009_5", "2-CHLOROBIPHENYL", "E1668A", "DRY", 50.0),
            ("X_2009_5", "2-CHLOROBIPHENYL", "E1668A", "LIP", 0.06),
            ("CBEEEE_REP_4_2009_5", "PCBS", "E1668A", "WET", 20.0),
            ("CBEEEE_REP_4_2009_5", "PCBS", "E1668A", "DRY", 150.0),
            ("CBEEEE_REP_4_2009_5", "PCBS", "E1668A", "LIP", 25000.0),
            ("CBEEEE_REP_4_2009_5", "PCB TOTAL TEQ (ND=0)", "CALCULATED", "WET", 0.5),
            ("CBEEEE_REP_4_2009_5", "PCB TOTAL TEQ (ND=0)", "CALCULATED", "DRY", 4.0),
            ("CBEEEE_REP_4_2009_5", "PCB TOTAL TEQ (ND=0)", "CALCULATED", "LIP", 600.0),
            ("CBEEEE_REP_4_2009_5", "LEAD", "E6020A", "WET", 0.2),
            ("CBEEEE_REP_4_2009_5", "LEAD", "E6020A", "DRY", 1.0),
            ("CBEEEE_REP_1_2009_5", "PCBS", "E1668A", "WET", 21.0),
            ("CBEEEE_REP_1_2009_5", "PCBS", "E1668A", "DRY", 105.0),
            ("CBEEEE_REP_1_2009_5", "PCBS", "E1668A", "LIP", 2500.0),
            ("Y_2010_1", "MERCURY", "E1631", "WET", 0.1),
            ("Y_2010_1", "MERCURY", "E1631", "WET", None),
            ("Z_2010_1", "LEAD", "E6020A", "WET", 0.3),
            ("Z_2010_1", "LEAD", "E6020A", "DRY", 1.2),
            ("Z_2010_1", "LEAD", "E6020A", "DRY", 1.4),
        ]
    )


@pytest.fixture
def raw_table() -> pd.DataFrame:
    """
    A raw export as the loader delivers it: normalized snake_case headers,
    free-text weight bases, a duplicate row and an uninformative column.
    """
    rows = [
        ("CBEEEE REP 1", "EASTERN BAY", "2009-06-01", "PCBS", "E1668A", "WET", 18.0),
        ("CBEEEE REP 2", "EASTERN BAY", "2009-06-15", "PCBS", "E1668A", "WET", 19.0),
        ("CBEEEE REP 3", "EASTERN BAY", "2009-07-01", "PCBS", "E1668A", "WET", 17.0),
        ("CBEEEE REP 1", "EASTERN BAY", "2009-07-15", "PCBS", "E1668A", "WET", 22.0),
        ("CBEEEE REP 4", "EASTERN BAY", "2009-08-05", "PCBS", "E1668A", "WET", 20.0),
        ("CBEEEE REP 4", "EASTERN BAY", "2009-08-05", "PCBS", "E1668A", "DRY", 150.0),
        ("CBEEEE REP 4", "EASTERN BAY", "2009-08-05", "PCBS", "E1668A", "LIP", 25000.0),
        ("CBEEEE REP 4", "EASTERN BAY", "2009-08-05", "PCBS", "E1668A", "LIP", 25000.0),
        ("CBEEEE REP 4", "EASTERN BAY", "2009-08-05", "MOISTURE", "SM2540G", "WET", 80.0),
        ("CBMBBH REP 1", "MIDDLE BAY", "2010-05-20", "PCBS", "E1668A", "WET", 12.0),
    ]
    table = pd.DataFrame(
        rows,
        columns=[
            "sample_id",
            "site_name",
            "sample_date",
            "parameter",
            "test_method",
            "weight_basis",
            "concentration",
        ],
    )
    table["units_value"] = "NG/G"
    table["lab_qualifier"] = ""
    return table
