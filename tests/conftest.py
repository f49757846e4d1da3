"""
Pytest configuration and fixtures for lipidomics_toolkit tests
"""

import matplotlib

matplotlib.use("Agg")

import pytest
import pandas as pd
import numpy as np
import tempfile
import os
import shutil

from lipidomics_toolkit.datasets import app_saa_variant, genotype_dose_variant


def _write_workbook(path, sheets):
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=sheet_name, index=False)
    return path


@pytest.fixture
def temp_dir():
    """Temporary directory removed after the test"""
    directory = tempfile.mkdtemp()
    yield directory
    shutil.rmtree(directory)


@pytest.fixture
def genotype_dose_sheets():
    """Raw sheets of a small transgene-dosage workbook (composite sample labels)"""
    samples = pd.DataFrame({
        "sample_id": ["P1_LA1C", "P1_LA2C", "P2_LA3C", "P2_LA4C"],
        "description": ["mouse 1", "mouse 2", "mouse 3", "mouse 4"],
        "cell_number": [100000, 120000, 110000, 90000],
        "genotype": ["WT", "Het", "Hom", "WT"],
        "sex": ["F", "M", "F", "M"],
        "batch": ["b1", "b1", "b2", "b2"],
        "operator": ["ab", "ab", "cd", "cd"],
    })
    features = pd.DataFrame({
        "component_name": ["PC(40:6)", "PE(38:4)", "PC(40:6)", "PC(d7-34:1)", "SM(d18:1/16:0)"],
        "ionization": ["pos", "pos", "neg", "pos", "pos"],
        "lipid_class": ["PC", "PE", "PC", "PC", "SM"],
        "Q1 (Sciex)": [834.6, 768.6, 834.6, 767.6, 703.6],
        "Q3 (Sciex)": [184.1, 627.5, 184.1, 184.1, 184.1],
        "m/z": [834.6, 768.6, 834.6, 767.6, 703.6],
        "is_internal_standard": [False, False, False, True, False],
    })
    abundances = pd.DataFrame({
        "component_name": ["PC(40:6)", "PE(38:4)", "PC(d7-34:1)"],
        "P1_LA1C": [1.0, 0.5, 1.0],
        "P1_LA2C": [3.0, 0.7, 1.0],
        "P2_LA3C": [2.0, np.nan, 1.0],
        "P2_LA4C": [4.0, 0.9, 1.0],
        "total_signal": [10.0, 2.1, 4.0],
    })
    return {
        "sample_annotations": samples,
        "feature_annotations": features,
        "peak_area_ratio_to_is": abundances,
    }


@pytest.fixture
def genotype_dose_workbook(temp_dir, genotype_dose_sheets):
    """Path to the transgene-dosage workbook on disk"""
    return _write_workbook(os.path.join(temp_dir, "genotype_dose.xlsx"), genotype_dose_sheets)


@pytest.fixture
def genotype_dose_config():
    """Dataset configuration matching the genotype_dose_workbook fixture"""
    return genotype_dose_variant(sample_numbers=range(1, 5))


@pytest.fixture
def app_saa_sheets():
    """Raw sheets of a small APP-SAA workbook (sample labels used as-is)"""
    samples = pd.DataFrame({
        "sample_id": ["S1", "S2", "S3", "S4", "S5", "S6"],
        "genotype": ["WT", "WT", "WT", "APP_SAA_Hom", "APP_SAA_Hom", "APP_SAA_Hom"],
        "condition": ["control", "control", "treated", "control", "treated", "treated"],
        "sex": ["F", "M", "F", "M", "F", "M"],
        "batch": ["b1", "b1", "b1", "b2", "b2", "b2"],
    })
    features = pd.DataFrame({
        "component_name": ["LA", "LB", "LC", "LD", "IS1"],
        "panel": ["lipids", "lipids", "lipids", "lipids", "lipids"],
        "panel_order": [1, 2, 3, 4, 5],
        "m/z": [700.1, 701.2, 702.3, 703.4, 704.5],
        "is_internal_standard": ["FALSE", "FALSE", "FALSE", "FALSE", "TRUE"],
    })
    abundances = pd.DataFrame({
        "component_name": ["LA", "LB", "LC", "LD", "IS1"],
        "S1": [1.0, 2.0, 5.0, 1.0, 1.0],
        "S2": [3.0, 2.0, 6.0, 1.0, 1.0],
        "S3": [2.0, 4.0, 7.0, 1.0, 1.0],
        "S4": [6.0, 1.0, 5.0, 1.0, 1.0],
        "S5": [7.0, 1.0, 6.0, 1.0, 1.0],
        "S6": [8.0, 0.5, 7.0, 1.0, 1.0],
    })
    return {
        "sample_annotations": samples,
        "feature_annotations": features,
        "peak_area_ratio_to_is": abundances,
    }


@pytest.fixture
def app_saa_workbook(temp_dir, app_saa_sheets):
    """Path to the APP-SAA workbook on disk"""
    return _write_workbook(os.path.join(temp_dir, "app_saa.xlsx"), app_saa_sheets)


@pytest.fixture
def differential_statistics():
    """Published statistics for one APP-SAA comparison"""
    return pd.DataFrame({
        "component_name": ["LA", "LB", "LC", "LD"],
        "logFC": [1.8, -1.2, 0.1, 0.5],
        "P.Value": [0.0001, 0.001, 0.5, 0.2],
        "adj.P.Val": [0.001, 0.004, 0.6, 0.3],
    })


@pytest.fixture
def statistics_workbook(temp_dir, differential_statistics):
    """Path to a statistics workbook with one comparison sheet"""
    return _write_workbook(
        os.path.join(temp_dir, "statistics.xlsx"),
        {"APP_SAA_Hom_vs_WT": differential_statistics},
    )


@pytest.fixture
def app_saa_config():
    """Dataset configuration matching the app_saa_workbook fixture"""
    return app_saa_variant(statistics_sheet="APP_SAA_Hom_vs_WT", fold_change_threshold=0.2, fdr_threshold=0.1)


@pytest.fixture
def tidy_table():
    """A complete tidy observation table: 3 analytes x 4 samples"""
    samples = ["LA1C", "LA2C", "LA3C", "LA4C"]
    genotypes = {"LA1C": "WT", "LA2C": "Het", "LA3C": "Hom", "LA4C": "WT"}
    analytes = {"PC(40:6)": "pos", "PE(38:4)": "pos", "Cer(d18:1/16:0)": "neg"}
    values = {
        "PC(40:6)": [1.0, 3.0, 2.0, 4.0],
        "PE(38:4)": [0.5, 0.7, 0.6, 0.9],
        "Cer(d18:1/16:0)": [9.0, 7.0, 8.0, 6.5],
    }
    rows = []
    for analyte, ionization in analytes.items():
        for sample, value in zip(samples, values[analyte]):
            rows.append({
                "component_name": analyte,
                "ionization": ionization,
                "sample_id": sample,
                "abundance": value,
                "genotype": genotypes[sample],
            })
    return pd.DataFrame(rows)
