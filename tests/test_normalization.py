"""
Tests for lipidomics_toolkit.normalization module
"""
import pytest
import numpy as np
import pandas as pd

from lipidomics_toolkit.normalization import recenter_to_reference, scale_rows


class TestScaleRows:
    """Test row z-scaling"""

    def test_mean_zero_unit_variance(self, tidy_table):
        """Test that every analyte has mean 0 and population std 1"""
        scaled = scale_rows(tidy_table)

        for _, values in scaled.groupby("component_name")["abundance"]:
            assert values.mean() == pytest.approx(0.0, abs=1e-12)
            assert np.std(values.to_numpy()) == pytest.approx(1.0)

    def test_output_column(self, tidy_table):
        """Test writing scaled values to a new column"""
        scaled = scale_rows(tidy_table, output_column="z")

        assert "z" in scaled.columns
        pd.testing.assert_series_equal(scaled["abundance"], tidy_table["abundance"])

    def test_constant_row(self):
        """Test that zero-variance rows become 0 rather than NaN"""
        tidy = pd.DataFrame({
            "component_name": ["A", "A", "A"],
            "sample_id": ["s1", "s2", "s3"],
            "abundance": [2.0, 2.0, 2.0],
        })
        assert scale_rows(tidy)["abundance"].tolist() == [0.0, 0.0, 0.0]

    def test_missing_values_stay_missing(self):
        """Test that missing abundances are ignored in the statistics"""
        tidy = pd.DataFrame({
            "component_name": ["A", "A", "A"],
            "sample_id": ["s1", "s2", "s3"],
            "abundance": [1.0, np.nan, 3.0],
        })
        scaled = scale_rows(tidy)["abundance"]
        assert scaled.iloc[0] == pytest.approx(-1.0)
        assert np.isnan(scaled.iloc[1])
        assert scaled.iloc[2] == pytest.approx(1.0)


class TestRecenterToReference:
    """Test recentering on the median of a reference group"""

    @pytest.fixture
    def grouped_table(self):
        return pd.DataFrame({
            "component_name": ["A"] * 5 + ["B"] * 2,
            "sample_id": ["s1", "s2", "s3", "s4", "s5", "s1", "s4"],
            "group": ["WT control", "WT control", "WT control", "APP-SAA control", "APP-SAA control",
                      "APP-SAA control", "APP-SAA control"],
            "abundance": [1.0, 3.0, 10.0, 4.0, 6.0, 2.0, 5.0],
        })

    def test_reference_median_is_zero(self, grouped_table):
        """Test that the reference group median becomes 0"""
        centered = recenter_to_reference(grouped_table, "group", "WT control")

        reference = centered[(centered["component_name"] == "A") & (centered["group"] == "WT control")]
        assert reference["abundance"].median() == pytest.approx(0.0)
        assert centered.loc[3, "abundance"] == pytest.approx(1.0)

    def test_empty_reference_gives_missing(self, grouped_table):
        """Test that analytes without reference observations become missing"""
        centered = recenter_to_reference(grouped_table, "group", "WT control")

        assert centered.loc[centered["component_name"] == "B", "abundance"].isna().all()

    def test_categorical_reference_column(self, grouped_table):
        """Test recentering with an ordered categorical group column"""
        grouped_table["group"] = pd.Categorical(
            grouped_table["group"], categories=["WT control", "APP-SAA control"], ordered=True
        )
        centered = recenter_to_reference(grouped_table, "group", "WT control", output_column="centered")

        assert centered.loc[0, "centered"] == pytest.approx(-2.0)
        assert centered.loc[0, "abundance"] == 1.0
