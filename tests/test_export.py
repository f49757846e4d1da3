"""
Tests for export module
"""

import os
import pandas as pd

from lipidomics_toolkit.data_import import load_statistics_csv, load_tidy_csv
from lipidomics_toolkit.export import (
    export_pipeline_results,
    export_significant_analytes,
    export_timestamped_config,
)


class TestExportModule:
    """Test the export module functionality."""

    def test_pipeline_results_written(self, temp_dir, tidy_table, differential_statistics, app_saa_config):
        """Test that every produced table and the configuration are written"""
        exported_files = export_pipeline_results(
            tidy_table,
            temp_dir,
            output_prefix="run",
            stats=differential_statistics,
            significant=["LA", "LB"],
            config_dict=app_saa_config.to_dict(),
        )

        assert set(exported_files) == {"tidy_table", "statistics", "significant_analytes", "config"}
        for path in exported_files.values():
            assert os.path.exists(path)
            assert os.path.dirname(path) == temp_dir

    def test_tidy_mirror_reloads(self, temp_dir, tidy_table):
        """Test that the tidy CSV mirror reads back unchanged"""
        exported_files = export_pipeline_results(tidy_table, temp_dir)
        reloaded = load_tidy_csv(exported_files["tidy_table"])

        pd.testing.assert_frame_equal(reloaded, tidy_table)
        assert set(exported_files) == {"tidy_table"}

    def test_significant_analytes_keep_rank(self, temp_dir, differential_statistics):
        """Test rank order and joined statistics in the significant table"""
        path = export_significant_analytes(
            ["LA", "LB"], differential_statistics, os.path.join(temp_dir, "significant.csv")
        )
        summary = load_statistics_csv(path)

        assert summary["component_name"].tolist() == ["LA", "LB"]
        assert summary["rank"].tolist() == [1, 2]
        assert summary["logFC"].tolist() == [1.8, -1.2]


class TestTimestampedConfig:
    """Test the configuration record"""

    def test_sections_and_values(self, temp_dir, app_saa_config):
        """Test section headers and parameter lines"""
        config_dict = app_saa_config.to_dict()
        config_dict["heatmap_scale"] = "row"

        config_file = export_timestamped_config(
            config_dict,
            output_prefix=os.path.join(temp_dir, "app_saa"),
            computed_values={"analytes": 2},
        )
        with open(config_file) as f:
            content = f.read()

        assert os.path.basename(config_file).startswith("app_saa_config_")
        assert config_file.endswith(".py")
        assert "# 1. DATASET SOURCE" in content
        assert "# 4. SIGNIFICANCE THRESHOLDS" in content
        assert "# 5. OTHER SETTINGS" in content
        assert "schema_version = 'app-saa-1'" in content
        assert "fold_change_threshold = 0.2" in content
        assert "heatmap_scale = 'row'" in content
        assert "# analytes: 2" in content

    def test_empty_sections_skipped(self, temp_dir, genotype_dose_config):
        """Test that sections without parameters are left out"""
        config_file = export_timestamped_config(
            genotype_dose_config.to_dict(), output_prefix=os.path.join(temp_dir, "dose")
        )
        with open(config_file) as f:
            content = f.read()

        assert "SIGNIFICANCE THRESHOLDS" not in content
        assert "OTHER SETTINGS" not in content
        assert "CATEGORICAL SCHEMA" in content
