"""
Export Module for Lipidomics Heatmap Toolkit

Writes the tidy observation table and the differential statistics as CSV
mirrors (readable back with data_import.load_tidy_csv / load_statistics_csv)
and records the run configuration as a timestamped Python file.
"""

import os
import pandas as pd
from datetime import datetime
from typing import Dict, Any, List, Optional


def export_tidy_table(tidy: pd.DataFrame, csv_path: str) -> str:
    """
    Export a tidy observation table as a CSV mirror.

    Categorical columns are written as their labels; reapply the
    CategoricalSchema when loading the mirror back.
    """
    tidy.to_csv(csv_path, index=False)
    print(f"Tidy table exported to: {csv_path} ({len(tidy)} rows)")
    return csv_path


def export_statistics_table(stats: pd.DataFrame, csv_path: str) -> str:
    """Export a DifferentialStatistic table as a CSV mirror."""
    stats.to_csv(csv_path, index=False)
    print(f"Statistics table exported to: {csv_path} ({len(stats)} analytes)")
    return csv_path


def export_significant_analytes(
    significant: List[str], stats: pd.DataFrame, csv_path: str,
    key_column: str = "component_name",
) -> str:
    """Export the significant analytes, in rank order, with their statistics."""
    ranked = pd.DataFrame({key_column: significant, "rank": range(1, len(significant) + 1)})
    summary = ranked.merge(stats, on=key_column, how="left")
    summary.to_csv(csv_path, index=False)
    print(f"Significant analytes exported to: {csv_path} ({len(significant)} analytes)")
    return csv_path


def export_timestamped_config(
    config_dict: Dict[str, Any],
    output_prefix: str = "lipidomics_analysis",
    analysis_description: str = "Lipidomics heatmap analysis",
    computed_values: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Export the run configuration as a timestamped Python file.

    Parameters:
    -----------
    config_dict : dict
        Configuration parameters, e.g. from ``DatasetConfig.to_dict()``
    output_prefix : str
        Prefix (may include a directory) for the configuration filename
    analysis_description : str
        Description written into the header
    computed_values : dict, optional
        Additional computed values written as comments

    Returns:
    --------
    str
        Path to the exported configuration file
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    config_file = f"{output_prefix}_config_{timestamp}.py"

    print(f"Exporting analysis configuration to: {config_file}")

    section_configs = [
        (1, "DATASET SOURCE", ["name", "workbook_url", "statistics_url", "statistics_sheet"]),
        (
            2,
            "WORKBOOK LAYOUT",
            [
                "sample_sheet",
                "feature_sheet",
                "abundance_sheet",
                "sample_key_rule",
                "sample_column_pattern",
                "excluded_column_patterns",
                "extra_drop_columns",
            ],
        ),
        (3, "CATEGORICAL SCHEMA", ["schema_version", "domains", "group_labels", "on_unknown"]),
        (
            4,
            "SIGNIFICANCE THRESHOLDS",
            ["fold_change_threshold", "fdr_threshold", "allow_empty"],
        ),
    ]
    known = {param for _, _, params in section_configs for param in params}
    extras = [key for key in config_dict if key not in known]
    if extras:
        section_configs.append((len(section_configs) + 1, "OTHER SETTINGS", extras))

    with open(config_file, "w", encoding="utf-8") as f:
        f.write("# =============================================================================\n")
        f.write("# LIPIDOMICS ANALYSIS CONFIGURATION\n")
        f.write(f"# Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write(f"# Analysis: {analysis_description}\n")
        f.write("# =============================================================================\n\n")

        for section_num, section_name, param_names in section_configs:
            _write_config_section(f, section_name, config_dict, param_names, section_num)

        if computed_values:
            f.write("# =============================================================================\n")
            f.write("# COMPUTED VALUES (for reference)\n")
            f.write("# =============================================================================\n")
            for key, value in computed_values.items():
                f.write(f"# {key}: {value}\n")

    return config_file


def _write_config_section(
    file_handle,
    section_name: str,
    config_dict: Dict[str, Any],
    param_names: List[str],
    section_number: int = 1,
) -> None:
    """Write a configuration section to file."""

    present = [param for param in param_names if param in config_dict]
    if not present:
        return

    file_handle.write("# =============================================================================\n")
    file_handle.write(f"# {section_number}. {section_name}\n")
    file_handle.write("# =============================================================================\n")

    for param in present:
        file_handle.write(f"{param} = {repr(config_dict[param])}\n")

    file_handle.write("\n")


def export_pipeline_results(
    tidy: pd.DataFrame,
    output_dir: str,
    output_prefix: str = "lipidomics_analysis",
    stats: Optional[pd.DataFrame] = None,
    significant: Optional[List[str]] = None,
    config_dict: Optional[Dict[str, Any]] = None,
) -> Dict[str, str]:
    """
    Export everything a pipeline run produced into ``output_dir``.

    Returns:
    --------
    dict
        Maps each exported item to its file path
    """
    os.makedirs(output_dir, exist_ok=True)
    prefix = os.path.join(output_dir, output_prefix)
    exported_files = {"tidy_table": export_tidy_table(tidy, f"{prefix}_tidy.csv")}

    if stats is not None:
        exported_files["statistics"] = export_statistics_table(stats, f"{prefix}_statistics.csv")
        if significant is not None:
            exported_files["significant_analytes"] = export_significant_analytes(
                significant, stats, f"{prefix}_significant.csv"
            )

    if config_dict is not None:
        exported_files["config"] = export_timestamped_config(
            config_dict,
            output_prefix=prefix,
            computed_values={
                "rows": len(tidy),
                "analytes": tidy["component_name"].nunique() if "component_name" in tidy else 0,
                "samples": tidy["sample_id"].nunique() if "sample_id" in tidy else 0,
            },
        )

    print(f"\n✓ Exported {len(exported_files)} file(s) to {output_dir}")
    return exported_files
