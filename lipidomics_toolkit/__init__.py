"""
Lipidomics Heatmap Toolkit
==========================

A Python library for turning published lipidomics workbooks into tidy,
analysis-ready tables and annotated heatmaps. It covers the workflow from
downloading a workbook through extraction, joining, significance filtering
and heatmap rendering.

QUICK START EXAMPLE:
-------------------
    import lipidomics_toolkit as ltk

    # 1. Describe the dataset and build the tidy table
    config = ltk.genotype_dose_variant(workbook_url=WORKBOOK_URL)
    dataset = ltk.build_tidy_dataset(config)

    # 2. Plot row-scaled abundances with genotype tiles
    heatmap = ltk.HeatmapConfig(
        scale="row",
        annotations=[ltk.TileAnnotation("genotype")],
    )
    ltk.plot_tidy_heatmap(dataset.tidy, heatmap)

    # 3. Save CSV mirrors and the configuration
    ltk.export_pipeline_results(dataset.tidy, "results", config_dict=config.to_dict())

MODULE OVERVIEW:
===============

data_import
    Purpose: Fetch workbooks, extract sample/feature/abundance sheets, read CSV mirrors
    Key functions: fetch_workbook(), extract_abundances(), load_tidy_csv()
    Use when: Starting analysis from a remote workbook or a pre-wrangled table

preprocessing
    Purpose: Join the extracted tables and assign enumerated categorical domains
    Key functions: join_tidy_table(), apply_categorical_schema(), CategoricalSchema
    Use when: Building the tidy observation table

statistical_analysis
    Purpose: Select analytes by fold change and adjusted p-value
    Key functions: select_significant_analytes(), filter_to_significant()
    Use when: Restricting a heatmap to differentially abundant lipids

normalization
    Purpose: Row z-scaling and recentering on a reference group
    Key functions: scale_rows(), recenter_to_reference()
    Use when: Comparing analytes on a common scale

visualization
    Purpose: Annotated heatmaps of tidy tables
    Key functions: plot_tidy_heatmap(), HeatmapConfig
    Use when: Visualizing the tidy table

validation
    Purpose: Error types, key checks and annotation classification
    Key functions: classify_annotation(), validate_key_coverage()

export
    Purpose: CSV mirrors and timestamped configuration records
    Key functions: export_pipeline_results(), export_timestamped_config()

datasets
    Purpose: Dataset variant presets and the one-call pipeline driver
    Key functions: build_tidy_dataset(), genotype_dose_variant(), app_saa_variant()

ERROR HANDLING:
==============
All errors are fatal; processing stops at the first violated precondition:
- MissingFileError: A workbook or CSV file does not exist
- FetchError: A remote workbook could not be downloaded
- MalformedKeyError: A sample label or statistics key does not fit
- CategoryDomainError: A value lies outside its enumerated domain
- EmptyResultError: No analyte passes the significance thresholds
"""

# =============================================================================
# MODULE IMPORTS - Core functionality organized by analysis stage
# =============================================================================

from . import validation            # Error types and checks
from . import preprocessing         # Joining and categorical domains
from . import data_import           # Fetching and extraction
from . import normalization         # Row scaling and recentering
from . import statistical_analysis  # Significance filtering
from . import visualization         # Heatmaps
from . import export                # CSV mirrors and configuration records
from . import datasets              # Variant presets and pipeline driver

__version__ = "1.0.0"

# =============================================================================
# CONVENIENCE IMPORTS - Most commonly used functions available at top level
# =============================================================================

from .data_import import (
    SampleKeyRule,
    SECOND_SEGMENT_RULE,
    IDENTITY_RULE,
    fetch_workbook,
    fetched_workbook,
    extract_sample_annotations,
    extract_feature_annotations,
    extract_abundances,
    extract_differential_statistics,
    load_tidy_csv,
    load_statistics_csv,
)

from .preprocessing import (
    CategoricalSchema,
    GroupSpec,
    numbered_sample_ids,
    apply_categorical_schema,
    build_group_column,
    join_tidy_table,
)

from .normalization import (
    scale_rows,
    recenter_to_reference,
)

from .statistical_analysis import (
    SignificanceConfig,
    select_significant_analytes,
    filter_to_significant,
)

from .visualization import (
    HeatmapConfig,
    TileAnnotation,
    PointAnnotation,
    SymbolOverlay,
    tidy_to_matrix,
    plot_tidy_heatmap,
)

from .validation import (
    MissingFileError,
    FetchError,
    MalformedKeyError,
    CategoryDomainError,
    EmptyResultError,
    RowAnnotation,
    ColumnAnnotation,
    InvalidAnnotation,
    classify_annotation,
    validate_key_coverage,
)

from .export import (
    export_tidy_table,
    export_statistics_table,
    export_significant_analytes,
    export_timestamped_config,
    export_pipeline_results,
)

from .datasets import (
    DatasetConfig,
    TidyDataset,
    genotype_dose_variant,
    app_saa_variant,
    build_tidy_dataset,
    build_tidy_dataset_from_csv,
)

# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    # MODULES
    "validation",
    "preprocessing",
    "data_import",
    "normalization",
    "statistical_analysis",
    "visualization",
    "export",
    "datasets",

    # DATA IMPORT
    "SampleKeyRule",
    "SECOND_SEGMENT_RULE",
    "IDENTITY_RULE",
    "fetch_workbook",
    "fetched_workbook",
    "extract_sample_annotations",
    "extract_feature_annotations",
    "extract_abundances",
    "extract_differential_statistics",
    "load_tidy_csv",
    "load_statistics_csv",

    # PREPROCESSING
    "CategoricalSchema",
    "GroupSpec",
    "numbered_sample_ids",
    "apply_categorical_schema",
    "build_group_column",
    "join_tidy_table",

    # NORMALIZATION
    "scale_rows",
    "recenter_to_reference",

    # STATISTICAL ANALYSIS
    "SignificanceConfig",
    "select_significant_analytes",
    "filter_to_significant",

    # VISUALIZATION
    "HeatmapConfig",
    "TileAnnotation",
    "PointAnnotation",
    "SymbolOverlay",
    "tidy_to_matrix",
    "plot_tidy_heatmap",

    # VALIDATION
    "MissingFileError",
    "FetchError",
    "MalformedKeyError",
    "CategoryDomainError",
    "EmptyResultError",
    "RowAnnotation",
    "ColumnAnnotation",
    "InvalidAnnotation",
    "classify_annotation",
    "validate_key_coverage",

    # EXPORT
    "export_tidy_table",
    "export_statistics_table",
    "export_significant_analytes",
    "export_timestamped_config",
    "export_pipeline_results",

    # DATASETS
    "DatasetConfig",
    "TidyDataset",
    "genotype_dose_variant",
    "app_saa_variant",
    "build_tidy_dataset",
    "build_tidy_dataset_from_csv",
]
