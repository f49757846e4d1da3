"""
Dataset Variants and Pipeline Driver

A DatasetConfig describes one published workbook layout: where it lives,
which sheets to read, how sample labels encode the sample key, and the
categorical schema of the tidy table. ``build_tidy_dataset`` runs the whole
fetch -> extract -> join -> normalize (-> significance filter) sequence.
"""

import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .data_import import (
    EXCLUDED_FEATURE_COLUMN_PATTERNS,
    IDENTITY_RULE,
    SECOND_SEGMENT_RULE,
    SampleKeyRule,
    extract_abundances,
    extract_differential_statistics,
    extract_feature_annotations,
    extract_sample_annotations,
    fetched_workbook,
    load_statistics_csv,
    load_tidy_csv,
)
from .preprocessing import (
    CategoricalSchema,
    GroupSpec,
    join_tidy_table,
    numbered_sample_ids,
)
from .statistical_analysis import SignificanceConfig, filter_to_significant


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class DatasetConfig:
    """Configuration for one dataset variant.

    Attributes
    ----------
    name : str
        Short identifier used in output file names
    workbook_url : str, optional
        Remote location of the workbook with the three annotation/abundance sheets
    sample_key_rule : SampleKeyRule
        Rule mapping raw sample labels to ``sample_id``
    sample_column_pattern : str
        Regex matched at the start of abundance-sheet column names
    schema : CategoricalSchema
        Enumerated domains applied after joining
    statistics_url, statistics_sheet : str, optional
        Differential statistics workbook and comparison sheet
    significance : SignificanceConfig, optional
        Thresholds; when set, the tidy table is filtered to significant analytes
    """

    name: str
    schema: CategoricalSchema
    workbook_url: Optional[str] = None
    sample_sheet: str = "sample_annotations"
    feature_sheet: str = "feature_annotations"
    abundance_sheet: str = "peak_area_ratio_to_is"
    sample_key_rule: SampleKeyRule = IDENTITY_RULE
    sample_column_pattern: str = r"^[^_]+_"
    excluded_column_patterns: Sequence[str] = EXCLUDED_FEATURE_COLUMN_PATTERNS
    extra_drop_columns: Sequence[str] = ()
    statistics_url: Optional[str] = None
    statistics_sheet: Optional[str] = None
    significance: Optional[SignificanceConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to plain values for export_timestamped_config."""
        config = {
            "name": self.name,
            "workbook_url": self.workbook_url,
            "statistics_url": self.statistics_url,
            "statistics_sheet": self.statistics_sheet,
            "sample_sheet": self.sample_sheet,
            "feature_sheet": self.feature_sheet,
            "abundance_sheet": self.abundance_sheet,
            "sample_key_rule": self.sample_key_rule.pattern,
            "sample_column_pattern": self.sample_column_pattern,
            "excluded_column_patterns": list(self.excluded_column_patterns),
            "extra_drop_columns": list(self.extra_drop_columns),
            "schema_version": self.schema.version,
            "domains": {column: list(domain) for column, domain in self.schema.domains.items()},
            "on_unknown": self.schema.on_unknown,
        }
        if self.schema.group is not None and self.schema.group.labels is not None:
            config["group_labels"] = dict(self.schema.group.labels)
        if self.significance is not None:
            config["fold_change_threshold"] = self.significance.fold_change_threshold
            config["fdr_threshold"] = self.significance.fdr_threshold
            config["allow_empty"] = self.significance.allow_empty
        return config


@dataclass
class TidyDataset:
    """Tables produced by one pipeline run."""
    tidy: pd.DataFrame
    samples: Optional[pd.DataFrame] = None
    features: Optional[pd.DataFrame] = None
    abundances: Optional[pd.DataFrame] = None
    statistics: Optional[pd.DataFrame] = None
    significant: List[str] = field(default_factory=list)
    filtered: Optional[pd.DataFrame] = None


# =============================================================================
# VARIANT PRESETS
# =============================================================================

def genotype_dose_variant(
    workbook_url: Optional[str] = None,
    sample_numbers: Sequence[int] = range(1, 25),
    sample_prefix: str = "LA",
    sample_suffix: str = "C",
) -> DatasetConfig:
    """
    Transgene-dosage dataset: WT, heterozygous and homozygous samples.

    Sample labels are composite (``<prefix>_<sample_id>...``); the sample key
    is the second underscore-delimited segment. ``sample_id`` follows the
    ``LA<n>C`` numbering scheme and genotypes are ordered by dosage.
    """
    schema = CategoricalSchema(
        version="genotype-dose-1",
        domains={
            "sample_id": numbered_sample_ids(sample_prefix, sample_numbers, sample_suffix),
            "genotype": ["WT", "Het", "Hom"],
        },
    )
    return DatasetConfig(
        name="genotype_dose",
        schema=schema,
        workbook_url=workbook_url,
        sample_key_rule=SECOND_SEGMENT_RULE,
        sample_column_pattern=rf"^[^_]+_{sample_prefix}\d+",
    )


def app_saa_variant(
    workbook_url: Optional[str] = None,
    statistics_url: Optional[str] = None,
    statistics_sheet: Optional[str] = None,
    conditions: Sequence[str] = ("control", "treated"),
    sample_column_pattern: str = r"^S\d+",
    fold_change_threshold: float = 0.2,
    fdr_threshold: float = 0.1,
) -> DatasetConfig:
    """
    APP-SAA knock-in dataset: WT and APP_SAA_Hom samples under several conditions.

    Sample labels are used as-is. A composite ``group`` column combines
    genotype and condition into readable labels, and the tidy table is
    filtered to analytes significant in the chosen comparison sheet.
    """
    genotype_labels = {"WT": "WT", "APP_SAA_Hom": "APP-SAA"}
    group_labels = {
        f"{genotype}:{condition}": f"{label} {condition}"
        for genotype, label in genotype_labels.items()
        for condition in conditions
    }
    schema = CategoricalSchema(
        version="app-saa-1",
        domains={
            "genotype": list(genotype_labels),
            "condition": list(conditions),
        },
        group=GroupSpec(columns=("genotype", "condition"), separator=":", labels=group_labels),
    )

    significance = SignificanceConfig()
    significance.fold_change_threshold = fold_change_threshold
    significance.fdr_threshold = fdr_threshold

    return DatasetConfig(
        name="app_saa",
        schema=schema,
        workbook_url=workbook_url,
        sample_key_rule=IDENTITY_RULE,
        sample_column_pattern=sample_column_pattern,
        extra_drop_columns=("panel_order",),
        statistics_url=statistics_url,
        statistics_sheet=statistics_sheet,
        significance=significance,
    )


# =============================================================================
# PIPELINE DRIVER
# =============================================================================

def _extract_tables(path: str, config: DatasetConfig):
    samples = extract_sample_annotations(path, config.sample_sheet, key_rule=config.sample_key_rule)
    print(f"✓ Sample annotations: {samples.shape}")
    features = extract_feature_annotations(
        path,
        config.feature_sheet,
        excluded_column_patterns=config.excluded_column_patterns,
        extra_drop_columns=config.extra_drop_columns,
    )
    print(f"✓ Feature annotations: {features.shape}")
    abundances = extract_abundances(
        path,
        config.abundance_sheet,
        sample_column_pattern=config.sample_column_pattern,
        key_rule=config.sample_key_rule,
    )
    print(f"✓ Abundances: {abundances.shape}")
    return samples, features, abundances


def _load_statistics(config: DatasetConfig, statistics_path: Optional[str], timeout: Optional[float]):
    if statistics_path is not None:
        if statistics_path.lower().endswith(".csv"):
            return load_statistics_csv(statistics_path)
        return extract_differential_statistics(statistics_path, config.statistics_sheet)
    if config.statistics_url is None:
        raise ValueError(f"Dataset '{config.name}' needs statistics_url or a local statistics file")
    with fetched_workbook(config.statistics_url, timeout=timeout) as path:
        return extract_differential_statistics(path, config.statistics_sheet)


def _apply_significance(dataset: TidyDataset, config: DatasetConfig,
                        statistics_path: Optional[str], timeout: Optional[float]) -> TidyDataset:
    stats = _load_statistics(config, statistics_path, timeout)
    filtered = filter_to_significant(dataset.tidy, stats, config.significance, schema=config.schema)
    dataset.statistics = stats
    dataset.filtered = filtered
    dataset.significant = [str(key) for key in filtered["component_name"].cat.categories]
    return dataset


def build_tidy_dataset(
    config: DatasetConfig,
    workbook_path: Optional[str] = None,
    statistics_path: Optional[str] = None,
    timeout: Optional[float] = None,
) -> TidyDataset:
    """
    Run the ingestion-and-tidying pipeline for one dataset variant.

    When ``workbook_path`` is not given, the workbook is downloaded from
    ``config.workbook_url`` to a temporary file, which is deleted as soon as
    the sheets are parsed. When ``config.significance`` is set, the
    statistics workbook (or ``statistics_path``, a workbook or CSV mirror)
    is loaded and the filtered table is stored in ``TidyDataset.filtered``.

    Parameters:
    -----------
    config : DatasetConfig
        Dataset variant
    workbook_path : str, optional
        Local workbook to use instead of downloading
    statistics_path : str, optional
        Local statistics workbook or CSV to use instead of downloading
    timeout : float, optional
        Request timeout for downloads, in seconds

    Returns:
    --------
    TidyDataset
    """
    print(f"=== BUILDING TIDY DATASET: {config.name} ===\n")

    if workbook_path is not None:
        samples, features, abundances = _extract_tables(workbook_path, config)
    else:
        if config.workbook_url is None:
            raise ValueError(f"Dataset '{config.name}' needs workbook_url or a local workbook_path")
        with fetched_workbook(config.workbook_url, timeout=timeout) as path:
            samples, features, abundances = _extract_tables(path, config)

    tidy = join_tidy_table(features, abundances, samples, schema=config.schema)
    dataset = TidyDataset(tidy=tidy, samples=samples, features=features, abundances=abundances)

    if config.significance is not None:
        dataset = _apply_significance(dataset, config, statistics_path, timeout)

    print("\nDataset build completed successfully!")
    return dataset


def build_tidy_dataset_from_csv(
    config: DatasetConfig,
    tidy_csv: str,
    statistics_csv: Optional[str] = None,
) -> TidyDataset:
    """
    Rebuild a TidyDataset from pre-wrangled CSV mirrors, bypassing extraction.
    """
    print(f"=== LOADING TIDY DATASET MIRROR: {config.name} ===\n")
    tidy = load_tidy_csv(tidy_csv, schema=config.schema)
    dataset = TidyDataset(tidy=tidy)

    if config.significance is not None and statistics_csv is not None:
        dataset = _apply_significance(dataset, config, statistics_csv, None)

    return dataset
