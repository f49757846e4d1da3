"""
Statistical Analysis Module for Lipidomics Heatmap Toolkit

Selects analytes from a published differential-abundance table by fold
change and adjusted p-value, and restricts the tidy observation table to
them in fold-change rank order.
"""

import warnings
import pandas as pd
from typing import List, Optional

from .preprocessing import CategoricalSchema, build_group_column
from .validation import (
    EmptyResultError,
    require_columns,
    validate_key_coverage,
)


class SignificanceConfig:
    """Configuration for selecting significant analytes

    An analyte is selected when ``abs(logFC) > fold_change_threshold`` and
    ``adj.P.Val < fdr_threshold`` (both strict). Selected analytes are
    ordered by descending ``logFC``.
    """

    def __init__(self):
        self.fold_change_threshold = 0.2  # on the log2 scale
        self.fdr_threshold = 0.1

        # Column names in the statistics table
        self.key_column = "component_name"
        self.logfc_column = "logFC"
        self.p_value_column = "adj.P.Val"

        # Zero selected analytes is an error unless explicitly allowed
        self.allow_empty = False

    def validate(self):
        """Validate threshold values"""
        if self.fold_change_threshold is None or self.fold_change_threshold < 0:
            raise ValueError("fold_change_threshold must be a non-negative number")
        if self.fdr_threshold is None or not 0 < self.fdr_threshold <= 1:
            raise ValueError("fdr_threshold must be in (0, 1]")
        return True


def select_significant_analytes(stats: pd.DataFrame, config: Optional[SignificanceConfig] = None) -> List[str]:
    """
    Return the keys passing both thresholds, ordered by descending logFC.

    Parameters:
    -----------
    stats : pd.DataFrame
        DifferentialStatistic table
    config : SignificanceConfig, optional
        Thresholds and column names

    Returns:
    --------
    List[str] : SignificantAnalyteSet

    Raises:
    -------
    EmptyResultError
        If no analyte passes and ``config.allow_empty`` is False
    """
    if config is None:
        config = SignificanceConfig()
    config.validate()
    require_columns(stats, [config.key_column, config.logfc_column, config.p_value_column], "statistics table")

    logfc = stats[config.logfc_column]
    p_values = stats[config.p_value_column]
    passing = stats[(logfc.abs() > config.fold_change_threshold) & (p_values < config.fdr_threshold)]

    ranked = passing.sort_values(config.logfc_column, ascending=False, kind="mergesort")
    selected = list(dict.fromkeys(ranked[config.key_column].tolist()))

    print(
        f"Significant analytes: {len(selected)} of {len(stats)} "
        f"(|{config.logfc_column}| > {config.fold_change_threshold}, "
        f"{config.p_value_column} < {config.fdr_threshold})"
    )

    if not selected:
        message = "No analytes pass the significance thresholds"
        if not config.allow_empty:
            raise EmptyResultError(message)
        warnings.warn(message + "; continuing with an empty table")

    return selected


def filter_to_significant(
    tidy: pd.DataFrame,
    stats: pd.DataFrame,
    config: Optional[SignificanceConfig] = None,
    schema: Optional[CategoricalSchema] = None,
    relevel: bool = True,
    drop_unused_categories: bool = False,
) -> pd.DataFrame:
    """
    Restrict the tidy table to significant analytes in fold-change order.

    Every statistics key must already exist in the tidy table's key domain;
    otherwise MalformedKeyError is raised before any filtering. The tidy
    table is then semi-joined to the significant set. With ``relevel`` the
    ``component_name`` column becomes an ordered categorical following the
    significant order and rows are sorted by it. When ``schema`` carries a
    GroupSpec the composite group column is re-derived on the filtered rows.
    Other categorical columns keep their enumerated domains unless
    ``drop_unused_categories`` is set.

    Returns:
    --------
    pd.DataFrame : Filtered (and re-ordered) tidy table
    """
    if config is None:
        config = SignificanceConfig()
    require_columns(tidy, ["component_name"], "tidy table")

    key_values = tidy["component_name"]
    if isinstance(key_values.dtype, pd.CategoricalDtype):
        domain = key_values.cat.categories
    else:
        domain = key_values.dropna().unique()
    validate_key_coverage(stats[config.key_column], domain)

    selected = select_significant_analytes(stats, config)

    filtered = tidy[tidy["component_name"].isin(selected)].copy()

    if relevel:
        filtered["component_name"] = pd.Categorical(
            filtered["component_name"].astype(object), categories=selected, ordered=True
        )
        sort_columns = ["component_name"]
        if "sample_id" in filtered.columns:
            sort_columns.append("sample_id")
        filtered = filtered.sort_values(sort_columns, kind="mergesort")

    if schema is not None and schema.group is not None and all(
        col in filtered.columns for col in schema.group.columns
    ):
        filtered = build_group_column(filtered, schema.group, schema.on_unknown)

    if drop_unused_categories:
        for column in filtered.select_dtypes(include="category").columns:
            if column != "component_name":
                filtered[column] = filtered[column].cat.remove_unused_categories()

    print(f"✓ Filtered tidy table: {len(tidy)} -> {len(filtered)} rows, {len(selected)} analytes")
    return filtered.reset_index(drop=True)
