"""
Normalization Module for Lipidomics Heatmap Toolkit

Per-analyte transformations of the tidy abundance column: row z-scaling
(what a heatmap's "row" scaling mode shows) and recentering on the median
of a reference group.
"""

import numpy as np
import pandas as pd
from typing import Optional

from .validation import require_columns


def scale_rows(
    tidy: pd.DataFrame,
    row_key: str = "component_name",
    value_column: str = "abundance",
    output_column: Optional[str] = None,
) -> pd.DataFrame:
    """
    Z-score each analyte's values across samples.

    Uses the population standard deviation (ddof=0): two values 1 and 3
    become -1 and +1. Rows with zero variance are set to 0; missing values
    stay missing.

    Parameters:
    -----------
    tidy : pd.DataFrame
        Tidy observation table
    row_key : str
        Column identifying heatmap rows
    value_column : str
        Column to scale
    output_column : str, optional
        Column receiving the scaled values (default: overwrite ``value_column``)

    Returns:
    --------
    pd.DataFrame : Copy of ``tidy`` with scaled values
    """
    require_columns(tidy, [row_key, value_column], "tidy table")
    output_column = output_column or value_column

    values = tidy[value_column].astype(float)
    grouped = values.groupby(tidy[row_key], observed=True, sort=False)
    means = grouped.transform("mean")
    stds = grouped.transform(lambda x: np.nanstd(x.to_numpy(dtype=float)) if x.notna().any() else np.nan)
    stds = stds.where(stds != 0, 1.0)

    result = tidy.copy()
    result[output_column] = (values - means) / stds
    return result


def recenter_to_reference(
    tidy: pd.DataFrame,
    reference_column: str = "group",
    reference_value="WT",
    row_key: str = "component_name",
    value_column: str = "abundance",
    output_column: Optional[str] = None,
) -> pd.DataFrame:
    """
    Subtract each analyte's median within a reference subgroup.

    For every ``row_key`` the median of ``value_column`` over rows where
    ``reference_column == reference_value`` is subtracted from all of that
    analyte's values. Analytes without reference observations have no
    center and all of their values become missing.

    Examples
    --------
    >>> centered = recenter_to_reference(tidy, "group", "WT control")
    """
    require_columns(tidy, [row_key, value_column, reference_column], "tidy table")
    output_column = output_column or value_column

    values = tidy[value_column].astype(float)
    is_reference = (tidy[reference_column] == reference_value).fillna(False).astype(bool)

    centers = values.where(is_reference).groupby(tidy[row_key], observed=True, sort=False).transform("median")

    n_without = tidy.loc[centers.isna(), row_key].nunique()
    if n_without:
        print(f"  {n_without} analyte(s) have no '{reference_value}' observations; their values become missing")

    result = tidy.copy()
    result[output_column] = values - centers
    return result
