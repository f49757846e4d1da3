"""
Visualization Module for Lipidomics Heatmap Toolkit

Turns a tidy observation table plus a HeatmapConfig into an annotated
seaborn clustermap. Clustering, layout and drawing are left to seaborn and
scipy; this module pivots the table, resolves annotation axes and builds the
colour strips and symbol overlays.
"""

import warnings
import numpy as np
import pandas as pd
import matplotlib
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib.colors import ListedColormap, Normalize, to_hex
from scipy.cluster.hierarchy import leaves_list, linkage
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from .normalization import scale_rows
from .validation import (
    ColumnAnnotation,
    InvalidAnnotation,
    RowAnnotation,
    classify_annotation,
    require_columns,
    validate_unique_keys,
)


MISSING_COLOR = "#d9d9d9"


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class TileAnnotation:
    """Categorical colour strip along the axis the column belongs to.

    seaborn draws every strip with one thickness, so the largest ``size``
    among the annotations is used for all of them.
    """
    column: str
    palette: Union[str, Dict[str, str], None] = None
    size: float = 0.03


@dataclass
class PointAnnotation:
    """Numeric annotation drawn as a continuous colour strip, sized like TileAnnotation."""
    column: str
    cmap: str = "viridis"
    size: float = 0.03


@dataclass
class SymbolOverlay:
    """Symbol drawn on every heatmap cell whose observation satisfies ``predicate``.

    ``predicate`` receives the tidy table and returns a boolean Series
    aligned to it.
    """
    predicate: Callable[[pd.DataFrame], pd.Series]
    symbol: str = "*"


@dataclass
class HeatmapConfig:
    """Configuration handed to the heatmap renderer.

    Attributes
    ----------
    rows, columns, values : str
        Row-key, column-key and value columns of the tidy table
    scale : str
        ``"none"`` or ``"row"`` (z-score each row)
    cluster_rows, cluster_columns : bool
        Whether to cluster each axis; unclustered axes follow the
        categorical order of their key column
    clustering_method_rows, clustering_method_columns : str
        scipy linkage methods
    clustering_distance_rows, clustering_distance_columns : str
        scipy distance metrics
    cmap : str or callable
        Colormap name, or a function mapping a value to a colour
    column_split : str, optional
        Column-level annotation that splits columns into ordered panels
    annotations : list
        TileAnnotation, PointAnnotation and SymbolOverlay directives
    """

    rows: str = "component_name"
    columns: str = "sample_id"
    values: str = "abundance"
    scale: str = "none"
    cluster_rows: bool = True
    cluster_columns: bool = True
    clustering_method_rows: str = "average"
    clustering_method_columns: str = "average"
    clustering_distance_rows: str = "euclidean"
    clustering_distance_columns: str = "euclidean"
    cmap: Union[str, Callable] = "RdBu_r"
    center: Optional[float] = None
    vmin: Optional[float] = None
    vmax: Optional[float] = None
    column_split: Optional[str] = None
    annotations: List = field(default_factory=list)
    show_row_names: bool = True
    figsize: Tuple[int, int] = (10, 10)
    title: Optional[str] = None

    def validate(self):
        if self.scale not in ("none", "row"):
            raise ValueError(f"scale must be 'none' or 'row', got {self.scale!r}")
        for annotation in self.annotations:
            if not isinstance(annotation, (TileAnnotation, PointAnnotation, SymbolOverlay)):
                raise ValueError(f"Unsupported annotation directive: {annotation!r}")
        return True


# =============================================================================
# MATRIX PREPARATION
# =============================================================================

def _axis_order(values: pd.Series) -> List:
    """Categorical order of the observed values, or order of first appearance."""
    present = values.dropna()
    if isinstance(values.dtype, pd.CategoricalDtype):
        observed = set(present.astype(object))
        return [category for category in values.cat.categories if category in observed]
    return list(pd.unique(present.astype(object)))


def _column_groups(tidy: pd.DataFrame, config: HeatmapConfig) -> pd.Series:
    kind = classify_annotation(tidy, config.column_split, config.rows, config.columns)
    if not isinstance(kind, ColumnAnnotation):
        raise ValueError(f"column_split '{config.column_split}' is not a column annotation: {kind}")
    pairs = tidy[[config.columns, config.column_split]].dropna(subset=[config.columns])
    pairs = pairs.drop_duplicates(subset=config.columns)
    return pd.Series(pairs[config.column_split].to_numpy(), index=pairs[config.columns].astype(object))


def tidy_to_matrix(tidy: pd.DataFrame, config: Optional[HeatmapConfig] = None) -> pd.DataFrame:
    """
    Pivot the tidy table to a rows x columns matrix.

    Axes follow the categorical order of the key columns (first appearance
    for plain columns); with ``column_split`` the columns are grouped by the
    split's order. Row scaling is applied when ``config.scale == "row"``.
    """
    if config is None:
        config = HeatmapConfig()
    config.validate()
    require_columns(tidy, [config.rows, config.columns, config.values], "tidy table")

    data = tidy.dropna(subset=[config.rows, config.columns])
    validate_unique_keys(data, [config.rows, config.columns], "tidy table")

    if config.scale == "row":
        data = scale_rows(data, config.rows, config.values)

    row_order = _axis_order(data[config.rows])
    column_order = _axis_order(data[config.columns])

    if config.column_split:
        groups = _column_groups(data, config)
        split_order = _axis_order(data[config.column_split])
        rank = {group: i for i, group in enumerate(split_order)}
        column_order = sorted(
            column_order,
            key=lambda column: rank.get(groups.get(column), len(rank)),
        )

    flat = pd.DataFrame({
        "row": data[config.rows].astype(object).to_numpy(),
        "column": data[config.columns].astype(object).to_numpy(),
        "value": data[config.values].astype(float).to_numpy(),
    })
    matrix = flat.pivot(index="row", columns="column", values="value")
    matrix = matrix.reindex(index=row_order, columns=column_order)
    matrix.index.name = config.rows
    matrix.columns.name = config.columns
    return matrix


# =============================================================================
# ANNOTATIONS
# =============================================================================

def _resolve_annotation_axes(tidy: pd.DataFrame, config: HeatmapConfig) -> Dict[str, object]:
    kinds = {}
    for annotation in config.annotations:
        if isinstance(annotation, SymbolOverlay):
            continue
        kind = classify_annotation(tidy, annotation.column, config.rows, config.columns)
        if isinstance(kind, InvalidAnnotation):
            raise ValueError(f"Cannot place annotation '{annotation.column}': {kind.reason}")
        kinds[annotation.column] = kind
    return kinds


def _annotation_values(tidy: pd.DataFrame, column: str, key: str, axis_labels: pd.Index) -> pd.Series:
    pairs = tidy[[key, column]].dropna(subset=[key]).drop_duplicates(subset=key)
    mapping = pd.Series(pairs[column].to_numpy(), index=pairs[key].astype(object))
    return mapping.reindex(list(axis_labels))


def _tile_colors(values: pd.Series, source: pd.Series, palette) -> pd.Series:
    levels = _axis_order(source)
    if isinstance(palette, dict):
        lut = dict(palette)
    else:
        lut = dict(zip(levels, sns.color_palette(palette or "Set2", len(levels))))
    lut = {level: to_hex(color) for level, color in lut.items()}
    return values.map(lambda value: lut.get(value, MISSING_COLOR) if pd.notna(value) else MISSING_COLOR)


def _point_colors(values: pd.Series, cmap_name: str) -> pd.Series:
    numeric = pd.to_numeric(values, errors="coerce")
    cmap = matplotlib.colormaps[cmap_name]
    if numeric.notna().any():
        norm = Normalize(vmin=numeric.min(), vmax=numeric.max())
    else:
        norm = Normalize(vmin=0, vmax=1)
    return numeric.map(lambda value: to_hex(cmap(norm(value))) if pd.notna(value) else MISSING_COLOR)


def build_annotation_colors(
    tidy: pd.DataFrame, matrix: pd.DataFrame, config: HeatmapConfig
) -> Tuple[Optional[pd.DataFrame], Optional[pd.DataFrame]]:
    """Return (row_colors, col_colors) frames for seaborn, or None per axis."""
    kinds = _resolve_annotation_axes(tidy, config)
    row_strips = {}
    column_strips = {}

    for annotation in config.annotations:
        if isinstance(annotation, SymbolOverlay):
            continue
        kind = kinds[annotation.column]
        if isinstance(kind, RowAnnotation):
            key, labels, target = config.rows, matrix.index, row_strips
        else:
            key, labels, target = config.columns, matrix.columns, column_strips

        values = _annotation_values(tidy, annotation.column, key, labels)
        if isinstance(annotation, TileAnnotation):
            colors = _tile_colors(values, tidy[annotation.column], annotation.palette)
        else:
            colors = _point_colors(values, annotation.cmap)
        colors.index = labels
        target[annotation.column] = colors

    row_colors = pd.DataFrame(row_strips, index=matrix.index) if row_strips else None
    col_colors = pd.DataFrame(column_strips, index=matrix.columns) if column_strips else None
    return row_colors, col_colors


def build_symbol_overlay(tidy: pd.DataFrame, matrix: pd.DataFrame, config: HeatmapConfig) -> Optional[pd.DataFrame]:
    """Matrix of overlay symbols matching ``matrix``, or None without overlays."""
    overlays = [a for a in config.annotations if isinstance(a, SymbolOverlay)]
    if not overlays:
        return None

    annot = pd.DataFrame("", index=matrix.index, columns=matrix.columns)
    for overlay in overlays:
        mask = overlay.predicate(tidy).fillna(False).astype(bool)
        hits = tidy.loc[mask, [config.rows, config.columns]].dropna()
        for row_label, column_label in hits.astype(object).itertuples(index=False, name=None):
            if row_label in annot.index and column_label in annot.columns:
                annot.loc[row_label, column_label] += overlay.symbol
    return annot


# =============================================================================
# RENDERING
# =============================================================================

def _resolve_cmap(cmap, matrix: pd.DataFrame, config: HeatmapConfig):
    if not callable(cmap):
        return cmap
    low = config.vmin if config.vmin is not None else np.nanmin(matrix.to_numpy())
    high = config.vmax if config.vmax is not None else np.nanmax(matrix.to_numpy())
    return ListedColormap([cmap(value) for value in np.linspace(low, high, 256)])


def _linkage(values: np.ndarray, method: str, metric: str, axis_name: str):
    if np.isnan(values).any():
        raise ValueError(
            f"Cannot cluster {axis_name} with missing values; disable clustering or drop missing observations"
        )
    return linkage(values, method=method, metric=metric)


def _split_column_order(matrix: pd.DataFrame, tidy: pd.DataFrame, config: HeatmapConfig) -> List:
    """Cluster columns within each split panel, keeping panel order."""
    groups = _column_groups(tidy, config)
    ordered = []
    for group in _axis_order(tidy[config.column_split]):
        members = [column for column in matrix.columns if groups.get(column) == group]
        if config.cluster_columns and len(members) > 2:
            block = matrix[members].to_numpy().T
            leaves = leaves_list(
                _linkage(block, config.clustering_method_columns, config.clustering_distance_columns, "columns")
            )
            members = [members[i] for i in leaves]
        ordered.extend(members)
    ordered.extend(column for column in matrix.columns if column not in ordered)
    return ordered


def plot_tidy_heatmap(tidy: pd.DataFrame, config: Optional[HeatmapConfig] = None, show: bool = True):
    """
    Draw an annotated heatmap of a tidy table.

    Parameters:
    -----------
    tidy : pd.DataFrame
        Tidy observation table
    config : HeatmapConfig, optional
        Heatmap configuration
    show : bool, default True
        Whether to call ``plt.show()``

    Returns:
    --------
    seaborn.matrix.ClusterGrid
    """
    if config is None:
        config = HeatmapConfig()

    matrix = tidy_to_matrix(tidy, config)
    if matrix.empty:
        raise ValueError("Nothing to plot: the heatmap matrix is empty")

    row_colors, col_colors = build_annotation_colors(tidy, matrix, config)
    annot = build_symbol_overlay(tidy, matrix, config)

    cluster_columns = config.cluster_columns
    if config.column_split:
        matrix = matrix[_split_column_order(matrix, tidy, config)]
        if col_colors is not None:
            col_colors = col_colors.reindex(matrix.columns)
        if annot is not None:
            annot = annot[matrix.columns]
        cluster_columns = False

    row_linkage = None
    if config.cluster_rows and len(matrix.index) <= 2:
        print(f"  Row clustering skipped: only {len(matrix.index)} row(s)")
    elif config.cluster_rows:
        row_linkage = _linkage(
            matrix.to_numpy(), config.clustering_method_rows, config.clustering_distance_rows, "rows"
        )
    col_linkage = None
    if cluster_columns and len(matrix.columns) <= 2:
        print(f"  Column clustering skipped: only {len(matrix.columns)} column(s)")
    elif cluster_columns:
        col_linkage = _linkage(
            matrix.to_numpy().T, config.clustering_method_columns, config.clustering_distance_columns, "columns"
        )

    sizes = [a.size for a in config.annotations if isinstance(a, (TileAnnotation, PointAnnotation))]
    if len(set(sizes)) > 1:
        print(f"  Annotation strips share one size: using {max(sizes)} (requested {sorted(set(sizes))})")

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")

        g = sns.clustermap(
            matrix,
            row_cluster=row_linkage is not None,
            col_cluster=col_linkage is not None,
            row_linkage=row_linkage,
            col_linkage=col_linkage,
            cmap=_resolve_cmap(config.cmap, matrix, config),
            center=config.center,
            vmin=config.vmin,
            vmax=config.vmax,
            row_colors=row_colors,
            col_colors=col_colors,
            colors_ratio=max(sizes) if sizes else 0.03,
            annot=annot.to_numpy() if annot is not None else None,
            fmt="",
            mask=matrix.isna(),
            yticklabels=config.show_row_names,
            figsize=config.figsize,
            cbar_kws={"label": "Row z-score" if config.scale == "row" else config.values},
        )

        if config.column_split:
            groups = _column_groups(tidy, config)
            labels = [groups.get(column) for column in matrix.columns]
            for position in range(1, len(labels)):
                if labels[position] != labels[position - 1]:
                    g.ax_heatmap.axvline(x=position, color="white", linewidth=2)

        g.ax_heatmap.set_xlabel(config.columns)
        g.ax_heatmap.set_ylabel(config.rows)
        if config.title:
            g.figure.suptitle(config.title, fontsize=14, y=1.02)

    if show:
        plt.show()

    print(f"Heatmap: {matrix.shape[0]} rows x {matrix.shape[1]} columns (scale={config.scale})")
    return g
