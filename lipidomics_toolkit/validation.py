"""
Validation Module for Lipidomics Heatmap Toolkit

Exception types raised by the pipeline, key and domain checks, and the
classification of heatmap annotation columns. All errors are fatal: the
pipeline stops at the first violated precondition.
"""

import os
import pandas as pd
from dataclasses import dataclass
from typing import Iterable, List, Union


class MissingFileError(FileNotFoundError):
    """Raised when a fetched or local input file does not exist."""
    def __init__(self, message):
        super().__init__(message)


class FetchError(Exception):
    """Raised when a remote workbook cannot be retrieved."""
    def __init__(self, message):
        super().__init__(message)


class MalformedKeyError(ValueError):
    """Raised when a key cannot be parsed or does not exist where required."""
    def __init__(self, message):
        super().__init__(message)


class CategoryDomainError(ValueError):
    """Raised when a categorical column holds values outside its enumerated domain."""
    def __init__(self, message):
        super().__init__(message)


class EmptyResultError(Exception):
    """Raised when a filter leaves no analytes to visualize."""
    def __init__(self, message):
        super().__init__(message)


def _preview(values: List, limit: int = 5) -> str:
    shown = ", ".join(repr(v) for v in values[:limit])
    return f"[{shown}{', ...' if len(values) > limit else ''}]"


def require_file(path: str, file_type: str = "input") -> str:
    """Return ``path`` unchanged, or raise MissingFileError if it is not a file."""
    if path is None or not os.path.isfile(path):
        raise MissingFileError(f"{file_type.title()} file not found: {path}")
    return path


def require_columns(data: pd.DataFrame, columns: Iterable[str], table_name: str = "table") -> None:
    """Raise MalformedKeyError if any of ``columns`` is absent from ``data``."""
    missing = [col for col in columns if col not in data.columns]
    if missing:
        raise MalformedKeyError(
            f"{table_name} is missing required column(s) {missing}; "
            f"available columns: {list(data.columns)}"
        )


def validate_key_coverage(
    keys: Iterable,
    domain: Iterable,
    key_name: str = "component_name",
    source_name: str = "statistics table",
    target_name: str = "observation table",
) -> None:
    """
    Assert that every key exists in the target key domain.

    Parameters:
    -----------
    keys : iterable
        Keys that must be present (e.g. the statistics table key column)
    domain : iterable
        Valid keys (e.g. the observation table key column or its categories)
    key_name : str
        Column name used in the error message

    Raises:
    -------
    MalformedKeyError
        If any key is missing from the domain
    """
    domain_set = set(domain)
    missing = [key for key in pd.unique(pd.Series(list(keys), dtype=object)) if key not in domain_set]
    if missing:
        raise MalformedKeyError(
            f"{len(missing)} {key_name} value(s) in the {source_name} are absent from the "
            f"{target_name}: {_preview(missing)}"
        )


def validate_unique_keys(data: pd.DataFrame, key_columns: Union[str, List[str]], table_name: str = "table") -> None:
    """Raise MalformedKeyError if ``key_columns`` do not uniquely identify rows."""
    if isinstance(key_columns, str):
        key_columns = [key_columns]
    duplicated = data.duplicated(subset=key_columns, keep=False)
    if duplicated.any():
        dupes = data.loc[duplicated, key_columns].drop_duplicates()
        raise MalformedKeyError(
            f"{table_name} has {len(dupes)} duplicated key(s) on {key_columns}: "
            f"{_preview(dupes.to_records(index=False).tolist())}"
        )


# =============================================================================
# ANNOTATION CLASSIFICATION
# =============================================================================

@dataclass(frozen=True)
class RowAnnotation:
    """Annotation column with one value per heatmap row."""
    column: str


@dataclass(frozen=True)
class ColumnAnnotation:
    """Annotation column with one value per heatmap column."""
    column: str


@dataclass(frozen=True)
class InvalidAnnotation:
    """Annotation column that cannot be drawn along either axis."""
    column: str
    reason: str


AnnotationKind = Union[RowAnnotation, ColumnAnnotation, InvalidAnnotation]


def _maps_uniquely(data: pd.DataFrame, key: str, column: str) -> bool:
    pairs = data[[key, column]].drop_duplicates()
    return not pairs[key].duplicated().any()


def classify_annotation(
    tidy: pd.DataFrame,
    column: str,
    row_key: str = "component_name",
    column_key: str = "sample_id",
) -> AnnotationKind:
    """
    Decide whether ``column`` annotates heatmap rows or heatmap columns.

    A row annotation takes exactly one value per ``row_key``; a column
    annotation takes exactly one value per ``column_key``. A column that
    satisfies both (or neither) cannot be placed and is reported as invalid.
    """
    if column not in tidy.columns:
        return InvalidAnnotation(column, f"column '{column}' not found in table")
    if column in (row_key, column_key):
        return InvalidAnnotation(column, f"column '{column}' is a heatmap axis key")

    per_row = _maps_uniquely(tidy, row_key, column)
    per_column = _maps_uniquely(tidy, column_key, column)

    if per_row and per_column:
        return InvalidAnnotation(
            column, f"'{column}' is constant per {row_key} and per {column_key}; axis is ambiguous"
        )
    if per_row:
        return RowAnnotation(column)
    if per_column:
        return ColumnAnnotation(column)
    return InvalidAnnotation(
        column, f"'{column}' takes several values for the same {row_key} and {column_key}"
    )
