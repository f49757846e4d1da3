"""
Data Import Module for Lipidomics Heatmap Toolkit

Functions for retrieving published lipidomics workbooks, extracting the
sample annotation, feature annotation and abundance sheets into tidy tables,
and reading the pre-wrangled CSV mirrors.
"""

import pandas as pd
import re
import os
import tempfile
import requests
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence

from .preprocessing import apply_categorical_schema
from .validation import (
    FetchError,
    MalformedKeyError,
    require_columns,
    require_file,
)


SAMPLE_ANNOTATION_COLUMNS = [
    "sample_id",
    "description",
    "cell_number",
    "genotype",
    "condition",
    "sex",
    "batch",
]

# Instrument transition columns and the mass-to-charge column
EXCLUDED_FEATURE_COLUMN_PATTERNS = ("Q1", "Q3", "m/z")

INTERNAL_STANDARD_COLUMN = "is_internal_standard"

_TRUE_STRINGS = {"true", "t", "yes", "y", "1"}


# =============================================================================
# SAMPLE KEY PARSING
# =============================================================================

class SampleKeyRule:
    """
    Declared rule for extracting ``sample_id`` from a raw sample label.

    The rule is a regular expression with a named group ``sample_id``. Labels
    are validated once at the ingestion boundary; any label that does not
    match raises MalformedKeyError listing every offending label.

    Example:
    --------
    >>> rule = SampleKeyRule(r"^[^_]*_(?P<sample_id>[^_]+)", name="second segment")
    >>> rule.parse(["plate1_LA1C_run3"])
    ['LA1C']
    """

    def __init__(self, pattern: str, name: Optional[str] = None):
        self.regex = re.compile(pattern)
        if "sample_id" not in self.regex.groupindex:
            raise ValueError(f"Sample key pattern must define a 'sample_id' group: {pattern}")
        self.pattern = pattern
        self.name = name or pattern

    def __repr__(self):
        return f"SampleKeyRule({self.pattern!r}, name={self.name!r})"

    def parse(self, labels: Sequence) -> List[str]:
        parsed = []
        bad_labels = []
        for label in labels:
            match = self.regex.match(str(label))
            if match is None or not match.group("sample_id"):
                bad_labels.append(label)
            else:
                parsed.append(match.group("sample_id"))
        if bad_labels:
            raise MalformedKeyError(
                f"{len(bad_labels)} sample label(s) do not follow the '{self.name}' key format: "
                f"{bad_labels[:5]}{'...' if len(bad_labels) > 5 else ''}"
            )
        return parsed

    def mapping(self, labels: Sequence) -> Dict[str, str]:
        """Map each distinct label to its parsed ``sample_id``."""
        unique_labels = list(dict.fromkeys(labels))
        return dict(zip(unique_labels, self.parse(unique_labels)))


SECOND_SEGMENT_RULE = SampleKeyRule(
    r"^[^_]*_(?P<sample_id>[^_]+)", name="second underscore-delimited segment"
)

IDENTITY_RULE = SampleKeyRule(r"^(?P<sample_id>.+)$", name="label as-is")


# =============================================================================
# REMOTE FETCHER
# =============================================================================

def fetch_workbook(url: str, suffix: str = ".xlsx", timeout: Optional[float] = None,
                   chunk_size: int = 8192) -> str:
    """
    Download a remote workbook to a new temporary file.

    Every call writes to a freshly created, uniquely named file. The caller
    owns the file and must delete it (see ``fetched_workbook``). No retry is
    attempted and, unless ``timeout`` is given, the request blocks.

    Parameters:
    -----------
    url : str
        Location of the workbook or pre-wrangled table
    suffix : str
        File suffix for the temporary file (".xlsx", ".csv")
    timeout : float, optional
        Request timeout in seconds

    Returns:
    --------
    str : Path to the downloaded file

    Raises:
    -------
    FetchError
        On any network or HTTP failure
    """
    print(f"Fetching {url}")

    fd, path = tempfile.mkstemp(prefix="lipidomics_", suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as handle:
            response = requests.get(url, stream=True, timeout=timeout)
            response.raise_for_status()
            for chunk in response.iter_content(chunk_size=chunk_size):
                if chunk:
                    handle.write(chunk)
    except requests.exceptions.RequestException as e:
        os.remove(path)
        raise FetchError(f"Could not fetch {url}: {e}") from e
    except BaseException:
        os.remove(path)
        raise

    print(f"✓ Downloaded {os.path.getsize(path) / 1024:.1f} KB to {path}")
    return path


@contextmanager
def fetched_workbook(url: str, suffix: str = ".xlsx", timeout: Optional[float] = None) -> Iterator[str]:
    """Fetch ``url`` and delete the temporary copy when the block exits."""
    path = fetch_workbook(url, suffix=suffix, timeout=timeout)
    try:
        yield path
    finally:
        if os.path.exists(path):
            os.remove(path)


# =============================================================================
# TABLE EXTRACTORS
# =============================================================================

def _read_sheet(path: str, sheet_name: str) -> pd.DataFrame:
    require_file(path, "workbook")
    try:
        return pd.read_excel(path, sheet_name=sheet_name, engine="openpyxl")
    except ValueError as e:
        raise ValueError(f"Error reading sheet '{sheet_name}' from {path}: {e}") from e


def _as_flag(values: pd.Series) -> pd.Series:
    """Interpret a spreadsheet flag column (bool, 0/1 or TRUE/FALSE text) as booleans."""
    if values.dtype == bool:
        return values
    if pd.api.types.is_numeric_dtype(values):
        return values.fillna(0).astype(float) != 0
    return values.astype(str).str.strip().str.lower().isin(_TRUE_STRINGS)


def extract_sample_annotations(
    workbook_path: str,
    sheet_name: str = "sample_annotations",
    key_rule: SampleKeyRule = IDENTITY_RULE,
    columns: Optional[List[str]] = None,
    label_column: str = "sample_id",
) -> pd.DataFrame:
    """
    Extract one row per sample from the sample annotation sheet.

    Parameters:
    -----------
    workbook_path : str
        Local path to the workbook
    sheet_name : str
        Sheet holding the sample annotations
    key_rule : SampleKeyRule
        Rule extracting ``sample_id`` from the raw label
    columns : list, optional
        Attributes to keep (default: SAMPLE_ANNOTATION_COLUMNS). Attributes
        absent from the sheet are skipped; ``sample_id`` and ``genotype``
        are required.
    label_column : str
        Column holding the raw (possibly composite) sample label

    Returns:
    --------
    pd.DataFrame : SampleAnnotation table
    """
    if columns is None:
        columns = SAMPLE_ANNOTATION_COLUMNS

    raw = _read_sheet(workbook_path, sheet_name)
    require_columns(raw, [label_column, "genotype"], f"sheet '{sheet_name}'")

    samples = raw.copy()
    samples["sample_id"] = key_rule.parse(samples[label_column].tolist())

    kept = [col for col in columns if col in samples.columns]
    samples = samples[kept].reset_index(drop=True)

    if "cell_number" in samples.columns:
        samples["cell_number"] = pd.to_numeric(samples["cell_number"], errors="coerce")

    return samples


def extract_feature_annotations(
    workbook_path: str,
    sheet_name: str = "feature_annotations",
    excluded_column_patterns: Sequence[str] = EXCLUDED_FEATURE_COLUMN_PATTERNS,
    extra_drop_columns: Sequence[str] = (),
) -> pd.DataFrame:
    """
    Extract one row per analyte from the feature annotation sheet.

    Columns whose names contain any excluded pattern are removed, rows are
    de-duplicated on ``component_name`` (first occurrence wins), internal
    standards are dropped, and the flag column plus any ``extra_drop_columns``
    are removed from the result.
    """
    raw = _read_sheet(workbook_path, sheet_name)
    require_columns(raw, ["component_name", INTERNAL_STANDARD_COLUMN], f"sheet '{sheet_name}'")

    excluded = [
        col for col in raw.columns
        if col != "component_name" and any(pattern in str(col) for pattern in excluded_column_patterns)
    ]
    features = raw.drop(columns=excluded)
    features = features.drop_duplicates(subset="component_name", keep="first")

    is_standard = _as_flag(features[INTERNAL_STANDARD_COLUMN])
    features = features.loc[~is_standard]

    to_drop = [INTERNAL_STANDARD_COLUMN] + [col for col in extra_drop_columns if col in features.columns]
    features = features.drop(columns=to_drop).reset_index(drop=True)

    return features


def extract_abundances(
    workbook_path: str,
    sheet_name: str = "peak_area_ratio_to_is",
    sample_column_pattern: str = r"^[^_]+_",
    key_rule: SampleKeyRule = IDENTITY_RULE,
) -> pd.DataFrame:
    """
    Extract abundances in long form: one row per (component_name, sample_id).

    Only columns whose names match ``sample_column_pattern`` at the start are
    treated as samples (``component_name`` never is). The same ``key_rule``
    as the sample annotations maps column labels to ``sample_id`` so keys
    agree across tables.
    """
    raw = _read_sheet(workbook_path, sheet_name)
    require_columns(raw, ["component_name"], f"sheet '{sheet_name}'")

    prefix = re.compile(sample_column_pattern)
    sample_columns = [col for col in raw.columns if col != "component_name" and prefix.match(str(col))]
    if not sample_columns:
        raise MalformedKeyError(
            f"No sample columns in sheet '{sheet_name}' match pattern {sample_column_pattern!r}"
        )

    label_map = key_rule.mapping([str(col) for col in sample_columns])

    long_data = raw[["component_name"] + sample_columns].melt(
        id_vars="component_name",
        value_vars=sample_columns,
        var_name="sample_id",
        value_name="abundance",
    )
    long_data["sample_id"] = long_data["sample_id"].astype(str).map(label_map)
    long_data["abundance"] = pd.to_numeric(long_data["abundance"], errors="coerce").astype(float)

    return long_data.reset_index(drop=True)


def extract_differential_statistics(
    workbook_path: str,
    sheet_name: str,
    key_column: str = "component_name",
    logfc_column: str = "logFC",
    p_value_column: str = "adj.P.Val",
) -> pd.DataFrame:
    """
    Extract the DifferentialStatistic table for one comparison sheet.

    The key column is renamed to ``component_name``; all other columns are
    kept as published.
    """
    if not sheet_name:
        raise ValueError("A comparison sheet name is required to extract differential statistics")
    raw = _read_sheet(workbook_path, sheet_name)
    require_columns(raw, [key_column, logfc_column, p_value_column], f"sheet '{sheet_name}'")

    stats = raw.rename(columns={key_column: "component_name"})
    stats[logfc_column] = pd.to_numeric(stats[logfc_column], errors="coerce")
    stats[p_value_column] = pd.to_numeric(stats[p_value_column], errors="coerce")

    return stats.reset_index(drop=True)


# =============================================================================
# PRE-WRANGLED CSV MIRRORS
# =============================================================================

def load_tidy_csv(csv_path: str, schema=None) -> pd.DataFrame:
    """
    Load a pre-wrangled tidy table, bypassing extraction.

    CSV files carry no categorical metadata, so ``schema`` (a
    CategoricalSchema) is reapplied when given.
    """
    require_file(csv_path, "tidy table")
    try:
        tidy = pd.read_csv(csv_path, dtype={"component_name": str, "sample_id": str})
    except Exception as e:
        raise ValueError(f"Error loading tidy table file: {e}")
    print(f"✓ Loaded tidy table: {tidy.shape}")

    require_columns(tidy, ["component_name", "sample_id", "abundance"], "tidy table")

    if schema is not None:
        tidy = apply_categorical_schema(tidy, schema)
    return tidy


def load_statistics_csv(csv_path: str, logfc_column: str = "logFC",
                        p_value_column: str = "adj.P.Val") -> pd.DataFrame:
    """Load a pre-wrangled DifferentialStatistic table."""
    require_file(csv_path, "statistics")
    try:
        stats = pd.read_csv(csv_path, dtype={"component_name": str})
    except Exception as e:
        raise ValueError(f"Error loading statistics file: {e}")
    print(f"✓ Loaded statistics: {stats.shape}")

    require_columns(stats, ["component_name", logfc_column, p_value_column], "statistics table")
    return stats
