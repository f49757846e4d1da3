"""
Preprocessing Module for Lipidomics Heatmap Toolkit

Joins the extracted sample, feature and abundance tables into one tidy
observation table and assigns explicit, ordered categorical domains to its
grouping columns.
"""

import warnings
import itertools
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .validation import (
    CategoryDomainError,
    require_columns,
    validate_unique_keys,
)


UNKNOWN_VALUE_POLICIES = ("raise", "missing")


@dataclass(frozen=True)
class GroupSpec:
    """Composite grouping column built from several categorical columns.

    Attributes
    ----------
    columns : tuple
        Columns whose values are concatenated (in this order)
    separator : str
        String placed between the component values
    labels : dict, optional
        Maps each raw combination (e.g. ``"WT:control"``) to its display
        label. The dict order is the display order. When omitted, the raw
        combinations of the component domains are used in product order.
    name : str
        Name of the derived column
    """

    columns: Sequence[str] = ("genotype", "condition")
    separator: str = ":"
    labels: Optional[Dict[str, str]] = None
    name: str = "group"


@dataclass(frozen=True)
class CategoricalSchema:
    """Versioned set of enumerated, ordered categorical domains.

    Attributes
    ----------
    version : str
        Identifier recorded with exported results
    domains : dict
        Maps column name to the ordered list of valid values
    group : GroupSpec, optional
        Composite grouping column to derive after the component columns
    on_unknown : str
        ``"raise"`` to fail on values outside a domain, ``"missing"`` to
        turn them into missing values with a warning

    Examples
    --------
    >>> schema = CategoricalSchema(
    ...     version="genotype-dose-1",
    ...     domains={"genotype": ["WT", "Het", "Hom"], "sex": ["F", "M"]},
    ... )
    """

    version: str
    domains: Dict[str, List] = field(default_factory=dict)
    group: Optional[GroupSpec] = None
    on_unknown: str = "raise"

    def __post_init__(self):
        if self.on_unknown not in UNKNOWN_VALUE_POLICIES:
            raise ValueError(
                f"on_unknown must be one of {UNKNOWN_VALUE_POLICIES}, got {self.on_unknown!r}"
            )
        for column, domain in self.domains.items():
            if len(set(domain)) != len(domain):
                raise ValueError(f"Domain for '{column}' contains duplicate values")

    def with_domain(self, column: str, domain: Iterable) -> "CategoricalSchema":
        """Return a copy with ``column`` set to ``domain``."""
        domains = dict(self.domains)
        domains[column] = list(domain)
        return CategoricalSchema(self.version, domains, self.group, self.on_unknown)


def numbered_sample_ids(prefix: str, numbers: Iterable[int], suffix: str = "") -> List[str]:
    """
    Spell out a numbered sample naming scheme, e.g. LA1C, LA2C, ...

    >>> numbered_sample_ids("LA", range(1, 4), "C")
    ['LA1C', 'LA2C', 'LA3C']
    """
    return [f"{prefix}{number}{suffix}" for number in numbers]


def _to_categorical(values: pd.Series, domain: List, column: str, on_unknown: str) -> pd.Categorical:
    plain = values.astype(object)
    present = plain.dropna()
    unknown = sorted(set(present[~present.isin(domain)].astype(str)))

    if unknown:
        message = (
            f"Column '{column}' has {len(unknown)} value(s) outside its enumerated domain "
            f"{list(domain)}: {unknown[:5]}{'...' if len(unknown) > 5 else ''}"
        )
        if on_unknown == "raise":
            raise CategoryDomainError(message)
        warnings.warn(message + " -- these become missing values")

    return pd.Categorical(plain, categories=list(domain), ordered=True)


def build_group_column(data: pd.DataFrame, group: GroupSpec, on_unknown: str = "raise") -> pd.DataFrame:
    """
    Derive the composite grouping column described by ``group``.

    Rows with a missing component value get a missing group. The resulting
    column is an ordered categorical holding the display labels.
    """
    require_columns(data, group.columns, "table")

    result = data.copy()
    components = result[list(group.columns)]
    incomplete = components.isna().any(axis=1)

    raw = pd.Series(
        [group.separator.join(row) for row in components.astype(str).itertuples(index=False, name=None)],
        index=result.index,
        dtype=object,
    )
    raw = raw.where(~incomplete)

    if group.labels is not None:
        display = raw.map(lambda value: group.labels.get(value, value) if pd.notna(value) else value)
        domain = list(group.labels.values())
    else:
        domains = []
        for column in group.columns:
            if isinstance(result[column].dtype, pd.CategoricalDtype):
                domains.append([str(v) for v in result[column].cat.categories])
            else:
                domains.append([str(v) for v in pd.unique(result[column].dropna())])
        domain = [group.separator.join(combo) for combo in itertools.product(*domains)]
        display = raw

    result[group.name] = _to_categorical(display, domain, group.name, on_unknown)
    return result


def apply_categorical_schema(data: pd.DataFrame, schema: CategoricalSchema) -> pd.DataFrame:
    """
    Cast the schema's columns to ordered categoricals with enumerated domains.

    Columns named in the schema but absent from ``data`` are skipped. The
    composite group column is rebuilt when all of its components are present.
    """
    result = data.copy()

    for column, domain in schema.domains.items():
        if column in result.columns:
            result[column] = _to_categorical(result[column], domain, column, schema.on_unknown)

    if schema.group is not None and all(col in result.columns for col in schema.group.columns):
        result = build_group_column(result, schema.group, schema.on_unknown)

    return result


def join_tidy_table(
    features: pd.DataFrame,
    abundances: pd.DataFrame,
    samples: pd.DataFrame,
    schema: Optional[CategoricalSchema] = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Join feature annotations, abundances and sample annotations.

    Features are left-joined to abundances on ``component_name``, and the
    result is left-joined to samples on ``sample_id``. Unmatched rows are
    kept with missing values; no row of the feature/abundance join is lost.

    Parameters:
    -----------
    features : pd.DataFrame
        FeatureAnnotation table (unique ``component_name``)
    abundances : pd.DataFrame
        AbundanceMeasurement table in long form
    samples : pd.DataFrame
        SampleAnnotation table (unique ``sample_id``)
    schema : CategoricalSchema, optional
        Categorical domains applied after joining
    verbose : bool, default True
        Whether to print a join summary

    Returns:
    --------
    pd.DataFrame : TidyObservationTable
    """
    require_columns(features, ["component_name"], "feature annotations")
    require_columns(abundances, ["component_name", "sample_id", "abundance"], "abundances")
    require_columns(samples, ["sample_id"], "sample annotations")
    validate_unique_keys(features, "component_name", "feature annotations")
    validate_unique_keys(samples, "sample_id", "sample annotations")

    measured = features.merge(abundances, on="component_name", how="left", validate="one_to_many")
    tidy = measured.merge(
        samples, on="sample_id", how="left", validate="many_to_one", suffixes=("", "_sample")
    )

    if verbose:
        unmeasured = measured["sample_id"].isna().sum()
        unannotated = (~tidy["sample_id"].isin(samples["sample_id"]) & tidy["sample_id"].notna()).sum()
        print("=== JOINING TIDY TABLE ===")
        print(f"✓ {len(features)} features x {abundances['sample_id'].nunique()} samples -> {len(tidy)} rows")
        if unmeasured:
            print(f"  {unmeasured} feature(s) have no abundance measurements")
        if unannotated:
            print(f"  {unannotated} row(s) reference samples without annotation")

    if schema is not None:
        if verbose:
            print(f"Applying categorical schema '{schema.version}'")
        tidy = apply_categorical_schema(tidy, schema)

    return tidy
