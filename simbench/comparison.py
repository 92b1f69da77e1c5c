"""Align per-version statistics into per-property comparison tables."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass

import numpy as np

from simbench.core.cells import compute_cell_stats
from simbench.core.errors import VersionSetError
from simbench.core.features import compute_feature_stats
from simbench.core.matrix import DatasetVersionSet
from simbench.core.properties import PropertySpec, resolve_properties
from simbench.core.types import (
    CellStatsTable,
    ComparisonConfig,
    ComparisonTable,
    FeatureStatsTable,
    JointComparisonTable,
)
from simbench.stats.gof import compute_gof_stats

PropertyTable = ComparisonTable | JointComparisonTable


@dataclass(frozen=True, eq=False)
class VersionComparison(Mapping[str, PropertyTable]):
    """Property name -> comparison table, plus the per-version statistics behind them."""

    tables: Mapping[str, PropertyTable]
    feature_stats: Mapping[str, FeatureStatsTable]
    cell_stats: Mapping[str, CellStatsTable]
    reference: str
    dataset: str | None = None

    def __getitem__(self, key: str) -> PropertyTable:
        return self.tables[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(self.feature_stats)


def _stat_source(
    spec: PropertySpec,
    label: str,
    feature_stats: Mapping[str, FeatureStatsTable],
    cell_stats: Mapping[str, CellStatsTable],
):
    if spec.level == "gene":
        return feature_stats[label]
    return cell_stats[label]


def _sorted_finite(values: np.ndarray) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    arr = np.sort(arr[np.isfinite(arr)], kind="mergesort")
    arr.setflags(write=False)
    return arr


def _ordered_pairs(x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    keep = np.isfinite(x) & np.isfinite(y)
    xs, ys = np.asarray(x)[keep], np.asarray(y)[keep]
    order = np.argsort(xs, kind="mergesort")
    xs, ys = xs[order].copy(), ys[order].copy()
    xs.setflags(write=False)
    ys.setflags(write=False)
    return xs, ys


def assemble_comparison(
    feature_stats: Mapping[str, FeatureStatsTable],
    cell_stats: Mapping[str, CellStatsTable],
    reference: str,
    properties: Iterable[str] | None = None,
    dataset: str | None = None,
) -> VersionComparison:
    """Build comparison tables from precomputed per-version statistics.

    Versions are never joined on identifiers: each one contributes its own
    vector, so genes or cells missing from a version are tolerated.
    """
    labels = tuple(feature_stats)
    if tuple(cell_stats) != labels:
        raise VersionSetError(
            f"feature and cell statistics cover different versions: {list(labels)} vs {list(cell_stats)}."
        )
    if reference not in feature_stats:
        raise VersionSetError(f"Reference version '{reference}' missing from statistics.")

    tables: dict[str, PropertyTable] = {}
    for spec in resolve_properties(properties):
        if spec.is_joint:
            xs: dict[str, np.ndarray] = {}
            ys: dict[str, np.ndarray] = {}
            for label in labels:
                src = _stat_source(spec, label, feature_stats, cell_stats)
                xs[label], ys[label] = _ordered_pairs(src.column(spec.x_field), src.column(spec.y_field))
            tables[spec.name] = JointComparisonTable(
                property=spec.name,
                level=spec.level,
                reference=reference,
                x_name=spec.x_field,
                y_name=str(spec.y_field),
                x=xs,
                y=ys,
            )
        else:
            values = {
                label: _sorted_finite(_stat_source(spec, label, feature_stats, cell_stats).column(spec.x_field))
                for label in labels
            }
            tables[spec.name] = ComparisonTable(
                property=spec.name,
                level=spec.level,
                reference=reference,
                values=values,
            )
    return VersionComparison(
        tables=tables,
        feature_stats=dict(feature_stats),
        cell_stats=dict(cell_stats),
        reference=reference,
        dataset=dataset,
    )


def compare_versions(
    version_set: DatasetVersionSet,
    config: ComparisonConfig | None = None,
) -> VersionComparison:
    """Compute statistics for every version and align them per property."""
    cfg = config or ComparisonConfig()
    feature_stats: dict[str, FeatureStatsTable] = {}
    cell_stats: dict[str, CellStatsTable] = {}
    for label, version in version_set.items():
        if cfg.fit_gof:
            feature_stats[label] = compute_gof_stats(version.matrix, cfg.gof, label=label)
        else:
            feature_stats[label] = compute_feature_stats(version.matrix, label=label)
        cell_stats[label] = compute_cell_stats(version.matrix, label=label)
    return assemble_comparison(
        feature_stats,
        cell_stats,
        reference=version_set.reference,
        properties=cfg.properties,
        dataset=version_set.dataset,
    )
