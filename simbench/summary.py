"""Reduce comparison tables to ranked, scaled deviation-from-reference statistics."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from simbench.core.errors import UnknownPropertyError, VersionSetError
from simbench.core.properties import PROPERTIES, PROPERTY_NAMES
from simbench.core.types import ComparisonTable, DifferenceRecord, JointComparisonTable, SummaryConfig
from simbench.stats.difference import (
    align_joint,
    align_sorted,
    difference_statistic,
    rank_statistics,
    scale_statistics,
)

DIFFERENCE_COLUMNS = ["Dataset", "Property", "Model", "Statistic", "Value", "Scaled", "Rank"]


def property_differences(
    table: ComparisonTable | JointComparisonTable,
    label: str,
    reference: str,
) -> np.ndarray:
    """Element-wise `label - reference` after sorting and length alignment."""
    if isinstance(table, JointComparisonTable):
        ref_y, oth_y = align_joint(*table.pairs(reference), *table.pairs(label))
        return oth_y - ref_y
    ref, oth = align_sorted(table.vector(reference), table.vector(label))
    return oth - ref


def summarize_differences(
    tables: Mapping[str, ComparisonTable | JointComparisonTable],
    reference_label: str = "Real",
    config: SummaryConfig | None = None,
    dataset: str | None = None,
) -> list[DifferenceRecord]:
    """One record per (property, statistic, non-reference version).

    Within each property and statistic the records are ranked (1 = closest to
    the reference under the default ascending direction, ties by input order,
    NaN last) and scaled across versions.
    """
    cfg = config or SummaryConfig()
    records: list[DifferenceRecord] = []
    for prop, table in tables.items():
        if prop not in PROPERTIES:
            raise UnknownPropertyError(prop, PROPERTY_NAMES)
        if reference_label not in table.labels:
            raise VersionSetError(f"Reference version '{reference_label}' missing from table '{prop}'.")
        models = [label for label in table.labels if label != reference_label]
        if not models:
            continue
        diffs = [property_differences(table, m, reference_label) for m in models]
        for stat_name in cfg.statistics:
            values = np.array(
                [difference_statistic(d, stat_name, cfg.mad_method) for d in diffs],
                dtype=float,
            )
            ranks = rank_statistics(values, ascending=cfg.rank_ascending)
            scaled = scale_statistics(values, cfg.scale)
            for model, value, sc, rk in zip(models, values, scaled, ranks):
                records.append(
                    DifferenceRecord(
                        property=prop,
                        model=model,
                        statistic=float(value),
                        scaled=float(sc),
                        rank=int(rk),
                        statistic_name=stat_name,
                        dataset=dataset,
                    )
                )
    return records


def records_to_frame(records: Iterable[DifferenceRecord]) -> pd.DataFrame:
    return pd.DataFrame([r.as_row() for r in records], columns=DIFFERENCE_COLUMNS)


def rank_summary(frame: pd.DataFrame, statistic: str = "MAD") -> pd.DataFrame:
    """Mean rank and mean scaled value per model across properties (and datasets)."""
    sub = frame[frame["Statistic"] == statistic]
    if sub.empty:
        return pd.DataFrame(columns=["Model", "MeanRank", "MeanScaled", "NProperties"])
    out = (
        sub.groupby("Model", sort=False)
        .agg(MeanRank=("Rank", "mean"), MeanScaled=("Scaled", "mean"), NProperties=("Property", "count"))
        .reset_index()
        .sort_values(["MeanRank", "MeanScaled"], kind="mergesort")
        .reset_index(drop=True)
    )
    return out


def difference_matrix(
    records: Sequence[DifferenceRecord],
    value: str = "scaled",
    statistic: str = "MAD",
) -> pd.DataFrame:
    """Model x property matrix of one record field, properties in registry order."""
    if value not in ("scaled", "statistic", "rank"):
        raise ValueError("value must be 'scaled', 'statistic' or 'rank'.")
    rows = [
        {"Model": r.model, "Property": r.property, "Value": getattr(r, value)}
        for r in records
        if r.statistic_name == statistic
    ]
    if not rows:
        return pd.DataFrame()
    df = pd.DataFrame(rows)
    wide = df.pivot_table(index="Model", columns="Property", values="Value", aggfunc="mean", sort=False)
    cols = [p for p in PROPERTY_NAMES if p in wide.columns]
    return wide[cols]
