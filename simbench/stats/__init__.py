"""Statistical utilities for simbench."""

from simbench.stats.difference import (
    align_joint,
    align_sorted,
    difference_statistic,
    mad,
    mae,
    quantile_indices,
    rank_statistics,
    rmse,
    scale_statistics,
)
from simbench.stats.gof import (
    GoodnessOfFitTester,
    accepted_distributions,
    compute_gof_stats,
    gof_columns,
    summarize_gof,
)

__all__ = [
    "GoodnessOfFitTester",
    "accepted_distributions",
    "compute_gof_stats",
    "gof_columns",
    "summarize_gof",
    "align_sorted",
    "align_joint",
    "quantile_indices",
    "mad",
    "mae",
    "rmse",
    "difference_statistic",
    "rank_statistics",
    "scale_statistics",
]
