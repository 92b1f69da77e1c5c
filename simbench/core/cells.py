"""Per-cell descriptive statistics."""

from __future__ import annotations

import numpy as np

from simbench.core.matrix import CountMatrix
from simbench.core.types import CellStatsTable


def compute_cell_stats(matrix: CountMatrix, label: str | None = None) -> CellStatsTable:
    """Library size (column sum) and zero proportion per cell, in input cell order.

    A matrix without genes gives library size 0 and NaN zero proportion.
    """
    X = matrix.counts
    n_genes = X.shape[0]
    library_size = X.sum(axis=0)
    if n_genes == 0:
        zeros = np.full(X.shape[1], np.nan, dtype=float)
    else:
        zeros = np.count_nonzero(X == 0.0, axis=0) / float(n_genes)
    return CellStatsTable(
        cell_ids=matrix.cell_ids,
        library_size=library_size,
        zeros=zeros,
        label=label,
    )
