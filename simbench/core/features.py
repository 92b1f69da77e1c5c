"""Per-gene descriptive statistics."""

from __future__ import annotations

import numpy as np
from scipy.stats import rankdata

from simbench.core.matrix import CountMatrix
from simbench.core.types import FeatureStatsTable


def _lib_size_spearman(X: np.ndarray) -> np.ndarray:
    """Spearman correlation of every gene row with the cell library sizes.

    NaN where the gene or the library sizes are constant, or with fewer than
    three cells.
    """
    n_genes, n_cells = X.shape
    out = np.full(n_genes, np.nan, dtype=float)
    if n_cells < 3 or n_genes == 0:
        return out
    lib_r = rankdata(X.sum(axis=0))
    lib_c = lib_r - lib_r.mean()
    lib_ss = float(np.sqrt(np.sum(lib_c * lib_c)))
    if lib_ss <= 0.0:
        return out
    ranks = rankdata(X, axis=1)
    centred = ranks - ranks.mean(axis=1, keepdims=True)
    ss = np.sqrt(np.sum(centred * centred, axis=1))
    ok = ss > 0.0
    if np.any(ok):
        rho = (centred[ok] @ lib_c) / (ss[ok] * lib_ss)
        out[ok] = np.clip(rho, -1.0, 1.0)
    return out


def compute_feature_stats(matrix: CountMatrix, label: str | None = None) -> FeatureStatsTable:
    """Compute mean, sample variance, zero proportion and library-size correlation per gene.

    Args:
        matrix: Validated genes x cells counts.
        label: Optional version label carried on the returned table.

    Returns:
        One record per gene, in input gene order. With zero cells every
        statistic is NaN; with one cell the variance is NaN.
    """
    X = matrix.counts
    n_genes, n_cells = X.shape
    if n_cells == 0:
        nan = np.full(n_genes, np.nan, dtype=float)
        return FeatureStatsTable(
            gene_ids=matrix.gene_ids,
            mean=nan,
            variance=nan,
            zeros=nan,
            lib_size_corr=nan,
            label=label,
        )

    mean = X.mean(axis=1)
    if n_cells > 1:
        variance = X.var(axis=1, ddof=1)
        variance[X.max(axis=1) == X.min(axis=1)] = 0.0
    else:
        variance = np.full(n_genes, np.nan, dtype=float)
    zeros = np.count_nonzero(X == 0.0, axis=1) / float(n_cells)
    return FeatureStatsTable(
        gene_ids=matrix.gene_ids,
        mean=mean,
        variance=variance,
        zeros=zeros,
        lib_size_corr=_lib_size_spearman(X),
        label=label,
    )
