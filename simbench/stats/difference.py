"""Distributional difference statistics between sorted vectors."""

from __future__ import annotations

import numpy as np

from simbench.core.types import MAD_CONSISTENCY, MAD_METHODS, SCALE_METHODS


def _finite_1d(values: np.ndarray) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def quantile_indices(n_long: int, n_short: int) -> np.ndarray:
    """Evenly spaced, non-decreasing indices into a length-`n_long` vector.

    The first and last elements are always kept when `n_short >= 2`.
    """
    if n_short > n_long:
        raise ValueError("n_short must not exceed n_long.")
    if n_short <= 0:
        return np.zeros(0, dtype=int)
    return np.rint(np.linspace(0.0, float(n_long - 1), int(n_short))).astype(int)


def align_sorted(reference: np.ndarray, other: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Sort both vectors and subsample the longer one to the shorter length."""
    ref = np.sort(_finite_1d(reference), kind="mergesort")
    oth = np.sort(_finite_1d(other), kind="mergesort")
    if ref.size > oth.size:
        ref = ref[quantile_indices(ref.size, oth.size)]
    elif oth.size > ref.size:
        oth = oth[quantile_indices(oth.size, ref.size)]
    return ref, oth


def _finite_pairs(x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    xa = np.asarray(x, dtype=float).ravel()
    ya = np.asarray(y, dtype=float).ravel()
    if xa.size != ya.size:
        raise ValueError("x and y must have the same length.")
    keep = np.isfinite(xa) & np.isfinite(ya)
    xa, ya = xa[keep], ya[keep]
    order = np.argsort(xa, kind="mergesort")
    return xa[order], ya[order]


def align_joint(
    ref_x: np.ndarray,
    ref_y: np.ndarray,
    other_x: np.ndarray,
    other_y: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Order both versions by x and return rank-matched y values.

    Genes are paired by their x rank, not their x value: when the two x
    distributions differ, paired genes can sit at very different x (a version
    with higher means shifts every pairing). Marginal x differences are
    reported by the matching per-gene property, not here.
    """
    _, ry = _finite_pairs(ref_x, ref_y)
    _, oy = _finite_pairs(other_x, other_y)
    if ry.size > oy.size:
        ry = ry[quantile_indices(ry.size, oy.size)]
    elif oy.size > ry.size:
        oy = oy[quantile_indices(oy.size, ry.size)]
    return ry, oy


def mad(diff: np.ndarray, method: str = "median_abs") -> float:
    """Median absolute deviation of a difference vector.

    ``median_abs``: median(|d|). ``scaled``: 1.4826 * median(|d - median(d)|).
    """
    d = np.asarray(diff, dtype=float).ravel()
    if method not in MAD_METHODS:
        raise ValueError(f"mad method must be one of {MAD_METHODS}, got '{method}'.")
    if d.size == 0:
        return float("nan")
    if method == "median_abs":
        return float(np.median(np.abs(d)))
    med = float(np.median(d))
    return float(MAD_CONSISTENCY * np.median(np.abs(d - med)))


def mae(diff: np.ndarray) -> float:
    d = np.asarray(diff, dtype=float).ravel()
    return float(np.mean(np.abs(d))) if d.size else float("nan")


def rmse(diff: np.ndarray) -> float:
    d = np.asarray(diff, dtype=float).ravel()
    return float(np.sqrt(np.mean(d * d))) if d.size else float("nan")


def difference_statistic(diff: np.ndarray, name: str, mad_method: str = "median_abs") -> float:
    if name == "MAD":
        return mad(diff, mad_method)
    if name == "MAE":
        return mae(diff)
    if name == "RMSE":
        return rmse(diff)
    raise ValueError(f"Unknown difference statistic '{name}'.")


def rank_statistics(values: np.ndarray, ascending: bool = True) -> np.ndarray:
    """Ranks 1..k; ties keep input order and NaN ranks last."""
    v = np.asarray(values, dtype=float).ravel()
    finite = np.isfinite(v)
    key = np.where(finite, v if ascending else -v, np.inf)
    order = np.argsort(key, kind="mergesort")
    ranks = np.empty(v.size, dtype=int)
    ranks[order] = np.arange(1, v.size + 1)
    return ranks


def scale_statistics(values: np.ndarray, method: str = "minmax") -> np.ndarray:
    """Scale statistics across models; NaN stays NaN, no spread gives 0."""
    if method not in SCALE_METHODS:
        raise ValueError(f"scale method must be one of {SCALE_METHODS}, got '{method}'.")
    v = np.asarray(values, dtype=float).ravel()
    out = np.full(v.size, np.nan, dtype=float)
    finite = np.isfinite(v)
    if not np.any(finite):
        return out
    vals = v[finite]
    if method == "minmax":
        lo, hi = float(np.min(vals)), float(np.max(vals))
        span = hi - lo
        out[finite] = (vals - lo) / span if span > 0 else 0.0
    else:
        mu = float(np.mean(vals))
        sd = float(np.std(vals, ddof=1)) if vals.size > 1 else 0.0
        out[finite] = (vals - mu) / sd if sd > 0 else 0.0
    return out
