"""Per-gene goodness-of-fit against Poisson, negative binomial, log-normal and normal models.

Parameters are maximum-likelihood estimates. The statistic is Pearson's
chi-square over cells built from the sorted observed values: a cell closes as
soon as it holds ``round(n / (4n)^0.4)`` observations and a short tail is merged
into the previous cell. Expected counts come from the fitted CDF at the cell
upper edges, with the last cell open to +inf. Degrees of freedom are
``n_cells - n_params - 1``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import replace

import numpy as np
import pandas as pd
from scipy.optimize import minimize_scalar
from scipy.special import gammaln
from scipy.stats import chi2, nbinom, norm, poisson

from simbench.core.features import compute_feature_stats
from simbench.core.matrix import CountMatrix
from simbench.core.types import DISTRIBUTIONS, GOF_FIELDS, FeatureStatsTable, GoFConfig, GoFResult

FitOutcome = tuple[float, float]

_EXPECTED_FIT_ERRORS = (ValueError, ArithmeticError)


def chisq_mean_count(n: int) -> int:
    n_i = int(n)
    if n_i <= 0:
        raise ValueError("n must be positive.")
    return max(1, int(round(n_i / (4.0 * n_i) ** 0.4)))


def chisq_cells(values: np.ndarray, mean_count: int) -> tuple[np.ndarray, np.ndarray]:
    """Group sorted observations into chi-square cells.

    Returns `(upper_edges, observed)`; the last edge is +inf.
    """
    uniq, counts = np.unique(np.asarray(values, dtype=float), return_counts=True)
    if uniq.size == 0:
        raise ValueError("values must be non-empty.")
    edges: list[float] = []
    observed: list[int] = []
    acc = 0
    for v, c in zip(uniq, counts):
        acc += int(c)
        if acc >= mean_count:
            edges.append(float(v))
            observed.append(acc)
            acc = 0
    if acc > 0:
        if observed:
            observed[-1] += acc
        else:
            observed.append(acc)
            edges.append(float(uniq[-1]))
    edges[-1] = float("inf")
    return np.asarray(edges, dtype=float), np.asarray(observed, dtype=float)


def chisq_statistic(
    observed: np.ndarray,
    upper_edges: np.ndarray,
    cdf: Callable[[np.ndarray], np.ndarray],
    n_params: int,
) -> FitOutcome:
    obs = np.asarray(observed, dtype=float)
    n = float(obs.sum())
    with np.errstate(divide="ignore", invalid="ignore", over="ignore", under="ignore"):
        cum = np.ones(obs.size, dtype=float)
        finite = np.isfinite(upper_edges)
        cum[finite] = np.asarray(cdf(upper_edges[finite]), dtype=float)
        probs = np.diff(np.concatenate([[0.0], cum]))
    if not np.all(np.isfinite(probs)):
        raise ValueError("fitted CDF produced non-finite cell probabilities.")
    probs = np.clip(probs, 0.0, 1.0)
    df = int(obs.size - n_params - 1)
    if np.any(probs <= 0.0):
        return float("inf"), (0.0 if df > 0 else float("nan"))
    expected = n * probs
    stat = float(np.sum((obs - expected) ** 2 / expected))
    if not np.isfinite(stat):
        raise ValueError("chi-square statistic is not finite.")
    pval = float(chi2.sf(stat, df)) if df > 0 else float("nan")
    return stat, pval


def _nb_loglik(size: float, x: np.ndarray, mu: float) -> float:
    return float(
        np.sum(
            gammaln(x + size)
            - gammaln(size)
            - gammaln(x + 1.0)
            + size * np.log(size / (size + mu))
            + x * np.log(mu / (size + mu))
        )
    )


def fit_negative_binomial(x: np.ndarray, bounds: tuple[float, float]) -> tuple[float, float]:
    """Return `(size, mu)` maximising the NB likelihood; mu is the sample mean."""
    mu = float(np.mean(x))
    if mu <= 0.0:
        raise ValueError("negative binomial needs a positive mean.")
    lo, hi = np.log(float(bounds[0])), np.log(float(bounds[1]))
    res = minimize_scalar(
        lambda t: -_nb_loglik(float(np.exp(t)), x, mu),
        bounds=(lo, hi),
        method="bounded",
    )
    if not res.success or not np.isfinite(res.x):
        raise ValueError(f"negative binomial size optimisation failed: {res.message}")
    return float(np.exp(res.x)), mu


class GoodnessOfFitTester:
    """Fit the four candidate distributions to one gene at a time.

    Fits are independent: a failure in one distribution yields NaN for it and
    leaves the others untouched.
    """

    def __init__(self, config: GoFConfig | None = None, logger: logging.Logger | None = None):
        self.config = config or GoFConfig()
        self.logger = logger or logging.getLogger("simbench")

    def is_accepted(self, pvalue: float) -> bool:
        return bool(np.isfinite(pvalue) and pvalue > float(self.config.p_threshold))

    def _poisson(self, x: np.ndarray, observed: np.ndarray, edges: np.ndarray) -> FitOutcome:
        lam = float(np.mean(x))
        if lam <= 0.0:
            raise ValueError("Poisson needs a positive mean.")
        return chisq_statistic(observed, edges, lambda e: poisson.cdf(e, lam), n_params=1)

    def _negative_binomial(self, x: np.ndarray, observed: np.ndarray, edges: np.ndarray) -> FitOutcome:
        size, mu = fit_negative_binomial(x, self.config.nb_size_bounds)
        prob = size / (size + mu)
        return chisq_statistic(observed, edges, lambda e: nbinom.cdf(e, size, prob), n_params=2)

    def _normal(self, x: np.ndarray, observed: np.ndarray, edges: np.ndarray) -> FitOutcome:
        mu = float(np.mean(x))
        sigma = float(np.std(x))
        if not sigma > 0.0:
            raise ValueError("normal needs non-zero spread.")
        return chisq_statistic(observed, edges, lambda e: norm.cdf(e, mu, sigma), n_params=2)

    def _lognormal(self, x: np.ndarray, observed: np.ndarray, edges: np.ndarray) -> FitOutcome:
        pc = float(self.config.lognormal_pseudocount)
        logs = np.log(x + pc)
        meanlog = float(np.mean(logs))
        sdlog = float(np.std(logs))
        if not sdlog > 0.0:
            raise ValueError("log-normal needs non-zero log spread.")
        return chisq_statistic(
            observed,
            edges,
            lambda e: norm.cdf((np.log(e + pc) - meanlog) / sdlog),
            n_params=2,
        )

    def _safe_fit(
        self,
        name: str,
        fit: Callable[[np.ndarray, np.ndarray, np.ndarray], FitOutcome],
        x: np.ndarray,
        observed: np.ndarray,
        edges: np.ndarray,
        gene: str | None,
    ) -> FitOutcome:
        try:
            return fit(x, observed, edges)
        except _EXPECTED_FIT_ERRORS as exc:
            self.logger.debug("GoF %s skipped: gene=%s reason=%s", name, gene, exc)
            return float("nan"), float("nan")

    def test(self, counts: np.ndarray, gene: str | None = None) -> GoFResult:
        x = np.asarray(counts, dtype=float).ravel()
        cfg = self.config
        if x.size < int(cfg.min_cells) or not np.all(np.isfinite(x)):
            return GoFResult()
        if int(np.count_nonzero(x)) < int(cfg.min_nonzero):
            return GoFResult()

        edges, observed = chisq_cells(x, chisq_mean_count(x.size))
        nb = self._safe_fit("NB", self._negative_binomial, x, observed, edges, gene)
        ln = self._safe_fit("LN", self._lognormal, x, observed, edges, gene)
        nm = self._safe_fit("Norm", self._normal, x, observed, edges, gene)
        po = self._safe_fit("Poi", self._poisson, x, observed, edges, gene)
        return GoFResult(
            nb_chi=nb[0],
            nb_pval=nb[1],
            ln_chi=ln[0],
            ln_pval=ln[1],
            norm_chi=nm[0],
            norm_pval=nm[1],
            poi_chi=po[0],
            poi_pval=po[1],
        )


def gof_columns(
    counts: np.ndarray,
    config: GoFConfig | None = None,
    gene_ids: tuple[str, ...] | None = None,
    logger: logging.Logger | None = None,
) -> dict[str, np.ndarray]:
    """Run the tester over every row of a genes x cells block."""
    X = np.asarray(counts, dtype=float)
    if X.ndim != 2:
        raise ValueError("counts must be a genes x cells matrix.")
    tester = GoodnessOfFitTester(config, logger=logger)
    out = {k: np.full(X.shape[0], np.nan, dtype=float) for k in GOF_FIELDS}
    for i in range(X.shape[0]):
        gene = gene_ids[i] if gene_ids is not None else None
        row = tester.test(X[i], gene=gene).as_row()
        for k in GOF_FIELDS:
            out[k][i] = row[k]
    return out


def attach_fit(table: FeatureStatsTable, columns: Mapping[str, np.ndarray]) -> FeatureStatsTable:
    return replace(table, fit=dict(columns))


def compute_gof_stats(
    matrix: CountMatrix,
    config: GoFConfig | None = None,
    label: str | None = None,
    logger: logging.Logger | None = None,
) -> FeatureStatsTable:
    """Feature statistics augmented with per-gene fit statistics."""
    table = compute_feature_stats(matrix, label=label)
    cols = gof_columns(matrix.counts, config, gene_ids=matrix.gene_ids, logger=logger)
    return attach_fit(table, cols)


def accepted_distributions(result: GoFResult, p_threshold: float = 0.01) -> tuple[str, ...]:
    pvals = result.pvalues
    return tuple(
        name for name in DISTRIBUTIONS if np.isfinite(pvals[name]) and pvals[name] > float(p_threshold)
    )


_PVAL_FIELD = {"NB": "NBPVal", "LN": "LNPVal", "Norm": "NormPVal", "Poi": "PoiPVal"}


def summarize_gof(
    tables: Mapping[str, FeatureStatsTable],
    p_threshold: float = 0.01,
) -> pd.DataFrame:
    """Count accepted fits per version and distribution.

    Columns: Version, Distribution, NGenes, NTested, NAccepted, PropAccepted,
    NNotFit. `PropAccepted` is relative to all genes of the version.
    """
    rows = []
    for label, table in tables.items():
        if table.fit is None:
            raise ValueError(f"Version '{label}' has no goodness-of-fit columns.")
        n_genes = len(table)
        n_not_fit = int(np.sum(table.not_fit))
        for dist in DISTRIBUTIONS:
            pv = np.asarray(table.fit[_PVAL_FIELD[dist]], dtype=float)
            tested = np.isfinite(pv)
            accepted = tested & (pv > float(p_threshold))
            n_acc = int(np.sum(accepted))
            rows.append(
                {
                    "Version": label,
                    "Distribution": dist,
                    "NGenes": n_genes,
                    "NTested": int(np.sum(tested)),
                    "NAccepted": n_acc,
                    "PropAccepted": (n_acc / n_genes) if n_genes > 0 else float("nan"),
                    "NNotFit": n_not_fit,
                }
            )
    return pd.DataFrame(
        rows,
        columns=["Version", "Distribution", "NGenes", "NTested", "NAccepted", "PropAccepted", "NNotFit"],
    )
