from __future__ import annotations

import logging

import numpy as np
import pytest

from simbench.core.features import compute_feature_stats
from simbench.core.matrix import CountMatrix
from simbench.core.types import GOF_FIELDS, GoFConfig
from simbench.stats import gof
from simbench.stats.gof import (
    GoodnessOfFitTester,
    accepted_distributions,
    chisq_cells,
    chisq_mean_count,
    chisq_statistic,
    compute_gof_stats,
    fit_negative_binomial,
    summarize_gof,
)


def test_chisq_mean_count():
    assert chisq_mean_count(1000) == 36
    assert chisq_mean_count(1) == 1
    with pytest.raises(ValueError):
        chisq_mean_count(0)


def test_chisq_cells_groups_sorted_values():
    edges, observed = chisq_cells(np.array([3, 0, 1, 0, 2, 1]), 2)
    assert edges[:-1].tolist() == [0.0, 1.0]
    assert np.isinf(edges[-1])
    assert observed.tolist() == [2.0, 2.0, 2.0]


def test_chisq_cells_merges_short_tail():
    edges, observed = chisq_cells(np.array([0, 0, 1, 1, 2]), 2)
    assert edges[0] == 0.0
    assert np.isinf(edges[-1])
    assert observed.tolist() == [2.0, 3.0]
    assert observed.sum() == 5


def test_zero_expected_probability_gives_infinite_statistic():
    stat, pval = chisq_statistic(np.array([5.0, 5.0]), np.array([0.0, np.inf]), lambda e: np.ones_like(e), 0)
    assert np.isinf(stat)
    assert pval == 0.0


def test_non_positive_degrees_of_freedom_give_nan_pvalue():
    stat, pval = chisq_statistic(
        np.array([5.0, 5.0]), np.array([0.0, np.inf]), lambda e: np.full_like(e, 0.5), 1
    )
    assert np.isclose(stat, 0.0)
    assert np.isnan(pval)


def test_poisson_counts_accepted_as_poisson():
    tester = GoodnessOfFitTester()
    accepted = 0
    for seed in range(10):
        x = np.random.default_rng(seed).poisson(5.0, size=1000)
        res = tester.test(x)
        assert np.isfinite(res.poi_pval)
        accepted += int(tester.is_accepted(res.poi_pval))
    assert accepted >= 8


def test_overdispersed_counts_prefer_negative_binomial():
    tester = GoodnessOfFitTester()
    nb_accepted = 0
    for seed in range(10):
        x = np.random.default_rng(100 + seed).negative_binomial(2, 1.0 / 6.0, size=1000)
        res = tester.test(x, gene=f"g{seed}")
        assert res.poi_pval < 0.01
        nb_accepted += int(tester.is_accepted(res.nb_pval))
    assert nb_accepted >= 7


def test_fit_negative_binomial_recovers_size():
    x = np.random.default_rng(0).negative_binomial(2, 1.0 / 6.0, size=5000).astype(float)
    size, mu = fit_negative_binomial(x, (1e-4, 1e6))
    assert np.isclose(mu, x.mean())
    assert 1.5 < size < 2.7


def test_all_zero_gene_not_fit():
    res = GoodnessOfFitTester().test(np.zeros(50))
    assert res.not_fit
    assert all(np.isnan(v) for v in res.as_row().values())


def test_too_few_cells_not_fit():
    res = GoodnessOfFitTester(GoFConfig(min_cells=10)).test(np.array([1, 2, 3, 4, 5]))
    assert res.not_fit


def test_constant_gene_not_fit():
    res = GoodnessOfFitTester().test(np.full(40, 3.0))
    assert res.not_fit
    assert np.isnan(res.norm_chi)


def test_fit_failure_is_local_and_logged(monkeypatch, caplog):
    caplog.set_level(logging.DEBUG, logger="simbench")

    def _raise(self, *_args, **_kwargs):
        raise ValueError("optimiser diverged")

    monkeypatch.setattr(GoodnessOfFitTester, "_normal", _raise)
    x = np.random.default_rng(1).poisson(4.0, size=300)
    res = GoodnessOfFitTester().test(x, gene="GENE1")
    assert np.isnan(res.norm_chi)
    assert np.isnan(res.norm_pval)
    assert np.isfinite(res.poi_pval)
    assert np.isfinite(res.nb_pval)
    assert not res.not_fit
    assert "GoF Norm skipped" in caplog.text
    assert "GENE1" in caplog.text


def test_unexpected_fit_error_propagates(monkeypatch):
    def _raise(self, *_args, **_kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(GoodnessOfFitTester, "_poisson", _raise)
    with pytest.raises(RuntimeError, match="unexpected"):
        GoodnessOfFitTester().test(np.random.default_rng(2).poisson(3.0, size=100))


def test_accepted_distributions_uses_threshold():
    x = np.random.default_rng(4).poisson(5.0, size=1000)
    res = GoodnessOfFitTester().test(x)
    names = accepted_distributions(res, p_threshold=1e-12)
    assert set(names) <= {"NB", "LN", "Norm", "Poi"}
    assert all(np.isfinite(res.pvalues[n]) for n in names)
    assert accepted_distributions(gof.GoFResult()) == ()


def test_compute_gof_stats_attaches_columns():
    rng = np.random.default_rng(9)
    X = np.vstack([rng.poisson(5.0, size=60), np.zeros(60), rng.negative_binomial(2, 0.2, size=60)])
    m = CountMatrix.from_array(X)
    table = compute_gof_stats(m, label="Real")
    assert table.has_fit
    assert set(table.fit) == set(GOF_FIELDS)
    assert table.not_fit.tolist() == [False, True, False]
    base = compute_feature_stats(m)
    assert np.array_equal(table.mean, base.mean)
    frame = table.to_frame()
    assert "NotFit" in frame.columns
    assert list(frame.columns[-9:]) == list(GOF_FIELDS) + ["NotFit"]
    assert table[1].not_fit is True


def test_summarize_gof_counts_per_version():
    rng = np.random.default_rng(12)
    real = compute_gof_stats(CountMatrix.from_array(rng.poisson(5.0, size=(4, 80))), label="Real")
    sim = compute_gof_stats(CountMatrix.from_array(np.zeros((4, 80))), label="Sim")
    frame = summarize_gof({"Real": real, "Sim": sim})
    assert list(frame.columns) == [
        "Version",
        "Distribution",
        "NGenes",
        "NTested",
        "NAccepted",
        "PropAccepted",
        "NNotFit",
    ]
    assert len(frame) == 8
    sim_rows = frame[frame["Version"] == "Sim"]
    assert (sim_rows["NTested"] == 0).all()
    assert (sim_rows["NNotFit"] == 4).all()
    assert (sim_rows["PropAccepted"] == 0.0).all()


def test_summarize_gof_requires_fit_columns():
    table = compute_feature_stats(CountMatrix.from_array(np.ones((2, 3))))
    with pytest.raises(ValueError, match="no goodness-of-fit"):
        summarize_gof({"Real": table})


def test_gof_config_validation():
    with pytest.raises(ValueError, match="p_threshold"):
        GoFConfig(p_threshold=1.5)
    with pytest.raises(ValueError, match="nb_size_bounds"):
        GoFConfig(nb_size_bounds=(10.0, 1.0))
