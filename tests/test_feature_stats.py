from __future__ import annotations

import numpy as np
import pytest

from simbench.core.features import compute_feature_stats
from simbench.core.matrix import CountMatrix


def _scenario_real() -> CountMatrix:
    return CountMatrix(
        counts=np.array([[0.0, 0.0, 5.0], [2.0, 2.0, 2.0]]),
        gene_ids=("g1", "g2"),
        cell_ids=("c1", "c2", "c3"),
        source="Real",
    )


def test_feature_stats_known_values():
    table = compute_feature_stats(_scenario_real(), label="Real")
    g1 = table["g1"]
    assert np.isclose(g1.mean, 5.0 / 3.0)
    assert np.isclose(g1.variance, 75.0 / 9.0)
    assert np.isclose(g1.zeros, 2.0 / 3.0)
    assert np.isclose(g1.lib_size_corr, 1.0)
    g2 = table[1]
    assert g2.gene == "g2"
    assert g2.mean == 2.0
    assert g2.variance == 0.0
    assert g2.zeros == 0.0
    assert np.isnan(g2.lib_size_corr)


def test_feature_stats_follow_input_order_and_length():
    table = compute_feature_stats(_scenario_real())
    assert len(table) == 2
    assert table.gene_ids == ("g1", "g2")
    assert [rec.gene for rec in table] == ["g1", "g2"]


def test_all_zero_gene():
    m = CountMatrix.from_array(np.array([[0.0, 0.0, 0.0, 0.0], [1.0, 2.0, 3.0, 4.0]]))
    rec = compute_feature_stats(m)[0]
    assert rec.mean == 0.0
    assert rec.variance == 0.0
    assert rec.zeros == 1.0
    assert np.isnan(rec.lib_size_corr)


def test_single_cell_variance_is_nan():
    m = CountMatrix.from_array(np.array([[3.0], [0.0]]))
    table = compute_feature_stats(m)
    assert np.allclose(table.mean, [3.0, 0.0])
    assert np.all(np.isnan(table.variance))
    assert np.allclose(table.zeros, [0.0, 1.0])


def test_zero_cells_give_nan_statistics():
    table = compute_feature_stats(CountMatrix.from_array(np.zeros((2, 0))))
    assert len(table) == 2
    assert np.all(np.isnan(table.mean))
    assert np.all(np.isnan(table.zeros))


def test_zero_genes_give_empty_table():
    table = compute_feature_stats(CountMatrix.from_array(np.zeros((0, 4))))
    assert len(table) == 0
    assert table.to_frame().shape[0] == 0


def test_feature_stats_deterministic():
    rng = np.random.default_rng(7)
    m = CountMatrix.from_array(rng.poisson(3.0, size=(20, 15)))
    a = compute_feature_stats(m)
    b = compute_feature_stats(m)
    for name in ("mean", "variance", "zeros", "lib_size_corr"):
        assert np.array_equal(a.column(name), b.column(name), equal_nan=True)


def test_lib_size_corr_bounded():
    rng = np.random.default_rng(3)
    m = CountMatrix.from_array(rng.poisson(2.0, size=(30, 25)))
    rho = compute_feature_stats(m).lib_size_corr
    finite = rho[np.isfinite(rho)]
    assert finite.size > 0
    assert np.all((finite >= -1.0) & (finite <= 1.0))


def test_zeros_within_unit_interval_and_variance_non_negative():
    rng = np.random.default_rng(11)
    m = CountMatrix.from_array(rng.negative_binomial(2, 0.3, size=(25, 12)))
    table = compute_feature_stats(m)
    assert np.all((table.zeros >= 0.0) & (table.zeros <= 1.0))
    assert np.all(table.variance >= 0.0)


def test_to_frame_columns_and_label():
    frame = compute_feature_stats(_scenario_real(), label="Real").to_frame()
    assert list(frame.columns) == ["Version", "Gene", "Mean", "Variance", "ZerosGene", "LibSizeCorr"]
    assert set(frame["Version"]) == {"Real"}


def test_unknown_column_raises_key_error():
    table = compute_feature_stats(_scenario_real())
    with pytest.raises(KeyError):
        table.column("median")
    with pytest.raises(ValueError, match="no goodness-of-fit"):
        _ = table.not_fit


def test_constant_real_valued_gene_has_exact_zero_variance():
    m = CountMatrix.from_array(np.array([[0.1, 0.1, 0.1], [1.0, 2.0, 3.0]]))
    table = compute_feature_stats(m)
    assert table.variance[0] == 0.0
    assert table.variance[1] > 0.0
