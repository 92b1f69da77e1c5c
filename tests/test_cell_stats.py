from __future__ import annotations

import numpy as np
import pytest

from simbench.core.cells import compute_cell_stats
from simbench.core.matrix import CountMatrix


def test_cell_stats_known_values():
    m = CountMatrix(
        counts=np.array([[0.0, 0.0, 5.0], [2.0, 2.0, 2.0]]),
        gene_ids=("g1", "g2"),
        cell_ids=("c1", "c2", "c3"),
    )
    table = compute_cell_stats(m, label="Real")
    assert table["c1"].library_size == 2.0
    assert np.allclose(table.library_size, [2.0, 2.0, 7.0])
    assert np.allclose(table.zeros, [0.5, 0.5, 0.0])
    assert [rec.cell for rec in table] == ["c1", "c2", "c3"]


def test_library_size_matches_column_sums():
    rng = np.random.default_rng(5)
    X = rng.poisson(4.0, size=(12, 9))
    table = compute_cell_stats(CountMatrix.from_array(X))
    assert np.allclose(table.library_size, X.sum(axis=0))
    assert np.all((table.zeros >= 0.0) & (table.zeros <= 1.0))


def test_empty_cell_has_zero_library_and_full_zeros():
    m = CountMatrix.from_array(np.array([[0.0, 1.0], [0.0, 3.0]]))
    rec = compute_cell_stats(m)[0]
    assert rec.library_size == 0.0
    assert rec.zeros == 1.0


def test_no_genes_gives_nan_zeros():
    table = compute_cell_stats(CountMatrix.from_array(np.zeros((0, 3))))
    assert np.allclose(table.library_size, 0.0)
    assert np.all(np.isnan(table.zeros))


def test_frame_columns():
    m = CountMatrix.from_array(np.ones((2, 2)))
    frame = compute_cell_stats(m, label="Sim").to_frame()
    assert list(frame.columns) == ["Version", "Cell", "LibSize", "ZerosCell"]
    with pytest.raises(KeyError):
        compute_cell_stats(m).column("mean")
