from __future__ import annotations

import numpy as np
import pytest

from simbench.comparison import assemble_comparison, compare_versions
from simbench.core.cells import compute_cell_stats
from simbench.core.errors import UnknownPropertyError, VersionSetError
from simbench.core.features import compute_feature_stats
from simbench.core.matrix import CountMatrix, DatasetVersionSet
from simbench.core.properties import PROPERTY_NAMES
from simbench.core.types import ComparisonConfig, ComparisonTable, JointComparisonTable


def _scenario() -> DatasetVersionSet:
    real = CountMatrix(
        counts=np.array([[0.0, 0.0, 5.0], [2.0, 2.0, 2.0]]),
        gene_ids=("g1", "g2"),
        cell_ids=("c1", "c2", "c3"),
    )
    sim = CountMatrix(
        counts=np.array([[0.0, 5.0], [2.0, 2.0]]),
        gene_ids=("g1", "g2"),
        cell_ids=("c1", "c2"),
    )
    return DatasetVersionSet.from_matrices({"Real": real, "Sim": sim}, dataset="toy")


def test_every_property_gets_a_table():
    comp = compare_versions(_scenario())
    assert tuple(comp) == PROPERTY_NAMES
    assert comp.labels == ("Real", "Sim")
    assert comp.dataset == "toy"
    assert isinstance(comp["Mean"], ComparisonTable)
    assert isinstance(comp["MeanVar"], JointComparisonTable)


def test_scalar_tables_hold_sorted_vectors():
    comp = compare_versions(_scenario())
    assert np.allclose(comp["Mean"].vector("Real"), [5.0 / 3.0, 2.0])
    assert np.allclose(comp["Mean"].vector("Sim"), [2.0, 2.5])
    assert np.allclose(comp["LibSize"].vector("Real"), [2.0, 2.0, 7.0])
    assert np.allclose(comp["ZerosCell"].vector("Sim"), [0.0, 0.5])
    assert comp["LibSize"].level == "cell"


def test_joint_tables_ordered_by_x():
    comp = compare_versions(_scenario())
    x, y = comp["MeanVar"].pairs("Sim")
    assert np.allclose(x, [2.0, 2.5])
    assert np.allclose(y, [0.0, 12.5])
    x, y = comp["MeanZeros"].pairs("Real")
    assert np.allclose(x, [5.0 / 3.0, 2.0])
    assert np.allclose(y, [2.0 / 3.0, 0.0])


def test_versions_with_different_ids_are_tolerated():
    real = CountMatrix.from_array(np.array([[1.0, 2.0], [0.0, 4.0], [3.0, 3.0]]))
    sim = CountMatrix(counts=np.array([[1.0, 1.0, 2.0]]), gene_ids=("other",), cell_ids=("x", "y", "z"))
    comp = compare_versions(DatasetVersionSet.from_matrices({"Real": real, "Sim": sim}))
    assert comp["Mean"].vector("Real").size == 3
    assert comp["Mean"].vector("Sim").size == 1
    assert comp["LibSize"].vector("Sim").size == 3


def test_nan_statistics_dropped_from_tables():
    real = CountMatrix.from_array(np.array([[4.0], [1.0]]))
    comp = compare_versions(DatasetVersionSet.from_matrices({"Real": real}))
    assert comp["Variance"].vector("Real").size == 0
    x, y = comp["MeanVar"].pairs("Real")
    assert x.size == 0 and y.size == 0


def test_property_subset_and_unknown_property():
    comp = compare_versions(_scenario(), ComparisonConfig(properties=("LibSize", "Mean")))
    assert tuple(comp) == ("LibSize", "Mean")
    with pytest.raises(UnknownPropertyError):
        ComparisonConfig(properties=("Mean", "Kurtosis"))


def test_compare_with_gof_attaches_fit():
    rng = np.random.default_rng(1)
    real = CountMatrix.from_array(rng.poisson(5.0, size=(3, 50)))
    sim = CountMatrix.from_array(rng.poisson(5.0, size=(3, 40)))
    comp = compare_versions(
        DatasetVersionSet.from_matrices({"Real": real, "Sim": sim}),
        ComparisonConfig(fit_gof=True),
    )
    assert comp.feature_stats["Real"].has_fit
    assert comp.feature_stats["Sim"].has_fit


def test_assemble_requires_matching_versions_and_reference():
    vs = _scenario()
    fs = {k: compute_feature_stats(v.matrix, label=k) for k, v in vs.items()}
    cs = {k: compute_cell_stats(v.matrix, label=k) for k, v in vs.items()}
    with pytest.raises(VersionSetError, match="different versions"):
        assemble_comparison(fs, {"Real": cs["Real"]}, reference="Real")
    with pytest.raises(VersionSetError, match="missing"):
        assemble_comparison(fs, cs, reference="Truth")


def test_table_frames_are_long_format():
    comp = compare_versions(_scenario())
    frame = comp["Mean"].to_frame()
    assert set(frame["Version"]) == {"Real", "Sim"}
    assert len(frame) == 4
    joint = comp["MeanZeros"].to_frame()
    assert list(joint.columns) == ["Version", "Property", "X", "Y"]
