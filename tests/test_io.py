from __future__ import annotations

import logging
from pathlib import Path

import anndata as ad
import numpy as np
import pandas as pd
import pytest

from simbench.core.errors import CountMatrixError
from simbench.core.matrix import CountMatrix
from simbench.pipeline.io import infer_format, load_count_matrix, write_count_matrix, write_json


def test_infer_format():
    assert infer_format("a/b/counts.csv") == "csv"
    assert infer_format("counts.tsv.gz") == "tsv"
    assert infer_format("data.h5ad") == "h5ad"
    with pytest.raises(ValueError, match="Cannot infer matrix format"):
        infer_format("data.parquet")


def test_csv_round_trip(tmp_path: Path):
    m = CountMatrix(counts=np.array([[1.0, 0.0], [3.0, 2.0]]), gene_ids=("g1", "g2"), cell_ids=("c1", "c2"))
    path = write_count_matrix(m, tmp_path / "m.csv")
    loaded = load_count_matrix(path, name="Real")
    assert loaded.gene_ids == ("g1", "g2")
    assert loaded.cell_ids == ("c1", "c2")
    assert np.array_equal(loaded.counts, m.counts)
    assert loaded.source == "Real"


def test_missing_values_dropped_with_warning(tmp_path: Path, caplog):
    caplog.set_level(logging.WARNING)
    path = tmp_path / "m.tsv"
    pd.DataFrame({"c1": [1.0, np.nan, 2.0], "c2": [0.0, 1.0, 4.0]}, index=["g1", "g2", "g3"]).to_csv(path, sep="\t")
    loaded = load_count_matrix(path, logger=logging.getLogger("test"))
    assert loaded.gene_ids == ("g1", "g3")
    assert "n_dropped=1" in caplog.text


def test_negative_counts_in_file_rejected(tmp_path: Path):
    path = tmp_path / "neg.csv"
    pd.DataFrame({"c1": [1.0, -2.0]}, index=["g1", "g2"]).to_csv(path)
    with pytest.raises(CountMatrixError) as info:
        load_count_matrix(path, name="Sim")
    assert info.value.precondition == "non_negative"
    assert info.value.source == "Sim"


def test_h5ad_is_transposed(tmp_path: Path):
    X = np.array([[1.0, 0.0, 2.0], [0.0, 4.0, 1.0]])
    adata = ad.AnnData(X=X, obs=pd.DataFrame(index=["c1", "c2"]), var=pd.DataFrame(index=["g1", "g2", "g3"]))
    path = tmp_path / "m.h5ad"
    adata.write_h5ad(path)
    loaded = load_count_matrix(path)
    assert loaded.shape == (3, 2)
    assert loaded.gene_ids == ("g1", "g2", "g3")
    assert np.array_equal(loaded.counts, X.T)


def test_missing_input(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_count_matrix(tmp_path / "absent.csv")


def test_write_json_handles_numpy(tmp_path: Path):
    out = tmp_path / "meta.json"
    write_json(out, {"a": np.int64(3), "b": np.float32(1.5), "c": np.arange(2), "d": tmp_path})
    text = out.read_text(encoding="utf-8")
    assert '"a": 3' in text
    assert '"b": 1.5' in text
