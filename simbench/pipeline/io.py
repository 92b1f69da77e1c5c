"""Pipeline I/O, logging, and dataset loading helpers."""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from simbench.core.matrix import CountMatrix

MATRIX_FORMATS = ("csv", "tsv", "h5ad", "10x")


def ensure_dir(path: str | Path) -> None:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        val = float(obj)
        return None if not math.isfinite(val) else val
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, Path):
        return obj.as_posix()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True, default=_json_default)


def write_table(frame: pd.DataFrame, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(out.as_posix(), index=False)
    return out


def setup_logger(log_path: Path, logger_name: str) -> logging.Logger:
    ensure_dir(log_path.parent)
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    fh = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    fh.setFormatter(formatter)
    logger.addHandler(fh)
    sh = logging.StreamHandler()
    sh.setFormatter(formatter)
    logger.addHandler(sh)
    return logger


def _get_scanpy():
    import scanpy as sc

    return sc


def infer_format(path: str | Path) -> str:
    p = Path(path)
    if p.is_dir():
        return "10x"
    name = p.name.lower()
    for suffix in (".gz", ".bz2", ".zip", ".xz"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    if name.endswith(".csv"):
        return "csv"
    if name.endswith(".tsv") or name.endswith(".txt"):
        return "tsv"
    if name.endswith(".h5ad"):
        return "h5ad"
    raise ValueError(f"Cannot infer matrix format for '{p}'. Use one of {MATRIX_FORMATS}.")


def load_count_matrix(
    path: str | Path,
    fmt: str | None = None,
    name: str | None = None,
    logger: logging.Logger | None = None,
) -> CountMatrix:
    """Load a genes x cells count matrix.

    Delimited text is read genes as rows, cells as columns, first column as
    gene ids. `.h5ad` files and 10x directories are cells x genes and are
    transposed. Genes with missing values are dropped before validation.
    """
    src = Path(path)
    log = logger or logging.getLogger("simbench")
    if not src.exists():
        raise FileNotFoundError(f"Input '{src}' not found.")
    kind = fmt or infer_format(src)
    label = name or src.name

    if kind in ("csv", "tsv"):
        sep = "," if kind == "csv" else "\t"
        frame = pd.read_csv(src, sep=sep, index_col=0)
        frame.index = frame.index.astype(str)
        frame = frame.apply(pd.to_numeric, errors="coerce")
        n_before = int(frame.shape[0])
        frame = frame.dropna(axis=0, how="any")
        if frame.shape[0] < n_before:
            log.warning(
                "Dropped genes with missing values: dataset=%s n_dropped=%d",
                label,
                n_before - int(frame.shape[0]),
            )
        return CountMatrix.from_dataframe(frame, source=label)

    sc = _get_scanpy()
    if kind == "h5ad":
        adata = sc.read_h5ad(src)
    elif kind == "10x":
        adata = sc.read_10x_mtx(src, var_names="gene_ids", cache=False)
    else:
        raise ValueError(f"Unsupported matrix format '{kind}'. Use one of {MATRIX_FORMATS}.")
    adata.var_names_make_unique()
    adata.obs_names_make_unique()
    return CountMatrix.from_anndata(adata, source=label)


def write_count_matrix(matrix: CountMatrix, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    sep = "\t" if out.suffix.lower() in (".tsv", ".txt") else ","
    matrix.to_frame().to_csv(out.as_posix(), sep=sep)
    return out
