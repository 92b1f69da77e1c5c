"""Count matrix and dataset-version containers.

Matrices are stored genes x cells as dense float64 arrays. Validation happens
once, at construction, so every downstream statistic can assume the contract:
two dimensions, finite non-negative values, unique gene and cell identifiers.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
import scipy.sparse as sp

from simbench.core.errors import CountMatrixError, VersionSetError

REFERENCE_LABEL = "Real"


def _as_id_tuple(ids: Iterable[Any] | None, n: int, prefix: str) -> tuple[str, ...]:
    if ids is None:
        return tuple(f"{prefix}{i + 1}" for i in range(n))
    return tuple(str(x) for x in ids)


def _first_duplicate(ids: Sequence[str]) -> str | None:
    seen: set[str] = set()
    for x in ids:
        if x in seen:
            return x
        seen.add(x)
    return None


@dataclass(frozen=True, eq=False)
class CountMatrix:
    """Genes x cells count matrix with string identifiers."""

    counts: np.ndarray
    gene_ids: tuple[str, ...]
    cell_ids: tuple[str, ...]
    source: str | None = None

    def __post_init__(self) -> None:
        raw = self.counts
        if sp.issparse(raw):
            raw = raw.toarray()
        try:
            arr = np.array(raw, dtype=float)
        except (TypeError, ValueError) as exc:
            raise CountMatrixError(
                "numeric_values", f"counts are not numeric ({exc}).", self.source
            ) from exc
        if arr.ndim != 2:
            raise CountMatrixError(
                "two_dimensional",
                f"expected a genes x cells matrix, got {arr.ndim} dimension(s).",
                self.source,
            )
        genes = tuple(str(g) for g in self.gene_ids)
        cells = tuple(str(c) for c in self.cell_ids)
        if len(genes) != arr.shape[0]:
            raise CountMatrixError(
                "gene_dimension",
                f"{len(genes)} gene ids for {arr.shape[0]} matrix rows.",
                self.source,
            )
        if len(cells) != arr.shape[1]:
            raise CountMatrixError(
                "cell_dimension",
                f"{len(cells)} cell ids for {arr.shape[1]} matrix columns.",
                self.source,
            )
        dup = _first_duplicate(genes)
        if dup is not None:
            raise CountMatrixError("unique_gene_ids", f"duplicate gene id '{dup}'.", self.source)
        dup = _first_duplicate(cells)
        if dup is not None:
            raise CountMatrixError("unique_cell_ids", f"duplicate cell id '{dup}'.", self.source)
        if arr.size:
            bad = ~np.isfinite(arr)
            if bad.any():
                g, c = np.argwhere(bad)[0]
                raise CountMatrixError(
                    "finite_values",
                    f"non-finite value at gene '{genes[g]}', cell '{cells[c]}'.",
                    self.source,
                )
            neg = arr < 0
            if neg.any():
                g, c = np.argwhere(neg)[0]
                raise CountMatrixError(
                    "non_negative",
                    f"negative count {arr[g, c]:g} at gene '{genes[g]}', cell '{cells[c]}'.",
                    self.source,
                )
        arr.setflags(write=False)
        object.__setattr__(self, "counts", arr)
        object.__setattr__(self, "gene_ids", genes)
        object.__setattr__(self, "cell_ids", cells)

    @property
    def n_genes(self) -> int:
        return int(self.counts.shape[0])

    @property
    def n_cells(self) -> int:
        return int(self.counts.shape[1])

    @property
    def shape(self) -> tuple[int, int]:
        return (self.n_genes, self.n_cells)

    @classmethod
    def from_array(
        cls,
        counts: Any,
        gene_ids: Iterable[Any] | None = None,
        cell_ids: Iterable[Any] | None = None,
        source: str | None = None,
    ) -> "CountMatrix":
        """Build from a genes x cells array; missing ids become Gene1.., Cell1..."""
        shape = counts.shape if hasattr(counts, "shape") else np.shape(counts)
        n_genes = int(shape[0]) if len(shape) > 0 else 0
        n_cells = int(shape[1]) if len(shape) > 1 else 0
        return cls(
            counts=counts,
            gene_ids=_as_id_tuple(gene_ids, n_genes, "Gene"),
            cell_ids=_as_id_tuple(cell_ids, n_cells, "Cell"),
            source=source,
        )

    @classmethod
    def from_dataframe(cls, frame: pd.DataFrame, source: str | None = None) -> "CountMatrix":
        """Build from a data frame with genes as rows and cells as columns."""
        try:
            values = frame.to_numpy(dtype=float)
        except (TypeError, ValueError) as exc:
            raise CountMatrixError(
                "numeric_values", f"data frame holds non-numeric counts ({exc}).", source
            ) from exc
        return cls(
            counts=values,
            gene_ids=tuple(str(x) for x in frame.index),
            cell_ids=tuple(str(x) for x in frame.columns),
            source=source,
        )

    @classmethod
    def from_anndata(cls, adata: Any, layer: str | None = None, source: str | None = None) -> "CountMatrix":
        """Build from an AnnData object (cells x genes), transposing to genes x cells."""
        X = adata.X if layer is None else adata.layers[layer]
        if X is None:
            raise CountMatrixError("numeric_values", "AnnData object has no matrix.", source)
        if sp.issparse(X):
            dense = X.toarray()
        else:
            dense = np.asarray(X)
        return cls(
            counts=dense.T,
            gene_ids=tuple(str(x) for x in adata.var_names),
            cell_ids=tuple(str(x) for x in adata.obs_names),
            source=source,
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            np.array(self.counts), index=list(self.gene_ids), columns=list(self.cell_ids)
        )

    def subset_cells(self, idx: np.ndarray) -> "CountMatrix":
        keep = np.asarray(idx, dtype=int)
        return CountMatrix(
            counts=self.counts[:, keep],
            gene_ids=self.gene_ids,
            cell_ids=tuple(self.cell_ids[i] for i in keep),
            source=self.source,
        )

    def __repr__(self) -> str:
        return f"CountMatrix(n_genes={self.n_genes}, n_cells={self.n_cells}, source={self.source!r})"


@dataclass(frozen=True)
class DatasetVersion:
    """One labelled version (real or simulated) of a dataset."""

    label: str
    matrix: CountMatrix
    dataset: str | None = None


class DatasetVersionSet(Mapping[str, DatasetVersion]):
    """Real dataset plus its simulated counterparts, keyed by label.

    Insertion order is preserved and exactly one label is the reference.
    """

    def __init__(
        self,
        versions: Iterable[DatasetVersion],
        reference: str = REFERENCE_LABEL,
        dataset: str | None = None,
    ):
        items: dict[str, DatasetVersion] = {}
        for version in versions:
            label = str(version.label)
            if label in items:
                raise VersionSetError(f"Duplicate dataset version label '{label}'.")
            items[label] = version
        if reference not in items:
            raise VersionSetError(
                f"Reference version '{reference}' missing; labels present: {', '.join(items) or '<none>'}."
            )
        self._items = items
        self.reference = str(reference)
        self.dataset = dataset

    @classmethod
    def from_matrices(
        cls,
        matrices: Mapping[str, CountMatrix],
        reference: str = REFERENCE_LABEL,
        dataset: str | None = None,
    ) -> "DatasetVersionSet":
        return cls(
            [DatasetVersion(label=k, matrix=v, dataset=dataset) for k, v in matrices.items()],
            reference=reference,
            dataset=dataset,
        )

    def __getitem__(self, label: str) -> DatasetVersion:
        return self._items[label]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def reference_version(self) -> DatasetVersion:
        return self._items[self.reference]

    @property
    def comparison_labels(self) -> tuple[str, ...]:
        return tuple(k for k in self._items if k != self.reference)

    def __repr__(self) -> str:
        return (
            f"DatasetVersionSet(dataset={self.dataset!r}, reference={self.reference!r}, "
            f"labels={list(self._items)})"
        )
