"""Typed configuration, record and table containers for simbench core operations."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from simbench.core.properties import PROPERTY_NAMES, resolve_properties

DISTRIBUTIONS: tuple[str, ...] = ("NB", "LN", "Norm", "Poi")
GOF_FIELDS: tuple[str, ...] = (
    "NBChi",
    "NBPVal",
    "LNChi",
    "LNPVal",
    "NormChi",
    "NormPVal",
    "PoiChi",
    "PoiPVal",
)
MAD_METHODS: tuple[str, ...] = ("median_abs", "scaled")
SCALE_METHODS: tuple[str, ...] = ("minmax", "zscore")
SUMMARY_STATISTICS: tuple[str, ...] = ("MAD", "MAE", "RMSE")
MAD_CONSISTENCY = 1.4826


@dataclass(frozen=True)
class GoFConfig:
    """Goodness-of-fit settings.

    - `p_threshold`: a fit is accepted when its p-value exceeds this value.
    - `min_cells` / `min_nonzero`: below these counts every fit is undefined.
    """

    p_threshold: float = 0.01
    min_cells: int = 10
    min_nonzero: int = 3
    lognormal_pseudocount: float = 1.0
    nb_size_bounds: tuple[float, float] = (1e-4, 1e6)

    def __post_init__(self) -> None:
        if not 0.0 < float(self.p_threshold) < 1.0:
            raise ValueError("p_threshold must be in (0, 1).")
        if int(self.min_cells) < 2:
            raise ValueError("min_cells must be at least 2.")
        if int(self.min_nonzero) < 1:
            raise ValueError("min_nonzero must be at least 1.")
        if float(self.lognormal_pseudocount) <= 0.0:
            raise ValueError("lognormal_pseudocount must be positive.")
        lo, hi = (float(b) for b in self.nb_size_bounds)
        if not 0.0 < lo < hi:
            raise ValueError("nb_size_bounds must satisfy 0 < low < high.")


@dataclass(frozen=True)
class ComparisonConfig:
    properties: tuple[str, ...] = PROPERTY_NAMES
    fit_gof: bool = False
    gof: GoFConfig = field(default_factory=GoFConfig)

    def __post_init__(self) -> None:
        specs = resolve_properties(self.properties)
        object.__setattr__(self, "properties", tuple(s.name for s in specs))


@dataclass(frozen=True)
class SummaryConfig:
    """Difference summary settings.

    - `mad_method`: ``"median_abs"`` is median(|diff|); ``"scaled"`` is
      1.4826 * median(|diff - median(diff)|).
    - `scale`: ``"minmax"`` maps statistics to [0, 1] per property;
      ``"zscore"`` centres and scales them.
    - `rank_ascending`: rank 1 goes to the smallest statistic when True.
    """

    mad_method: str = "median_abs"
    scale: str = "minmax"
    rank_ascending: bool = True
    statistics: tuple[str, ...] = ("MAD",)

    def __post_init__(self) -> None:
        if self.mad_method not in MAD_METHODS:
            raise ValueError(f"mad_method must be one of {MAD_METHODS}, got '{self.mad_method}'.")
        if self.scale not in SCALE_METHODS:
            raise ValueError(f"scale must be one of {SCALE_METHODS}, got '{self.scale}'.")
        stats = tuple(str(s) for s in self.statistics)
        if not stats:
            raise ValueError("statistics must name at least one summary statistic.")
        unknown = [s for s in stats if s not in SUMMARY_STATISTICS]
        if unknown:
            raise ValueError(f"Unknown summary statistic(s): {unknown}. Use {SUMMARY_STATISTICS}.")
        object.__setattr__(self, "statistics", tuple(dict.fromkeys(stats)))


@dataclass(frozen=True)
class GoFResult:
    """Per-gene fit statistics; NaN marks a fit that could not be made."""

    nb_chi: float = float("nan")
    nb_pval: float = float("nan")
    ln_chi: float = float("nan")
    ln_pval: float = float("nan")
    norm_chi: float = float("nan")
    norm_pval: float = float("nan")
    poi_chi: float = float("nan")
    poi_pval: float = float("nan")

    @property
    def pvalues(self) -> dict[str, float]:
        return {
            "NB": self.nb_pval,
            "LN": self.ln_pval,
            "Norm": self.norm_pval,
            "Poi": self.poi_pval,
        }

    @property
    def not_fit(self) -> bool:
        return not any(np.isfinite(p) for p in self.pvalues.values())

    def as_row(self) -> dict[str, float]:
        return dict(
            zip(
                GOF_FIELDS,
                (
                    self.nb_chi,
                    self.nb_pval,
                    self.ln_chi,
                    self.ln_pval,
                    self.norm_chi,
                    self.norm_pval,
                    self.poi_chi,
                    self.poi_pval,
                ),
            )
        )


@dataclass(frozen=True)
class FeatureStats:
    gene: str
    mean: float
    variance: float
    zeros: float
    lib_size_corr: float
    fit: GoFResult | None = None

    @property
    def not_fit(self) -> bool | None:
        return None if self.fit is None else self.fit.not_fit


@dataclass(frozen=True)
class CellStats:
    cell: str
    library_size: float
    zeros: float


def _frozen(values: np.ndarray) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class FeatureStatsTable(Sequence[FeatureStats]):
    """Column-oriented per-gene statistics for one dataset version.

    Indexing by position or gene id yields `FeatureStats` records.
    """

    gene_ids: tuple[str, ...]
    mean: np.ndarray
    variance: np.ndarray
    zeros: np.ndarray
    lib_size_corr: np.ndarray
    fit: Mapping[str, np.ndarray] | None = None
    label: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "gene_ids", tuple(str(g) for g in self.gene_ids))
        n = len(self.gene_ids)
        for name in ("mean", "variance", "zeros", "lib_size_corr"):
            arr = _frozen(getattr(self, name))
            if arr.shape != (n,):
                raise ValueError(f"{name} must have shape ({n},), got {arr.shape}.")
            object.__setattr__(self, name, arr)
        if self.fit is not None:
            missing = [k for k in GOF_FIELDS if k not in self.fit]
            if missing:
                raise ValueError(f"fit columns missing: {missing}")
            cols = {k: _frozen(self.fit[k]) for k in GOF_FIELDS}
            for k, arr in cols.items():
                if arr.shape != (n,):
                    raise ValueError(f"fit column {k} must have shape ({n},), got {arr.shape}.")
            object.__setattr__(self, "fit", cols)
        object.__setattr__(self, "_pos", {g: i for i, g in enumerate(self.gene_ids)})

    def __len__(self) -> int:
        return len(self.gene_ids)

    def __getitem__(self, key):
        if isinstance(key, slice):
            return [self[i] for i in range(len(self))[key]]
        if isinstance(key, str):
            idx = self._pos[key]
        else:
            idx = range(len(self))[int(key)]
        fit = None
        if self.fit is not None:
            c = self.fit
            fit = GoFResult(
                nb_chi=float(c["NBChi"][idx]),
                nb_pval=float(c["NBPVal"][idx]),
                ln_chi=float(c["LNChi"][idx]),
                ln_pval=float(c["LNPVal"][idx]),
                norm_chi=float(c["NormChi"][idx]),
                norm_pval=float(c["NormPVal"][idx]),
                poi_chi=float(c["PoiChi"][idx]),
                poi_pval=float(c["PoiPVal"][idx]),
            )
        return FeatureStats(
            gene=self.gene_ids[idx],
            mean=float(self.mean[idx]),
            variance=float(self.variance[idx]),
            zeros=float(self.zeros[idx]),
            lib_size_corr=float(self.lib_size_corr[idx]),
            fit=fit,
        )

    def __iter__(self) -> Iterator[FeatureStats]:
        for i in range(len(self)):
            yield self[i]

    @property
    def has_fit(self) -> bool:
        return self.fit is not None

    @property
    def not_fit(self) -> np.ndarray:
        if self.fit is None:
            raise ValueError("Feature statistics carry no goodness-of-fit columns.")
        pvals = np.column_stack([self.fit[k] for k in GOF_FIELDS if k.endswith("PVal")])
        return ~np.isfinite(pvals).any(axis=1)

    def column(self, name: str) -> np.ndarray:
        if name in ("mean", "variance", "zeros", "lib_size_corr"):
            return getattr(self, name)
        raise KeyError(f"Unknown feature statistic '{name}'.")

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            {
                "Gene": list(self.gene_ids),
                "Mean": self.mean,
                "Variance": self.variance,
                "ZerosGene": self.zeros,
                "LibSizeCorr": self.lib_size_corr,
            }
        )
        if self.fit is not None:
            for k in GOF_FIELDS:
                df[k] = self.fit[k]
            df["NotFit"] = self.not_fit
        if self.label is not None:
            df.insert(0, "Version", self.label)
        return df


@dataclass(frozen=True, eq=False)
class CellStatsTable(Sequence[CellStats]):
    """Column-oriented per-cell statistics for one dataset version."""

    cell_ids: tuple[str, ...]
    library_size: np.ndarray
    zeros: np.ndarray
    label: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "cell_ids", tuple(str(c) for c in self.cell_ids))
        n = len(self.cell_ids)
        for name in ("library_size", "zeros"):
            arr = _frozen(getattr(self, name))
            if arr.shape != (n,):
                raise ValueError(f"{name} must have shape ({n},), got {arr.shape}.")
            object.__setattr__(self, name, arr)
        object.__setattr__(self, "_pos", {c: i for i, c in enumerate(self.cell_ids)})

    def __len__(self) -> int:
        return len(self.cell_ids)

    def __getitem__(self, key):
        if isinstance(key, slice):
            return [self[i] for i in range(len(self))[key]]
        idx = self._pos[key] if isinstance(key, str) else range(len(self))[int(key)]
        return CellStats(
            cell=self.cell_ids[idx],
            library_size=float(self.library_size[idx]),
            zeros=float(self.zeros[idx]),
        )

    def __iter__(self) -> Iterator[CellStats]:
        for i in range(len(self)):
            yield self[i]

    def column(self, name: str) -> np.ndarray:
        if name in ("library_size", "zeros"):
            return getattr(self, name)
        raise KeyError(f"Unknown cell statistic '{name}'.")

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            {
                "Cell": list(self.cell_ids),
                "LibSize": self.library_size,
                "ZerosCell": self.zeros,
            }
        )
        if self.label is not None:
            df.insert(0, "Version", self.label)
        return df


@dataclass(frozen=True, eq=False)
class ComparisonTable:
    """One scalar property across versions; each vector is sorted ascending."""

    property: str
    level: str
    reference: str
    values: Mapping[str, np.ndarray]

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(self.values)

    def vector(self, label: str) -> np.ndarray:
        return self.values[label]

    def to_frame(self) -> pd.DataFrame:
        frames = [
            pd.DataFrame({"Version": label, "Property": self.property, "Value": vec})
            for label, vec in self.values.items()
        ]
        return pd.concat(frames, ignore_index=True)


@dataclass(frozen=True, eq=False)
class JointComparisonTable:
    """Paired per-gene values (x, y) across versions, ordered by x within each version."""

    property: str
    level: str
    reference: str
    x_name: str
    y_name: str
    x: Mapping[str, np.ndarray]
    y: Mapping[str, np.ndarray]

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(self.x)

    def pairs(self, label: str) -> tuple[np.ndarray, np.ndarray]:
        return self.x[label], self.y[label]

    def to_frame(self) -> pd.DataFrame:
        frames = [
            pd.DataFrame(
                {
                    "Version": label,
                    "Property": self.property,
                    "X": self.x[label],
                    "Y": self.y[label],
                }
            )
            for label in self.x
        ]
        return pd.concat(frames, ignore_index=True)


@dataclass(frozen=True)
class DifferenceRecord:
    property: str
    model: str
    statistic: float
    scaled: float
    rank: int
    statistic_name: str = "MAD"
    dataset: str | None = None

    def as_row(self) -> dict[str, object]:
        return {
            "Dataset": self.dataset,
            "Property": self.property,
            "Model": self.model,
            "Statistic": self.statistic_name,
            "Value": self.statistic,
            "Scaled": self.scaled,
            "Rank": self.rank,
        }
