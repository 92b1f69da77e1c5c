"""Baseline count simulators and the simulator registry.

Every simulator follows the same contract: ``estimate(real) -> params`` and
``simulate(params, seed) -> CountMatrix``. Randomness comes only from the
explicit seed passed to ``simulate``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import numpy as np

from simbench.core.matrix import CountMatrix
from simbench.seeding import rng_from_seed

DEFAULT_DISPERSION = 0.1
MIN_DISPERSION = 1e-3


class UnknownSimulatorError(KeyError):
    def __init__(self, name: str, known: tuple[str, ...]):
        self.name = str(name)
        self.known = tuple(known)
        super().__init__(f"Unknown simulator '{name}'. Registered: {', '.join(known) or '<none>'}.")

    def __str__(self) -> str:
        return str(self.args[0])

    def __reduce__(self):
        return (type(self), (self.name, self.known))


@runtime_checkable
class Simulator(Protocol):
    name: str

    def estimate(self, counts: CountMatrix) -> Any: ...

    def simulate(self, params: Any, seed: int) -> CountMatrix: ...


def _synthetic_ids(n: int, prefix: str) -> tuple[str, ...]:
    return tuple(f"{prefix}{i + 1}" for i in range(int(n)))


@dataclass(frozen=True)
class PoissonParams:
    gene_means: np.ndarray
    n_cells: int


class PoissonSimulator:
    """Independent Poisson counts with each gene's observed mean."""

    name = "Poisson"

    def estimate(self, counts: CountMatrix) -> PoissonParams:
        if counts.n_cells == 0:
            raise ValueError("Cannot estimate Poisson parameters from a matrix without cells.")
        return PoissonParams(gene_means=counts.counts.mean(axis=1), n_cells=counts.n_cells)

    def simulate(self, params: PoissonParams, seed: int) -> CountMatrix:
        rng = rng_from_seed(seed)
        lam = np.asarray(params.gene_means, dtype=float)[:, None]
        X = rng.poisson(lam, size=(lam.shape[0], int(params.n_cells)))
        return CountMatrix(
            counts=X.astype(float),
            gene_ids=_synthetic_ids(lam.shape[0], "Gene"),
            cell_ids=_synthetic_ids(params.n_cells, "Cell"),
            source=self.name,
        )


@dataclass(frozen=True)
class SimpleParams:
    n_genes: int
    n_cells: int
    mean_shape: float
    mean_rate: float
    dispersion: float


class SimpleSimulator:
    """Gamma-distributed gene means with negative binomial counts (common dispersion).

    Mean shape/rate are method-of-moments estimates over the positive gene
    means; the dispersion is the median of per-gene (var - mean) / mean^2,
    floored at 1e-3.
    """

    name = "Simple"

    def estimate(self, counts: CountMatrix) -> SimpleParams:
        if counts.n_cells < 2:
            raise ValueError("Simple estimation needs at least two cells.")
        X = counts.counts
        means = X.mean(axis=1)
        pos = means[means > 0]
        if pos.size < 2:
            raise ValueError("Simple estimation needs at least two expressed genes.")
        m, v = float(np.mean(pos)), float(np.var(pos, ddof=1))
        if v <= 0.0:
            raise ValueError("Gene means have no spread; gamma parameters are undefined.")
        variances = X.var(axis=1, ddof=1)
        keep = means > 0
        disp = (variances[keep] - means[keep]) / (means[keep] ** 2)
        disp = disp[np.isfinite(disp)]
        dispersion = float(np.median(disp)) if disp.size else DEFAULT_DISPERSION
        return SimpleParams(
            n_genes=counts.n_genes,
            n_cells=counts.n_cells,
            mean_shape=m * m / v,
            mean_rate=m / v,
            dispersion=max(dispersion, MIN_DISPERSION),
        )

    def simulate(self, params: SimpleParams, seed: int) -> CountMatrix:
        rng = rng_from_seed(seed)
        n_genes, n_cells = int(params.n_genes), int(params.n_cells)
        gene_means = rng.gamma(params.mean_shape, 1.0 / params.mean_rate, size=n_genes)
        phi = float(params.dispersion)
        lam = rng.gamma(1.0 / phi, (gene_means * phi)[:, None], size=(n_genes, n_cells))
        X = rng.poisson(lam)
        return CountMatrix(
            counts=X.astype(float),
            gene_ids=_synthetic_ids(n_genes, "Gene"),
            cell_ids=_synthetic_ids(n_cells, "Cell"),
            source=self.name,
        )


_REGISTRY: dict[str, Callable[[], Simulator]] = {
    PoissonSimulator.name: PoissonSimulator,
    SimpleSimulator.name: SimpleSimulator,
}


def register_simulator(name: str, factory: Callable[[], Simulator], *, overwrite: bool = False) -> None:
    key = str(name)
    if key in _REGISTRY and not overwrite:
        raise ValueError(f"Simulator '{key}' is already registered.")
    _REGISTRY[key] = factory


def available_simulators() -> tuple[str, ...]:
    return tuple(_REGISTRY)


def get_simulator(name: str) -> Simulator:
    key = str(name)
    if key not in _REGISTRY:
        raise UnknownSimulatorError(key, available_simulators())
    return _REGISTRY[key]()


def simulate_from(simulator: Simulator, real: CountMatrix, seed: int) -> CountMatrix:
    """Estimate on the real matrix, then simulate with an explicit seed."""
    return simulator.simulate(simulator.estimate(real), int(seed))
