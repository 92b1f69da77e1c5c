"""Explicit worker pool with deterministic, order-stable aggregation."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, is_dataclass
from typing import Any, TypeVar

from joblib import Parallel, delayed

T = TypeVar("T")
R = TypeVar("R")

BACKENDS = ("loky", "multiprocessing", "threading")


def _item_seed(item: Any) -> int | None:
    if isinstance(item, dict):
        seed = item.get("seed")
        return int(seed) if seed is not None else None
    if is_dataclass(item) or hasattr(item, "seed"):
        seed = getattr(item, "seed", None)
        return int(seed) if seed is not None else None
    return None


def _validate_items_have_seed(items: list[Any]) -> None:
    missing = [idx for idx, item in enumerate(items) if _item_seed(item) is None]
    if missing:
        head = ",".join(str(i) for i in missing[:5])
        raise ValueError(
            "WorkerPool.map(require_seed=True) needs every item to carry a deterministic `seed` "
            f"(missing at indices: {head}{'...' if len(missing) > 5 else ''})."
        )


def _call_indexed(func: Callable[[T], R], indexed: tuple[int, T]) -> tuple[int, R]:
    idx, item = indexed
    return idx, func(item)


@dataclass(frozen=True)
class WorkerPool:
    """Run independent units of work; results always follow input order.

    `n_jobs == 1` runs serially in-process. Functions and items must be
    picklable for the process-based backends.
    """

    n_jobs: int = 1
    backend: str = "loky"
    batch_size: int | str = "auto"

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {BACKENDS}, got '{self.backend}'.")
        if int(self.n_jobs) == 0:
            raise ValueError("n_jobs must be non-zero.")

    @property
    def is_serial(self) -> bool:
        return int(self.n_jobs) == 1

    def map(
        self,
        func: Callable[[T], R],
        items: Iterable[T],
        *,
        require_seed: bool = False,
    ) -> list[R]:
        seq = list(items)
        if not seq:
            return []
        if require_seed:
            _validate_items_have_seed(seq)
        if self.is_serial or len(seq) == 1:
            return [func(item) for item in seq]
        rows = Parallel(
            n_jobs=int(self.n_jobs),
            backend=self.backend,
            batch_size=self.batch_size,
        )(delayed(_call_indexed)(func, pair) for pair in enumerate(seq))
        rows.sort(key=lambda x: x[0])
        return [row for _, row in rows]


SERIAL_POOL = WorkerPool()
