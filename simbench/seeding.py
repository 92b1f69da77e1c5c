"""Seeds for simulation and subsampling units, stable across processes and batches."""

from __future__ import annotations

import hashlib
from typing import Any

import numpy as np

_SEP = b"\x1f"


def stable_seed(master_seed: int, *tokens: Any) -> int:
    """uint32 seed from `master_seed` and the tokens naming a unit (dataset, model, purpose).

    Tokens are hashed in order with a separator, so ("ab", "c") and ("a", "bc")
    give different seeds. Python's salted `hash` is never used.
    """
    h = hashlib.sha256(str(int(master_seed)).encode("utf-8"))
    for tok in tokens:
        h.update(_SEP)
        h.update(str(tok).encode("utf-8"))
    return int.from_bytes(h.digest()[:4], "little")


def seed_for_unit(master_seed: int, dataset: str, model: str, purpose: str = "simulate") -> int:
    return stable_seed(int(master_seed), str(purpose), str(dataset), str(model))


def rng_from_seed(seed: int) -> np.random.Generator:
    return np.random.default_rng(int(seed))
