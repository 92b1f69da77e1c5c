"""Fixed registry of compared properties.

The names and their order are consumed by downstream reporting and must not
change.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from simbench.core.errors import UnknownPropertyError


@dataclass(frozen=True)
class PropertySpec:
    name: str
    level: str
    x_field: str
    y_field: str | None = None

    @property
    def is_joint(self) -> bool:
        return self.y_field is not None


PROPERTIES: dict[str, PropertySpec] = {
    "Mean": PropertySpec("Mean", "gene", "mean"),
    "Variance": PropertySpec("Variance", "gene", "variance"),
    "ZerosGene": PropertySpec("ZerosGene", "gene", "zeros"),
    "MeanVar": PropertySpec("MeanVar", "gene", "mean", "variance"),
    "MeanZeros": PropertySpec("MeanZeros", "gene", "mean", "zeros"),
    "LibSize": PropertySpec("LibSize", "cell", "library_size"),
    "ZerosCell": PropertySpec("ZerosCell", "cell", "zeros"),
}

PROPERTY_NAMES: tuple[str, ...] = tuple(PROPERTIES)


def resolve_properties(names: Iterable[str] | None = None) -> tuple[PropertySpec, ...]:
    """Map property names to specs, preserving order and dropping repeats."""
    if names is None:
        return tuple(PROPERTIES.values())
    out: list[PropertySpec] = []
    seen: set[str] = set()
    for name in names:
        key = str(name)
        if key not in PROPERTIES:
            raise UnknownPropertyError(key, PROPERTY_NAMES)
        if key in seen:
            continue
        seen.add(key)
        out.append(PROPERTIES[key])
    return tuple(out)
