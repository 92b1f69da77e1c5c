"""Configuration loading utilities for simbench pipelines."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from simbench.core.matrix import REFERENCE_LABEL
from simbench.core.properties import PROPERTY_NAMES, resolve_properties
from simbench.core.types import GoFConfig, SummaryConfig
from simbench.parallel import BACKENDS


def load_json_config(path: str | Path) -> dict[str, Any]:
    """Load and validate a pipeline config from a JSON file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    if config_path.suffix.lower() != ".json":
        raise ValueError(
            f"Unsupported config format for '{config_path}'. Use a .json config file."
        )

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config '{config_path}' at line {exc.lineno}, "
            f"column {exc.colno}: {exc.msg}"
        ) from exc

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid config root in '{config_path}': expected JSON object, got {type(data).__name__}."
        )
    return data


@dataclass(frozen=True)
class DatasetSpec:
    name: str
    path: str
    format: str | None = None


@dataclass(frozen=True)
class BenchmarkConfig:
    outdir: str
    datasets: tuple[DatasetSpec, ...]
    models: tuple[str, ...]
    seed: int = 0
    n_jobs: int = 1
    backend: str = "loky"
    reference_label: str = REFERENCE_LABEL
    properties: tuple[str, ...] = PROPERTY_NAMES
    fit_gof: bool = True
    gof: GoFConfig = field(default_factory=GoFConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    make_plots: bool = True
    max_cells: int | None = None


_TOP_LEVEL_KEYS = {
    "outdir",
    "datasets",
    "models",
    "seed",
    "n_jobs",
    "backend",
    "reference_label",
    "properties",
    "fit_gof",
    "gof",
    "summary",
    "make_plots",
    "max_cells",
}


def _parse_dataset(entry: Any, idx: int, base_dir: Path | None) -> DatasetSpec:
    if not isinstance(entry, dict):
        raise ValueError(f"datasets[{idx}] must be an object with 'name' and 'path'.")
    if "name" not in entry or "path" not in entry:
        raise ValueError(f"datasets[{idx}] requires both 'name' and 'path'.")
    path = Path(str(entry["path"]))
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    fmt = entry.get("format")
    return DatasetSpec(name=str(entry["name"]), path=path.as_posix(), format=None if fmt is None else str(fmt))


def parse_benchmark_config(data: dict[str, Any], base_dir: str | Path | None = None) -> BenchmarkConfig:
    """Validate a config mapping and build a `BenchmarkConfig`.

    Relative dataset paths resolve against `base_dir` when given.
    """
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ValueError(f"Unknown config key(s): {unknown}")
    for key in ("outdir", "datasets", "models"):
        if key not in data:
            raise ValueError(f"Config is missing required key '{key}'.")

    base = Path(base_dir) if base_dir is not None else None
    raw_datasets = data["datasets"]
    if not isinstance(raw_datasets, list) or not raw_datasets:
        raise ValueError("'datasets' must be a non-empty list.")
    datasets = tuple(_parse_dataset(d, i, base) for i, d in enumerate(raw_datasets))
    names = [d.name for d in datasets]
    if len(set(names)) != len(names):
        raise ValueError(f"Dataset names must be unique, got {names}.")

    models = data["models"]
    if not isinstance(models, list) or not all(isinstance(m, str) for m in models):
        raise ValueError("'models' must be a list of simulator names.")
    reference = str(data.get("reference_label", REFERENCE_LABEL))
    if reference in models:
        raise ValueError(f"Model name '{reference}' collides with the reference label.")
    if len(set(models)) != len(models):
        raise ValueError(f"Model names must be unique, got {models}.")

    backend = str(data.get("backend", "loky"))
    if backend not in BACKENDS:
        raise ValueError(f"backend must be one of {BACKENDS}, got '{backend}'.")

    props = data.get("properties")
    properties = PROPERTY_NAMES if props is None else tuple(s.name for s in resolve_properties(props))

    gof_raw = data.get("gof", {}) or {}
    summary_raw = data.get("summary", {}) or {}
    if not isinstance(gof_raw, dict) or not isinstance(summary_raw, dict):
        raise ValueError("'gof' and 'summary' must be JSON objects.")
    try:
        gof = GoFConfig(**{k: (tuple(v) if isinstance(v, list) else v) for k, v in gof_raw.items()})
        summary = SummaryConfig(**{k: (tuple(v) if isinstance(v, list) else v) for k, v in summary_raw.items()})
    except TypeError as exc:
        raise ValueError(f"Invalid 'gof' or 'summary' section: {exc}") from exc

    max_cells = data.get("max_cells")
    if max_cells is not None and int(max_cells) <= 0:
        raise ValueError("max_cells must be positive when given.")

    return BenchmarkConfig(
        outdir=str(data["outdir"]),
        datasets=datasets,
        models=tuple(models),
        seed=int(data.get("seed", 0)),
        n_jobs=int(data.get("n_jobs", 1)),
        backend=backend,
        reference_label=reference,
        properties=properties,
        fit_gof=bool(data.get("fit_gof", True)),
        gof=gof,
        summary=summary,
        make_plots=bool(data.get("make_plots", True)),
        max_cells=None if max_cells is None else int(max_cells),
    )


def load_benchmark_config(path: str | Path) -> BenchmarkConfig:
    config_path = Path(path)
    return parse_benchmark_config(load_json_config(config_path), base_dir=config_path.parent)
