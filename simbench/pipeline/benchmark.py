"""End-to-end benchmark: load real data, simulate, compare, summarise, report.

Every independent unit (dataset load, simulation, per-version statistics,
per-gene fit chunk) is dispatched through an explicit `WorkerPool`. Joins
happen only when a dataset's comparison tables are assembled.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from simbench._version import __version__
from simbench.comparison import VersionComparison, assemble_comparison
from simbench.config import BenchmarkConfig, DatasetSpec
from simbench.core.cells import compute_cell_stats
from simbench.core.errors import VersionSetError
from simbench.core.features import compute_feature_stats
from simbench.core.matrix import CountMatrix, DatasetVersion, DatasetVersionSet
from simbench.core.properties import PROPERTY_NAMES
from simbench.core.types import (
    GOF_FIELDS,
    CellStatsTable,
    ComparisonTable,
    DifferenceRecord,
    FeatureStatsTable,
    GoFConfig,
    SummaryConfig,
)
from simbench.parallel import WorkerPool
from simbench.pipeline.io import ensure_dir, load_count_matrix, setup_logger, write_json, write_table
from simbench.seeding import rng_from_seed, seed_for_unit, stable_seed
from simbench.simulators import Simulator, get_simulator, simulate_from
from simbench.stats.gof import attach_fit, gof_columns, summarize_gof
from simbench.summary import rank_summary, records_to_frame, summarize_differences

GOF_CHUNK_SIZE = 500


@dataclass(frozen=True)
class SimulationUnit:
    dataset: str
    model: str
    seed: int
    real: CountMatrix
    simulator: Simulator


@dataclass(frozen=True)
class SimulationOutcome:
    dataset: str
    model: str
    seed: int
    matrix: CountMatrix | None
    runtime_sec: float
    error: str | None = None


@dataclass(frozen=True)
class StatsUnit:
    dataset: str
    label: str
    matrix: CountMatrix


@dataclass(frozen=True)
class GoFChunk:
    dataset: str
    label: str
    start: int
    counts: np.ndarray
    gene_ids: tuple[str, ...]
    config: GoFConfig


@dataclass(frozen=True)
class DatasetResult:
    dataset: str
    comparison: VersionComparison
    records: tuple[DifferenceRecord, ...]
    gof_summary: pd.DataFrame | None = None


@dataclass
class BenchmarkResult:
    datasets: dict[str, DatasetResult]
    differences: pd.DataFrame
    ranks: pd.DataFrame
    simulations: list[SimulationOutcome] = field(default_factory=list)
    outputs: dict[str, str] = field(default_factory=dict)


def _load_dataset(spec: DatasetSpec) -> CountMatrix:
    return load_count_matrix(spec.path, fmt=spec.format, name=spec.name)


def _simulate_unit(unit: SimulationUnit) -> SimulationOutcome:
    t0 = time.perf_counter()
    try:
        matrix = simulate_from(unit.simulator, unit.real, unit.seed)
    except (ValueError, ArithmeticError) as exc:
        return SimulationOutcome(
            dataset=unit.dataset,
            model=unit.model,
            seed=unit.seed,
            matrix=None,
            runtime_sec=time.perf_counter() - t0,
            error=f"{type(exc).__name__}: {exc}",
        )
    return SimulationOutcome(
        dataset=unit.dataset,
        model=unit.model,
        seed=unit.seed,
        matrix=matrix,
        runtime_sec=time.perf_counter() - t0,
    )


def _stats_unit(unit: StatsUnit) -> tuple[FeatureStatsTable, CellStatsTable]:
    return (
        compute_feature_stats(unit.matrix, label=unit.label),
        compute_cell_stats(unit.matrix, label=unit.label),
    )


def _gof_chunk(chunk: GoFChunk) -> dict[str, np.ndarray]:
    return gof_columns(chunk.counts, chunk.config, gene_ids=chunk.gene_ids)


def subsample_cells(matrix: CountMatrix, max_cells: int, seed: int) -> CountMatrix:
    """Keep at most `max_cells` cells, chosen by a dedicated seeded generator."""
    if matrix.n_cells <= int(max_cells):
        return matrix
    rng = rng_from_seed(seed)
    idx = np.sort(rng.choice(matrix.n_cells, size=int(max_cells), replace=False))
    return matrix.subset_cells(idx)


def _gof_chunks(units: Sequence[StatsUnit], config: GoFConfig, chunk_size: int) -> list[GoFChunk]:
    chunks: list[GoFChunk] = []
    for unit in units:
        X = unit.matrix.counts
        for start in range(0, unit.matrix.n_genes, int(chunk_size)):
            stop = min(start + int(chunk_size), unit.matrix.n_genes)
            chunks.append(
                GoFChunk(
                    dataset=unit.dataset,
                    label=unit.label,
                    start=start,
                    counts=np.array(X[start:stop]),
                    gene_ids=unit.matrix.gene_ids[start:stop],
                    config=config,
                )
            )
    return chunks


def _merge_gof(
    chunks: Sequence[GoFChunk],
    results: Sequence[dict[str, np.ndarray]],
    n_genes: dict[tuple[str, str], int],
) -> dict[tuple[str, str], dict[str, np.ndarray]]:
    merged = {key: {k: np.full(n, np.nan, dtype=float) for k in GOF_FIELDS} for key, n in n_genes.items()}
    for chunk, cols in zip(chunks, results):
        dest = merged[(chunk.dataset, chunk.label)]
        stop = chunk.start + chunk.counts.shape[0]
        for k in GOF_FIELDS:
            dest[k][chunk.start:stop] = cols[k]
    return merged


def analyse_version_sets(
    version_sets: Sequence[DatasetVersionSet],
    *,
    properties: Sequence[str] = PROPERTY_NAMES,
    fit_gof: bool = True,
    gof: GoFConfig | None = None,
    summary: SummaryConfig | None = None,
    pool: WorkerPool | None = None,
    logger: logging.Logger | None = None,
    gof_chunk_size: int = GOF_CHUNK_SIZE,
) -> dict[str, DatasetResult]:
    """Statistics, comparison tables, difference records and fit summaries per dataset."""
    log = logger or logging.getLogger("simbench")
    workers = pool or WorkerPool()
    gof_cfg = gof or GoFConfig()
    sum_cfg = summary or SummaryConfig()

    names = [vs.dataset for vs in version_sets]
    if len(names) > 1 and any(name is None for name in names):
        raise VersionSetError("Every dataset version set needs a dataset name when analysing more than one.")
    duplicates = sorted({str(name) for name in names if names.count(name) > 1})
    if duplicates:
        raise VersionSetError(f"Duplicate dataset names across version sets: {', '.join(duplicates)}.")

    units = [
        StatsUnit(dataset=str(vs.dataset), label=label, matrix=version.matrix)
        for vs in version_sets
        for label, version in vs.items()
    ]
    log.info("Computing statistics: n_units=%d n_jobs=%s", len(units), workers.n_jobs)
    stats = workers.map(_stats_unit, units)
    by_key = {(u.dataset, u.label): s for u, s in zip(units, stats)}

    if fit_gof:
        chunks = _gof_chunks(units, gof_cfg, gof_chunk_size)
        log.info("Fitting distributions: n_chunks=%d chunk_size=%d", len(chunks), int(gof_chunk_size))
        fitted = workers.map(_gof_chunk, chunks)
        merged = _merge_gof(chunks, fitted, {(u.dataset, u.label): u.matrix.n_genes for u in units})
        by_key = {key: (attach_fit(fs, merged[key]), cs) for key, (fs, cs) in by_key.items()}

    results: dict[str, DatasetResult] = {}
    for vs in version_sets:
        name = str(vs.dataset)
        feature_stats = {label: by_key[(name, label)][0] for label in vs}
        cell_stats = {label: by_key[(name, label)][1] for label in vs}
        comparison = assemble_comparison(
            feature_stats,
            cell_stats,
            reference=vs.reference,
            properties=properties,
            dataset=name,
        )
        records = summarize_differences(comparison, vs.reference, sum_cfg, dataset=name)
        gof_frame = None
        if fit_gof:
            gof_frame = summarize_gof(feature_stats, gof_cfg.p_threshold)
            gof_frame.insert(0, "Dataset", name)
        for rec in records:
            if rec.rank == 1 and rec.statistic_name == sum_cfg.statistics[0]:
                log.info(
                    "Closest model: dataset=%s property=%s model=%s %s=%.6g",
                    name,
                    rec.property,
                    rec.model,
                    rec.statistic_name,
                    rec.statistic,
                )
        results[name] = DatasetResult(
            dataset=name,
            comparison=comparison,
            records=tuple(records),
            gof_summary=gof_frame,
        )
    return results


def _concat(frames: list[pd.DataFrame]) -> pd.DataFrame:
    frames = [f for f in frames if f is not None and not f.empty]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def _write_figures(results: dict[str, DatasetResult], fig_root: Path, statistic: str) -> list[str]:
    from simbench.plotting import (
        apply_style,
        plot_difference_heatmap,
        plot_gof_summary,
        plot_joint_property,
        plot_property_distributions,
        sanitize_label,
    )

    apply_style()
    written: list[str] = []
    for name, res in results.items():
        ds_dir = fig_root / sanitize_label(name)
        for prop, table in res.comparison.items():
            out = ds_dir / f"{sanitize_label(prop)}.png"
            if isinstance(table, ComparisonTable):
                written.append(plot_property_distributions(table, out, title=f"{name}: {prop}").as_posix())
            else:
                written.append(plot_joint_property(table, out, title=f"{name}: {prop}").as_posix())
        written.append(
            plot_difference_heatmap(
                res.records,
                ds_dir / "difference_heatmap.png",
                statistic=statistic,
                title=f"{name}: difference from reference",
            ).as_posix()
        )
        if res.gof_summary is not None:
            written.append(
                plot_gof_summary(res.gof_summary, ds_dir / "gof_summary.png", title=f"{name}: goodness of fit").as_posix()
            )
    return written


def write_outputs(
    results: dict[str, DatasetResult],
    outdir: str | Path,
    *,
    make_plots: bool = True,
    statistic: str = "MAD",
    metadata: dict[str, Any] | None = None,
    logger: logging.Logger | None = None,
) -> tuple[pd.DataFrame, pd.DataFrame, dict[str, str]]:
    log = logger or logging.getLogger("simbench")
    root = Path(outdir)
    tables_dir = root / "tables"
    ensure_dir(tables_dir)

    differences = records_to_frame([r for res in results.values() for r in res.records])
    ranks = rank_summary(differences, statistic=statistic)
    feature_frames = []
    cell_frames = []
    for name, res in results.items():
        for fs in res.comparison.feature_stats.values():
            df = fs.to_frame()
            df.insert(0, "Dataset", name)
            feature_frames.append(df)
        for cs in res.comparison.cell_stats.values():
            df = cs.to_frame()
            df.insert(0, "Dataset", name)
            cell_frames.append(df)

    outputs = {
        "differences": write_table(differences, tables_dir / "differences.csv").as_posix(),
        "rank_summary": write_table(ranks, tables_dir / "rank_summary.csv").as_posix(),
        "feature_stats": write_table(_concat(feature_frames), tables_dir / "feature_stats.csv").as_posix(),
        "cell_stats": write_table(_concat(cell_frames), tables_dir / "cell_stats.csv").as_posix(),
    }
    gof_frames = [res.gof_summary for res in results.values() if res.gof_summary is not None]
    if gof_frames:
        outputs["gof_summary"] = write_table(_concat(gof_frames), tables_dir / "gof_summary.csv").as_posix()

    if make_plots:
        figures = _write_figures(results, root / "figures", statistic)
        log.info("Wrote figures: n=%d", len(figures))

    meta = dict(metadata or {})
    meta.update(
        {
            "simbench_version": __version__,
            "datasets": {
                name: {
                    "reference": res.comparison.reference,
                    "versions": list(res.comparison.labels),
                    "n_records": len(res.records),
                }
                for name, res in results.items()
            },
            "outputs": outputs,
        }
    )
    meta_path = root / "metadata.json"
    write_json(meta_path, meta)
    outputs["metadata"] = meta_path.as_posix()
    for key, path in outputs.items():
        log.info("Saved %s: %s", key, path)
    return differences, ranks, outputs


def run_benchmark(
    config: BenchmarkConfig,
    pool: WorkerPool | None = None,
    logger: logging.Logger | None = None,
) -> BenchmarkResult:
    """Run the full benchmark described by `config`."""
    outdir = Path(config.outdir)
    ensure_dir(outdir)
    log = logger or setup_logger(outdir / "logs" / "benchmark.log", "simbench")
    workers = pool or WorkerPool(n_jobs=config.n_jobs, backend=config.backend)

    simulators = {model: get_simulator(model) for model in config.models}

    log.info("Loading datasets: n=%d", len(config.datasets))
    loaded = workers.map(_load_dataset, config.datasets)
    real: dict[str, CountMatrix] = {}
    for spec, matrix in zip(config.datasets, loaded):
        if config.max_cells is not None:
            matrix = subsample_cells(
                matrix, config.max_cells, stable_seed(config.seed, "subsample", spec.name)
            )
        log.info("Loaded dataset=%s n_genes=%d n_cells=%d", spec.name, matrix.n_genes, matrix.n_cells)
        real[spec.name] = matrix

    sim_units = [
        SimulationUnit(
            dataset=name,
            model=model,
            seed=seed_for_unit(config.seed, name, model),
            real=matrix,
            simulator=simulators[model],
        )
        for name, matrix in real.items()
        for model in config.models
    ]
    log.info("Simulating: n_units=%d", len(sim_units))
    outcomes = workers.map(_simulate_unit, sim_units, require_seed=True)

    versions: dict[str, list[DatasetVersion]] = {
        name: [DatasetVersion(label=config.reference_label, matrix=m, dataset=name)]
        for name, m in real.items()
    }
    for out in outcomes:
        if out.matrix is None:
            log.warning(
                "Simulation skipped: dataset=%s model=%s seed=%d reason=%s",
                out.dataset,
                out.model,
                out.seed,
                out.error,
            )
            continue
        log.info(
            "Simulated dataset=%s model=%s seed=%d runtime_sec=%.2f",
            out.dataset,
            out.model,
            out.seed,
            out.runtime_sec,
        )
        versions[out.dataset].append(DatasetVersion(label=out.model, matrix=out.matrix, dataset=out.dataset))

    version_sets = [
        DatasetVersionSet(vs, reference=config.reference_label, dataset=name)
        for name, vs in versions.items()
    ]
    results = analyse_version_sets(
        version_sets,
        properties=config.properties,
        fit_gof=config.fit_gof,
        gof=config.gof,
        summary=config.summary,
        pool=workers,
        logger=log,
    )
    metadata = {
        "seed": config.seed,
        "models": list(config.models),
        "properties": list(config.properties),
        "simulations": [
            {"dataset": o.dataset, "model": o.model, "seed": o.seed, "error": o.error}
            for o in outcomes
        ],
        "summary": {
            "mad_method": config.summary.mad_method,
            "scale": config.summary.scale,
            "rank_ascending": config.summary.rank_ascending,
            "statistics": list(config.summary.statistics),
        },
        "gof_p_threshold": config.gof.p_threshold,
    }
    differences, ranks, outputs = write_outputs(
        results,
        outdir,
        make_plots=config.make_plots,
        statistic=config.summary.statistics[0],
        metadata=metadata,
        logger=log,
    )
    return BenchmarkResult(
        datasets=results,
        differences=differences,
        ranks=ranks,
        simulations=list(outcomes),
        outputs=outputs,
    )
