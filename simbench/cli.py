"""Command-line interface for simbench."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from simbench.config import load_benchmark_config
from simbench.core.errors import CountMatrixError, UnknownPropertyError, VersionSetError
from simbench.core.matrix import REFERENCE_LABEL, DatasetVersion, DatasetVersionSet
from simbench.core.properties import PROPERTY_NAMES
from simbench.core.types import MAD_METHODS, SCALE_METHODS, SUMMARY_STATISTICS, GoFConfig, SummaryConfig
from simbench.parallel import BACKENDS, WorkerPool
from simbench.pipeline.benchmark import analyse_version_sets, run_benchmark, write_outputs
from simbench.pipeline.io import ensure_dir, load_count_matrix, setup_logger
from simbench.simulators import UnknownSimulatorError

_USER_ERRORS = (
    CountMatrixError,
    UnknownPropertyError,
    VersionSetError,
    UnknownSimulatorError,
    FileNotFoundError,
    ValueError,
)


def _parse_sim_arg(raw: str) -> tuple[str, str]:
    label, sep, path = raw.partition("=")
    if not sep or not label.strip() or not path.strip():
        raise argparse.ArgumentTypeError(f"expected LABEL=PATH, got '{raw}'")
    return label.strip(), path.strip()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="simbench", description="Benchmark scRNA-seq simulators against real data")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Simulate and compare every dataset named in a JSON config")
    run.add_argument("--config", required=True, help="Path to benchmark JSON config")
    run.add_argument("--n-jobs", type=int, default=None, help="Override n_jobs from the config")

    cmp_ = sub.add_parser("compare", help="Compare existing simulated matrices with a real one")
    cmp_.add_argument("--real", required=True, help="Real count matrix (csv, tsv, h5ad or 10x directory)")
    cmp_.add_argument(
        "--sim",
        action="append",
        required=True,
        type=_parse_sim_arg,
        metavar="LABEL=PATH",
        help="Simulated count matrix; repeat for each model",
    )
    cmp_.add_argument("--outdir", required=True, help="Output directory")
    cmp_.add_argument("--dataset", default="dataset", help="Dataset name used in outputs")
    cmp_.add_argument("--reference-label", default=REFERENCE_LABEL)
    cmp_.add_argument("--properties", nargs="+", default=list(PROPERTY_NAMES), choices=list(PROPERTY_NAMES))
    cmp_.add_argument("--gof", action="store_true", help="Fit NB, LN, Norm and Poi per gene")
    cmp_.add_argument("--mad-method", default="median_abs", choices=list(MAD_METHODS))
    cmp_.add_argument("--scale", default="minmax", choices=list(SCALE_METHODS))
    cmp_.add_argument("--statistics", nargs="+", default=["MAD"], choices=list(SUMMARY_STATISTICS))
    cmp_.add_argument("--n-jobs", type=int, default=1)
    cmp_.add_argument("--backend", default="loky", choices=list(BACKENDS))
    cmp_.add_argument("--no-plots", action="store_true", help="Skip figure generation")
    return parser


def _run(args: argparse.Namespace) -> int:
    config = load_benchmark_config(args.config)
    pool = WorkerPool(
        n_jobs=config.n_jobs if args.n_jobs is None else int(args.n_jobs),
        backend=config.backend,
    )
    result = run_benchmark(config, pool=pool)
    print(f"outdir={Path(config.outdir).as_posix()}")
    print(f"n_records={len(result.differences)}")
    return 0


def _compare(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir)
    ensure_dir(outdir)
    logger = setup_logger(outdir / "logs" / "compare.log", "simbench")

    versions = [
        DatasetVersion(
            label=args.reference_label,
            matrix=load_count_matrix(args.real, name=args.reference_label, logger=logger),
            dataset=args.dataset,
        )
    ]
    for label, path in args.sim:
        versions.append(
            DatasetVersion(label=label, matrix=load_count_matrix(path, name=label, logger=logger), dataset=args.dataset)
        )
    version_set = DatasetVersionSet(versions, reference=args.reference_label, dataset=args.dataset)
    for label, version in version_set.items():
        logger.info(
            "Loaded version=%s n_genes=%d n_cells=%d", label, version.matrix.n_genes, version.matrix.n_cells
        )

    summary = SummaryConfig(mad_method=args.mad_method, scale=args.scale, statistics=tuple(args.statistics))
    gof = GoFConfig()
    results = analyse_version_sets(
        [version_set],
        properties=tuple(args.properties),
        fit_gof=bool(args.gof),
        gof=gof,
        summary=summary,
        pool=WorkerPool(n_jobs=int(args.n_jobs), backend=args.backend),
        logger=logger,
    )
    differences, _, _ = write_outputs(
        results,
        outdir,
        make_plots=not args.no_plots,
        statistic=summary.statistics[0],
        metadata={
            "command": "compare",
            "real": Path(args.real).as_posix(),
            "sim": {label: Path(path).as_posix() for label, path in args.sim},
            "mad_method": summary.mad_method,
            "fit_gof": bool(args.gof),
        },
        logger=logger,
    )
    print(f"outdir={outdir.as_posix()}")
    print(f"n_records={len(differences)}")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        if args.command == "run":
            return _run(args)
        return _compare(args)
    except _USER_ERRORS as exc:
        logging.getLogger("simbench").error("%s: %s", type(exc).__name__, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
