"""simbench public API."""

from simbench._version import __version__
from simbench.comparison import VersionComparison, assemble_comparison, compare_versions
from simbench.core.cells import compute_cell_stats
from simbench.core.features import compute_feature_stats
from simbench.core.matrix import CountMatrix, DatasetVersion, DatasetVersionSet
from simbench.core.properties import PROPERTY_NAMES
from simbench.core.types import ComparisonConfig, GoFConfig, SummaryConfig
from simbench.stats.gof import GoodnessOfFitTester, compute_gof_stats
from simbench.summary import summarize_differences


def run_benchmark(*args, **kwargs):
    """Lazy wrapper to avoid importing plotting and loaders at import time."""
    from simbench.pipeline.benchmark import run_benchmark as _run_benchmark

    return _run_benchmark(*args, **kwargs)


__all__ = [
    "__version__",
    "CountMatrix",
    "DatasetVersion",
    "DatasetVersionSet",
    "PROPERTY_NAMES",
    "ComparisonConfig",
    "GoFConfig",
    "SummaryConfig",
    "compute_feature_stats",
    "compute_cell_stats",
    "GoodnessOfFitTester",
    "compute_gof_stats",
    "VersionComparison",
    "assemble_comparison",
    "compare_versions",
    "summarize_differences",
    "run_benchmark",
]
