"""Core data model and descriptive statistics."""

from simbench.core.cells import compute_cell_stats
from simbench.core.errors import CountMatrixError, UnknownPropertyError, VersionSetError
from simbench.core.features import compute_feature_stats
from simbench.core.matrix import REFERENCE_LABEL, CountMatrix, DatasetVersion, DatasetVersionSet
from simbench.core.properties import PROPERTIES, PROPERTY_NAMES, PropertySpec, resolve_properties
from simbench.core.types import (
    CellStats,
    CellStatsTable,
    ComparisonConfig,
    ComparisonTable,
    DifferenceRecord,
    FeatureStats,
    FeatureStatsTable,
    GoFConfig,
    GoFResult,
    JointComparisonTable,
    SummaryConfig,
)

__all__ = [
    "CountMatrix",
    "DatasetVersion",
    "DatasetVersionSet",
    "REFERENCE_LABEL",
    "CountMatrixError",
    "UnknownPropertyError",
    "VersionSetError",
    "PROPERTIES",
    "PROPERTY_NAMES",
    "PropertySpec",
    "resolve_properties",
    "FeatureStats",
    "FeatureStatsTable",
    "CellStats",
    "CellStatsTable",
    "GoFConfig",
    "GoFResult",
    "ComparisonConfig",
    "ComparisonTable",
    "JointComparisonTable",
    "SummaryConfig",
    "DifferenceRecord",
    "compute_feature_stats",
    "compute_cell_stats",
]
