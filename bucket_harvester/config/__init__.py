"""Configuration package exports."""

from .loader import BUILTIN_DATASETS, ConfigLocator, ConfigRepository
from .models import (
    RECIPES_DATASET,
    BucketQuery,
    DatasetConfig,
    GlobalConfig,
    JoinConfig,
    KeyStrategy,
    OrderByConfig,
    WhereCondition,
)

__all__ = [
    "BUILTIN_DATASETS",
    "BucketQuery",
    "ConfigLocator",
    "ConfigRepository",
    "DatasetConfig",
    "GlobalConfig",
    "JoinConfig",
    "KeyStrategy",
    "OrderByConfig",
    "RECIPES_DATASET",
    "WhereCondition",
]
