"""Dataset registry and loader helpers."""

# Built-in datasets register themselves on import.
from . import csv_generic as _csv_generic  # noqa: F401
from . import sklearn_toy as _sklearn_toy  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .registry import (
    DatasetSpec,
    DataSpec,
    available_datasets,
    get_dataset,
    iter_batches,
    register_dataset,
)

__all__ = [
    "DataSpec",
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "iter_batches",
    "register_dataset",
]
