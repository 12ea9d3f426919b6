"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, MutableMapping

import numpy as np

from ..core.types import Batch

TASK_TYPES = ("regression", "binary", "multiclass")


@dataclass(frozen=True)
class DataSpec:
    """Structural information about a dataset.

    Attributes
    ----------
    d_in:
        Number of input features after preprocessing.
    d_out:
        Number of target columns as consumed by the network.
    task_type:
        One of ``{"regression", "binary", "multiclass"}``.
    num_classes:
        Number of discrete classes for classification tasks.
    normalization:
        Parameters of any scaling applied to inputs or targets, kept so that
        a run can be reproduced; the registry does not interpret them.
    """

    d_in: int
    d_out: int
    task_type: str
    num_classes: int | None = None
    normalization: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DatasetSpec:
    """A loaded dataset: in-memory splits plus metadata."""

    name: str
    splits: Dict[str, Batch]
    data_spec: DataSpec
    provenance: Dict[str, Any]

    def split(self, name: str) -> Batch:
        if name not in self.splits:
            raise ValueError(f"Unknown split: {name}")
        return self.splits[name]

    @property
    def sizes(self) -> Dict[str, int]:
        return {name: len(batch) for name, batch in self.splits.items()}


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("moons")
        def make_moons(**options):
            ...

    or directly::

        register_dataset("moons", make_moons)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str, /, **options: Any) -> DatasetSpec:
    """Build the dataset registered as ``dataset`` with ``options``."""

    if dataset not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown dataset {dataset!r}. Available datasets: {available}")
    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    data_spec = spec.data_spec
    if data_spec.task_type not in TASK_TYPES:
        raise ValueError(f"Invalid task type: {data_spec.task_type}")
    if data_spec.task_type != "regression" and data_spec.num_classes is None:
        raise ValueError("Classification datasets must define num_classes")
    if "train" not in spec.splits or len(spec.splits["train"]) == 0:
        raise ValueError(f"Dataset {spec.name!r} has an empty train split")
    for split, batch in spec.splits.items():
        if batch.inputs.ndim != 2 or batch.targets.ndim != 2:
            raise ValueError(f"Split {split!r} must hold 2-D inputs and targets")
        if batch.inputs.shape[1] != data_spec.d_in or batch.targets.shape[1] != data_spec.d_out:
            raise ValueError(
                f"Split {split!r} has shapes {batch.inputs.shape}/{batch.targets.shape}, "
                f"expected d_in={data_spec.d_in} d_out={data_spec.d_out}"
            )


def iter_batches(spec: DatasetSpec, split: str, batch_size: int, *, seed: int | None = None) -> Iterator[Batch]:
    """Yield ``split`` in consecutive mini-batches, shuffled when ``seed`` is given."""

    batch = spec.split(split)
    order = np.arange(len(batch))
    if seed is not None:
        np.random.default_rng(seed).shuffle(order)
    for start in range(0, order.size, batch_size):
        idx = order[start : start + batch_size]
        yield Batch(inputs=batch.inputs[idx], targets=batch.targets[idx])


__all__ = [
    "Batch",
    "DataSpec",
    "DatasetSpec",
    "TASK_TYPES",
    "available_datasets",
    "get_dataset",
    "iter_batches",
    "register_dataset",
]
