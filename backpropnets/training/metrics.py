"""Metric helpers for the MLP estimators and the trainer.

Predictions are network outputs, i.e. probabilities for classifiers: one
column is thresholded at 0.5, several columns are compared by argmax.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping

import numpy as np

from ..core.types import Array


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(task_type: str) -> List[str]:
    if task_type == "regression":
        return ["mse", "mae", "r2"]
    if task_type in {"binary", "multiclass"}:
        return ["accuracy"]
    raise ValueError(f"Unknown task type: {task_type}")


def _labels(values: Array) -> Array:
    values = np.asarray(values)
    if values.ndim == 2 and values.shape[1] > 1:
        return np.argmax(values, axis=1)
    return (values.reshape(-1) >= 0.5).astype(int)


def accuracy(predictions: Array, targets: Array) -> float:
    return float(np.mean(_labels(predictions) == _labels(targets)))


def mse(predictions: Array, targets: Array) -> float:
    return float(np.mean((predictions - targets) ** 2))


def mae(predictions: Array, targets: Array) -> float:
    return float(np.mean(np.abs(predictions - targets)))


def rmse(predictions: Array, targets: Array) -> float:
    return float(np.sqrt(mse(predictions, targets)))


def r2(predictions: Array, targets: Array) -> float:
    """Coefficient of determination pooled over all output columns."""

    mean = np.mean(targets, axis=0, keepdims=True)
    ss_res = float(np.sum((targets - predictions) ** 2))
    ss_tot = float(np.sum((targets - mean) ** 2))
    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0
    return 1.0 - ss_res / ss_tot


_METRICS: Dict[str, Callable[[Array, Array], float]] = {
    "accuracy": accuracy,
    "mse": mse,
    "mae": mae,
    "rmse": rmse,
    "r2": r2,
}


def compute_metric(name: str, predictions: Array, targets: Array) -> MetricResult:
    key = name.lower()
    if key not in _METRICS:
        available = ", ".join(sorted(_METRICS))
        raise KeyError(f"Unknown metric {name!r}. Available metrics: {available}")
    predictions = np.asarray(predictions, dtype=np.float64)
    targets = np.asarray(targets, dtype=np.float64)
    if predictions.shape != targets.shape:
        targets = targets.reshape(predictions.shape)
    return MetricResult(name=key, value=_METRICS[key](predictions, targets))


def compute_metrics(
    names: Iterable[str],
    predictions: Array,
    targets: Array,
    *,
    task_type: str | None = None,
) -> Mapping[str, float]:
    """Evaluate ``names`` (or the task's defaults when empty)."""

    names = list(names)
    if not names:
        if task_type is None:
            raise ValueError("compute_metrics needs metric names or a task_type")
        names = default_metrics(task_type)
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets)
        results[metric.name] = metric.value
    return results


__all__ = [
    "MetricResult",
    "accuracy",
    "compute_metric",
    "compute_metrics",
    "default_metrics",
    "mae",
    "mse",
    "r2",
    "rmse",
]
