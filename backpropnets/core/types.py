"""Core typing contracts for BackPropNets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

Array = np.ndarray

Shape = Tuple[int, int]


@dataclass(frozen=True)
class Batch:
    """A matched pair of input rows and target rows."""

    inputs: Array
    targets: Array

    def __len__(self) -> int:
        return int(self.inputs.shape[0])


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :meth:`backpropnets.training.trainer.Trainer.run`."""

    epochs: int
    final_loss: float
    metrics_path: str = ""
    manifest_path: str = ""
    summary_path: str = ""
    params_path: str = ""
    stopped_early: bool = False


@dataclass(frozen=True)
class ModelDescription:
    """Layer widths of a network, input first, output last."""

    layer_dims: List[int]

    @property
    def layer_shapes(self) -> List[Shape]:
        """``(inputs, outputs)`` per layer, bias row excluded."""

        dims = self.layer_dims
        return [(dims[idx], dims[idx + 1]) for idx in range(len(dims) - 1)]


class DivergenceError(FloatingPointError):
    """A non-finite value appeared during forward or backward propagation."""


class ShapeAdaptationWarning(UserWarning):
    """An existing layer was replaced because incoming data changed width."""


StateDict = Dict[str, Array]

__all__ = [
    "Array",
    "Batch",
    "DivergenceError",
    "ModelDescription",
    "RunResult",
    "Shape",
    "ShapeAdaptationWarning",
    "StateDict",
]
