"""Fully-connected layer with owned scratch buffers."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .activations import Activation
from .optimizers import Optimizer
from .types import Array, Shape


def glorot_bound(inputs: int, outputs: int, activation: Activation) -> float:
    """Half-width of the uniform initialisation interval for one layer."""

    factor = 2.0 if activation.name == "logistic" else 6.0
    return float(np.sqrt(factor / (inputs + outputs)))


@dataclass
class Layer:
    """One affine transform (bias row 0 of ``weights``) followed by an activation.

    ``predictions``, ``targets`` and ``diff`` have shape ``(batch, outputs)``;
    ``gradient`` and ``update`` share the shape of ``weights``. They are sized
    by :meth:`ensure_buffers` and only reallocated when the layer needs more
    rows than it owns; a smaller batch works on a row slice of the storage.
    """

    weights: Array
    activation: Activation
    optimizer: Optimizer
    predictions: Array | None = field(default=None, repr=False)
    targets: Array | None = field(default=None, repr=False)
    diff: Array | None = field(default=None, repr=False)
    gradient: Array | None = field(default=None, repr=False)
    update: Array | None = field(default=None, repr=False)
    _storage: tuple[Array, Array, Array] | None = field(default=None, init=False, repr=False)

    @classmethod
    def create(
        cls,
        inputs: int,
        outputs: int,
        activation: Activation,
        optimizer: Optimizer,
        rng: np.random.Generator,
    ) -> "Layer":
        """Return a layer with small uniform random weights, bias row included."""

        bound = glorot_bound(inputs, outputs, activation)
        weights = rng.uniform(-bound, bound, size=(1 + inputs, outputs))
        return cls(weights=weights, activation=activation, optimizer=optimizer)

    @property
    def inputs(self) -> int:
        return int(self.weights.shape[0]) - 1

    @property
    def outputs(self) -> int:
        return int(self.weights.shape[1])

    @property
    def shape(self) -> Shape:
        return self.inputs, self.outputs

    @property
    def capacity(self) -> int:
        return 0 if self._storage is None else int(self._storage[0].shape[0])

    def ensure_buffers(self, samples: int, inputs: int) -> None:
        """Make the per-batch buffers view exactly ``samples`` rows."""

        if inputs != self.inputs:
            raise ValueError(
                f"layer expects {self.inputs} inputs, got a batch with {inputs} columns"
            )
        outputs = self.outputs
        reallocated = False
        if self._storage is None or self.capacity < samples or self._storage[0].shape[1] != outputs:
            self._storage = (
                np.zeros((samples, outputs)),
                np.zeros((samples, outputs)),
                np.zeros((samples, outputs)),
            )
            reallocated = True
        if self.gradient is None or self.gradient.shape != self.weights.shape:
            self.gradient = np.zeros_like(self.weights)
            self.update = np.zeros_like(self.weights)
        if reallocated or self.predictions is None or self.predictions.shape[0] != samples:
            predictions, targets, diff = self._storage
            self.predictions = predictions[:samples]
            self.targets = targets[:samples]
            self.diff = diff[:samples]

    def apply_update(self) -> None:
        """Ask the optimizer for an update from ``gradient`` and add it in place."""

        if self.gradient is None or self.update is None:
            raise RuntimeError("apply_update called before any backward pass")
        self.optimizer.update(self.gradient, out=self.update)
        self.weights += self.update

    def release(self) -> None:
        """Drop the scratch buffers; they are re-created on next use."""

        self._storage = None
        self.predictions = self.targets = self.diff = None
        self.gradient = self.update = None


__all__ = ["Layer", "glorot_bound"]
