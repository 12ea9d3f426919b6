"""Loss and regularisation strategies for the MLP driver.

A loss function is called once per layer during the backward pass::

    fn(targets, x_aug, weights, predictions, diff, gradient,
       alpha, l1_ratio, n_samples, activation) -> float

It writes ``predictions - targets`` into ``diff``, fills ``gradient`` with
``x_aug.T @ diff / n_samples`` plus the regularisation term, and returns the
per-sample loss. The bias row (row 0 of ``weights``) is never regularised.
``activation`` is the layer's activation; the built-in losses do not need it
because each is paired with its canonical output activation, for which
``diff`` is already the derivative of the loss with respect to the
pre-activation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.activations import Activation
from ..core.types import Array
from ..core.views import BiasAugmentedView

LossFn = Callable[
    [Array, BiasAugmentedView, Array, Array, Array, Array, float, float, int, Activation],
    float,
]

_EPS = 1e-10


@dataclass(frozen=True)
class Loss:
    """A loss function and the output activation it expects."""

    name: str
    fn: LossFn
    out_activation: str

    def __call__(
        self,
        targets: Array,
        x_aug: BiasAugmentedView,
        weights: Array,
        predictions: Array,
        diff: Array,
        gradient: Array,
        alpha: float,
        l1_ratio: float,
        n_samples: int,
        activation: Activation,
    ) -> float:
        return self.fn(
            targets,
            x_aug,
            weights,
            predictions,
            diff,
            gradient,
            alpha,
            l1_ratio,
            n_samples,
            activation,
        )


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, fn: LossFn, *, out_activation: str = "identity") -> Loss:
        loss = Loss(name, fn, out_activation)
        self._registry[name] = loss
        return loss

    def alias(self, alias: str, name: str) -> None:
        self._registry[alias] = self._registry[name]

    def get(self, name: str) -> Loss:
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry


def regularize(weights: Array, gradient: Array, alpha: float, l1_ratio: float, n_samples: int) -> float:
    """Add the elastic-net penalty gradient in place and return the penalty."""

    if alpha == 0.0:
        return 0.0
    W = weights[1:]
    scale = alpha / n_samples
    penalty = 0.0
    if l1_ratio > 0.0:
        penalty += l1_ratio * float(np.abs(W).sum())
        gradient[1:] += scale * l1_ratio * np.sign(W)
    if l1_ratio < 1.0:
        penalty += (1.0 - l1_ratio) * 0.5 * float(np.square(W).sum())
        gradient[1:] += scale * (1.0 - l1_ratio) * W
    return scale * penalty


def _gradient(x_aug: BiasAugmentedView, diff: Array, gradient: Array, n_samples: int) -> None:
    x_aug.tmatmul(diff, out=gradient)
    gradient /= n_samples


def square_loss(
    targets, x_aug, weights, predictions, diff, gradient, alpha, l1_ratio, n_samples, activation
) -> float:
    """Half the squared error, summed over outputs, averaged over samples."""

    np.subtract(predictions, targets, out=diff)
    value = 0.5 * float(np.square(diff).sum()) / n_samples
    _gradient(x_aug, diff, gradient, n_samples)
    return value + regularize(weights, gradient, alpha, l1_ratio, n_samples)


def log_loss(
    targets, x_aug, weights, predictions, diff, gradient, alpha, l1_ratio, n_samples, activation
) -> float:
    """Binary (one-vs-rest per column) log-loss on logistic outputs."""

    np.subtract(predictions, targets, out=diff)
    p = np.clip(predictions, _EPS, 1.0 - _EPS)
    value = -float(np.sum(targets * np.log(p) + (1.0 - targets) * np.log1p(-p))) / n_samples
    _gradient(x_aug, diff, gradient, n_samples)
    return value + regularize(weights, gradient, alpha, l1_ratio, n_samples)


def cross_entropy_loss(
    targets, x_aug, weights, predictions, diff, gradient, alpha, l1_ratio, n_samples, activation
) -> float:
    """Categorical cross-entropy on softmax outputs.

    A single output column is a logistic unit, where this reduces to the
    binary log-loss.
    """

    if predictions.shape[1] == 1:
        return log_loss(
            targets, x_aug, weights, predictions, diff, gradient, alpha, l1_ratio, n_samples, activation
        )
    np.subtract(predictions, targets, out=diff)
    p = np.clip(predictions, _EPS, 1.0)
    value = -float(np.sum(targets * np.log(p))) / n_samples
    _gradient(x_aug, diff, gradient, n_samples)
    return value + regularize(weights, gradient, alpha, l1_ratio, n_samples)


REGISTRY = LossRegistry()
REGISTRY.register("square", square_loss, out_activation="identity")
REGISTRY.register("log", log_loss, out_activation="logistic")
REGISTRY.register("cross-entropy", cross_entropy_loss, out_activation="softmax")
REGISTRY.alias("mse", "square")
REGISTRY.alias("binary-cross-entropy", "log")


def get(name: str) -> Loss:
    return REGISTRY.get(name)


__all__ = [
    "Loss",
    "LossRegistry",
    "REGISTRY",
    "cross_entropy_loss",
    "get",
    "log_loss",
    "regularize",
    "square_loss",
]
