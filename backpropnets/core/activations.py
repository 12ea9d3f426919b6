"""Activation registry for BackPropNets.

Every activation is a pair of vectorised functions ``f`` and ``fprime``.
``fprime`` is expressed in terms of the forward *output* ``y = f(z)``, which is
what the backward recursion has at hand. Both accept an optional ``out`` array
so that layers can evaluate them in place on their own buffers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .types import Array

ActivationFn = Callable[..., Array]


@dataclass(frozen=True)
class Activation:
    """Forward function and its derivative (as a function of the output)."""

    name: str
    f: ActivationFn
    fprime: ActivationFn

    def __call__(self, x: Array, out: Array | None = None) -> Array:
        return self.f(x, out=out)


def _out(x: Array, out: Array | None) -> Array:
    if out is None:
        return np.array(x, dtype=np.float64, copy=True)
    if out is not x:
        np.copyto(out, x)
    return out


def identity(x: Array, out: Array | None = None) -> Array:
    """Return ``x`` unchanged."""

    return _out(x, out)


def identity_prime(y: Array, out: Array | None = None) -> Array:
    out = _out(y, out)
    out.fill(1.0)
    return out


def logistic(x: Array, out: Array | None = None) -> Array:
    """Logistic sigmoid, computed as ``(1 + tanh(x / 2)) / 2`` to avoid overflow."""

    out = _out(x, out)
    out *= 0.5
    np.tanh(out, out=out)
    out += 1.0
    out *= 0.5
    return out


def logistic_prime(y: Array, out: Array | None = None) -> Array:
    if out is None or out is y:
        return np.multiply(y, 1.0 - y, out=out)
    np.subtract(1.0, y, out=out)
    out *= y
    return out


def tanh(x: Array, out: Array | None = None) -> Array:
    out = _out(x, out)
    np.tanh(out, out=out)
    return out


def tanh_prime(y: Array, out: Array | None = None) -> Array:
    out = _out(y, out)
    np.multiply(out, out, out=out)
    np.subtract(1.0, out, out=out)
    return out


def relu(x: Array, out: Array | None = None) -> Array:
    """Return the ReLU activation."""

    out = _out(x, out)
    np.maximum(out, 0.0, out=out)
    return out


def relu_prime(y: Array, out: Array | None = None) -> Array:
    out = _out(y, out)
    np.greater(out, 0.0, out=out)
    return out


def softmax(x: Array, out: Array | None = None) -> Array:
    """Row-wise softmax. Only meaningful as an output activation."""

    out = _out(x, out)
    out -= out.max(axis=1, keepdims=True)
    np.exp(out, out=out)
    out /= out.sum(axis=1, keepdims=True)
    return out


class ActivationRegistry:
    """Name to :class:`Activation` mapping."""

    def __init__(self) -> None:
        self._registry: Dict[str, Activation] = {}

    def register(self, name: str, f: ActivationFn, fprime: ActivationFn) -> Activation:
        activation = Activation(name, f, fprime)
        self._registry[name] = activation
        return activation

    def alias(self, alias: str, name: str) -> None:
        self._registry[alias] = self._registry[name]

    def get(self, name: str) -> Activation:
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown activation {name!r}. Available activations: {available}")
        return self._registry[name]

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry


REGISTRY = ActivationRegistry()
REGISTRY.register("identity", identity, identity_prime)
REGISTRY.register("logistic", logistic, logistic_prime)
REGISTRY.register("tanh", tanh, tanh_prime)
REGISTRY.register("relu", relu, relu_prime)
# The diagonal of the softmax Jacobian, y * (1 - y).
REGISTRY.register("softmax", softmax, logistic_prime)
REGISTRY.alias("sigmoid", "logistic")
REGISTRY.alias("linear", "identity")


def get(name: str) -> Activation:
    """Return the registered activation called ``name``."""

    return REGISTRY.get(name)


__all__ = ["Activation", "ActivationRegistry", "REGISTRY", "get", "relu", "logistic"]
