"""Per-layer optimizers for BackPropNets.

An optimizer turns a gradient into the delta that is *added* to a layer's
weights. One instance is created per layer, so any state it keeps (velocity,
moving averages, curvature pairs, step count) belongs to that layer alone and
is allocated lazily from the first gradient it sees.
"""

from __future__ import annotations

import warnings
from collections import deque
from dataclasses import dataclass, field, fields
from typing import Callable, Deque, Dict, Iterable, Mapping, Protocol, Tuple

import numpy as np

from .types import Array


class Optimizer(Protocol):
    """Protocol implemented by every optimizer."""

    def update(self, gradient: Array, out: Array | None = None) -> Array:
        """Write the weight delta for ``gradient`` into ``out`` and return it."""


def _target(gradient: Array, out: Array | None) -> Array:
    if out is None:
        return np.empty_like(gradient)
    if out.shape != gradient.shape:
        raise ValueError(f"update buffer {out.shape} does not match gradient {gradient.shape}")
    return out


def _check_positive(**values: float) -> None:
    for name, value in values.items():
        if not value > 0:
            raise ValueError(f"{name} must be > 0, got {value!r}")


def _check_unit(**values: float) -> None:
    for name, value in values.items():
        if not 0 <= value < 1:
            raise ValueError(f"{name} must be in [0, 1), got {value!r}")


class _FromParams:
    """Build an optimizer from a shared hyper-parameter mapping."""

    @classmethod
    def from_params(cls, params: Mapping[str, object]):
        names = {f.name for f in fields(cls) if f.init}  # type: ignore[arg-type]
        return cls(**{k: v for k, v in params.items() if k in names})


@dataclass
class SGD(_FromParams):
    """Gradient descent, optionally with (Nesterov) momentum."""

    learning_rate_init: float = 0.001
    momentum: float = 0.0
    nesterov: bool = False
    _velocity: Array | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        _check_positive(learning_rate_init=self.learning_rate_init)
        _check_unit(momentum=self.momentum)

    def update(self, gradient: Array, out: Array | None = None) -> Array:
        out = _target(gradient, out)
        lr = self.learning_rate_init
        if self.momentum == 0.0:
            np.multiply(gradient, -lr, out=out)
            return out
        if self._velocity is None or self._velocity.shape != gradient.shape:
            self._velocity = np.zeros_like(gradient)
        velocity = self._velocity
        velocity *= self.momentum
        velocity -= lr * gradient
        if self.nesterov:
            np.multiply(velocity, self.momentum, out=out)
            out -= lr * gradient
        else:
            np.copyto(out, velocity)
        return out


@dataclass
class Adagrad(_FromParams):
    """Per-weight learning rates scaled by the accumulated squared gradient."""

    learning_rate_init: float = 0.01
    epsilon: float = 1e-8
    _cache: Array | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        _check_positive(learning_rate_init=self.learning_rate_init, epsilon=self.epsilon)

    def update(self, gradient: Array, out: Array | None = None) -> Array:
        out = _target(gradient, out)
        if self._cache is None or self._cache.shape != gradient.shape:
            self._cache = np.zeros_like(gradient)
        self._cache += gradient * gradient
        np.sqrt(self._cache, out=out)
        out += self.epsilon
        np.divide(gradient, out, out=out)
        out *= -self.learning_rate_init
        return out


@dataclass
class RMSProp(_FromParams):
    """Learning rate scaled by a moving RMS of recent gradients."""

    learning_rate_init: float = 0.001
    rho: float = 0.9
    epsilon: float = 1e-8
    _cache: Array | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        _check_positive(learning_rate_init=self.learning_rate_init, epsilon=self.epsilon)
        _check_unit(rho=self.rho)

    def update(self, gradient: Array, out: Array | None = None) -> Array:
        out = _target(gradient, out)
        if self._cache is None or self._cache.shape != gradient.shape:
            self._cache = np.zeros_like(gradient)
        self._cache *= self.rho
        self._cache += (1.0 - self.rho) * gradient * gradient
        np.sqrt(self._cache, out=out)
        out += self.epsilon
        np.divide(gradient, out, out=out)
        out *= -self.learning_rate_init
        return out


@dataclass
class Adadelta(_FromParams):
    """Zeiler's Adadelta; ``scale`` multiplies the unit-free step."""

    rho: float = 0.95
    epsilon: float = 1e-6
    scale: float = 1.0
    _grad_sq: Array | None = field(default=None, init=False, repr=False)
    _step_sq: Array | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        _check_positive(epsilon=self.epsilon, scale=self.scale)
        _check_unit(rho=self.rho)

    def update(self, gradient: Array, out: Array | None = None) -> Array:
        out = _target(gradient, out)
        if self._grad_sq is None or self._grad_sq.shape != gradient.shape:
            self._grad_sq = np.zeros_like(gradient)
            self._step_sq = np.zeros_like(gradient)
        rho, eps = self.rho, self.epsilon
        self._grad_sq *= rho
        self._grad_sq += (1.0 - rho) * gradient * gradient
        np.divide(self._step_sq + eps, self._grad_sq + eps, out=out)
        np.sqrt(out, out=out)
        out *= gradient
        out *= -self.scale
        self._step_sq *= rho
        self._step_sq += (1.0 - rho) * out * out
        return out


@dataclass
class Adam(_FromParams):
    """Adaptive moment estimation with bias-corrected step size."""

    learning_rate_init: float = 0.001
    beta_1: float = 0.9
    beta_2: float = 0.999
    epsilon: float = 1e-8
    t: int = field(default=0, init=False)
    _m: Array | None = field(default=None, init=False, repr=False)
    _v: Array | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        _check_positive(learning_rate_init=self.learning_rate_init, epsilon=self.epsilon)
        _check_unit(beta_1=self.beta_1, beta_2=self.beta_2)

    def update(self, gradient: Array, out: Array | None = None) -> Array:
        out = _target(gradient, out)
        if self._m is None or self._m.shape != gradient.shape:
            self._m = np.zeros_like(gradient)
            self._v = np.zeros_like(gradient)
            self.t = 0
        self.t += 1
        b1, b2 = self.beta_1, self.beta_2
        self._m *= b1
        self._m += (1.0 - b1) * gradient
        self._v *= b2
        self._v += (1.0 - b2) * gradient * gradient
        lr_t = self.learning_rate_init * np.sqrt(1.0 - b2**self.t) / (1.0 - b1**self.t)
        np.sqrt(self._v, out=out)
        out += self.epsilon
        np.divide(self._m, out, out=out)
        out *= -lr_t
        return out


@dataclass
class LBFGS(_FromParams):
    """Limited-memory BFGS direction with a fixed step length.

    The last ``memory`` pairs ``(s, y)`` of weight steps and gradient changes
    approximate the inverse Hessian through the two-loop recursion. Pairs with
    non-positive curvature ``s·y`` are skipped so the direction stays a
    descent direction. Without history the step is plain gradient descent.
    """

    learning_rate_init: float = 0.001
    memory: int = 10
    _history: Deque[Tuple[Array, Array, float]] = field(
        default_factory=deque, init=False, repr=False
    )
    _prev_grad: Array | None = field(default=None, init=False, repr=False)
    _prev_step: Array | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        _check_positive(learning_rate_init=self.learning_rate_init)
        if int(self.memory) < 1:
            raise ValueError(f"memory must be >= 1, got {self.memory!r}")
        self._history = deque(maxlen=int(self.memory))

    def update(self, gradient: Array, out: Array | None = None) -> Array:
        out = _target(gradient, out)
        g = gradient.ravel()
        if self._prev_grad is not None and self._prev_grad.shape == g.shape:
            s = self._prev_step
            y = g - self._prev_grad
            sy = float(s @ y)
            if sy > 1e-10:
                self._history.append((s, y, 1.0 / sy))

        q = g.copy()
        alphas = []
        for s, y, rho in reversed(self._history):
            a = rho * float(s @ q)
            alphas.append(a)
            q -= a * y
        if self._history:
            s, y, _ = self._history[-1]
            q *= float(s @ y) / float(y @ y)
        for (s, y, rho), a in zip(self._history, reversed(alphas)):
            b = rho * float(y @ q)
            q += (a - b) * s

        step = -self.learning_rate_init * q
        self._prev_grad = g.copy()
        self._prev_step = step
        out[...] = step.reshape(gradient.shape)
        return out


OptimizerFactory = Callable[[Mapping[str, object]], Optimizer]


class OptimizerRegistry:
    """Central registry for optimizer factories."""

    def __init__(self) -> None:
        self._registry: Dict[str, OptimizerFactory] = {}
        self._params: Dict[str, frozenset[str]] = {}

    def register(self, name: str, factory: OptimizerFactory, params: Iterable[str] = ()) -> None:
        """Register ``factory`` under ``name``; ``params`` are the keys it reads."""

        self._registry[name] = factory
        self._params[name] = frozenset(params)

    def accepted_params(self) -> frozenset[str]:
        """Hyper-parameter names read by at least one registered optimizer."""

        return frozenset().union(*self._params.values())

    def get(self, name: str) -> OptimizerFactory:
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown optimizer {name!r}. Available optimizers: {available}")
        return self._registry[name]

    def create(self, name: str, params: Mapping[str, object] | None = None) -> Optimizer:
        """Return a fresh optimizer instance; one per layer."""

        factory = self.get(name)
        params = dict(params or {})
        unknown = sorted(set(params) - self.accepted_params())
        if unknown:
            warnings.warn(
                f"ignoring unknown optimizer parameters {unknown}; "
                f"accepted: {', '.join(sorted(self.accepted_params()))}",
                UserWarning,
                stacklevel=2,
            )
        return factory(params)

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry


def _momentum(nesterov: bool) -> OptimizerFactory:
    def factory(params: Mapping[str, object]) -> Optimizer:
        merged = {"momentum": 0.9, **params, "nesterov": nesterov}
        return SGD.from_params(merged)

    return factory


def _init_params(cls) -> frozenset[str]:
    return frozenset(f.name for f in fields(cls) if f.init)


REGISTRY = OptimizerRegistry()
REGISTRY.register("sgd", SGD.from_params, _init_params(SGD))
REGISTRY.register("momentum", _momentum(nesterov=False), _init_params(SGD) - {"nesterov"})
REGISTRY.register("agd", _momentum(nesterov=True), _init_params(SGD) - {"nesterov"})
REGISTRY.register("nesterov", _momentum(nesterov=True), _init_params(SGD) - {"nesterov"})
REGISTRY.register("adagrad", Adagrad.from_params, _init_params(Adagrad))
REGISTRY.register("rmsprop", RMSProp.from_params, _init_params(RMSProp))
REGISTRY.register("adadelta", Adadelta.from_params, _init_params(Adadelta))
REGISTRY.register("adam", Adam.from_params, _init_params(Adam))
REGISTRY.register("lbfgs", LBFGS.from_params, _init_params(LBFGS))


def create(name: str, params: Mapping[str, object] | None = None) -> Optimizer:
    """Create a new optimizer registered under ``name``."""

    return REGISTRY.create(name, params)


__all__ = [
    "Adadelta",
    "Adagrad",
    "Adam",
    "LBFGS",
    "Optimizer",
    "OptimizerRegistry",
    "REGISTRY",
    "RMSProp",
    "SGD",
    "create",
]
