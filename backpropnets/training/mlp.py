"""Multilayer perceptron driver: forward pass, backward recursion, optimizer step."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import List, Mapping, Sequence

import numpy as np
from sklearn.preprocessing import LabelBinarizer

from ..core import activations as activation_registry
from ..core import optimizers as optimizer_registry
from ..core.layer import Layer
from ..core.types import (
    Array,
    DivergenceError,
    ModelDescription,
    ShapeAdaptationWarning,
    StateDict,
)
from ..core.views import BiasAugmentedView, MappedView, TrimmedTransposeView
from . import losses as loss_registry
from .metrics import accuracy, r2

DEFAULT_EPOCHS = 100


def _check_finite(values: Array, what: str) -> None:
    if not np.all(np.isfinite(values)):
        raise DivergenceError(
            f"non-finite {what}; lower learning_rate_init or rescale the inputs"
        )


def _as_matrix(values, name: str) -> Array:
    array = np.asarray(values, dtype=np.float64)
    if array.ndim == 1:
        array = array.reshape(-1, 1)
    if array.ndim != 2:
        raise ValueError(f"{name} must be 1-D or 2-D, got shape {array.shape}")
    return np.ascontiguousarray(array)


@dataclass
class BaseMLP:
    """Configuration, layer list and training loop shared by both estimators.

    Layers are built by :meth:`initialize` (or the first :meth:`fit`) and
    trained with repeated ``forward`` / ``backward`` / ``step`` calls per
    mini-batch. ``backward`` computes every layer's gradient before ``step``
    touches any weights, so each layer reads the weights of the layer above
    as they were during the forward pass.
    """

    hidden_layer_sizes: Sequence[int] = (100,)
    activation: str = "relu"
    solver: str = "adam"
    loss: str = "square"
    out_activation: str | None = None
    alpha: float = 0.0001
    l1_ratio: float = 0.0
    max_iter: int = 200
    batch_size: int | str | None = "auto"
    shuffle: bool = True
    warm_start: bool = False
    learning_rate_init: float = 0.001
    optimizer_params: Mapping[str, object] = field(default_factory=dict)
    random_state: int | None = None
    verbose: bool = False

    layers: List[Layer] = field(default_factory=list, init=False, repr=False)
    loss_: float = field(default=float("nan"), init=False)
    loss_first_: float = field(default=float("nan"), init=False)
    loss_curve_: List[float] = field(default_factory=list, init=False, repr=False)
    n_iter_: int = field(default=0, init=False)
    out_activation_: str = field(default="", init=False)

    def __post_init__(self) -> None:
        self.hidden_layer_sizes = [int(size) for size in self.hidden_layer_sizes]
        if any(size <= 0 for size in self.hidden_layer_sizes):
            raise ValueError(f"hidden_layer_sizes must be positive, got {self.hidden_layer_sizes}")
        self._hidden_activation = activation_registry.get(self.activation)
        if self._hidden_activation.name == "softmax":
            raise ValueError("softmax is only supported as an output activation")
        self._loss = loss_registry.get(self.loss)
        self.out_activation_ = self.out_activation or self._loss.out_activation
        self._out_activation = activation_registry.get(self.out_activation_)
        if self.alpha < 0:
            raise ValueError(f"alpha must be >= 0, got {self.alpha}")
        if not 0.0 <= self.l1_ratio <= 1.0:
            raise ValueError(f"l1_ratio must be in [0, 1], got {self.l1_ratio}")
        if self.batch_size is not None and self.batch_size != "auto":
            if isinstance(self.batch_size, str) or int(self.batch_size) <= 0:
                raise ValueError(f"batch_size must be None, 'auto' or a positive int, got {self.batch_size!r}")
        # Fails fast on unknown solvers and invalid hyper-parameters.
        optimizer_registry.create(self.solver, self._optimizer_params())
        self._rng = np.random.default_rng(self.random_state)

    # ------------------------------------------------------------------
    # Construction

    def _optimizer_params(self) -> Mapping[str, object]:
        return {"learning_rate_init": self.learning_rate_init, **dict(self.optimizer_params)}

    def _layer_dims(self, n_features: int, n_outputs: int) -> List[int]:
        return [n_features, *self.hidden_layer_sizes, n_outputs]

    def _output_activation(self, n_outputs: int) -> activation_registry.Activation:
        # softmax over a single column is constant
        if self._out_activation.name == "softmax" and n_outputs == 1:
            return activation_registry.get("logistic")
        return self._out_activation

    def _new_layer(self, inputs: int, outputs: int, is_output: bool) -> Layer:
        activation = self._output_activation(outputs) if is_output else self._hidden_activation
        optimizer = optimizer_registry.create(self.solver, self._optimizer_params())
        return Layer.create(inputs, outputs, activation, optimizer, self._rng)

    def set_solver(self, solver: str, *, change_layers: bool = True) -> None:
        """Switch the optimizer used for new layers.

        With ``change_layers`` every existing layer also gets a fresh
        optimizer, dropping any state the previous one accumulated.
        """

        optimizer_registry.create(solver, self._optimizer_params())
        self.solver = solver
        if change_layers:
            for layer in self.layers:
                layer.optimizer = optimizer_registry.create(solver, self._optimizer_params())

    def initialize(self, n_features: int, n_outputs: int) -> "BaseMLP":
        """Build fresh layers for the given widths and reset the loss history."""

        self._rng = np.random.default_rng(self.random_state)
        dims = self._layer_dims(n_features, n_outputs)
        last = len(dims) - 2
        self.layers = [
            self._new_layer(inputs, outputs, idx == last)
            for idx, (inputs, outputs) in enumerate(zip(dims[:-1], dims[1:]))
        ]
        self.out_activation_ = self.layers[-1].activation.name
        self.loss_ = float("nan")
        self.loss_first_ = float("nan")
        self.loss_curve_ = []
        self.n_iter_ = 0
        return self

    def _adapt_layers(self, n_features: int, n_outputs: int) -> None:
        dims = self._layer_dims(n_features, n_outputs)
        if len(self.layers) != len(dims) - 1:
            warnings.warn(
                f"network has {len(self.layers)} layers but the configuration needs "
                f"{len(dims) - 1}; re-initialising all layers",
                ShapeAdaptationWarning,
                stacklevel=3,
            )
            self.initialize(n_features, n_outputs)
            return
        last = len(self.layers) - 1
        for idx, layer in enumerate(self.layers):
            expected = (dims[idx], dims[idx + 1])
            if layer.shape == expected:
                continue
            warnings.warn(
                f"layer {idx} has shape {layer.shape} but the data needs {expected}; "
                "replacing it with freshly initialised weights",
                ShapeAdaptationWarning,
                stacklevel=3,
            )
            self.layers[idx] = self._new_layer(*expected, is_output=idx == last)
        self.out_activation_ = self.layers[-1].activation.name

    def describe(self) -> ModelDescription:
        if not self.layers:
            return ModelDescription(layer_dims=[])
        return ModelDescription(
            layer_dims=[self.layers[0].inputs] + [layer.outputs for layer in self.layers]
        )

    @property
    def n_features_in_(self) -> int:
        self._require_layers()
        return self.layers[0].inputs

    @property
    def n_outputs_(self) -> int:
        self._require_layers()
        return self.layers[-1].outputs

    def _require_layers(self) -> None:
        if not self.layers:
            raise ValueError(f"{type(self).__name__} is not initialised; call fit or initialize first")

    # ------------------------------------------------------------------
    # Propagation

    def forward(self, X: Array) -> Array:
        """Propagate ``X`` through every layer and return the output buffer.

        The returned array is owned by the output layer and is overwritten
        by the next pass; :meth:`predict` returns a copy.
        """

        self._require_layers()
        x = _as_matrix(X, "X")
        for layer in self.layers:
            layer.ensure_buffers(x.shape[0], x.shape[1])
            BiasAugmentedView(x).matmul(layer.weights, out=layer.predictions)
            MappedView(layer.predictions, layer.activation.f).materialize(out=layer.predictions)
            _check_finite(layer.predictions, "predictions")
            x = layer.predictions
        return x

    def backward(self, X: Array, Y: Array) -> float:
        """Fill every layer's ``diff``, ``targets`` and ``gradient``; return the loss.

        Must follow a :meth:`forward` call on the same ``X``. Weights are not
        modified; :meth:`step` applies the updates.
        """

        self._require_layers()
        x_in = _as_matrix(X, "X")
        Y = _as_matrix(Y, "Y")
        n_samples = x_in.shape[0]
        if Y.shape[0] != n_samples:
            raise ValueError(f"X has {n_samples} rows but Y has {Y.shape[0]}")
        out = self.layers[-1]
        if out.predictions is None or out.predictions.shape[0] != n_samples:
            raise ValueError("backward needs a forward pass over the same batch first")
        if Y.shape[1] != out.outputs:
            raise ValueError(f"Y has {Y.shape[1]} columns but the network outputs {out.outputs}")

        value = float("nan")
        for idx in range(len(self.layers) - 1, -1, -1):
            layer = self.layers[idx]
            x = x_in if idx == 0 else self.layers[idx - 1].predictions
            if layer is out:
                np.copyto(layer.targets, Y)
            else:
                upper = self.layers[idx + 1]
                TrimmedTransposeView(upper.weights).rmatmul(upper.diff, out=layer.diff)
                # targets doubles as scratch for f'(predictions) until it is set below
                MappedView(layer.predictions, layer.activation.fprime).materialize(out=layer.targets)
                layer.diff *= layer.targets
                np.subtract(layer.predictions, layer.diff, out=layer.targets)
            layer_loss = self._loss(
                layer.targets,
                BiasAugmentedView(x),
                layer.weights,
                layer.predictions,
                layer.diff,
                layer.gradient,
                self.alpha,
                self.l1_ratio,
                n_samples,
                layer.activation,
            )
            _check_finite(layer.diff, f"diff in layer {idx}")
            if layer is out:
                value = layer_loss
        return value

    def step(self) -> None:
        """Apply one optimizer update to every layer, in place."""

        self._require_layers()
        for layer in self.layers:
            layer.apply_update()

    # ------------------------------------------------------------------
    # Training

    def _batch_rows(self, n_samples: int) -> int:
        if self.batch_size is None:
            return n_samples
        if self.batch_size == "auto":
            return min(200, n_samples)
        return min(int(self.batch_size), n_samples)

    def prepare_targets(self, y, *, fitting: bool = False) -> Array:
        return _as_matrix(y, "y")

    def _validate(self, X, y, *, fitting: bool) -> tuple[Array, Array]:
        X = _as_matrix(X, "X")
        Y = self.prepare_targets(y, fitting=fitting)
        if X.shape[0] != Y.shape[0]:
            raise ValueError(f"X has {X.shape[0]} rows but y has {Y.shape[0]}")
        if X.shape[0] == 0:
            raise ValueError("cannot fit on an empty dataset")
        return X, Y

    def _ensure_layers(self, n_features: int, n_outputs: int, *, reuse: bool) -> None:
        if reuse and self.layers:
            self._adapt_layers(n_features, n_outputs)
        else:
            self.initialize(n_features, n_outputs)

    def run_epoch(self, X: Array, Y: Array) -> float:
        """One pass over ``(X, Y)`` in mini-batches; returns the mean loss."""

        n_samples = X.shape[0]
        if self.shuffle:
            order = self._rng.permutation(n_samples)
            X, Y = X[order], Y[order]
        rows = self._batch_rows(n_samples)
        total = 0.0
        for start in range(0, n_samples, rows):
            xb = X[start : start + rows]
            yb = Y[start : start + rows]
            self.forward(xb)
            total += self.backward(xb, yb) * xb.shape[0]
            self.step()
        epoch_loss = total / n_samples
        if not np.isfinite(epoch_loss):
            raise DivergenceError(f"non-finite loss at epoch {self.n_iter_ + 1}")
        if not self.loss_curve_:
            self.loss_first_ = epoch_loss
        self.loss_ = epoch_loss
        self.loss_curve_.append(epoch_loss)
        self.n_iter_ += 1
        if self.verbose:
            print(f"Iteration {self.n_iter_}, loss = {epoch_loss:.8f}")
        return epoch_loss

    def fit(self, X, y) -> "BaseMLP":
        """Train for ``max_iter`` epochs; continues existing layers when ``warm_start``."""

        X, Y = self._validate(X, y, fitting=True)
        self._ensure_layers(X.shape[1], Y.shape[1], reuse=self.warm_start)
        epochs = self.max_iter if self.max_iter > 0 else DEFAULT_EPOCHS
        for _ in range(epochs):
            self.run_epoch(X, Y)
        return self

    def partial_fit(self, X, y) -> "BaseMLP":
        """Run a single epoch, initialising the layers on the first call."""

        X, Y = self._validate(X, y, fitting=not self.layers)
        self._ensure_layers(X.shape[1], Y.shape[1], reuse=True)
        self.run_epoch(X, Y)
        return self

    def evaluate(self, X, y) -> float:
        """Loss of the current weights on ``(X, y)`` without updating them.

        Reuses the output layer's scratch buffers, so its ``gradient`` is
        overwritten.
        """

        X, Y = self._validate(X, y, fitting=False)
        self.forward(X)
        out = self.layers[-1]
        if Y.shape[1] != out.outputs:
            raise ValueError(f"y has {Y.shape[1]} columns but the network outputs {out.outputs}")
        x = X if len(self.layers) == 1 else self.layers[-2].predictions
        np.copyto(out.targets, Y)
        return self._loss(
            out.targets,
            BiasAugmentedView(x),
            out.weights,
            out.predictions,
            out.diff,
            out.gradient,
            self.alpha,
            self.l1_ratio,
            X.shape[0],
            out.activation,
        )

    # ------------------------------------------------------------------
    # State

    def state_dict(self) -> StateDict:
        return {f"W{idx}": layer.weights.copy() for idx, layer in enumerate(self.layers)}

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        """Load ``W0..Wk`` weight matrices, rebuilding layers whose shapes differ."""

        count = len(self.hidden_layer_sizes) + 1
        weights = []
        for idx in range(count):
            key = f"W{idx}"
            if key not in state:
                raise KeyError(f"Missing weight {key} in state dict")
            W = np.asarray(state[key], dtype=np.float64)
            if W.ndim != 2:
                raise ValueError(f"{key} must be 2-D, got shape {W.shape}")
            weights.append(W)
        for idx in range(1, count):
            if weights[idx].shape[0] != weights[idx - 1].shape[1] + 1:
                raise ValueError(
                    f"W{idx} has {weights[idx].shape[0]} rows, expected {weights[idx - 1].shape[1] + 1}"
                )
        n_features = weights[0].shape[0] - 1
        n_outputs = weights[-1].shape[1]
        expected = [(W.shape[0] - 1, W.shape[1]) for W in weights]
        if [layer.shape for layer in self.layers] != expected:
            self.initialize(n_features, n_outputs)
        for layer, W in zip(self.layers, weights):
            layer.weights = W.copy()
            layer.release()


@dataclass
class MLPRegressor(BaseMLP):
    """MLP with square loss and identity output by default."""

    def predict(self, X) -> Array:
        return self.forward(X).copy()

    def score(self, X, y) -> float:
        """Coefficient of determination of the predictions."""

        return r2(self.predict(X), _as_matrix(y, "y"))


@dataclass
class MLPClassifier(BaseMLP):
    """MLP with log-loss and logistic output by default.

    ``y`` may be a 1-D array of labels, binarised with scikit-learn's
    :class:`~sklearn.preprocessing.LabelBinarizer`, or a 2-D indicator
    matrix used as-is. ``predict`` answers in the same form.
    """

    loss: str = "log"
    classes_: Array | None = field(default=None, init=False, repr=False)
    _binarizer: LabelBinarizer | None = field(default=None, init=False, repr=False)

    def prepare_targets(self, y, *, fitting: bool = False) -> Array:
        y = np.asarray(y)
        if y.ndim == 2:
            if fitting or self.classes_ is None:
                self._binarizer = None
                self.classes_ = np.arange(max(2, y.shape[1]))
            return _as_matrix(y, "y")
        if y.ndim != 1:
            raise ValueError(f"y must be 1-D labels or a 2-D indicator matrix, got shape {y.shape}")
        if fitting or self._binarizer is None:
            self._binarizer = LabelBinarizer().fit(y)
            self.classes_ = self._binarizer.classes_
        return _as_matrix(self._binarizer.transform(y), "y")

    def predict_proba(self, X) -> Array:
        return self.forward(X).copy()

    def _indicator(self, proba: Array) -> Array:
        if proba.shape[1] == 1:
            return (proba >= 0.5).astype(np.float64)
        indicator = np.zeros_like(proba)
        indicator[np.arange(proba.shape[0]), np.argmax(proba, axis=1)] = 1.0
        return indicator

    def predict(self, X) -> Array:
        proba = self.predict_proba(X)
        if self._binarizer is None:
            return self._indicator(proba)
        if proba.shape[1] == 1:
            return self._binarizer.classes_[(proba[:, 0] >= 0.5).astype(int)]
        return self._binarizer.classes_[np.argmax(proba, axis=1)]

    def score(self, X, y) -> float:
        """Mean accuracy of :meth:`predict` against ``y``."""

        y = np.asarray(y)
        predicted = self.predict(X)
        if self._binarizer is None:
            return accuracy(predicted, _as_matrix(y, "y"))
        return float(np.mean(predicted == y))


__all__ = ["BaseMLP", "DEFAULT_EPOCHS", "MLPClassifier", "MLPRegressor"]
