"""Export and import trained networks as scikit-learn style JSON.

Weights are stored the way :class:`sklearn.neural_network.MLPRegressor`
exposes them: ``coefs_[i]`` has shape ``(inputs, outputs)`` and
``intercepts_[i]`` has shape ``(outputs,)``. Together they form the
``(1 + inputs, outputs)`` layer matrix with the intercept as row 0.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping

import numpy as np
from sklearn.preprocessing import LabelBinarizer

from .training.mlp import BaseMLP, MLPClassifier, MLPRegressor

_KINDS = {"MLPRegressor": MLPRegressor, "MLPClassifier": MLPClassifier}

_CONFIG_KEYS = (
    "hidden_layer_sizes",
    "activation",
    "solver",
    "loss",
    "out_activation",
    "alpha",
    "l1_ratio",
    "max_iter",
    "batch_size",
    "shuffle",
    "warm_start",
    "learning_rate_init",
    "optimizer_params",
    "random_state",
)


def to_dict(model: BaseMLP) -> Dict[str, Any]:
    """Return a JSON-serialisable description of ``model`` and its weights."""

    if not model.layers:
        raise ValueError("cannot export a network that has not been initialised")
    payload: Dict[str, Any] = {"kind": type(model).__name__}
    for key in _CONFIG_KEYS:
        value = getattr(model, key)
        payload[key] = list(value) if key == "hidden_layer_sizes" else value
    payload["optimizer_params"] = dict(model.optimizer_params)
    payload.update(
        {
            "out_activation_": model.out_activation_,
            "n_features_in_": model.n_features_in_,
            "n_outputs_": model.n_outputs_,
            "n_layers_": len(model.layers) + 1,
            "n_iter_": model.n_iter_,
            "loss_": None if np.isnan(model.loss_) else float(model.loss_),
            "loss_curve_": [float(v) for v in model.loss_curve_],
            "coefs_": [layer.weights[1:].tolist() for layer in model.layers],
            "intercepts_": [layer.weights[0].tolist() for layer in model.layers],
        }
    )
    if isinstance(model, MLPClassifier) and model._binarizer is not None:
        payload["classes_"] = model._binarizer.classes_.tolist()
    return payload


def load_params(model: BaseMLP, payload: Mapping[str, Any]) -> BaseMLP:
    """Load ``coefs_``/``intercepts_`` from ``payload`` into ``model``."""

    for key in ("coefs_", "intercepts_"):
        if key not in payload:
            raise KeyError(f"Missing {key!r} in serialised parameters")
    coefs = [np.asarray(c, dtype=np.float64) for c in payload["coefs_"]]
    intercepts = [np.asarray(b, dtype=np.float64).reshape(-1) for b in payload["intercepts_"]]
    if len(coefs) != len(intercepts):
        raise ValueError(f"{len(coefs)} coefficient matrices but {len(intercepts)} intercept vectors")
    if len(coefs) != len(model.hidden_layer_sizes) + 1:
        raise ValueError(
            f"{len(coefs)} layers in the parameters but the model is configured for "
            f"{len(model.hidden_layer_sizes) + 1}"
        )
    state = {}
    for idx, (coef, intercept) in enumerate(zip(coefs, intercepts)):
        if coef.ndim != 2 or intercept.shape[0] != coef.shape[1]:
            raise ValueError(
                f"layer {idx}: coefs_ shape {coef.shape} does not match intercepts_ shape {intercept.shape}"
            )
        state[f"W{idx}"] = np.vstack([intercept[np.newaxis, :], coef])
    model.load_state_dict(state)
    if isinstance(model, MLPClassifier) and "classes_" in payload:
        model._binarizer = LabelBinarizer().fit(np.asarray(payload["classes_"]))
        model.classes_ = model._binarizer.classes_
    return model


def from_dict(payload: Mapping[str, Any]) -> BaseMLP:
    """Build a network from :func:`to_dict` output."""

    kind = payload.get("kind", "MLPRegressor")
    if kind not in _KINDS:
        raise ValueError(f"Unknown model kind {kind!r}; expected one of {sorted(_KINDS)}")
    config = {key: payload[key] for key in _CONFIG_KEYS if key in payload}
    model = _KINDS[kind](**config)
    load_params(model, payload)
    model.n_iter_ = int(payload.get("n_iter_", 0))
    model.loss_curve_ = [float(v) for v in payload.get("loss_curve_", [])]
    if payload.get("loss_") is not None:
        model.loss_ = float(payload["loss_"])
    if model.loss_curve_:
        model.loss_first_ = model.loss_curve_[0]
    return model


def save_json(model: BaseMLP, path: str | Path) -> str:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(to_dict(model), indent=2))
    return str(path)


def load_json(path: str | Path) -> BaseMLP:
    return from_dict(json.loads(Path(path).read_text()))


__all__ = ["from_dict", "load_json", "load_params", "save_json", "to_dict"]
