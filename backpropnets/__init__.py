"""BackPropNets public API."""

from .core import activations, optimizers, types  # noqa: F401
from .core.types import DivergenceError, ShapeAdaptationWarning
from .training.mlp import MLPClassifier, MLPRegressor
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer

__all__ = [
    "DivergenceError",
    "MLPClassifier",
    "MLPRegressor",
    "ShapeAdaptationWarning",
    "Trainer",
    "activations",
    "load_preset",
    "optimizers",
    "presets",
    "run_pipeline",
    "types",
]
