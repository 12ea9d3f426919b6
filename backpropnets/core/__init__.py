"""Core numerical primitives for BackPropNets."""

from . import activations, layer, optimizers, types, views

__all__ = ["activations", "layer", "optimizers", "types", "views"]
