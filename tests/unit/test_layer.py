import numpy as np
import pytest

from backpropnets.core import activations
from backpropnets.core.layer import Layer, glorot_bound
from backpropnets.core.optimizers import SGD


def _layer(inputs=3, outputs=2, name="tanh"):
    return Layer.create(
        inputs, outputs, activations.get(name), SGD(learning_rate_init=0.1), np.random.default_rng(0)
    )


def test_create_includes_bias_row_within_glorot_bound():
    layer = _layer(3, 2)
    assert layer.weights.shape == (4, 2)
    assert layer.shape == (3, 2)
    bound = glorot_bound(3, 2, layer.activation)
    assert np.all(np.abs(layer.weights) <= bound)


def test_glorot_bound_is_narrower_for_logistic():
    tanh = glorot_bound(3, 2, activations.get("tanh"))
    logistic = glorot_bound(3, 2, activations.get("logistic"))
    assert logistic == pytest.approx(tanh / np.sqrt(3.0))


def test_smaller_batches_reuse_storage_rows():
    layer = _layer()
    layer.ensure_buffers(10, 3)
    storage = layer.predictions
    layer.ensure_buffers(4, 3)
    assert layer.capacity == 10
    assert layer.predictions.shape == (4, 2)
    assert layer.diff.shape == (4, 2)
    assert np.shares_memory(layer.predictions, storage)
    assert layer.gradient.shape == layer.weights.shape


def test_larger_batch_reallocates():
    layer = _layer()
    layer.ensure_buffers(4, 3)
    layer.ensure_buffers(12, 3)
    assert layer.capacity == 12
    assert layer.targets.shape == (12, 2)


def test_input_width_mismatch_is_rejected():
    layer = _layer()
    with pytest.raises(ValueError):
        layer.ensure_buffers(4, 5)


def test_apply_update_adds_optimizer_delta():
    layer = _layer()
    layer.ensure_buffers(2, 3)
    before = layer.weights.copy()
    layer.gradient[...] = 1.0
    layer.apply_update()
    np.testing.assert_allclose(layer.update, -0.1)
    np.testing.assert_allclose(layer.weights, before - 0.1)


def test_apply_update_requires_gradient():
    with pytest.raises(RuntimeError):
        _layer().apply_update()
