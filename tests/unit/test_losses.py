import numpy as np
import pytest

from backpropnets.core import activations
from backpropnets.core.views import BiasAugmentedView
from backpropnets.training import losses

X = np.array([[1.0, 2.0], [3.0, -1.0], [0.0, 1.0], [-2.0, 0.0]])


def _call(name, targets, predictions, weights, alpha=0.0, l1_ratio=0.0):
    diff = np.empty_like(predictions)
    gradient = np.empty_like(weights)
    value = losses.get(name)(
        targets,
        BiasAugmentedView(X),
        weights,
        predictions,
        diff,
        gradient,
        alpha,
        l1_ratio,
        X.shape[0],
        activations.get("identity"),
    )
    return value, diff, gradient


def test_registry_aliases_and_canonical_outputs():
    assert losses.get("mse") is losses.get("square")
    assert losses.get("binary-cross-entropy") is losses.get("log")
    assert losses.get("square").out_activation == "identity"
    assert losses.get("log").out_activation == "logistic"
    assert losses.get("cross-entropy").out_activation == "softmax"


def test_unknown_loss_lists_available():
    with pytest.raises(KeyError, match="Available losses"):
        losses.get("hinge")


def test_square_loss_value_and_gradient():
    targets = np.array([[1.0], [0.0], [2.0], [-1.0]])
    predictions = np.array([[0.5], [1.0], [2.0], [0.0]])
    weights = np.zeros((3, 1))
    value, diff, gradient = _call("square", targets, predictions, weights)

    np.testing.assert_allclose(diff, predictions - targets)
    assert value == pytest.approx(0.5 * (0.25 + 1.0 + 0.0 + 1.0) / 4)
    aug = np.hstack([np.ones((4, 1)), X])
    np.testing.assert_allclose(gradient, aug.T @ (predictions - targets) / 4)


def test_log_loss_at_half_probability_is_ln2():
    targets = np.array([[1.0], [1.0], [1.0], [0.0]])
    predictions = np.full((4, 1), 0.5)
    value, _, gradient = _call("log", targets, predictions, np.zeros((3, 1)))
    assert value == pytest.approx(np.log(2.0))
    np.testing.assert_allclose(gradient.ravel(), [-0.25, -0.75, -0.25])


def test_log_loss_survives_saturated_predictions():
    targets = np.array([[1.0], [0.0], [1.0], [0.0]])
    predictions = np.array([[0.0], [1.0], [1.0], [0.0]])
    value, _, _ = _call("log", targets, predictions, np.zeros((3, 1)))
    assert np.isfinite(value)


def test_cross_entropy_uses_only_true_class():
    targets = np.array([[1.0, 0.0]] * 4)
    predictions = np.array([[0.25, 0.75]] * 4)
    value, _, _ = _call("cross-entropy", targets, predictions, np.zeros((3, 2)))
    assert value == pytest.approx(-np.log(0.25))


def test_l2_regularisation_skips_bias_row():
    weights = np.array([[5.0], [1.0], [-2.0]])
    gradient = np.zeros_like(weights)
    penalty = losses.regularize(weights, gradient, alpha=2.0, l1_ratio=0.0, n_samples=4)
    assert penalty == pytest.approx(2.0 * 0.5 * (1.0 + 4.0) / 4)
    np.testing.assert_allclose(gradient.ravel(), [0.0, 0.5, -1.0])


def test_l1_regularisation_uses_sign():
    weights = np.array([[5.0], [1.0], [-2.0]])
    gradient = np.zeros_like(weights)
    penalty = losses.regularize(weights, gradient, alpha=2.0, l1_ratio=1.0, n_samples=4)
    assert penalty == pytest.approx(2.0 * 3.0 / 4)
    np.testing.assert_allclose(gradient.ravel(), [0.0, 0.5, -0.5])


def test_cross_entropy_with_one_column_is_binary_log_loss():
    targets = np.array([[1.0], [0.0], [1.0], [0.0]])
    predictions = np.array([[0.8], [0.3], [0.6], [0.1]])
    ce, ce_diff, ce_grad = _call("cross-entropy", targets, predictions, np.zeros((3, 1)))
    log, log_diff, log_grad = _call("log", targets, predictions, np.zeros((3, 1)))
    assert ce == pytest.approx(log)
    np.testing.assert_allclose(ce_diff, log_diff)
    np.testing.assert_allclose(ce_grad, log_grad)
