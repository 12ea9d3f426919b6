import numpy as np
import pytest

from backpropnets.core import activations


def test_registry_names_and_aliases():
    names = set(activations.REGISTRY.names())
    assert {"identity", "logistic", "tanh", "relu", "softmax"} <= names
    assert activations.get("sigmoid") is activations.get("logistic")
    assert activations.get("linear") is activations.get("identity")


def test_unknown_activation_lists_available():
    with pytest.raises(KeyError, match="Available activations"):
        activations.get("swish")


def test_logistic_is_stable_for_large_inputs():
    x = np.array([[-1000.0, 0.0, 1000.0]])
    y = activations.logistic(x)
    np.testing.assert_allclose(y, [[0.0, 0.5, 1.0]])
    np.testing.assert_array_equal(x, [[-1000.0, 0.0, 1000.0]])


@pytest.mark.parametrize(
    "name, y, expected",
    [
        ("logistic", [[0.25, 0.5]], [[0.1875, 0.25]]),
        ("tanh", [[0.5, -1.0]], [[0.75, 0.0]]),
        ("relu", [[0.0, 2.0]], [[0.0, 1.0]]),
        ("identity", [[3.0, -3.0]], [[1.0, 1.0]]),
    ],
)
def test_derivatives_take_the_forward_output(name, y, expected):
    activation = activations.get(name)
    y = np.asarray(y)
    np.testing.assert_allclose(activation.fprime(y), expected)
    # in place on the same buffer
    buf = y.copy()
    activation.fprime(buf, out=buf)
    np.testing.assert_allclose(buf, expected)


def test_softmax_rows_sum_to_one():
    x = np.array([[1.0, 2.0, 3.0], [1000.0, 1000.0, 1000.0]])
    y = activations.get("softmax")(x)
    np.testing.assert_allclose(y.sum(axis=1), [1.0, 1.0])
    np.testing.assert_allclose(y[1], [1 / 3, 1 / 3, 1 / 3])
