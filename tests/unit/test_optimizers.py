import numpy as np
import pytest

from backpropnets.core import optimizers

GRAD = np.array([[1.0, -2.0], [0.5, -0.25]])


def test_registry_exposes_all_solvers():
    names = set(optimizers.REGISTRY.names())
    assert {
        "sgd",
        "momentum",
        "agd",
        "nesterov",
        "adagrad",
        "rmsprop",
        "adadelta",
        "adam",
        "lbfgs",
    } <= names


def test_unknown_optimizer_lists_available():
    with pytest.raises(KeyError, match="Available optimizers"):
        optimizers.create("newton")


def test_invalid_hyperparameters_raise():
    with pytest.raises(ValueError):
        optimizers.create("sgd", {"learning_rate_init": 0.0})
    with pytest.raises(ValueError):
        optimizers.create("adam", {"beta_1": 1.0})


def test_factories_ignore_unrelated_hyperparameters():
    opt = optimizers.create("adam", {"learning_rate_init": 0.1, "rho": 0.5, "memory": 3})
    assert isinstance(opt, optimizers.Adam)
    assert opt.learning_rate_init == 0.1


def test_each_create_returns_fresh_state():
    a = optimizers.create("momentum")
    b = optimizers.create("momentum")
    assert a is not b
    a.update(GRAD)
    assert b._velocity is None


def test_sgd_step_is_scaled_negative_gradient():
    out = np.empty_like(GRAD)
    result = optimizers.create("sgd", {"learning_rate_init": 0.1}).update(GRAD, out=out)
    assert result is out
    np.testing.assert_allclose(out, -0.1 * GRAD)


def test_momentum_accumulates_velocity():
    opt = optimizers.create("momentum", {"learning_rate_init": 0.1, "momentum": 0.9})
    np.testing.assert_allclose(opt.update(GRAD), -0.1 * GRAD)
    np.testing.assert_allclose(opt.update(GRAD), -(1 + 0.9) * 0.1 * GRAD)


def test_nesterov_looks_ahead_on_first_step():
    opt = optimizers.create("agd", {"learning_rate_init": 0.1, "momentum": 0.9})
    np.testing.assert_allclose(opt.update(GRAD), -(1 + 0.9) * 0.1 * GRAD)


@pytest.mark.parametrize("name", ["adam", "adagrad"])
def test_adaptive_first_step_is_sign_of_gradient(name):
    opt = optimizers.create(name, {"learning_rate_init": 0.01})
    np.testing.assert_allclose(opt.update(GRAD), -0.01 * np.sign(GRAD), rtol=1e-5)


def test_rmsprop_first_step():
    opt = optimizers.create("rmsprop", {"learning_rate_init": 0.01, "rho": 0.9})
    expected = -0.01 / np.sqrt(0.1) * np.sign(GRAD)
    np.testing.assert_allclose(opt.update(GRAD), expected, rtol=1e-5)


def test_adadelta_moves_against_gradient():
    step = optimizers.create("adadelta").update(GRAD)
    assert np.all(np.isfinite(step))
    assert np.all(np.sign(step) == -np.sign(GRAD))


def test_adam_bias_correction_counts_steps():
    opt = optimizers.create("adam")
    opt.update(GRAD)
    opt.update(GRAD)
    assert opt.t == 2


def test_lbfgs_first_step_is_gradient_descent():
    opt = optimizers.create("lbfgs", {"learning_rate_init": 0.2})
    np.testing.assert_allclose(opt.update(GRAD), -0.2 * GRAD)


def test_lbfgs_minimises_ill_conditioned_quadratic():
    hessian = np.array([1.0, 4.0]).reshape(2, 1)
    w = np.array([[3.0], [-2.0]])
    opt = optimizers.create("lbfgs", {"learning_rate_init": 0.2, "memory": 5})

    def f(v):
        return 0.5 * float(np.sum(hessian * v * v))

    start = f(w)
    for _ in range(50):
        w += opt.update(hessian * w)
    assert f(w) < 1e-2 * start


def test_unknown_hyperparameters_warn():
    with pytest.warns(UserWarning, match="beta1"):
        opt = optimizers.create("adam", {"beta1": 0.8})
    assert opt.beta_1 == 0.9
    assert {"beta_1", "momentum", "memory", "scale"} <= optimizers.REGISTRY.accepted_params()
