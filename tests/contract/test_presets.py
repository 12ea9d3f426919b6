import pytest

from backpropnets.training import pipelines
from backpropnets.training.mlp import MLPClassifier, MLPRegressor


def test_every_preset_has_all_sections():
    available = pipelines.presets()
    assert {"blobs-adam", "moons-momentum", "sine-rmsprop", "csv-regression-sgd"} <= set(available)
    assert {"xor-nesterov", "breast-cancer-adam", "sine-poly-lbfgs"} <= set(available)
    for name, config in available.items():
        assert {"data", "model", "train"} <= set(config), name


def test_presets_are_copies():
    preset = pipelines.load_preset("blobs-adam")
    preset["train"]["epochs"] = 1
    assert pipelines.load_preset("blobs-adam")["train"]["epochs"] == 50


def test_unknown_preset_lists_available():
    with pytest.raises(KeyError, match="Available presets"):
        pipelines.load_preset("does-not-exist")


def test_build_model_chooses_estimator_from_task():
    assert isinstance(pipelines.build_model({}, "regression", 0), MLPRegressor)
    binary = pipelines.build_model({}, "binary", 0)
    assert isinstance(binary, MLPClassifier) and binary.loss == "log"
    multiclass = pipelines.build_model({"hidden_layer_sizes": [3]}, "multiclass", 0)
    assert multiclass.out_activation_ == "softmax"
    with pytest.raises(ValueError):
        pipelines.build_model({"kind": "svm"}, "regression", 0)
