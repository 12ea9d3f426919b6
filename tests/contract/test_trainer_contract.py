import json
import warnings
from pathlib import Path

import numpy as np
from sklearn.datasets import make_blobs

from backpropnets import serialization
from backpropnets.core.types import Batch, ShapeAdaptationWarning
from backpropnets.training import pipelines
from backpropnets.training.mlp import MLPClassifier, MLPRegressor
from backpropnets.training.trainer import Trainer, load_checkpoint


def _config(run_dir, **train):
    config = {
        "data": {"name": "blobs", "options": {"n_samples": 80, "seed": 0}},
        "model": {
            "hidden_layer_sizes": [4],
            "activation": "tanh",
            "solver": "adam",
            "learning_rate_init": 0.01,
            "batch_size": 16,
        },
        "train": {
            "epochs": 3,
            "seed": 11,
            "run_dir": str(run_dir),
            "enable_plots": False,
        },
    }
    config["train"].update(train)
    return config


def test_trainer_pipeline_produces_artifacts(tmp_path):
    run_dir = tmp_path / "run"
    result = pipelines.run_pipeline(_config(run_dir))

    assert result.epochs == 3
    assert not result.stopped_early
    assert np.isfinite(result.final_loss)
    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 11
    assert manifest["dataset"]["type"] == "synthetic"
    assert manifest["model"]["layer_dims"] == [2, 4, 1]
    assert manifest["model"]["out_activation"] == "logistic"

    metrics = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert [entry["epoch"] for entry in metrics] == [1, 2, 3]
    first = metrics[0]
    assert first["split"] == "train"
    assert "sha" in first and first["seed"] == 11
    assert all("loss" in entry and "accuracy" in entry for entry in metrics)

    for name in ("metrics.csv", "metrics_val.jsonl", "metrics_test.json", "config.json", "best.npz", "last.npz"):
        assert (run_dir / name).exists(), name

    restored = serialization.load_json(result.params_path)
    assert restored.n_iter_ == 3
    last = load_checkpoint(run_dir / "last.npz")
    np.testing.assert_array_equal(last["W0"], restored.layers[0].weights)


def test_early_stopping_halts_when_loss_stalls(tmp_path):
    result = pipelines.run_pipeline(
        _config(tmp_path / "run", epochs=20, early_stopping_patience=1, tolerance=1e9)
    )
    assert result.stopped_early
    assert result.epochs == 2


def test_trainer_accepts_a_single_batch_and_callbacks(tmp_path):
    rng = np.random.default_rng(0)
    batch = Batch(inputs=rng.normal(size=(20, 3)), targets=rng.normal(size=(20, 1)))
    seen = []

    class Recorder:
        def on_epoch(self, epoch, metrics):
            seen.append((epoch, sorted(metrics)))

    model = MLPRegressor(hidden_layer_sizes=[3], batch_size=5, random_state=0)
    result = Trainer(model, callbacks=[Recorder()]).run(
        batch, epochs=2, metric_names="mse", checkpoint_dir=tmp_path
    )
    assert result.epochs == 2
    assert seen == [(1, ["loss", "mse"]), (2, ["loss", "mse"])]
    assert model.n_iter_ == 2


def test_trainer_sizes_output_from_multiclass_labels(tmp_path):
    X, labels = make_blobs(n_samples=90, centers=[(-3, 0), (0, 3), (3, 0)], cluster_std=0.4, random_state=1)
    model = MLPClassifier(hidden_layer_sizes=[6], loss="cross-entropy", learning_rate_init=0.02, random_state=0)

    with warnings.catch_warnings():
        warnings.simplefilter("error", ShapeAdaptationWarning)
        result = Trainer(model).run(
            Batch(inputs=X, targets=labels), epochs=2, task_type="multiclass", checkpoint_dir=tmp_path
        )

    assert result.epochs == 2
    assert model.n_outputs_ == 3
    assert model.out_activation_ == "softmax"
    assert list(model.classes_) == [0, 1, 2]
