from pathlib import Path

from backpropnets.training import pipelines


def test_summary_outputs_are_deterministic(tmp_path):
    config = {
        "data": {"name": "sine", "options": {"n_points": 64, "seed": 123}},
        "model": {
            "kind": "regressor",
            "hidden_layer_sizes": [4],
            "activation": "tanh",
            "solver": "rmsprop",
            "learning_rate_init": 0.01,
            "batch_size": 8,
        },
        "train": {
            "epochs": 4,
            "seed": 55,
            "run_dir": str(tmp_path / "run_a"),
            "enable_plots": False,
        },
    }

    first = pipelines.run_pipeline(config)
    summary_a = Path(first.summary_path).read_bytes()
    metrics_a = Path(first.metrics_path).read_bytes()
    params_a = Path(first.params_path).read_bytes()

    config["train"]["run_dir"] = str(tmp_path / "run_b")
    second = pipelines.run_pipeline(config)

    assert metrics_a == Path(second.metrics_path).read_bytes()
    assert summary_a == Path(second.summary_path).read_bytes()
    assert params_a == Path(second.params_path).read_bytes()
