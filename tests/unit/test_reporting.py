import json

import numpy as np
import pytest

from backpropnets.reporting import CsvSink, JsonlSink, PlotAdapter, write_manifest, write_summary
from backpropnets.reporting.summary import compute_auc
from backpropnets.training.metrics import accuracy, compute_metrics, r2


def test_jsonl_sink_records_epoch_metadata(tmp_path):
    sink = JsonlSink(tmp_path / "m.jsonl", split="val", seed=3, sha="abc")
    sink.on_epoch(1, {"loss": 0.5, "accuracy": 1})
    sink(2, {"loss": 0.25})
    records = [json.loads(line) for line in (tmp_path / "m.jsonl").read_text().splitlines()]
    assert records[0] == {"epoch": 1, "split": "val", "seed": 3, "sha": "abc", "loss": 0.5, "accuracy": 1.0}
    assert records[1]["epoch"] == 2


def test_csv_sink_writes_single_header(tmp_path):
    sink = CsvSink(tmp_path / "m.csv")
    sink.on_epoch(1, {"loss": 1.0})
    sink.on_epoch(2, {"loss": 0.5})
    lines = (tmp_path / "m.csv").read_text().splitlines()
    assert lines[0] == "epoch,loss,split"
    assert len(lines) == 3


def test_summary_is_deterministic_and_finds_best_epoch(tmp_path):
    metrics = tmp_path / "m.jsonl"
    sink = JsonlSink(metrics, sha="x")
    for epoch, loss in enumerate([1.0, 0.4, 0.6], start=1):
        sink.on_epoch(epoch, {"loss": loss})
    a = write_summary(metrics, tmp_path / "a.json", tail=2)
    b = write_summary(metrics, tmp_path / "b.json", tail=2)
    text = (tmp_path / "a.json").read_text()
    assert text == (tmp_path / "b.json").read_text()
    summary = json.loads(text)
    assert summary["best_epoch"] == 2
    assert summary["metrics"]["loss"]["first"] == 1.0
    assert summary["metrics"]["loss"]["tail_auc"] == pytest.approx(0.5)
    assert a.endswith("a.json") and b.endswith("b.json")


def test_compute_auc_trapezoid():
    assert compute_auc([]) == 0.0
    assert compute_auc([1.0, 3.0, 1.0]) == pytest.approx(4.0)


def test_plot_adapter_is_headless(tmp_path):
    adapter = PlotAdapter(tmp_path / "plots", enable_plots=True)
    adapter.extend([1.0, 0.5, 0.25])
    path = adapter.close()
    assert path is not None and path.exists()

    disabled = PlotAdapter(tmp_path / "none")
    disabled.on_epoch(1, {"loss": 1.0})
    assert disabled.close() is None
    assert not (tmp_path / "none").exists()


def test_manifest_records_config_and_dataset(tmp_path):
    path = write_manifest(
        tmp_path / "manifest.json",
        config={"train": {"seed": 1}},
        dataset_provenance={"name": "blobs"},
        model={"layer_dims": [2, 1]},
    )
    manifest = json.loads(open(path).read())
    assert manifest["config"]["train"]["seed"] == 1
    assert manifest["dataset"] == {"name": "blobs"}
    assert manifest["model"]["layer_dims"] == [2, 1]
    assert "git_sha" in manifest


def test_metrics_threshold_or_argmax():
    assert accuracy(np.array([[0.9], [0.2]]), np.array([[1.0], [1.0]])) == 0.5
    assert accuracy(np.array([[0.1, 0.9], [0.8, 0.2]]), np.array([[0, 1], [1, 0]])) == 1.0
    y = np.array([[1.0], [2.0], [3.0]])
    assert r2(y, y) == 1.0
    results = compute_metrics([], y, y, task_type="regression")
    assert set(results) == {"mse", "mae", "r2"}
    with pytest.raises(KeyError):
        compute_metrics(["auc"], y, y)
