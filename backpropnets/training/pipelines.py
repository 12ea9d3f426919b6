"""Pipeline assembly: dataset, network, trainer and run artifacts from one config."""

from __future__ import annotations

import json
import os
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, Mapping, Sequence

import yaml

from ..core.types import RunResult
from ..data import registry
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from ..serialization import save_json
from .mlp import BaseMLP, MLPClassifier, MLPRegressor
from .trainer import Trainer

RUN_ROOT_ENV = "BACKPROPNETS_RUN_ROOT"

_PRESETS: Dict[str, Mapping[str, object]] = {
    "blobs-adam": {
        "data": {
            "name": "blobs",
            "options": {"n_samples": 200, "cluster_std": 0.5, "seed": 0},
        },
        "model": {
            "hidden_layer_sizes": [8],
            "activation": "tanh",
            "solver": "adam",
            "learning_rate_init": 0.01,
            "alpha": 0.0001,
            "batch_size": 32,
        },
        "train": {
            "epochs": 50,
            "seed": 7,
            "enable_plots": False,
        },
    },
    "moons-momentum": {
        "data": {
            "name": "moons",
            "options": {"n_samples": 300, "noise": 0.15, "seed": 0},
        },
        "model": {
            "hidden_layer_sizes": [16, 16],
            "activation": "relu",
            "solver": "momentum",
            "learning_rate_init": 0.05,
            "optimizer_params": {"momentum": 0.9},
            "batch_size": 32,
        },
        "train": {
            "epochs": 80,
            "seed": 1,
            "early_stopping_patience": 10,
            "enable_plots": False,
        },
    },
    "sine-rmsprop": {
        "data": {"name": "sine", "options": {"freq": 1.0, "n_points": 256, "seed": 0}},
        "model": {
            "kind": "regressor",
            "hidden_layer_sizes": [16],
            "activation": "tanh",
            "solver": "rmsprop",
            "learning_rate_init": 0.005,
            "batch_size": 32,
        },
        "train": {
            "epochs": 60,
            "seed": 3,
            "enable_plots": False,
        },
    },
    "csv-regression-sgd": {
        "data": {"name": "csv_regression", "options": {"seed": 0}},
        "model": {
            "kind": "regressor",
            "hidden_layer_sizes": [],
            "activation": "identity",
            "solver": "sgd",
            "learning_rate_init": 0.05,
            "alpha": 0.0,
            "batch_size": None,
        },
        "train": {
            "epochs": 40,
            "seed": 0,
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None

_MODEL_KEYS = (
    "hidden_layer_sizes",
    "activation",
    "solver",
    "loss",
    "out_activation",
    "alpha",
    "l1_ratio",
    "batch_size",
    "shuffle",
    "learning_rate_init",
    "optimizer_params",
    "verbose",
)


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    raise KeyError(
                        f"Preset {file.name} is missing required sections: {', '.join(sorted(missing))}"
                    )
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {
        name: deepcopy(cfg) for name, cfg in _PRESETS.items()
    }
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    available = presets()
    if name not in available:
        raise KeyError(f"Unknown preset {name!r}. Available presets: {', '.join(sorted(available))}")
    return available[name]


class _MetricsCapture:
    def __init__(self) -> None:
        self.history: list[tuple[int, Mapping[str, float]]] = []
        self.last: Mapping[str, float] = {}

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        payload = {k: float(v) for k, v in metrics.items()}
        self.history.append((int(epoch), payload))
        self.last = payload


def build_model(model_cfg: Mapping[str, object], task_type: str, seed: int) -> BaseMLP:
    """Instantiate the estimator described by the ``model`` config section."""

    kind = str(model_cfg.get("kind", "regressor" if task_type == "regression" else "classifier"))
    if kind not in {"regressor", "classifier"}:
        raise ValueError(f"model.kind must be 'regressor' or 'classifier', got {kind!r}")
    params = {key: model_cfg[key] for key in _MODEL_KEYS if key in model_cfg}
    if kind == "classifier" and "loss" not in params and task_type == "multiclass":
        params["loss"] = "cross-entropy"
    cls = MLPRegressor if kind == "regressor" else MLPClassifier
    return cls(random_state=seed, **params)


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    seed = int(train_cfg.get("seed", 0))
    dataset = registry.get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    data_spec = dataset.data_spec
    model = build_model(model_cfg, data_spec.task_type, seed)

    metrics_cfg = train_cfg.get("metrics", "default")
    metrics_list = metrics_cfg if isinstance(metrics_cfg, str) else ",".join(map(str, metrics_cfg))
    early_stopping = train_cfg.get("early_stopping_patience")

    run_dir = _resolve_run_dir(train_cfg, dataset.name, model.solver)
    run_dir.mkdir(parents=True, exist_ok=True)

    dims = [data_spec.d_in, *model.hidden_layer_sizes, data_spec.d_out]
    _print_startup_summary(
        dataset_name=dataset.name,
        sizes=dataset.sizes,
        dims=dims,
        model=model,
        metrics=metrics_list,
        param_count=sum((dims[i] + 1) * dims[i + 1] for i in range(len(dims) - 1)),
    )

    split_loggers: Dict[str, list] = {}
    captures: Dict[str, _MetricsCapture] = {}
    jsonl_paths: Dict[str, Path] = {}
    for split in ("train", "val", "test"):
        jsonl = JsonlSink(run_dir / f"metrics_{split}.jsonl", split=split, seed=seed)
        csv_sink = CsvSink(run_dir / f"metrics_{split}.csv", split=split)
        captures[split] = _MetricsCapture()
        jsonl_paths[split] = jsonl.path
        split_loggers[split] = [jsonl, csv_sink, captures[split]]
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    split_loggers["train"].append(plots)

    trainer = Trainer(model)
    result = trainer.run(
        dataset.splits,
        epochs=int(train_cfg.get("epochs", 1)),
        task_type=data_spec.task_type,
        metric_names=metrics_list,
        eval_every=int(train_cfg.get("eval_every", 1)),
        split_loggers=split_loggers,
        early_stopping_patience=int(early_stopping) if early_stopping is not None else None,
        tolerance=float(train_cfg.get("tolerance", 1e-9)),
        checkpoint_dir=run_dir,
    )
    plots.close()

    (run_dir / "metrics_test.json").write_text(json.dumps(captures["test"].last or {}, indent=2))
    safe_config = json.loads(json.dumps(config))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        model={"kind": type(model).__name__, "layer_dims": dims, "out_activation": model.out_activation_},
    )
    summary_path = write_summary(
        jsonl_paths["train"], run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32))
    )
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))
    (run_dir / "metrics.jsonl").write_text(jsonl_paths["train"].read_text())
    (run_dir / "metrics.csv").write_text((run_dir / "metrics_train.csv").read_text())
    params_path = save_json(model, run_dir / "params.json")

    return RunResult(
        epochs=result.epochs,
        final_loss=result.final_loss,
        metrics_path=str(jsonl_paths["train"]),
        manifest_path=manifest,
        summary_path=summary_path,
        params_path=params_path,
        stopped_early=result.stopped_early,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str, solver: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    root = Path(os.environ.get(RUN_ROOT_ENV, "runs"))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return root / timestamp / dataset / solver


def _print_startup_summary(
    *,
    dataset_name: str,
    sizes: Mapping[str, int],
    dims: Sequence[int],
    model: BaseMLP,
    metrics: str,
    param_count: int,
) -> None:
    print("=== BackPropNets run ===")
    print(f"Dataset       : {dataset_name} {dict(sizes)}")
    print(f"Dimensions    : {list(dims)}")
    print(f"Activation    : {model.activation} -> {model.out_activation_}")
    print(f"Loss          : {model.loss} (alpha={model.alpha}, l1_ratio={model.l1_ratio})")
    print(f"Solver        : {model.solver} (lr={model.learning_rate_init})")
    print(f"Metrics       : {metrics}")
    print(f"Parameters    : {param_count}")
    print("========================")


__all__ = ["RUN_ROOT_ENV", "build_model", "load_preset", "presets", "run_pipeline"]
