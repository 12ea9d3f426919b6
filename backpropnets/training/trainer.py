"""Epoch driver with metrics, callbacks, early stopping and checkpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence

import numpy as np

from ..core.types import Array, Batch, RunResult
from .metrics import compute_metrics, default_metrics
from .mlp import BaseMLP


class Trainer:
    """Train an MLP one epoch at a time and report per-split metrics.

    Early stopping and checkpointing live here rather than in the network:
    the network only knows how to run an epoch.
    """

    def __init__(self, model: BaseMLP, callbacks: Sequence[object] | None = None) -> None:
        self.model = model
        self.callbacks = list(callbacks or [])

    def run(
        self,
        splits: Mapping[str, Batch] | Batch,
        epochs: int,
        *,
        task_type: str = "regression",
        metric_names: Sequence[str] | str = (),
        eval_every: int = 1,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
        early_stopping_patience: int | None = None,
        tolerance: float = 1e-9,
        checkpoint_dir: str | Path | None = None,
        initialize: bool = True,
    ) -> RunResult:
        if isinstance(splits, Batch):
            splits = {"train": splits}
        train = splits.get("train")
        if train is None:
            raise ValueError("train split missing from splits mapping")
        val = splits.get("val")
        test = splits.get("test")
        if epochs <= 0:
            raise ValueError(f"epochs must be positive, got {epochs}")

        if isinstance(metric_names, str):
            metric_names = [m.strip() for m in metric_names.split(",") if m.strip()]
        if not metric_names or metric_names == ["default"]:
            metric_names = default_metrics(task_type)

        if initialize or not self.model.layers:
            targets = self.model.prepare_targets(train.targets, fitting=True)
            self.model.initialize(train.inputs.shape[1], targets.shape[1])

        best_loss = float("inf")
        epochs_no_improve = 0
        stopped_early = False
        split_loggers = split_loggers or {}
        checkpoint_dir = Path(checkpoint_dir or ".")
        checkpoint_dir.mkdir(parents=True, exist_ok=True)

        epoch = 0
        for epoch in range(1, epochs + 1):
            self.model.partial_fit(train.inputs, train.targets)
            train_metrics = {"loss": float(self.model.loss_)}
            train_metrics.update(self._metrics(train, metric_names))
            self._emit_epoch("train", epoch, train_metrics, split_loggers)

            val_metrics = None
            if epoch % max(1, eval_every) == 0:
                if val is not None and len(val):
                    val_metrics = self._evaluate(val, metric_names)
                    self._emit_epoch("val", epoch, val_metrics, split_loggers)
                if test is not None and len(test):
                    self._emit_epoch("test", epoch, self._evaluate(test, metric_names), split_loggers)

            current_loss = float((val_metrics or train_metrics)["loss"])
            if current_loss < best_loss - tolerance:
                best_loss = current_loss
                epochs_no_improve = 0
                self._save_checkpoint(checkpoint_dir / "best.npz", self.model.state_dict())
            else:
                epochs_no_improve += 1
                if early_stopping_patience and epochs_no_improve >= early_stopping_patience:
                    stopped_early = True
                    break

        self._save_checkpoint(checkpoint_dir / "last.npz", self.model.state_dict())
        return RunResult(
            epochs=epoch,
            final_loss=float(self.model.loss_),
            stopped_early=stopped_early,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _metrics(self, batch: Batch, metric_names: Sequence[str]) -> Mapping[str, float]:
        predictions = self.model.forward(batch.inputs).copy()
        targets = self.model.prepare_targets(batch.targets)
        return compute_metrics(metric_names, predictions, targets)

    def _evaluate(self, batch: Batch, metric_names: Sequence[str]) -> Mapping[str, float]:
        metrics = {"loss": float(self.model.evaluate(batch.inputs, batch.targets))}
        metrics.update(self._metrics(batch, metric_names))
        return metrics

    def _emit_epoch(
        self,
        split: str,
        epoch: int,
        metrics: Mapping[str, float],
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
        for callback in loggers.get(split, []):
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    @staticmethod
    def _save_checkpoint(path: Path, state: Mapping[str, Array]) -> None:
        payload = {name: value for name, value in state.items()}
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as handle:
            np.savez_compressed(handle, **payload)


def load_checkpoint(path: str | Path) -> dict[str, Array]:
    """Read a ``.npz`` checkpoint written by :class:`Trainer`."""

    with np.load(Path(path)) as data:
        return {name: data[name] for name in data.files}


__all__ = ["Trainer", "load_checkpoint"]
