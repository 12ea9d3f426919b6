"""Headless-safe plotting adapters."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Sequence, Tuple


class PlotAdapter:
    """Collect per-epoch losses and optionally save a matplotlib loss curve."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False, filename: str = "loss.png"):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self.filename = filename
        self._history: List[Tuple[int, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        self._history.append((int(epoch), float(metrics.get("loss", 0.0))))

    def extend(self, losses: Sequence[float]) -> None:
        """Append a whole loss curve, e.g. ``model.loss_curve_``."""

        start = len(self._history) + 1
        for offset, loss in enumerate(losses):
            self.on_epoch(start + offset, {"loss": loss})

    def close(self) -> Path | None:
        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        epochs, losses = zip(*self._history)
        fig, ax = plt.subplots()
        ax.plot(epochs, losses)
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Loss")
        ax.set_yscale("log" if min(losses) > 0 else "linear")
        ax.set_title("Training loss")
        plot_path = self.run_dir / self.filename
        fig.savefig(plot_path)
        plt.close(fig)
        return plot_path

    __call__ = on_epoch


__all__ = ["PlotAdapter"]
