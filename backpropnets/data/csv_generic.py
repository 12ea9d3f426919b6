"""Generic CSV loaders for regression and classification tasks."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from .registry import DatasetSpec, DataSpec, register_dataset
from .utils import build_splits, encode_labels

FIXTURE_DIR = Path(__file__).resolve().parent / "_fixtures"


def _load_csv(path: Path, target_col: str) -> tuple[np.ndarray, np.ndarray]:
    df = pd.read_csv(path)
    if target_col not in df.columns:
        raise KeyError(f"Target column {target_col!r} not found in {path.name}")
    y = df.pop(target_col).to_numpy()
    X = df.to_numpy(dtype=np.float64)
    return X, y


def _default_path(name: str) -> Path:
    return FIXTURE_DIR / name


@register_dataset("csv_regression")
def load_csv_regression(
    *,
    csv_path: str | Path | None = None,
    target_col: str = "target",
    val_split: float = 0.1,
    test_split: float = 0.2,
    seed: int = 0,
    standardize: bool = True,
    standardize_targets: bool = True,
    polynomial_degree: int = 1,
) -> DatasetSpec:
    """Load a regression dataset from a CSV file."""

    path = Path(csv_path) if csv_path else _default_path("csv_regression_fixture.csv")
    X, y_raw = _load_csv(path, target_col)
    y = np.asarray(y_raw, dtype=np.float64).reshape(-1, 1)
    splits, normalization = build_splits(
        X,
        y,
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        standardize=standardize,
        standardize_targets=standardize_targets,
        polynomial_degree=polynomial_degree,
    )

    data_spec = DataSpec(
        d_in=int(splits["train"].inputs.shape[1]),
        d_out=1,
        task_type="regression",
        normalization=normalization,
    )
    provenance = {
        "path": str(path),
        "val_split": val_split,
        "test_split": test_split,
        "seed": seed,
        "target_col": target_col,
        "standardize": standardize,
        "standardize_targets": standardize_targets,
        "polynomial_degree": polynomial_degree,
    }
    return DatasetSpec(
        name="csv_regression",
        splits=splits,
        data_spec=data_spec,
        provenance=provenance,
    )


@register_dataset("csv_classification")
def load_csv_classification(
    *,
    csv_path: str | Path | None = None,
    target_col: str = "target",
    val_split: float = 0.1,
    test_split: float = 0.2,
    seed: int = 0,
    one_hot: bool = True,
    standardize: bool = True,
    polynomial_degree: int = 1,
) -> DatasetSpec:
    """Load a classification dataset from a CSV file."""

    path = Path(csv_path) if csv_path else _default_path("csv_classification_fixture.csv")
    X, y_raw = _load_csv(path, target_col)
    y, classes = encode_labels(y_raw, one_hot=one_hot)
    splits, normalization = build_splits(
        X,
        y,
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        standardize=standardize,
        polynomial_degree=polynomial_degree,
    )

    num_classes = len(classes)
    data_spec = DataSpec(
        d_in=int(splits["train"].inputs.shape[1]),
        d_out=int(y.shape[1]),
        task_type="binary" if num_classes <= 2 else "multiclass",
        num_classes=num_classes,
        normalization=normalization,
    )
    provenance = {
        "path": str(path),
        "val_split": val_split,
        "test_split": test_split,
        "seed": seed,
        "target_col": target_col,
        "one_hot": one_hot,
        "standardize": standardize,
        "classes": [str(c) for c in classes],
    }
    return DatasetSpec(
        name="csv_classification",
        splits=splits,
        data_spec=data_spec,
        provenance=provenance,
    )


__all__ = ["load_csv_classification", "load_csv_regression"]
