"""Small real datasets bundled with scikit-learn (no download needed)."""

from __future__ import annotations

from sklearn.datasets import load_breast_cancer

from .registry import DatasetSpec, DataSpec, register_dataset
from .utils import build_splits


@register_dataset("breast_cancer")
def load_breast_cancer_dataset(
    *,
    val_split: float = 0.1,
    test_split: float = 0.2,
    seed: int = 0,
    standardize: bool = True,
    polynomial_degree: int = 1,
) -> DatasetSpec:
    """Wisconsin diagnostic breast cancer data; binary target."""

    bunch = load_breast_cancer()
    splits, normalization = build_splits(
        bunch.data,
        bunch.target.reshape(-1, 1),
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        standardize=standardize,
        polynomial_degree=polynomial_degree,
    )
    return DatasetSpec(
        name="breast_cancer",
        splits=splits,
        data_spec=DataSpec(
            d_in=int(splits["train"].inputs.shape[1]),
            d_out=1,
            task_type="binary",
            num_classes=2,
            normalization=normalization,
        ),
        provenance={
            "source": "sklearn.datasets.load_breast_cancer",
            "val_split": val_split,
            "test_split": test_split,
            "seed": seed,
            "standardize": standardize,
            "polynomial_degree": polynomial_degree,
            "classes": [str(name) for name in bunch.target_names],
        },
    )


__all__ = ["load_breast_cancer_dataset"]
