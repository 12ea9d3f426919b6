import numpy as np
import pytest

from backpropnets.data import available_datasets, get_dataset, iter_batches
from backpropnets.data.utils import deterministic_split, encode_labels


def test_builtin_datasets_are_registered():
    assert {
        "blobs",
        "moons",
        "xor",
        "sine",
        "breast_cancer",
        "csv_regression",
        "csv_classification",
    } <= set(available_datasets())


def test_unknown_dataset_lists_available():
    with pytest.raises(KeyError, match="Available datasets"):
        get_dataset("imagenet")


@pytest.mark.parametrize("name", ["blobs", "moons", "xor"])
def test_synthetic_classification_shapes(name):
    spec = get_dataset(name, n_samples=100, seed=1)
    assert spec.data_spec.task_type == "binary"
    assert sum(spec.sizes.values()) == 100
    train = spec.split("train")
    assert train.inputs.shape[1] == spec.data_spec.d_in == 2
    assert train.targets.shape[1] == spec.data_spec.d_out == 1
    assert set(np.unique(train.targets)) <= {0.0, 1.0}


def test_splits_are_deterministic():
    a = get_dataset("moons", seed=3)
    b = get_dataset("moons", seed=3)
    np.testing.assert_array_equal(a.split("train").inputs, b.split("train").inputs)
    np.testing.assert_array_equal(a.split("test").targets, b.split("test").targets)


def test_polynomial_features_widen_inputs():
    spec = get_dataset("sine", n_points=64, polynomial_degree=3)
    assert spec.data_spec.d_in == 3
    assert spec.data_spec.task_type == "regression"
    assert spec.data_spec.normalization["polynomial_degree"] == 3


def test_standardize_fits_on_train_split():
    spec = get_dataset("csv_regression")
    train = spec.split("train")
    np.testing.assert_allclose(train.inputs.mean(axis=0), 0.0, atol=1e-9)
    np.testing.assert_allclose(train.targets.mean(axis=0), 0.0, atol=1e-9)
    assert "inputs" in spec.data_spec.normalization


def test_csv_classification_one_hot():
    spec = get_dataset("csv_classification")
    assert spec.data_spec.task_type == "multiclass"
    assert spec.data_spec.num_classes == 3
    assert spec.data_spec.d_out == 3
    np.testing.assert_allclose(spec.split("train").targets.sum(axis=1), 1.0)
    assert spec.provenance["classes"] == ["setosa", "versicolor", "virginica"]


def test_csv_missing_target_column(tmp_path):
    path = tmp_path / "data.csv"
    path.write_text("a,b\n1,2\n3,4\n")
    with pytest.raises(KeyError):
        get_dataset("csv_regression", csv_path=path, target_col="y")


def test_breast_cancer_is_bundled():
    spec = get_dataset("breast_cancer")
    assert spec.data_spec.d_in == 30
    assert spec.data_spec.num_classes == 2


def test_iter_batches_covers_split_once():
    spec = get_dataset("blobs", n_samples=50)
    batches = list(iter_batches(spec, "train", 8, seed=0))
    assert sum(len(batch) for batch in batches) == len(spec.split("train"))
    assert all(len(batch) <= 8 for batch in batches)


def test_deterministic_split_sizes():
    split = deterministic_split(10, val_split=0.1, test_split=0.2, seed=0)
    assert split.sizes == {"train": 7, "val": 1, "test": 2}
    with pytest.raises(ValueError):
        deterministic_split(10, val_split=0.5, test_split=0.5)


def test_encode_labels_binary_is_single_column():
    targets, classes = encode_labels(np.array(["b", "a", "b"]))
    assert classes == ["a", "b"]
    np.testing.assert_array_equal(targets.ravel(), [1.0, 0.0, 1.0])


def test_multiclass_labels_require_one_hot():
    with pytest.raises(ValueError, match="one_hot"):
        encode_labels(np.array(["a", "b", "c"]), one_hot=False)
    with pytest.raises(ValueError):
        get_dataset("csv_classification", one_hot=False)
    targets, _ = encode_labels(np.array(["x", "y"]), one_hot=False)
    assert targets.shape == (2, 1)
