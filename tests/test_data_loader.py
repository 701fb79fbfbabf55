import pandas as pd
import pytest

from components.errors import DatasetError
from components.records import Dataset
from scripts.data_loader import load_data, split_frame

from conftest import make_housing_frame


def test_dataset_excludes_target_from_features(housing):
    assert housing.target == "medv"
    assert "medv" not in housing.features
    assert len(housing.features) == 13
    assert housing.n_rows == 506
    assert housing.n_columns == 14


def test_dataset_frame_is_a_copy(housing):
    frame = housing.frame
    frame["medv"] = 0.0
    assert housing.frame["medv"].abs().sum() > 0


@pytest.mark.parametrize("ratio,seed", [(0.75, 1), (0.5, 7), (0.9, 42)])
def test_split_is_disjoint_and_complete(housing, ratio, seed):
    part = split_frame(housing, ratio=ratio, seed=seed)
    n_train, n_test = part.sizes
    assert n_train + n_test == housing.n_rows
    assert set(part.train.index).isdisjoint(part.test.index)
    assert set(part.train.index) | set(part.test.index) == set(housing.frame.index)


def test_split_is_deterministic_for_a_seed(housing):
    first = split_frame(housing, ratio=0.75, seed=1)
    second = split_frame(housing, ratio=0.75, seed=1)
    pd.testing.assert_frame_equal(first.train, second.train)
    pd.testing.assert_frame_equal(first.test, second.test)

    other = split_frame(housing, ratio=0.75, seed=2)
    assert list(other.train.index) != list(first.train.index)


@pytest.mark.parametrize("ratio", [0.0, 1.0, -0.2, 1.5])
def test_split_rejects_invalid_ratio(housing, ratio):
    with pytest.raises(DatasetError):
        split_frame(housing, ratio=ratio, seed=1)


def test_split_rejects_empty_side():
    tiny = Dataset(pd.DataFrame({"x": [1.0, 2.0], "y": [0.5, 1.5]}), target="y")
    with pytest.raises(DatasetError):
        split_frame(tiny, ratio=0.1, seed=1)


def test_load_data_reads_csv(tmp_path):
    path = tmp_path / "housing.csv"
    make_housing_frame(n_rows=20).to_csv(path, index=False)
    dataset = load_data(path, "medv")
    assert dataset.n_rows == 20
    assert dataset.name == "housing"
    assert dataset.features[0] == "crim"


def test_load_data_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_data(tmp_path / "absent.csv", "medv")


def test_load_data_unsupported_format(tmp_path):
    path = tmp_path / "housing.xlsx"
    path.write_text("not a spreadsheet")
    with pytest.raises(ValueError):
        load_data(path, "medv")


def test_load_data_unknown_target(tmp_path):
    path = tmp_path / "housing.csv"
    make_housing_frame(n_rows=5).to_csv(path, index=False)
    with pytest.raises(DatasetError, match="price"):
        load_data(path, "price")


def test_dataset_rejects_non_numeric_target():
    frame = pd.DataFrame({"x": [1.0, 2.0], "label": ["a", "b"]})
    with pytest.raises(DatasetError, match="numeric"):
        Dataset(frame, target="label")


def test_dataset_rejects_missing_target_values():
    frame = make_housing_frame(n_rows=50)
    frame.loc[frame.index[:5], "medv"] = float("nan")
    with pytest.raises(DatasetError, match="5 missing"):
        Dataset(frame, target="medv")


def test_load_data_rejects_blank_targets(tmp_path):
    path = tmp_path / "housing.csv"
    frame = make_housing_frame(n_rows=20)
    frame.loc[frame.index[3], "medv"] = None
    frame.to_csv(path, index=False)
    with pytest.raises(DatasetError, match="medv"):
        load_data(path, "medv")
