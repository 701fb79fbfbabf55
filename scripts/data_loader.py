from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd
from sklearn.model_selection import train_test_split

from components.errors import DatasetError
from components.records import Dataset, Partition
from scripts.config import BOSTON_TARGET, RANDOM_STATE, SPLIT_RATIO

logger = logging.getLogger(__name__)


def load_data(
    path: str | Path,
    target: str,
    **kwargs
) -> Dataset:
    """Load a single table holding both the features and the target.

    Parameters
    ----------
    path : str | Path
        Path to the CSV file.
    target : str
        Name of the column to predict; every other column is a feature.
    **kwargs
        Additional keyword arguments to pass to ``pandas.read_csv``.

    Returns
    -------
    Dataset
        The table with ``target`` designated.

    Raises
    ------
    ValueError
        If the file format is unsupported.
    FileNotFoundError
        If the specified path does not exist.
    DatasetError
        If the target column is missing or not numeric.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    if path.suffix == ".csv":
        frame = pd.read_csv(path, **kwargs)
    else:
        raise ValueError(f"Unsupported data file format: {path.suffix}")

    dataset = Dataset(frame, target=target, name=path.stem)
    logger.info("Loaded %s: %d rows x %d columns, target=%s", path, dataset.n_rows, dataset.n_columns, target)
    return dataset


def load_boston_housing() -> Dataset:
    """Fetch the 506-row Boston housing table (target ``medv``) from OpenML."""
    from sklearn.datasets import fetch_openml

    bunch = fetch_openml(name="boston", version=1, as_frame=True)
    frame = bunch.frame.copy()
    frame.columns = [str(c).lower() for c in frame.columns]
    # CHAS and RAD arrive as categoricals; the workshop treats every column as numeric.
    frame = frame.astype(float)
    return Dataset(frame, target=BOSTON_TARGET, name="boston")


def split_frame(
    dataset: Dataset,
    ratio: float = SPLIT_RATIO,
    seed: int = RANDOM_STATE,
) -> Partition:
    """Shuffle-split *dataset* into train (``ratio``) and test partitions.

    The original row labels are kept so the partitions can be checked for
    disjointness; the same ``(ratio, seed)`` always yields the same split.
    """
    if not 0.0 < ratio < 1.0:
        raise DatasetError(f"split ratio must lie in (0, 1), got {ratio}")
    try:
        train, test = train_test_split(
            dataset.frame, train_size=ratio, random_state=seed, shuffle=True
        )
    except ValueError as exc:
        raise DatasetError(
            f"Cannot split {dataset.n_rows} rows of {dataset.name!r} at ratio {ratio}: {exc}"
        ) from exc
    logger.info(
        "Split %s into train (%d rows) and test (%d rows) with seed %d",
        dataset.name, len(train), len(test), seed,
    )
    return Partition(train=train, test=test, ratio=ratio, seed=seed)


__all__ = ["load_data", "load_boston_housing", "split_frame"]
