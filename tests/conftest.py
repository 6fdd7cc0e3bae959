import numpy as np
import pandas as pd
import pytest
from sklearn.datasets import load_iris
from sklearn.model_selection import train_test_split

FEATURES = ["sepal_length", "sepal_width", "petal_length", "petal_width"]


@pytest.fixture(scope="session")
def iris_frame():
    """Iris as a DataFrame with identifier-friendly column names and a species column."""
    iris = load_iris()
    df = pd.DataFrame(iris.data, columns=FEATURES)
    df["species"] = iris.target_names[iris.target]
    return df


@pytest.fixture(scope="session")
def iris_split(iris_frame):
    """75/75 stratified train/test split of iris."""
    train, test = train_test_split(
        iris_frame, test_size=75, random_state=42, stratify=iris_frame["species"]
    )
    return train, test


@pytest.fixture
def wide_data():
    """Two classes, 10 observations, 20 features: the pooled covariance is singular."""
    rng = np.random.default_rng(0)
    X = rng.normal(size=(10, 20))
    X[5:] += 1.5
    y = np.array(["a"] * 5 + ["b"] * 5)
    return X, y
