"""Small datasets for demos and smoke tests."""

import numpy as np
from typing import Tuple
import logging

from sklearn.datasets import make_moons

from clear_ffn.dataloader import to_onehot


def xor_dataset() -> Tuple[np.ndarray, np.ndarray]:
    """The 4-point XOR-like problem, labels one-hot encoded over 2 classes.

    Returns:
        (data, labels) with shapes (4, 2) and (4, 2).
    """
    data = np.array([[1.0, 1.0], [0.0, 0.0], [0.0, 1.0], [1.0, 0.0]])
    labels = to_onehot([[0, 1], [0, 1], [1, 0], [1, 0]], 2)
    return data, labels


def moons_dataset(n_samples: int = 200, noise: float = 0.1, random_state: int = 42) -> Tuple[np.ndarray, np.ndarray]:
    """Two interleaving half circles from scikit-learn, normalized, labels one-hot encoded.

    Returns:
        (data, labels) with shapes (n_samples, 2) and (n_samples, 2).
    """
    logging.info("Generating make_moons dataset...")
    X, y_raw = make_moons(n_samples=n_samples, noise=noise, random_state=random_state)
    # Normalize features
    X = (X - X.mean(axis=0)) / (X.std(axis=0) + 1e-8)
    return X, to_onehot(y_raw, 2)


DATASETS = {
    'xor': xor_dataset,
    'moons': moons_dataset,
}
