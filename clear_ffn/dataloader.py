"""Batching of in-memory training data, plus one-hot label encoding."""

import numpy as np
from typing import Iterator, Sequence, Tuple, Union
import logging

ArrayLike = Union[Sequence[Sequence[float]], np.ndarray]


def to_onehot(labels: Union[Sequence, np.ndarray], num_classes: int) -> np.ndarray:
    """
    Expands a class labeling into one-hot vectors.

    Args:
        labels: Either class indices (one int per example) or label vectors
                (one vector per example, whose class is taken as its argmax).
        num_classes: Length of every one-hot vector.

    Returns:
        Float array of shape (num_examples, num_classes).

    Raises:
        ValueError: If a class index falls outside [0, num_classes).
    """
    if num_classes <= 0:
        raise ValueError(f"num_classes must be positive, got {num_classes}")
    labels = np.asarray(labels)
    if labels.ndim == 2:
        indices = np.argmax(labels, axis=1)
    elif labels.ndim == 1:
        if labels.size and not np.all(np.equal(np.mod(labels, 1), 0)):
            raise ValueError(f"Class indices must be whole numbers, got {labels.tolist()}")
        indices = labels.astype(int)
    else:
        raise ValueError(f"Labels must be 1D indices or 2D vectors, got shape {labels.shape}")

    if indices.size and (indices.min() < 0 or indices.max() >= num_classes):
        raise ValueError(f"Class index out of range for {num_classes} classes: {indices.tolist()}")

    onehot = np.zeros((indices.shape[0], num_classes), dtype=np.float64)
    onehot[np.arange(indices.shape[0]), indices] = 1.0
    return onehot


def _as_rows(values: ArrayLike) -> np.ndarray:
    # A flat sequence means one scalar per example
    array = np.asarray(values, dtype=np.float64)
    if array.ndim == 1:
        return array.reshape(-1, 1)
    if array.ndim != 2:
        raise ValueError(f"Expected one vector per example (2D), got shape {array.shape}")
    return array


class DataLoader:
    """
    Supplies (data, labels) batches for training.

    Iterating over a DataLoader walks one full epoch: consecutive slices of
    `batch_size` examples, visited in shuffled order when `shuffle` is set. The
    final batch is shorter when the number of examples is not a multiple of the
    batch size.
    """

    def __init__(self, data: ArrayLike, labels: ArrayLike, batch_size: int = 32, shuffle: bool = True):
        """
        Args:
            data: One input vector per example, shape (num_examples, input_dim).
            labels: One target vector per example, shape (num_examples, output_dim).
                    Use `to_onehot` for class labels.
            batch_size: Number of examples averaged into one gradient step.
            shuffle: Shuffle the example order at the start of each epoch.
        """
        self.data = _as_rows(data)
        self.labels = _as_rows(labels)
        if self.data.shape[0] != self.labels.shape[0]:
            raise ValueError(
                f"Number of samples in data ({self.data.shape[0]}) and labels ({self.labels.shape[0]}) must match."
            )
        if batch_size <= 0:
            raise ValueError(f"Batch size must be positive, got {batch_size}")
        if batch_size > self.data.shape[0] > 0:
            logging.warning(f"Batch size ({batch_size}) is larger than the dataset ({self.data.shape[0]}); "
                            f"each epoch is a single batch.")
        self.batch_size = batch_size
        self.shuffle = shuffle

    def __len__(self) -> int:
        """Number of batches per epoch."""
        return -(-self.data.shape[0] // self.batch_size)

    def __iter__(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        num_samples = self.data.shape[0]
        indices = np.arange(num_samples)
        if self.shuffle:
            indices = np.random.permutation(num_samples)

        for start in range(0, num_samples, self.batch_size):
            batch = indices[start:start + self.batch_size]
            yield self.data[batch], self.labels[batch]
