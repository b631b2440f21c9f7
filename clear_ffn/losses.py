import numpy as np
from enum import Enum
from typing import Dict, Union

from clear_ffn.errors import DimensionError
from clear_ffn.linalg import VectorLike, as_vector

# Clip bound keeping log() away from zero in cross-entropy
CROSS_ENTROPY_EPSILON = 1e-15


def _check_shapes(outputs: np.ndarray, targets: np.ndarray, name: str):
    if outputs.shape != targets.shape:
        raise DimensionError(f"{name} Loss: Output shape {outputs.shape} must match target shape {targets.shape}")


class LossFunction(Enum):
    """
    Closed set of loss functions a Network can train against.

    MSE:
        loss     = (1/N) * Σ(output_i - target_i)^2
        gradient = (2/N) * (output - target)

    CROSS_ENTROPY:
        loss     = - Σ target_i * log(output_i)    (outputs clipped to [eps, 1 - eps])
        gradient = output - target
        The gradient is the combined softmax + cross-entropy gradient with respect
        to the *pre-activation* values of the final layer, so it is only correct
        when the output layer uses Softmax.
    """
    MSE = 'mse'
    CROSS_ENTROPY = 'cross_entropy'

    def getloss(self, outputs: VectorLike, targets: VectorLike) -> float:
        """Scalar loss of a single output vector against its target."""
        outputs, targets = as_vector(outputs), as_vector(targets)
        _check_shapes(outputs, targets, self.name)
        if self is LossFunction.MSE:
            if outputs.size == 0:
                return 0.0
            return float(np.mean((outputs - targets) ** 2))
        clipped = np.clip(outputs, CROSS_ENTROPY_EPSILON, 1.0 - CROSS_ENTROPY_EPSILON)
        return float(-np.sum(targets * np.log(clipped)))

    def backward(self, outputs: VectorLike, targets: VectorLike) -> np.ndarray:
        """Gradient of the loss with respect to the network's final output."""
        outputs, targets = as_vector(outputs), as_vector(targets)
        _check_shapes(outputs, targets, self.name)
        if self is LossFunction.MSE:
            if outputs.size == 0:
                return np.zeros_like(outputs)
            return 2.0 * (outputs - targets) / outputs.size
        # Note: using the unclipped outputs
        return outputs - targets


LOSS_FUNCTIONS: Dict[str, LossFunction] = {
    'mse': LossFunction.MSE,
    'cross_entropy': LossFunction.CROSS_ENTROPY,
    'crossentropy': LossFunction.CROSS_ENTROPY,
}


def get_loss(name: Union[str, LossFunction]) -> LossFunction:
    if isinstance(name, LossFunction):
        return name
    key = name.lower()
    if key not in LOSS_FUNCTIONS:
        raise ValueError(f"Unsupported loss_type '{name}'. Valid options: {list(LOSS_FUNCTIONS.keys())}")
    return LOSS_FUNCTIONS[key]
