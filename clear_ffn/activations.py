import numpy as np
from enum import Enum
from typing import Callable, Dict, Union
import logging

from clear_ffn.linalg import VectorLike, as_vector
from clear_ffn.losses import LossFunction

# Floor for the softmax denominator when every exponential underflows
SOFTMAX_EPSILON = 1e-15


class Activation(Enum):
    """
    Closed set of activation functions a Layer can apply.

    Each member is a stateless tag; `forward` and `backward` dispatch to the
    pure functions registered for it below.

    Convention: `backward` is always evaluated on the *pre-activation* values
    (z = W @ x + b), never on the activated output.
    """
    NONE = 'none'
    RELU = 'relu'
    SIGMOID = 'sigmoid'
    TANH = 'tanh'
    SOFTMAX = 'softmax'

    def forward(self, z: VectorLike) -> np.ndarray:
        """Apply the activation to a pre-activation vector."""
        z = as_vector(z, f"{self.name} forward")
        logging.debug(f"{self.name} forward - input shape: {z.shape}")
        return _FORWARD[self](z)

    def backward(self, z: VectorLike, loss=None) -> np.ndarray:
        """Local derivative dA/dZ evaluated at the pre-activation vector `z`.

        Args:
            z: Pre-activation values the derivative is evaluated at.
            loss: The network's LossFunction. Only Softmax looks at it: paired with
                  cross-entropy the loss gradient is already dL/dZ, so the local
                  derivative collapses to ones.

        Returns:
            Vector with the same length as `z`.
        """
        z = as_vector(z, f"{self.name} backward")
        logging.debug(f"{self.name} backward - input shape: {z.shape}")
        if self is Activation.SOFTMAX:
            return _softmax_backward(z, loss)
        return _BACKWARD[self](z)


# --- Forward formulas ---

def _identity(z: np.ndarray) -> np.ndarray:
    return z.copy()


def _relu(z: np.ndarray) -> np.ndarray:
    return np.maximum(0.0, z)


def _sigmoid(z: np.ndarray) -> np.ndarray:
    # Clip input to avoid overflow in exp(-z) for large negative z
    clipped = np.clip(z, -500, 500)
    return 1.0 / (1.0 + np.exp(-clipped))


def _tanh(z: np.ndarray) -> np.ndarray:
    return np.tanh(z)


def _softmax(z: np.ndarray) -> np.ndarray:
    """Softmax over the whole vector, using the max subtraction trick."""
    exp_z = np.exp(z - np.max(z)) if z.size else z.copy()
    total = np.sum(exp_z)
    if total == 0:
        total = SOFTMAX_EPSILON
    return exp_z / total


# --- Derivatives (evaluated at z) ---

def _ones(z: np.ndarray) -> np.ndarray:
    return np.ones_like(z)


def _relu_backward(z: np.ndarray) -> np.ndarray:
    return (z > 0).astype(np.float64)


def _sigmoid_backward(z: np.ndarray) -> np.ndarray:
    s = _sigmoid(z)
    return s * (1.0 - s)


def _tanh_backward(z: np.ndarray) -> np.ndarray:
    return 1.0 - np.tanh(z) ** 2


def _softmax_backward(z: np.ndarray, loss) -> np.ndarray:
    if loss is LossFunction.CROSS_ENTROPY:
        return np.ones_like(z)
    # Diagonal of the softmax Jacobian; the cross terms are dropped
    s = _softmax(z)
    return s * (1.0 - s)


_FORWARD: Dict[Activation, Callable[[np.ndarray], np.ndarray]] = {
    Activation.NONE: _identity,
    Activation.RELU: _relu,
    Activation.SIGMOID: _sigmoid,
    Activation.TANH: _tanh,
    Activation.SOFTMAX: _softmax,
}

_BACKWARD: Dict[Activation, Callable[[np.ndarray], np.ndarray]] = {
    Activation.NONE: _ones,
    Activation.RELU: _relu_backward,
    Activation.SIGMOID: _sigmoid_backward,
    Activation.TANH: _tanh_backward,
}

# Names accepted by get_activation
ACTIVATION_ALIASES: Dict[str, Activation] = {
    'none': Activation.NONE,
    'linear': Activation.NONE,
    'identity': Activation.NONE,
    'relu': Activation.RELU,
    'sigmoid': Activation.SIGMOID,
    'tanh': Activation.TANH,
    'softmax': Activation.SOFTMAX,
}


def get_activation(name: Union[str, Activation, None]) -> Activation:
    """Look up an activation by name (case-insensitive).

    Args:
        name: Activation name, an Activation member (returned as is), or None for identity.

    Returns:
        The matching Activation member.

    Raises:
        ValueError: If the name is not recognized.
    """
    if isinstance(name, Activation):
        return name
    if name is None:
        return Activation.NONE
    key = name.lower()
    if key not in ACTIVATION_ALIASES:
        raise ValueError(
            f"Unknown activation function '{name}'. "
            f"Available functions: {list(ACTIVATION_ALIASES.keys())}"
        )
    return ACTIVATION_ALIASES[key]
