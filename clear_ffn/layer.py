import numpy as np
from typing import Optional, Sequence, Union
import logging

from clear_ffn.activations import Activation, get_activation
from clear_ffn.errors import DimensionError, StaleLayerError
from clear_ffn.linalg import Matrix, VectorLike, add, as_vector, multiply, outer_product, transpose
from clear_ffn.losses import LossFunction


class Layer:
    """
    A fully-connected layer: an affine transform followed by an activation.

    Each of the `output_size` conceptual neurons computes a weighted sum of all
    inputs, adds its bias and applies the activation. The whole layer is done with
    one matrix-vector product.

    Key Attributes:
        weights (Matrix): Weight matrix of shape (output_size, input_size). Row j holds
                          the incoming weights of neuron j.
        biases (np.ndarray): Bias vector of shape (output_size,).
        activation (Activation): Activation applied to W @ x + b.
        inputs (np.ndarray): Input seen by the last forward pass. Shape: (input_size,).
        z_values (np.ndarray): Pre-activation values of the last forward pass. Shape: (output_size,).
        activationdata (np.ndarray): Activated output of the last forward pass. Shape: (output_size,).
                                     Zero-filled until the first forward.

    The backward operations do not store anything on the layer: the upstream
    gradient (dL/dA for this layer's output) is passed in by the Network on every
    call and the gradients are returned.
    """

    def __init__(
        self,
        input_size: int,
        output_size: int,
        activation: Union[str, Activation, None] = Activation.NONE,
        initial_weights: Optional[Union[Matrix, np.ndarray, Sequence[Sequence[float]]]] = None,  # (output_size, input_size)
        initial_biases: Optional[VectorLike] = None,   # (output_size,)
        id: int = 0,
    ):
        """
        Initializes the layer.

        Args:
            input_size: Number of input features (size of the previous layer).
            output_size: Number of neurons in this layer.
            activation: Activation member or name (e.g. 'relu', 'softmax'). Defaults to identity.
            initial_weights: Optional pre-defined weight matrix of shape (output_size, input_size).
                             Random uniform weights in [-1, 1) are drawn otherwise.
            initial_biases: Optional pre-defined bias vector of shape (output_size,). Zeros otherwise.
            id: Identifier used in log and error messages.
        """
        if input_size <= 0 or output_size <= 0:
            raise DimensionError(f"Layer {id}: sizes must be positive, got input_size={input_size}, output_size={output_size}")
        self.input_size = input_size
        self.output_size = output_size
        self.id = id
        self.activation = get_activation(activation)

        if initial_weights is not None:
            weights = initial_weights.copy() if isinstance(initial_weights, Matrix) else Matrix(initial_weights)
            if weights.shape != (output_size, input_size):
                raise DimensionError(
                    f"Layer {id}: Initial weights shape {weights.shape} "
                    f"does not match expected shape ({output_size}, {input_size})"
                )
            self.weights = weights
        else:
            self.weights = Matrix.rand(output_size, input_size)

        if initial_biases is not None:
            biases = as_vector(initial_biases, f"Layer {id} biases").copy()
            if biases.shape != (output_size,):
                raise DimensionError(
                    f"Layer {id}: Initial biases shape {biases.shape} "
                    f"does not match expected shape ({output_size},)"
                )
            self.biases = biases
        else:
            self.biases = np.zeros(output_size, dtype=np.float64)

        # Forward caches
        self.inputs = None
        self.z_values = None
        self.activationdata = np.zeros(output_size, dtype=np.float64)

        logging.debug(
            f"Layer #{self.id} created: input_size={input_size}, "
            f"output_size={output_size}, activation={self.activation.name}"
        )

    def forward(self, inputs: VectorLike) -> np.ndarray:
        """
        Computes A = activation(W @ x + b) and caches x, Z and A.

        Every call overwrites the caches of the previous one.

        Args:
            inputs: Input vector of shape (input_size,).

        Returns:
            Output activations of shape (output_size,).

        Raises:
            DimensionError: If the input length is not input_size.
        """
        inputs = as_vector(inputs, f"Layer {self.id} input")
        if inputs.shape[0] != self.input_size:
            raise DimensionError(f"Layer {self.id}: Expected {self.input_size} inputs, got {inputs.shape[0]}")

        z = add(multiply(self.weights, inputs), self.biases)
        a = self.activation.forward(z)

        self.inputs = inputs.copy()
        self.z_values = z
        self.activationdata = a
        return a.copy()

    def _delta(self, upstream: VectorLike, loss: LossFunction) -> np.ndarray:
        """dL/dZ = dL/dA * dA/dZ, with dA/dZ evaluated at the cached pre-activation values."""
        if self.z_values is None:
            raise StaleLayerError(f"Layer {self.id}: Must call forward() before backward().")
        upstream = as_vector(upstream, f"Layer {self.id} upstream gradient")
        if upstream.shape[0] != self.output_size:
            raise DimensionError(
                f"Layer {self.id}: Expected {self.output_size} incoming gradients, got {upstream.shape[0]}"
            )
        return upstream * self.activation.backward(self.z_values, loss)

    def weight_grad_backwards(self, inputs: VectorLike, upstream: VectorLike, loss: LossFunction) -> Matrix:
        """
        Gradient of the loss with respect to this layer's weights.

        dL/dW[j, k] = delta[j] * x[k], i.e. the outer product of delta and the input.

        Args:
            inputs: The vector this layer consumed on its last forward pass
                    (previous layer's activations, or the network input for layer 0).
            upstream: dL/dA for this layer's output. Shape: (output_size,).
            loss: Loss function the network trains against.

        Returns:
            Matrix of shape (output_size, input_size), matching `weights`.
        """
        delta = self._delta(upstream, loss)
        inputs = as_vector(inputs, f"Layer {self.id} input")
        if inputs.shape[0] != self.input_size:
            raise DimensionError(f"Layer {self.id}: Expected {self.input_size} inputs, got {inputs.shape[0]}")
        return outer_product(delta, inputs)

    def bias_grad_backwards(self, inputs: VectorLike, upstream: VectorLike, loss: LossFunction) -> np.ndarray:
        """Gradient of the loss with respect to the biases (dZ/db = 1, so this is delta)."""
        return self._delta(upstream, loss)

    def activation_grad(self, weights: Matrix, upstream: VectorLike, loss: LossFunction) -> np.ndarray:
        """
        Propagates the gradient one layer back: dL/dX = W.T @ delta.

        Args:
            weights: This layer's weight matrix, taken before any update of the current step.
            upstream: dL/dA for this layer's output.
            loss: Loss function the network trains against.

        Returns:
            Vector of shape (input_size,): the upstream gradient for the previous layer.
        """
        if weights.shape != (self.output_size, self.input_size):
            raise DimensionError(
                f"Layer {self.id}: weights shape {weights.shape} does not match "
                f"({self.output_size}, {self.input_size})"
            )
        delta = self._delta(upstream, loss)
        return multiply(transpose(weights), delta)

    def update(self, weight_grad: Matrix, bias_grad: VectorLike, learning_rate: float):
        """
        Plain gradient descent step, in place:
            W = W - learning_rate * dL/dW
            b = b - learning_rate * dL/db
        """
        bias_grad = as_vector(bias_grad, f"Layer {self.id} bias gradient")
        if bias_grad.shape != self.biases.shape:
            raise DimensionError(f"Layer {self.id}: bias gradient shape {bias_grad.shape} does not match {self.biases.shape}")

        if weight_grad.shape != self.weights.shape:
            raise DimensionError(f"Layer {self.id}: weight gradient shape {weight_grad.shape} does not match {self.weights.shape}")

        self.weights.data -= (learning_rate * weight_grad).data
        self.biases -= learning_rate * bias_grad

    def summary(self) -> str:
        """Returns a string summary of the layer's configuration."""
        params = self.weights.rows * self.weights.cols + self.biases.size
        return (
            f"Layer Summary (id={self.id}):\n"
            f"  Type: Fully Connected\n"
            f"  Input size: {self.input_size}\n"
            f"  Output size: {self.output_size}\n"
            f"  Activation: {self.activation.name}\n"
            f"  Weights shape: {self.weights.shape}\n"
            f"  Biases shape: {self.biases.shape}\n"
            f"  Parameters: {params:,} parameters\n"
        )

    def __repr__(self):
        return (f"Layer(id={self.id}, input_size={self.input_size}, "
                f"output_size={self.output_size}, "
                f"activation={self.activation.name})")
