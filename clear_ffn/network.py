import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple, Union
import logging
import time

from clear_ffn.dataloader import DataLoader
from clear_ffn.errors import DimensionError, StaleLayerError, WeightFileError
from clear_ffn.layer import Layer
from clear_ffn.linalg import Matrix, VectorLike, as_vector
from clear_ffn.losses import LossFunction, get_loss

# (dL/dW, dL/db) for one layer
LayerGradients = Tuple[Matrix, np.ndarray]


class Network:
    """
    A simple Feedforward Neural Network (Multilayer Perceptron).

    Manages an ordered sequence of fully-connected layers and a loss function, and
    runs the forward pass, backward pass (backpropagation), gradient-descent
    updates, the training loop, prediction and evaluation. Weights can be saved to
    and loaded from a flat text file.

    Gradients are computed one example at a time; a batch averages the
    per-example gradients and applies them in a single update.
    """

    def __init__(self, layers: Optional[Sequence[Layer]] = None, loss: Union[str, LossFunction] = LossFunction.MSE):
        """
        Args:
            layers: Layers in forward order. Adjacent layers must agree on size
                    (layers[i].output_size == layers[i+1].input_size).
            loss: LossFunction member or name ('mse', 'cross_entropy').
        """
        self.layers: List[Layer] = []
        self.loss = get_loss(loss)

        # Training history tracking
        self.training_history: Dict[str, List] = {
            'epoch': [],
            'loss': [],
            'learning_rate': [],
            'batch_size': [],
            'time_per_epoch': []
        }

        if layers:
            self.add_layers(layers)
            logging.info(f"Created neural network with architecture: {self.layer_sizes()}")
            logging.info(f"Layer activations: {[l.activation.name for l in self.layers]}")

    # --- Assembly ---

    def add_layer(self, layer: Layer):
        """Appends a layer, checking that it accepts the current output size."""
        if self.layers and self.layers[-1].output_size != layer.input_size:
            raise DimensionError(
                f"Cannot append layer with input_size {layer.input_size} after a layer "
                f"with output_size {self.layers[-1].output_size}"
            )
        self.layers.append(layer)

    def add_layers(self, layers: Sequence[Layer]):
        for layer in layers:
            self.add_layer(layer)

    def layer_sizes(self) -> List[int]:
        """[input_dim, hidden..., output_dim]"""
        if not self.layers:
            return []
        return [self.layers[0].input_size] + [l.output_size for l in self.layers]

    # --- Forward ---

    def forward(self, inputs: VectorLike) -> np.ndarray:
        """
        Performs a forward pass of a single example through all layers.

        Each layer's caches are overwritten as a side effect.

        Args:
            inputs: Input vector of shape (input_dim,).

        Returns:
            The final layer's output, shape (output_dim,).
        """
        current_output = as_vector(inputs, "Network input")
        for i, layer in enumerate(self.layers):
            logging.debug(f"Forward pass - Layer {i} input shape: {current_output.shape}")
            current_output = layer.forward(current_output)
            logging.debug(f"Forward pass - Layer {i} output shape: {current_output.shape}")
        return current_output

    def predict(self, X: Union[VectorLike, Sequence[VectorLike]]) -> np.ndarray:
        """
        Generates predictions for one example (1D) or many examples (2D, one per row).

        Returns:
            Network predictions of shape (num_samples, output_dim).
        """
        X = np.asarray(X, dtype=np.float64)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        elif X.ndim != 2:
            raise DimensionError(f"Input X must be a 1D or 2D array, got {X.ndim}D.")
        return np.array([self.forward(row) for row in X])

    # --- Backward ---

    def compute_gradients(self, inputs: VectorLike, target: VectorLike) -> List[LayerGradients]:
        """
        Backpropagation for a single example over the state cached by the last forward pass.

        The upstream gradient starts as dL/dA of the final layer (from the loss) and is
        handed from layer to layer in reverse order: each layer turns it into its own
        weight/bias gradients and into the upstream gradient for the layer before it.
        All gradients are taken at the current (not yet updated) weights.

        Args:
            inputs: The example that was last passed to `forward`.
            target: The target vector for that example.

        Returns:
            One (weight_grad, bias_grad) pair per layer, in forward order.

        Raises:
            StaleLayerError: If forward() has not been called yet.
            DimensionError: If the target does not match the output size.
        """
        if not self.layers:
            raise ValueError("Network has no layers.")
        inputs = as_vector(inputs, "Network input")
        last_layer = self.layers[-1]
        if last_layer.z_values is None:
            raise StaleLayerError("Network: Must call forward() before backward().")

        upstream = self.loss.backward(last_layer.activationdata, target)
        logging.debug(f"Backward pass starting with gradient shape: {upstream.shape}")

        gradients: List[Optional[LayerGradients]] = [None] * len(self.layers)
        for i in reversed(range(len(self.layers))):
            layer = self.layers[i]
            layer_input = inputs if i == 0 else self.layers[i - 1].activationdata

            weight_grad = layer.weight_grad_backwards(layer_input, upstream, self.loss)
            bias_grad = layer.bias_grad_backwards(layer_input, upstream, self.loss)
            gradients[i] = (weight_grad, bias_grad)

            if i > 0:
                # dL/dX of this layer is dL/dA of the previous one
                upstream = layer.activation_grad(layer.weights, upstream, self.loss)
                logging.debug(f"Backward pass - Layer {i} passing gradient shape: {upstream.shape}")

        return gradients

    def apply_gradients(self, gradients: Sequence[LayerGradients], learning_rate: float):
        """Gradient-descent update of every layer's weights and biases."""
        if len(gradients) != len(self.layers):
            raise DimensionError(f"Got gradients for {len(gradients)} layers, network has {len(self.layers)}")
        for i, (layer, (weight_grad, bias_grad)) in enumerate(zip(self.layers, gradients)):
            logging.debug(f"Updating layer {i}")
            layer.update(weight_grad, bias_grad, learning_rate)

    def backward(self, inputs: VectorLike, target: VectorLike, learning_rate: float):
        """
        Single-example backpropagation followed by a gradient-descent step.

        Must follow a forward() call on the same `inputs`.
        """
        gradients = self.compute_gradients(inputs, target)
        self.apply_gradients(gradients, learning_rate)

    # --- Loss ---

    def compute_loss(self, outputs: VectorLike, target: VectorLike) -> float:
        return self.loss.getloss(outputs, target)

    # --- Training ---

    def train_batch(self, X_batch: np.ndarray, y_batch: np.ndarray, learning_rate: float) -> float:
        """
        Trains the network on a single batch.

        Runs forward and backpropagation for every example, averages the gradients
        over the batch and applies them once.

        Returns:
            Mean loss over the batch, measured before the update.
        """
        X_batch = np.asarray(X_batch, dtype=np.float64)
        y_batch = np.asarray(y_batch, dtype=np.float64)
        batch_size = X_batch.shape[0]
        if batch_size == 0:
            raise ValueError("Cannot train on an empty batch.")
        if y_batch.shape[0] != batch_size:
            raise DimensionError(f"Batch has {batch_size} inputs but {y_batch.shape[0]} targets.")

        total_loss = 0.0
        summed: Optional[List[LayerGradients]] = None
        for x, y in zip(X_batch, y_batch):
            outputs = self.forward(x)
            total_loss += self.compute_loss(outputs, y)
            gradients = self.compute_gradients(x, y)
            if summed is None:
                summed = gradients
            else:
                summed = [(sw + gw, sb + gb) for (sw, sb), (gw, gb) in zip(summed, gradients)]

        averaged = [((1.0 / batch_size) * gw, gb / batch_size) for gw, gb in summed]
        self.apply_gradients(averaged, learning_rate)
        return total_loss / batch_size

    def train(
        self,
        dataloader: DataLoader,
        learning_rate: float = 0.01,
        epochs: int = 100,
        verbose: bool = False,
        log_every: int = 1,
    ) -> Dict[str, List]:
        """
        Trains the network for a number of epochs using mini-batch gradient descent.

        Every epoch visits all examples of the dataloader, batch by batch (shuffled
        if the dataloader says so).

        Args:
            dataloader: Supplier of (inputs, targets) batches.
            learning_rate: Step size for the gradient-descent updates.
            epochs: Number of passes over the data.
            verbose: Whether to print training progress.
            log_every: Print progress every `log_every` epochs (and on the last one).

        Returns:
            The training history (epoch, loss, learning_rate, batch_size, time_per_epoch).
        """
        if epochs < 0:
            raise ValueError(f"epochs must be non-negative, got {epochs}")
        if log_every <= 0:
            raise ValueError(f"log_every must be positive, got {log_every}")

        # --- Training Loop ---
        for epoch in range(epochs):
            epoch_start_time = time.time()
            epoch_loss = 0.0
            seen = 0

            for X_batch, y_batch in dataloader:
                batch_loss = self.train_batch(X_batch, y_batch, learning_rate)
                epoch_loss += batch_loss * len(X_batch)  # Weight by batch size for an exact epoch mean
                seen += len(X_batch)

            epoch_loss /= max(seen, 1)
            epoch_time = time.time() - epoch_start_time

            self.training_history['epoch'].append(epoch)
            self.training_history['loss'].append(epoch_loss)
            self.training_history['learning_rate'].append(learning_rate)
            self.training_history['batch_size'].append(dataloader.batch_size)
            self.training_history['time_per_epoch'].append(epoch_time)

            if verbose and (epoch % log_every == 0 or epoch == epochs - 1):
                print(f"Epoch {epoch+1}/{epochs} - loss: {epoch_loss:.5f} - time: {epoch_time:.2f}s")

        logging.info("Training finished.")
        return self.training_history

    # --- Inference helpers ---

    def classify(self, outputs: VectorLike) -> np.ndarray:
        """Thresholds each output at 0.5: values >= 0.5 become 1.0, the rest 0.0."""
        outputs = np.asarray(outputs, dtype=np.float64)
        return np.where(outputs >= 0.5, 1.0, 0.0)

    def evaluate(self, dataloader: DataLoader) -> Dict[str, float]:
        """
        Mean loss and accuracy over every example of the dataloader.

        Accuracy compares argmax positions for multi-output networks and the
        0.5-thresholded output for single-output networks.
        """
        targets = dataloader.labels
        if targets.shape[0] == 0:
            logging.warning("evaluate() called on an empty dataloader")
            return {'loss': 0.0, 'accuracy': 0.0}

        predictions = self.predict(dataloader.data)
        losses = [self.compute_loss(p, t) for p, t in zip(predictions, targets)]

        if targets.shape[1] > 1:
            correct = np.argmax(predictions, axis=1) == np.argmax(targets, axis=1)
        else:
            correct = self.classify(predictions[:, 0]) == targets[:, 0]

        return {
            'loss': float(np.mean(losses)),
            'accuracy': float(np.mean(correct)),
        }

    # --- Persistence ---

    def save_weights(self, filename: str):
        """
        Writes every layer's weight matrix to a text file.

        One line per layer: the weights flattened in row-major order, each value
        followed by a comma (so the line ends in ",\\n"). Shapes, biases and
        activations are not stored; loading requires an identically built network.
        """
        with open(filename, 'w') as f:
            for layer in self.layers:
                f.write(''.join(f"{float(value)!r}," for value in layer.weights.flatten()))
                f.write('\n')
        logging.info(f"Network weights saved to {filename}")

    def load_weights(self, filename: str):
        """
        Fills the weight matrices of the existing layers from a file written by `save_weights`.

        The file is parsed completely before any layer is touched, so a malformed
        file leaves the network unchanged.

        Raises:
            FileNotFoundError / OSError: If the file cannot be read.
            WeightFileError: If a line lacks its trailing comma, holds a non-numeric
                             value, has fewer values than the layer needs, or the file
                             has fewer lines than the network has layers.
        """
        with open(filename, 'r') as f:
            lines = [line.rstrip('\r\n') for line in f]

        if len(lines) < len(self.layers):
            raise WeightFileError(
                f"{filename}: expected {len(self.layers)} lines (one per layer), found {len(lines)}"
            )
        if len(lines) > len(self.layers):
            logging.warning(f"{filename}: ignoring {len(lines) - len(self.layers)} extra line(s)")

        parsed = []
        for line_no, (line, layer) in enumerate(zip(lines, self.layers), start=1):
            if not line.endswith(','):
                raise WeightFileError(f"{filename}:{line_no}: line does not end with a trailing comma")
            tokens = line[:-1].split(',')
            try:
                values = np.array([float(token) for token in tokens], dtype=np.float64)
            except ValueError as e:
                raise WeightFileError(f"{filename}:{line_no}: {e}") from e

            needed = layer.weights.rows * layer.weights.cols
            if values.size < needed:
                raise WeightFileError(
                    f"{filename}:{line_no}: layer {layer.id} needs {needed} weights, found {values.size}"
                )
            if values.size > needed:
                logging.warning(f"{filename}:{line_no}: ignoring {values.size - needed} surplus value(s)")
            parsed.append(values[:needed].reshape(layer.weights.shape))

        for layer, weights in zip(self.layers, parsed):
            layer.weights.data[:] = weights
        logging.info(f"Network weights loaded from {filename}")

    def summary(self) -> str:
        """
        One line per layer (sizes, activation, parameter count), headed by the
        layer-size chain and the loss and closed by the total parameter count.
        """
        sizes = " -> ".join(str(size) for size in self.layer_sizes()) or "(empty)"
        lines = [f"Feed-forward network {sizes}, loss {self.loss.name}"]
        total_params = 0
        for i, layer in enumerate(self.layers):
            layer_params = layer.weights.rows * layer.weights.cols + layer.biases.size
            total_params += layer_params
            lines.append(
                f"  Layer {i} (id {layer.id}): {layer.input_size} -> {layer.output_size}"
                f"  {layer.activation.name:<8} {layer_params:>6} params"
            )
        lines.append(f"Total Parameters: {total_params}")
        return "\n".join(lines) + "\n"
