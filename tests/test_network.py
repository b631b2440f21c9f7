import numpy as np
import pytest

from clear_ffn.activations import Activation
from clear_ffn.dataloader import DataLoader, to_onehot
from clear_ffn.datasets import xor_dataset
from clear_ffn.errors import DimensionError, StaleLayerError, WeightFileError
from clear_ffn.layer import Layer
from clear_ffn.losses import LossFunction
from clear_ffn.network import Network


def known_layer():
    return Layer(2, 2, Activation.NONE, initial_weights=[[1.0, 2.0], [3.0, 4.0]])


def xor_network(seed=1):
    np.random.seed(seed)
    return Network([
        Layer(2, 3, Activation.RELU),
        Layer(3, 2, Activation.SOFTMAX),
    ], loss=LossFunction.CROSS_ENTROPY)


def test_forward_two_known_layers():
    network = Network([known_layer(), known_layer()])
    np.testing.assert_array_equal(network.forward([1.0, 2.0]), [27.0, 59.0])
    np.testing.assert_array_equal(network.layers[0].activationdata, [5.0, 11.0])


def test_add_layers_checks_adjacent_sizes():
    network = Network()
    network.add_layer(Layer(2, 4))
    with pytest.raises(DimensionError):
        network.add_layer(Layer(3, 1))
    network.add_layers([Layer(4, 2), Layer(2, 1)])
    assert network.layer_sizes() == [2, 4, 2, 1]


def test_classify_thresholds_at_one_half():
    network = Network()
    np.testing.assert_array_equal(
        network.classify([0.49, 0.5, 0.51, -3.0, 7.0]),
        [0.0, 1.0, 1.0, 0.0, 1.0],
    )


def test_backward_before_forward_raises():
    network = xor_network()
    with pytest.raises(StaleLayerError):
        network.backward([1.0, 1.0], [0.0, 1.0], 0.1)


def _numeric_gradients(network, x, y, eps=1e-6):
    numeric = []
    for layer in network.layers:
        weight_grad = np.zeros_like(layer.weights.data)
        for idx in np.ndindex(*layer.weights.shape):
            original = layer.weights.data[idx]
            layer.weights.data[idx] = original + eps
            plus = network.compute_loss(network.forward(x), y)
            layer.weights.data[idx] = original - eps
            minus = network.compute_loss(network.forward(x), y)
            layer.weights.data[idx] = original
            weight_grad[idx] = (plus - minus) / (2 * eps)

        bias_grad = np.zeros_like(layer.biases)
        for j in range(layer.biases.size):
            original = layer.biases[j]
            layer.biases[j] = original + eps
            plus = network.compute_loss(network.forward(x), y)
            layer.biases[j] = original - eps
            minus = network.compute_loss(network.forward(x), y)
            layer.biases[j] = original
            bias_grad[j] = (plus - minus) / (2 * eps)
        numeric.append((weight_grad, bias_grad))
    return numeric


@pytest.mark.parametrize("hidden, output, loss, target", [
    ('tanh', 'sigmoid', LossFunction.MSE, [0.0, 1.0]),
    ('sigmoid', 'none', LossFunction.MSE, [0.3, -0.2]),
    ('tanh', 'softmax', LossFunction.CROSS_ENTROPY, [1.0, 0.0]),
])
def test_gradients_match_finite_differences(hidden, output, loss, target):
    np.random.seed(11)
    network = Network([
        Layer(3, 4, hidden, initial_biases=np.random.uniform(-0.5, 0.5, 4)),
        Layer(4, 2, output, initial_biases=np.random.uniform(-0.5, 0.5, 2)),
    ], loss=loss)
    x = np.array([0.5, -1.0, 0.25])
    y = np.array(target)

    network.forward(x)
    analytic = network.compute_gradients(x, y)
    numeric = _numeric_gradients(network, x, y)

    for (weight_grad, bias_grad), (num_weight_grad, num_bias_grad) in zip(analytic, numeric):
        np.testing.assert_allclose(weight_grad.data, num_weight_grad, atol=1e-6)
        np.testing.assert_allclose(bias_grad, num_bias_grad, atol=1e-6)


def test_backward_updates_weights_and_biases():
    network = xor_network()
    weights_before = [l.weights.copy() for l in network.layers]
    biases_before = [l.biases.copy() for l in network.layers]

    network.forward([1.0, 1.0])
    network.backward([1.0, 1.0], [1.0, 0.0], learning_rate=0.1)

    assert network.layers[-1].weights != weights_before[-1]
    assert not np.array_equal(network.layers[-1].biases, biases_before[-1])


def test_single_example_training_lowers_its_loss():
    network = xor_network()
    data, labels = xor_dataset()
    before = network.compute_loss(network.forward(data[0]), labels[0])
    for _ in range(100):
        network.forward(data[0])
        network.backward(data[0], labels[0], 0.006)
    after = network.compute_loss(network.forward(data[0]), labels[0])
    assert after < before


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_train_lowers_loss_on_xor(seed):
    network = xor_network(seed)
    data, labels = xor_dataset()
    dataloader = DataLoader(data, labels, batch_size=2, shuffle=False)

    loss_before = network.evaluate(dataloader)['loss']
    history = network.train(dataloader, learning_rate=0.005, epochs=200)
    loss_after = network.evaluate(dataloader)['loss']

    assert loss_after < loss_before
    assert len(history['loss']) == 200
    assert history['batch_size'][0] == 2


def test_train_with_shuffle_and_uneven_batches():
    np.random.seed(4)
    network = Network([Layer(2, 4, 'tanh'), Layer(4, 1, 'sigmoid')], loss='mse')
    data = np.array([[0, 0], [0, 1], [1, 0], [1, 1], [0.5, 0.5]])
    labels = np.array([[0], [1], [1], [0], [1]])
    dataloader = DataLoader(data, labels, batch_size=2, shuffle=True)

    history = network.train(dataloader, learning_rate=0.5, epochs=300)
    assert history['loss'][-1] < history['loss'][0]


def test_train_batch_averages_gradients():
    # Two examples with opposite gradients cancel out
    network = Network([Layer(1, 1, 'none', initial_weights=[[1.0]])], loss='mse')
    network.train_batch(np.array([[1.0], [1.0]]), np.array([[0.0], [2.0]]), learning_rate=1.0)
    assert network.layers[0].weights.tolist() == [[1.0]]
    np.testing.assert_array_equal(network.layers[0].biases, [0.0])


def test_train_verbose_prints_progress(capsys):
    network = xor_network()
    data, labels = xor_dataset()
    network.train(DataLoader(data, labels, batch_size=4, shuffle=False), 0.01, epochs=3, verbose=True)
    out = capsys.readouterr().out
    assert "Epoch 1/3" in out
    assert "Epoch 3/3" in out


def test_evaluate_accuracy():
    network = Network([Layer(2, 2, 'none', initial_weights=[[1.0, 0.0], [0.0, 1.0]])])
    dataloader = DataLoader([[1.0, 0.0], [0.0, 1.0]], to_onehot([0, 0], 2), batch_size=2, shuffle=False)
    assert network.evaluate(dataloader)['accuracy'] == pytest.approx(0.5)


def test_evaluate_single_output_uses_threshold():
    network = Network([Layer(1, 1, 'none', initial_weights=[[1.0]])])
    dataloader = DataLoader([[0.2], [0.8], [0.9]], [[0.0], [1.0], [0.0]], batch_size=3, shuffle=False)
    result = network.evaluate(dataloader)
    assert result['accuracy'] == pytest.approx(2 / 3)
    assert result['loss'] == pytest.approx((0.04 + 0.04 + 0.81) / 3)


def test_evaluate_empty_dataloader():
    network = Network([Layer(1, 1, 'none', initial_weights=[[1.0]])])
    dataloader = DataLoader(np.empty((0, 1)), np.empty((0, 1)), batch_size=2, shuffle=False)
    assert network.evaluate(dataloader) == {'loss': 0.0, 'accuracy': 0.0}


# --- Weight persistence ---

def test_save_then_load_reproduces_weights(tmp_path):
    path = tmp_path / "weights.txt"
    original = xor_network(seed=1)
    original.save_weights(str(path))

    restored = xor_network(seed=2)
    restored.load_weights(str(path))

    for a, b in zip(original.layers, restored.layers):
        assert a.weights == b.weights


def test_saved_format(tmp_path):
    path = tmp_path / "weights.txt"
    network = Network([known_layer(), Layer(2, 1, initial_weights=[[0.5, -0.25]])])
    network.save_weights(str(path))
    assert path.read_text() == "1.0,2.0,3.0,4.0,\n0.5,-0.25,\n"


@pytest.mark.parametrize("content, message", [
    ("1.0,2.0,3.0,4.0\n", "trailing comma"),
    ("1.0,abc,3.0,4.0,\n", "abc"),
    ("1.0,2.0,3.0,\n", "needs 4 weights"),
    ("", "expected 1 lines"),
])
def test_load_rejects_malformed_files(tmp_path, content, message):
    path = tmp_path / "weights.txt"
    path.write_text(content)
    network = Network([known_layer()])
    with pytest.raises(WeightFileError, match=message):
        network.load_weights(str(path))
    # untouched on failure
    assert network.layers[0].weights.tolist() == [[1.0, 2.0], [3.0, 4.0]]


def test_load_ignores_surplus_values(tmp_path):
    path = tmp_path / "weights.txt"
    path.write_text("4.0,3.0,2.0,1.0,0.0,\nextra line,\n")
    network = Network([known_layer()])
    network.load_weights(str(path))
    assert network.layers[0].weights.tolist() == [[4.0, 3.0], [2.0, 1.0]]


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Network([known_layer()]).load_weights(str(tmp_path / "missing.txt"))


def test_summary_mentions_layers_and_loss():
    text = xor_network().summary()
    assert "Layer 0" in text and "Layer 1" in text
    assert "CROSS_ENTROPY" in text
    assert "Total Parameters: 17" in text
    assert text.splitlines()[0] == "Feed-forward network 2 -> 3 -> 2, loss CROSS_ENTROPY"
    assert len(text.splitlines()) == 4
