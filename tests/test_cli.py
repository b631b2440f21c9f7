import pytest

from clear_ffn.cli import build_network, main
from clear_ffn.losses import LossFunction


def test_build_network_topology():
    network = build_network(2, 2, [4, 3], 'relu', 'softmax', 'cross_entropy')
    assert network.layer_sizes() == [2, 4, 3, 2]
    assert [l.activation.name for l in network.layers] == ['RELU', 'RELU', 'SOFTMAX']
    assert network.loss is LossFunction.CROSS_ENTROPY


def test_train_save_plot_and_reload(tmp_path):
    weights = tmp_path / "weights.txt"
    plot = tmp_path / "loss.png"

    assert main(['--epochs', '5', '--save', str(weights), '--plot', str(plot), '-v']) == 0
    assert weights.read_text().count('\n') == 2
    assert plot.stat().st_size > 0

    assert main(['--epochs', '1', '--load', str(weights)]) == 0


def test_loading_into_a_different_topology_fails(tmp_path):
    weights = tmp_path / "weights.txt"
    assert main(['--epochs', '1', '--hidden', '3', '--save', str(weights)]) == 0
    assert main(['--epochs', '1', '--hidden', '5', '--load', str(weights)]) == 1


def test_missing_weight_file(tmp_path):
    assert main(['--epochs', '1', '--load', str(tmp_path / 'nope.txt')]) == 1


def test_moons_dataset_run():
    assert main(['--dataset', 'moons', '--hidden', '8', '--epochs', '2', '--batch-size', '16', '--shuffle']) == 0


@pytest.mark.parametrize("flags", [
    ['--batch-size', '0'],
    ['--log-every', '0', '-v'],
    ['--epochs', '-1'],
])
def test_invalid_training_settings_exit_with_error(flags, caplog):
    assert main(['--epochs', '1'] + flags) == 1
    assert any(record.levelname == 'ERROR' for record in caplog.records)
