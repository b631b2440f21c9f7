"""
Command-line entry point: build a feed-forward network, train it on a demo
dataset and optionally persist its weights.

    clear-ffn --dataset xor --hidden 3 --activation relu \
              --output-activation softmax --loss cross_entropy \
              --epochs 200 --lr 0.005 --batch-size 2 -v
"""

import argparse
import logging
import sys
from typing import List, Optional

import numpy as np

from clear_ffn.dataloader import DataLoader
from clear_ffn.datasets import DATASETS
from clear_ffn.layer import Layer
from clear_ffn.network import Network

logger = logging.getLogger("clear_ffn")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Train a small feed-forward neural network.')
    parser.add_argument('--dataset', type=str, default='xor', choices=sorted(DATASETS),
                        help='dataset to use (default: xor)')
    parser.add_argument('--hidden', type=int, nargs='*', default=[3],
                        help='sizes of the hidden layers (default: 3)')
    parser.add_argument('--activation', type=str, default='relu',
                        choices=['none', 'relu', 'sigmoid', 'tanh'],
                        help='activation of the hidden layers (default: relu)')
    parser.add_argument('--output-activation', type=str, default='softmax',
                        choices=['none', 'relu', 'sigmoid', 'tanh', 'softmax'],
                        help='activation of the output layer (default: softmax)')
    parser.add_argument('--loss', type=str, default='cross_entropy', choices=['mse', 'cross_entropy'],
                        help='loss function (default: cross_entropy)')
    parser.add_argument('--epochs', type=int, default=200, metavar='N',
                        help='number of epochs to train (default: 200)')
    parser.add_argument('--lr', type=float, default=0.005, metavar='LR',
                        help='learning rate (default: 0.005)')
    parser.add_argument('--batch-size', type=int, default=2, metavar='N',
                        help='examples per gradient step (default: 2)')
    parser.add_argument('--shuffle', action='store_true',
                        help='shuffle the examples every epoch')
    parser.add_argument('--seed', type=int, default=1, metavar='S',
                        help='random seed (default: 1)')
    parser.add_argument('--load', type=str, metavar='PATH',
                        help='load initial weights from PATH before training')
    parser.add_argument('--save', type=str, metavar='PATH',
                        help='save the trained weights to PATH')
    parser.add_argument('--plot', type=str, metavar='PATH',
                        help='save the loss curve as an image to PATH')
    parser.add_argument('--log-every', type=int, default=10, metavar='N',
                        help='epochs between progress lines when verbose (default: 10)')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='logging level (default: INFO)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='print the loss while training')
    return parser


def build_network(input_size: int, output_size: int, hidden: List[int],
                  activation: str, output_activation: str, loss: str) -> Network:
    """Stacks Layers input -> hidden... -> output."""
    sizes = [input_size] + list(hidden) + [output_size]
    layers = []
    for i in range(len(sizes) - 1):
        layer_activation = output_activation if i == len(sizes) - 2 else activation
        layers.append(Layer(sizes[i], sizes[i + 1], layer_activation, id=i))
    return Network(layers, loss=loss)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    np.random.seed(args.seed)

    try:
        data, labels = DATASETS[args.dataset]()
        dataloader = DataLoader(data, labels, batch_size=args.batch_size, shuffle=args.shuffle)
        network = build_network(data.shape[1], labels.shape[1], args.hidden,
                                args.activation, args.output_activation, args.loss)
        logger.info(network.summary())

        if args.load:
            network.load_weights(args.load)

        before = network.evaluate(dataloader)
        logger.info(f"Starting training... (Epochs: {args.epochs}, LR: {args.lr}, Batch size: {args.batch_size})")
        history = network.train(dataloader, args.lr, args.epochs, verbose=args.verbose, log_every=args.log_every)
        after = network.evaluate(dataloader)
        logger.info(f"Loss: {before['loss']:.5f} -> {after['loss']:.5f}, "
                    f"accuracy: {before['accuracy']:.2%} -> {after['accuracy']:.2%}")

        for inputs, target in zip(dataloader.data, dataloader.labels):
            output = network.forward(inputs)
            logger.info(f"Input: {inputs.tolist()}, Target: {target.tolist()}, "
                        f"Output: {np.round(output, 4).tolist()} -> {network.classify(output).tolist()}")

        if args.save:
            network.save_weights(args.save)
        if args.plot:
            # matplotlib only loads when a plot is requested
            from clear_ffn.plotting import plot_loss_history
            plot_loss_history(history, args.plot, title=f"{args.dataset.upper()} Training Loss")
    except (ValueError, OSError) as e:
        # DimensionError and WeightFileError are ValueErrors
        logger.error(str(e))
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
