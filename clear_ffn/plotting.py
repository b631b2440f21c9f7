from typing import Dict, List
import logging

import matplotlib
matplotlib.use('Agg')  # Files only, no display needed
import matplotlib.pyplot as plt


def plot_loss_history(history: Dict[str, List], filename: str, title: str = 'Training Loss'):
    """Saves the per-epoch loss curve of a `Network.train` history to an image file."""
    fig = plt.figure(figsize=(8, 5))
    plt.plot(history['epoch'], history['loss'], label='Training Loss')
    plt.xlabel('Epoch')
    plt.ylabel('Loss')
    plt.title(title)
    plt.legend()
    plt.grid(True, alpha=0.3)
    plt.ylim(bottom=0)  # Start y-axis at 0 for loss
    plt.tight_layout()
    fig.savefig(filename)
    plt.close(fig)
    logging.info(f"Loss curve saved to {filename}")
