from .errors import DimensionError, StaleLayerError, WeightFileError
from .linalg import Matrix, add, dot_product, multiply, outer_product, subtract, transpose
from .activations import Activation, get_activation
from .losses import LossFunction, get_loss
from .layer import Layer
from .network import Network
from .dataloader import DataLoader, to_onehot

__version__ = "0.1.0"
