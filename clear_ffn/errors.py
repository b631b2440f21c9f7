class DimensionError(ValueError):
    """Raised when operand shapes do not line up (matrix/vector algebra, layer wiring)."""


class WeightFileError(ValueError):
    """Raised when a weight file is malformed or does not fit the network it is loaded into."""


class StaleLayerError(RuntimeError):
    """Raised when a layer's backward operations are used before any forward pass."""
