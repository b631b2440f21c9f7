import numpy as np
from typing import Iterable, Sequence, Union

from clear_ffn.errors import DimensionError

VectorLike = Union[Sequence[float], np.ndarray]


def as_vector(values: VectorLike, name: str = "vector") -> np.ndarray:
    """Coerce a sequence of numbers into a 1D float64 array.

    Raises:
        DimensionError: If the values do not form a 1D array.
    """
    vector = np.asarray(values, dtype=np.float64)
    if vector.ndim != 1:
        raise DimensionError(f"{name}: expected a 1D vector, got shape {vector.shape}")
    return vector


def _check_row_widths(rows, name: str):
    widths = {len(r) for r in rows if hasattr(r, "__len__")}
    if len(widths) > 1:
        raise DimensionError(f"{name}: ragged rows with lengths {sorted(widths)}")


class Matrix:
    """
    Dense 2D matrix of 64-bit floats.

    The numbers live in a numpy array (`data`); `rows` and `cols` are read off the
    array so they can never drift from it. Weight matrices are stored as
    (output_size, input_size), so row j holds the incoming weights of output unit j.
    """

    # Make numpy scalars defer to __rmul__ instead of broadcasting over the object
    __array_ufunc__ = None

    def __init__(self, data: Union[Sequence[Sequence[float]], np.ndarray]):
        if isinstance(data, (list, tuple)):
            _check_row_widths(data, "Matrix")
        array = np.array(data, dtype=np.float64)
        if array.ndim != 2:
            raise DimensionError(f"Matrix: expected 2D data, got shape {array.shape}")
        self.data = array

    @property
    def rows(self) -> int:
        return self.data.shape[0]

    @property
    def cols(self) -> int:
        return self.data.shape[1]

    @property
    def shape(self):
        return self.data.shape

    @classmethod
    def zeros(cls, rows: int, cols: int) -> 'Matrix':
        return cls(np.zeros((rows, cols), dtype=np.float64))

    @classmethod
    def rand(cls, rows: int, cols: int) -> 'Matrix':
        """Uniform values in [-1, 1), drawn from numpy's global generator (seed with np.random.seed)."""
        return cls(np.random.uniform(-1.0, 1.0, (rows, cols)))

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[float]]) -> 'Matrix':
        rows = [list(r) for r in rows]
        _check_row_widths(rows, "Matrix.from_rows")
        return cls(rows)

    def copy(self) -> 'Matrix':
        return Matrix(self.data.copy())

    def flatten(self) -> np.ndarray:
        """Row-major flattening."""
        return self.data.ravel(order='C')

    def tolist(self):
        return self.data.tolist()

    def _check_same_shape(self, other: 'Matrix', op: str):
        if self.shape != other.shape:
            raise DimensionError(f"Matrix {op}: shape {self.shape} does not match {other.shape}")

    def __add__(self, other: 'Matrix') -> 'Matrix':
        if not isinstance(other, Matrix):
            return NotImplemented
        self._check_same_shape(other, "add")
        return Matrix(self.data + other.data)

    def __sub__(self, other: 'Matrix') -> 'Matrix':
        if not isinstance(other, Matrix):
            return NotImplemented
        self._check_same_shape(other, "subtract")
        return Matrix(self.data - other.data)

    def __mul__(self, scalar: float) -> 'Matrix':
        if isinstance(scalar, Matrix) or np.ndim(scalar) != 0:
            return NotImplemented
        return Matrix(self.data * float(scalar))

    __rmul__ = __mul__

    def __matmul__(self, vector: VectorLike) -> np.ndarray:
        return multiply(self, vector)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self.data, other.data))

    def __repr__(self):
        return f"Matrix(rows={self.rows}, cols={self.cols}, data={self.data.tolist()})"


# --- Vector / matrix operations ---

def multiply(matrix: Matrix, vector: VectorLike) -> np.ndarray:
    """
    Matrix-vector product.

    Args:
        matrix: Matrix of shape (rows, cols).
        vector: Vector of length cols.

    Returns:
        Vector of length rows.

    Raises:
        DimensionError: If matrix.cols != len(vector).
    """
    vector = as_vector(vector)
    if matrix.cols != vector.shape[0]:
        raise DimensionError(
            f"multiply: matrix has {matrix.cols} columns but vector has length {vector.shape[0]}"
        )
    return matrix.data @ vector


def add(a: VectorLike, b: VectorLike) -> np.ndarray:
    a, b = as_vector(a), as_vector(b)
    if a.shape != b.shape:
        raise DimensionError(f"add: vector lengths differ ({a.shape[0]} vs {b.shape[0]})")
    return a + b


def subtract(a: VectorLike, b: VectorLike) -> np.ndarray:
    a, b = as_vector(a), as_vector(b)
    if a.shape != b.shape:
        raise DimensionError(f"subtract: vector lengths differ ({a.shape[0]} vs {b.shape[0]})")
    return a - b


def transpose(matrix: Matrix) -> Matrix:
    """Returns a new matrix with rows and columns swapped; the input is not modified."""
    return Matrix(matrix.data.T.copy())


def dot_product(a: VectorLike, b: VectorLike) -> float:
    a, b = as_vector(a), as_vector(b)
    if a.shape != b.shape:
        raise DimensionError(f"dot_product: vector lengths differ ({a.shape[0]} vs {b.shape[0]})")
    return float(np.dot(a, b))


def outer_product(a: VectorLike, b: VectorLike) -> Matrix:
    """Matrix of shape (len(a), len(b)) with entry [j, k] = a[j] * b[k]."""
    return Matrix(np.outer(as_vector(a), as_vector(b)))
