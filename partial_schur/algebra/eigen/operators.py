"""
Linear operators seen by the Arnoldi iteration.

The solvers only need two things from an operator: its dimension and a
deterministic matrix-vector product. ``as_operator`` turns the usual inputs
(dense arrays, scipy sparse matrices, ``LinearOperator`` objects or a bare
``matvec`` callable with a dimension) into an ``Operator``. Any other object
exposing ``dimension()`` and ``apply(v)`` is accepted unchanged.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import numpy as np
import scipy.sparse as sp
from numpy.typing import NDArray, DTypeLike
from scipy.sparse.linalg import LinearOperator

from .result import EigenSolverError, EigenSolverErrorMsg

# ---------------------------------------------------------------------------------

class Operator(ABC):
    """
    Abstract square real operator ``A : R^n -> R^n``.
    """

    @abstractmethod
    def dimension(self) -> int:
        """Size ``n`` of the vectors the operator acts on."""

    @abstractmethod
    def apply(self, x: NDArray) -> NDArray:
        """Return ``A @ x`` as a 1-D array of length ``n``."""

    @property
    def dtype(self) -> Optional[np.dtype]:
        """Element type of the operator, ``None`` when unknown."""
        return None

    def __call__(self, x: NDArray) -> NDArray:
        return self.apply(x)

class MatrixOperator(Operator):
    """
    Wraps anything supporting ``A @ x`` with a square ``shape``: dense
    arrays, scipy sparse matrices and ``LinearOperator`` objects.
    """

    def __init__(self, A: Any):
        shape = getattr(A, 'shape', None)
        if shape is None or len(shape) != 2 or shape[0] != shape[1]:
            raise EigenSolverError(EigenSolverErrorMsg.DIM_MISMATCH,
                                   f"A must be a square matrix, got shape {shape}")
        self._A     = A
        self._n     = int(shape[0])
        self._dtype = np.dtype(A.dtype) if getattr(A, 'dtype', None) is not None else None

    def dimension(self) -> int:
        return self._n

    @property
    def dtype(self) -> Optional[np.dtype]:
        return self._dtype

    def apply(self, x: NDArray) -> NDArray:
        if isinstance(self._A, LinearOperator):
            return np.ravel(self._A.matvec(x))
        return np.ravel(self._A @ x)

class MatvecOperator(Operator):
    """
    Wraps a ``matvec`` callable together with the dimension ``n``.
    """

    def __init__(self, matvec: Callable[[NDArray], NDArray], n: int, dtype: Optional[DTypeLike] = None):
        if not callable(matvec):
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, "matvec must be callable")
        if n is None or int(n) < 1:
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT,
                                   f"n (dimension) must be a positive integer when using matvec, got {n!r}")
        self._matvec    = matvec
        self._n         = int(n)
        self._dtype     = np.dtype(dtype) if dtype is not None else None

    def dimension(self) -> int:
        return self._n

    @property
    def dtype(self) -> Optional[np.dtype]:
        return self._dtype

    def apply(self, x: NDArray) -> NDArray:
        return np.ravel(self._matvec(x))

# ---------------------------------------------------------------------------------

def _is_duck_operator(A: Any) -> bool:
    return callable(getattr(A, 'dimension', None)) and callable(getattr(A, 'apply', None))

def as_operator(A: Any = None, matvec: Optional[Callable[[NDArray], NDArray]] = None,
                n: Optional[int] = None, dtype: Optional[DTypeLike] = None) -> Operator:
    """
    Build an ``Operator`` from the supported inputs.

    Args:
        A:
            Dense array, scipy sparse matrix, ``LinearOperator``, an
            ``Operator`` or any object with ``dimension()`` and ``apply(v)``.
        matvec:
            Matrix-vector product, used when ``A`` is not given.
        n:
            Dimension, required together with ``matvec``.
        dtype:
            Element type reported for a ``matvec`` operator.

    Raises:
        EigenSolverError: INVALID_INPUT when neither input is usable,
        DIM_MISMATCH for non-square matrices.
    """
    if A is None:
        if matvec is None:
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, "Either A or matvec must be provided")
        return MatvecOperator(matvec, n, dtype)

    if isinstance(A, Operator) or _is_duck_operator(A):
        return A
    if sp.issparse(A) or isinstance(A, LinearOperator):
        return MatrixOperator(A)
    if isinstance(A, np.ndarray):
        return MatrixOperator(A)
    if callable(A):
        return MatvecOperator(A, n, dtype)
    return MatrixOperator(np.asarray(A))

def operator_dimension(op: Operator) -> int:
    ''' Dimension of ``op`` as an int, ``EigenSolverError`` when it has none. '''
    try:
        n = int(op.dimension())
    except (AttributeError, TypeError) as e:
        raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, f"Operator without a dimension: {e}") from e
    if n < 1:
        raise EigenSolverError(EigenSolverErrorMsg.DIM_MISMATCH, f"Operator dimension must be positive, got {n}")
    return n

# ---------------------------------------------------------------------------------
#! EOF
# ---------------------------------------------------------------------------------
