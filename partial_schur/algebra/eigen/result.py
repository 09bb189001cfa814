"""
Eigenvalue Solver Result Types

Standardized result containers and error types of the partial Schur solvers.
"""

import numpy as np
import scipy.sparse as sp
from enum import Enum, unique
from typing import Optional, NamedTuple
from numpy.typing import NDArray

class EigenSolver:
    """
    Marker class for eigenvalue solver types.
    """

    @staticmethod
    def _is_symmetric(A, tol=1e-12):
        """Check if a real A is symmetric, works for dense and sparse."""
        if sp.issparse(A):
            diff = (A - A.T).tocoo()
            return diff.nnz == 0 or bool(np.all(np.abs(diff.data) < tol))
        A = np.asarray(A)
        return A.ndim == 2 and A.shape[0] == A.shape[1] and np.allclose(A, A.T, atol=tol)

    @staticmethod
    def is_dense_solver() -> bool:
        """Indicate if the solver is for dense matrices."""
        return False

    @staticmethod
    def is_sparse_solver() -> bool:
        """Indicate if the solver is for sparse matrices."""
        return False

    @staticmethod
    def is_iterative_solver() -> bool:
        """Indicate if the solver is iterative."""
        return False

    # ----------------------------------------------------------------------------

    def solve(self, *args, **kwargs) -> 'EigenResult':
        """
        Solve the eigenvalue problem.

        Returns:
            EigenResult: Standardized result container.
        """
        raise NotImplementedError("This method should be implemented by subclasses.")

# ---------------------------------------------------------------------------------
#! Errors
# ---------------------------------------------------------------------------------

class EigenSolverErrorMsg(Enum):
    '''
    Enumeration class for structural misconfiguration of a solver run.
    '''
    INVALID_INPUT       = 201
    DIM_MISMATCH        = 202
    NOT_REAL            = 203

    def __str__(self):
        return self.name.replace('_', ' ').title()

    def __repr__(self):
        return f"<{self.__class__.__name__}.{self.name}: '{str(self)}'>"

class EigenSolverError(Exception):
    '''
    Raised before any allocation when the parameters of a run are inconsistent.
    '''
    def __init__(self, code: EigenSolverErrorMsg, message: Optional[str] = None):
        self.code       = code
        self.message    = message if message else str(code)
        super().__init__(self.message)

    def __str__(self):
        return f"[EigenSolverError {self.code.name} ({self.code.value})]: {self.message}"

    def __repr__(self):
        return self.__str__()

# ---------------------------------------------------------------------------------
#! Partial Schur results
# ---------------------------------------------------------------------------------

@unique
class Termination(Enum):
    '''
    Why a restart loop stopped.
    '''
    CONVERGED   = 'converged'
    MAXITER     = 'maxiter'
    STALLED     = 'stalled'

    def __str__(self):
        return self.value

class PartialSchur(NamedTuple):
    r"""
    Partial Schur decomposition :math:`A Q \approx Q R`.

    Attributes:
        Q:
            ``n x nconv`` matrix with orthonormal columns (a view of the Krylov basis).
        R:
            ``nconv x nconv`` quasi upper triangular matrix (a view of the
            Hessenberg matrix); 2x2 diagonal blocks hold complex conjugate pairs.
    """
    Q : NDArray
    R : NDArray

    @property
    def eigenvalues(self) -> NDArray:
        """Eigenvalues read off the diagonal blocks of R, in block order."""
        from .ritz import eigvalues
        from ..utils import machine_eps
        return eigvalues(self.R, machine_eps(self.R.dtype))

class PartialSchurResult(NamedTuple):
    '''
    Outcome of an implicitly restarted Arnoldi run.

    Attributes:
        schur:
            The locked partial Schur form.
        mvproducts:
            Number of operator applications.
        nconverged:
            Number of locked columns, ``schur.Q.shape[1]``.
        converged:
            Whether the ``nev`` most wanted eigenvalues were all locked;
            True exactly when ``reason`` is ``CONVERGED``.
        restarts:
            Number of implicit restarts performed.
        reason:
            Termination reason.
    '''
    schur       : PartialSchur
    mvproducts  : int
    nconverged  : int
    converged   : bool
    restarts    : int
    reason      : Termination

    def __repr__(self):
        return (f"PartialSchurResult(nconverged={self.nconverged}, converged={self.converged}, "
                f"mvproducts={self.mvproducts}, restarts={self.restarts}, reason={self.reason})")

# ---------------------------------------------------------------------------------

class EigenResult(NamedTuple):
    r"""
    Standardized result from eigenvalue solvers.

    Attributes:
        eigenvalues:
            Computed eigenvalues (most wanted first)
        eigenvectors:
            Corresponding eigenvectors as columns
        subspacevectors:
            Schur vectors spanning the converged invariant subspace
        iterations:
            Number of restarts performed
        converged:
            Whether the solver converged successfully
        residual_norms:
            Residual norms ||A v - \lambda v|| for each eigenpair (optional)
    """
    eigenvalues     : NDArray
    eigenvectors    : NDArray
    subspacevectors : Optional[NDArray] = None
    iterations      : Optional[int]     = None
    converged       : bool              = True
    residual_norms  : Optional[NDArray] = None

    def __repr__(self):
        n_eigs      = len(self.eigenvalues) if self.eigenvalues is not None else 0
        iter_str    = f"{self.iterations}" if self.iterations is not None else "N/A"
        return (f"EigenResult(n_eigenvalues={n_eigs}, "
                f"converged={self.converged}, iterations={iter_str})")

    def __str__(self):
        return f'converged={self.converged}, iterations={self.iterations}'

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
