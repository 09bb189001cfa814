"""
Ritz value bookkeeping of the implicitly restarted Arnoldi method.

After the projected matrix of the active part has been reduced to real
Schur form ``H = Q T Q^T`` we read the Ritz values off the diagonal blocks
of ``T`` and estimate their residuals without touching the large basis:
for a Ritz pair ``(lambda, V Q y)`` the residual norm equals
``|h| |e_m^T Q y|`` where ``h`` is the residual coupling of the
factorization and ``y`` the eigenvector of ``T``.

All selection happens through ``RitzValues.order``, a permutation of the
positions ``0..maxdim-1``; values and residuals stay where they were written.
"""

import cmath
from typing import Callable, Optional

import numpy as np
from numpy.typing import NDArray, DTypeLike

from .schur import is_offdiagonal_small, schur_blocks
from .targets import Target
from ..utils import complex_dtype

# ---------------------------------------------------------------------------------

class RitzValues:
    """
    Parallel arrays of Ritz values, residual estimates and the ordering
    permutation, allocated once per run.

    Attributes:
        values      : complex Ritz values by position.
        residuals   : residual estimates by position.
        order       : permutation of positions; selection and sorting act on it.
        work        : complex scratch for eigenvector coordinates.
        index_work  : integer scratch for partitioning ``order``.
    """

    def __init__(self, maxdim: int, dtype: DTypeLike = np.float64):
        cdtype          = complex_dtype(dtype)
        self.values     = np.zeros(maxdim, dtype=cdtype)
        self.residuals  = np.zeros(maxdim, dtype=np.dtype(dtype))
        self.order      = np.arange(maxdim)
        self.work       = np.zeros(maxdim, dtype=cdtype)
        self.index_work = np.zeros(maxdim, dtype=self.order.dtype)

    def __len__(self):
        return len(self.values)

    def reset_order(self, lo: int, hi: int):
        ''' Identity permutation on ``[lo, hi)``. '''
        self.order[lo:hi] = np.arange(lo, hi)

# ---------------------------------------------------------------------------------
#! Eigenvalues of quasi triangular matrices
# ---------------------------------------------------------------------------------

def copy_eigenvalues(dst: NDArray, T: NDArray, tol: float) -> NDArray:
    """
    Write the eigenvalues of the quasi triangular ``T`` into ``dst``.

    A negligible sub-diagonal entry separates a real eigenvalue. Otherwise
    the 2x2 block yields ``x +- sqrt(x^2 - det)`` with ``x`` half its trace,
    which returns a conjugate pair for a negative discriminant and two real
    roots otherwise.
    """
    n = T.shape[0]
    i = 0
    while i < n - 1:
        if is_offdiagonal_small(T, i, tol):
            dst[i] = T[i, i]
            i += 1
            continue
        det         = T[i, i] * T[i + 1, i + 1] - T[i, i + 1] * T[i + 1, i]
        x           = 0.5 * (T[i, i] + T[i + 1, i + 1])
        y           = cmath.sqrt(complex(x * x - det))
        dst[i]      = x + y
        dst[i + 1]  = x - y
        i += 2
    if i == n - 1:
        dst[i] = T[i, i]
    return dst

def eigvalues(T: NDArray, tol: Optional[float] = None) -> NDArray:
    ''' Eigenvalues of the quasi triangular ``T`` in block order. '''
    if tol is None:
        tol = float(np.finfo(T.dtype).eps)
    return copy_eigenvalues(np.zeros(T.shape[0], dtype=complex_dtype(T.dtype)), T, tol)

# ---------------------------------------------------------------------------------
#! Eigenvectors of quasi triangular matrices
# ---------------------------------------------------------------------------------

def schur_eigenvector(T: NDArray, blocks: list, b: int, lam: complex, y: NDArray) -> int:
    """
    Unit eigenvector of the quasi triangular ``T`` for the eigenvalue ``lam``
    of diagonal block ``b``.

    The block itself gives the trailing coordinates (``y = [1]`` or the null
    vector of the shifted 2x2 block), the blocks above are solved by back
    substitution. Only ``y[:e]`` is written, ``e`` being the end of block
    ``b``, the remaining coordinates are zero.

    Returns
    -------
    int
        ``e``, the number of meaningful coordinates.
    """
    s, size     = blocks[b]
    e           = s + size
    eps         = np.finfo(T.dtype).eps
    smin        = max(eps * abs(lam), np.finfo(T.dtype).tiny)
    y[:e]       = 0.0

    if size == 1:
        y[s] = 1.0
    else:
        a, bb, c, d = T[s, s], T[s, s + 1], T[s + 1, s], T[s + 1, s + 1]
        if abs(bb) + abs(lam - a) >= abs(c) + abs(lam - d):
            y[s], y[s + 1] = bb, lam - a
        else:
            y[s], y[s + 1] = lam - d, c

    for bi in range(b - 1, -1, -1):
        r, sz   = blocks[bi]
        rhs     = -(T[r:r + sz, r + sz:e] @ y[r + sz:e])
        if sz == 1:
            denom = T[r, r] - lam
            if abs(denom) < smin:
                denom = smin
            y[r] = rhs[0] / denom
        else:
            m00 = T[r, r] - lam
            m01 = T[r, r + 1]
            m10 = T[r + 1, r]
            m11 = T[r + 1, r + 1] - lam
            det = m00 * m11 - m01 * m10
            if abs(det) < smin:
                det = smin
            y[r]        = (m11 * rhs[0] - m01 * rhs[1]) / det
            y[r + 1]    = (m00 * rhs[1] - m10 * rhs[0]) / det

    y[:e] /= np.linalg.norm(y[:e])
    return e

def copy_residuals(rs: NDArray, T: NDArray, Q: NDArray, h: float, tol: float, work: NDArray) -> NDArray:
    """
    Residual estimates ``|h| |Q[-1, :] y|`` of all Ritz pairs of ``T``.

    ``work`` provides at least ``T.shape[0]`` complex coordinates. Both
    members of a conjugate pair get the same value.
    """
    blocks  = schur_blocks(T, tol)
    last    = Q.shape[0] - 1
    vals    = np.zeros(2, dtype=work.dtype)
    for b, (s, size) in enumerate(blocks):
        copy_eigenvalues(vals[:size], T[s:s + size, s:s + size], tol)
        e       = schur_eigenvector(T, blocks, b, vals[0], work)
        r       = abs(np.dot(Q[last, :e], work[:e])) * abs(h)
        rs[s:s + size] = r
    return rs

# ---------------------------------------------------------------------------------
#! Convergence, partitioning and sorting
# ---------------------------------------------------------------------------------

class IsConverged:
    """
    Relative residual criterion ``residual < tol * |value|`` evaluated on an
    index into ``ritz.order``, or directly on a position with ``at``.
    """

    def __init__(self, ritz: RitzValues, tol: float):
        self.ritz   = ritz
        self.tol    = tol

    def at(self, position: int) -> bool:
        return bool(self.ritz.residuals[position] < self.tol * abs(self.ritz.values[position]))

    def __call__(self, i: int) -> bool:
        return self.at(self.ritz.order[i])

def partition(pred: Callable[[int], bool], indices: NDArray, offset: int = 0,
              work: Optional[NDArray] = None) -> int:
    """
    Stable in place partition of ``indices``: entries whose position
    satisfies ``pred`` come first, both groups keep their relative order.

    ``pred`` receives the position ``offset + j`` of entry ``j`` and is
    evaluated on all entries before anything is moved. ``work`` is an
    integer buffer of at least ``len(indices)`` entries; pass
    ``RitzValues.index_work`` to avoid allocating one per call.

    Returns
    -------
    int
        Number of entries satisfying the predicate.
    """
    n = len(indices)
    if work is None:
        work = np.empty(n, dtype=indices.dtype)
    buf     = work[:n]
    ntrue   = 0
    nfalse  = 0
    # true entries fill the front, false entries the back in reverse
    for j in range(n):
        if pred(offset + j):
            buf[ntrue] = indices[j]
            ntrue += 1
        else:
            nfalse += 1
            buf[n - nfalse] = indices[j]
    indices[:ntrue] = buf[:ntrue]
    indices[ntrue:] = buf[ntrue:][::-1]
    return ntrue

def sort_by_target(ritz: RitzValues, lo: int, hi: int, target: Target):
    """
    Stable sort of ``ritz.order[lo:hi]``, most wanted first.
    """
    tail                = ritz.order[lo:hi]
    perm                = target.argsort(ritz.values[tail])
    ritz.order[lo:hi]   = tail[perm]

# ---------------------------------------------------------------------------------
#! EOF
# ---------------------------------------------------------------------------------
