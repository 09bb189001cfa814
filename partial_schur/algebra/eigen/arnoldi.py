"""
Arnoldi factorization with implicit restarts and locking.

Maintains the relation

    A V[:, :k] = V[:, :k+1] H[:k+1, :k]

for a basis ``V`` with orthonormal columns and an upper Hessenberg ``H``.
All buffers are allocated once with capacity ``maxdim``; the routines below
grow, shrink and deflate the factorization in place:

- ``extend``            : Arnoldi steps, classical Gram-Schmidt with DGKS
                          re-orthogonalization and breakdown handling,
- ``implicit_restart``  : shifted QR sweeps on ``H`` that compress the
                          factorization to ``k`` columns,
- ``detect_convergence``: finds negligible sub-diagonal entries behind the
                          locked part,
- ``lock_block``        : rotates a newly decoupled block to Schur form.

-------------------------------------------------------
file        :   partial_schur/algebra/eigen/arnoldi.py
author      :   Maksymilian Kliczkowski
-------------------------------------------------------
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray, DTypeLike

from .operators import Operator
from .result import EigenSolverError, EigenSolverErrorMsg
from .ritz import RitzValues
from .schur import SchurVariant, local_schurfact, single_shift_qr, double_shift_qr, is_offdiagonal_small
from ..utils import get_rng

# re-orthogonalization: repeat while the norm dropped below ETA of its previous value
DGKS_ETA            = 1.0 / math.sqrt(2.0)
DGKS_MAX_PASSES     = 3

# ---------------------------------------------------------------------------------
#! Buffers
# ---------------------------------------------------------------------------------

class Arnoldi:
    """
    Storage of an Arnoldi factorization of capacity ``maxdim``.

    Attributes:
        V : ``n x (maxdim+1)`` basis, Fortran ordered so columns are contiguous.
        H : ``(maxdim+1) x maxdim`` Hessenberg matrix.
    """

    def __init__(self, n: int, maxdim: int, dtype: DTypeLike = np.float64):
        if maxdim < 1 or maxdim >= n:
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT,
                                   f"Arnoldi capacity must satisfy 1 <= maxdim < n, got maxdim={maxdim}, n={n}")
        self.n      = n
        self.maxdim = maxdim
        self.dtype  = np.dtype(dtype)
        self.V      = np.zeros((n, maxdim + 1), dtype=self.dtype, order='F')
        self.H      = np.zeros((maxdim + 1, maxdim), dtype=self.dtype)

    def __repr__(self):
        return f"Arnoldi(n={self.n}, maxdim={self.maxdim}, dtype={self.dtype})"

@dataclass
class ArnoldiWorkspace:
    """
    Scratch arena of a run. Ranges of these buffers are handed to the
    kernels as views; no routine allocates a buffer of size ``n`` per step.
    """
    Vtmp    : NDArray
    Htmp    : NDArray
    Qtmp    : NDArray
    w       : NDArray
    t       : NDArray
    h       : NDArray
    c       : NDArray

    @classmethod
    def allocate(cls, n: int, maxdim: int, dtype: DTypeLike = np.float64) -> 'ArnoldiWorkspace':
        dtype = np.dtype(dtype)
        return cls(
            Vtmp    = np.zeros((n, maxdim), dtype=dtype, order='F'),
            Htmp    = np.zeros((maxdim + 1, maxdim), dtype=dtype),
            Qtmp    = np.zeros((maxdim + 1, maxdim + 1), dtype=dtype),
            w       = np.zeros(n, dtype=dtype),
            t       = np.zeros(n, dtype=dtype),
            h       = np.zeros(maxdim + 1, dtype=dtype),
            c       = np.zeros(maxdim + 1, dtype=dtype),
        )

    def identity(self, size: int) -> NDArray:
        ''' ``Qtmp[:size, :size]`` reset to the identity. '''
        Q = self.Qtmp[:size, :size]
        Q.fill(0.0)
        np.fill_diagonal(Q, 1.0)
        return Q

# ---------------------------------------------------------------------------------
#! Orthogonalization
# ---------------------------------------------------------------------------------

def orthogonalize(V: NDArray, j: int, w: NDArray, work: ArnoldiWorkspace) -> Tuple[float, bool]:
    """
    Project ``w`` onto the orthogonal complement of ``V[:, :j]`` in place
    (classical Gram-Schmidt, DGKS re-orthogonalization).

    The accumulated coefficients are left in ``work.h[:j]``.

    Returns
    -------
    (norm, ok)
        Norm of the projected vector and whether it is numerically
        independent of ``V[:, :j]``.
    """
    h       = work.h[:j]
    h.fill(0.0)
    nrm0    = float(np.linalg.norm(w))
    if j == 0:
        return nrm0, nrm0 > 0.0
    if nrm0 == 0.0:
        return 0.0, False

    Vj      = V[:, :j]
    c       = work.c[:j]
    t       = work.t
    # below this the projected vector is rounding noise of the input
    floor   = max(10, j) * float(np.finfo(w.dtype).eps) * nrm0
    for _ in range(DGKS_MAX_PASSES):
        np.matmul(Vj.T, w, out=c)
        h  += c
        np.matmul(Vj, c, out=t)
        w  -= t
        nrm = float(np.linalg.norm(w))
        if nrm <= floor:
            break
        if nrm > DGKS_ETA * nrm0:
            return nrm, True
        nrm0 = nrm
    return nrm, False

def reinitialize(arnoldi: Arnoldi, work: ArnoldiWorkspace, rng: Optional[np.random.Generator] = None, j: int = 0):
    """
    Fill ``V[:, j]`` with a random unit vector orthogonal to ``V[:, :j]``.

    With ``j == 0`` this is a fresh start vector; with ``j > 0`` it replaces
    the residual direction after a breakdown.
    """
    rng = get_rng() if rng is None else rng
    v   = arnoldi.V[:, j]
    w   = work.w
    for _ in range(DGKS_MAX_PASSES):
        w[:] = rng.standard_normal(arnoldi.n)
        nrm, ok = orthogonalize(arnoldi.V, j, w, work)
        if j > 0:
            # a second projection, the random vector carries no structure
            nrm, ok = orthogonalize(arnoldi.V, j, w, work)
        if ok and nrm > 0.0:
            np.divide(w, nrm, out=v)
            return
    raise RuntimeError(f"Could not draw a vector orthogonal to {j} basis vectors")

def check_start_vector(v0: NDArray, n: int) -> NDArray:
    ''' Validate a user start vector, returned as a flat array. '''
    v0 = np.asarray(v0).ravel()
    if v0.shape[0] != n:
        raise EigenSolverError(EigenSolverErrorMsg.DIM_MISMATCH, f"v0 must have length {n}, got {v0.shape[0]}")
    if np.iscomplexobj(v0):
        raise EigenSolverError(EigenSolverErrorMsg.NOT_REAL, "v0 must be real")
    nrm = np.linalg.norm(v0)
    if not np.isfinite(nrm) or nrm == 0.0:
        raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, "v0 must have a finite nonzero norm")
    return v0

def set_start_vector(arnoldi: Arnoldi, v0: NDArray):
    ''' Normalized ``v0`` as the first basis vector. '''
    v0 = check_start_vector(v0, arnoldi.n)
    arnoldi.V[:, 0] = v0 / np.linalg.norm(v0)

# ---------------------------------------------------------------------------------
#! Arnoldi steps
# ---------------------------------------------------------------------------------

def extend(op: Operator, arnoldi: Arnoldi, work: ArnoldiWorkspace, k: int, target: int,
           rng: Optional[np.random.Generator] = None, logger=None) -> int:
    """
    Grow the factorization from ``k`` to ``target`` columns.

    Column ``j`` of ``H`` receives the projection coefficients in rows
    ``0..j`` and the new norm in row ``j+1``; rows below are cleared. A
    breakdown (invariant subspace) sets ``H[j+1, j] = 0`` and continues with
    a random direction orthogonal to the basis.

    Returns
    -------
    int
        Number of operator applications.
    """
    V, H    = arnoldi.V, arnoldi.H
    w       = work.w
    prods   = 0
    for j in range(k, target):
        w[:]    = op.apply(V[:, j])
        prods  += 1
        nrm, ok = orthogonalize(V, j + 1, w, work)

        H[:j + 1, j]    = work.h[:j + 1]
        H[j + 2:, j]    = 0.0
        if ok:
            H[j + 1, j] = nrm
            np.divide(w, nrm, out=V[:, j + 1])
        else:
            H[j + 1, j] = 0.0
            if logger is not None:
                logger.debug(f"Invariant subspace found at step {j + 1}, continuing with a random direction.", lvl=2)
            reinitialize(arnoldi, work, rng, j + 1)
    return prods

iterate_arnoldi = extend

# ---------------------------------------------------------------------------------
#! Restart and deflation
# ---------------------------------------------------------------------------------

def implicit_restart(op: Operator, arnoldi: Arnoldi, work: ArnoldiWorkspace, ritz: RitzValues,
                     k: int, m: int, active: int,
                     variant: SchurVariant = SchurVariant.GENERAL_REAL,
                     rng: Optional[np.random.Generator] = None, logger=None) -> Tuple[int, int]:
    """
    Compress the factorization from ``m`` to ``k`` columns with exact shifts.

    The shifts ``ritz.values[ritz.order[j]]`` for ``j = m-1, m-2, ...`` (least
    wanted first) are applied as QR sweeps over ``[active, m)`` of ``H``,
    including the residual row ``m``. A complex shift is applied together
    with its conjugate in one real double shift sweep; a pair that would be
    split by the boundary is kept and the new size becomes ``k+1``.

    The rotated basis ``V[:, active:k] = V[:, active:m] Q[:, :k-active]``
    is formed through ``work.Vtmp``, the factorization is truncated to
    ``k-1`` columns, where the relation is exact, and one Arnoldi step
    restores the trailing residual.

    Returns
    -------
    (k, prods)
        Effective new size and the number of operator applications.
    """
    V, H    = arnoldi.V, arnoldi.H
    size    = m - active
    Q       = work.identity(size)
    real    = variant is SchurVariant.REAL_ONLY

    cur     = m
    while cur > k:
        mu = complex(ritz.values[ritz.order[cur - 1]])
        if real or mu.imag == 0.0:
            single_shift_qr(H, Q, mu.real, active, m - 1, m, m, active)
            cur -= 1
        else:
            if cur - 2 < k:
                break
            double_shift_qr(H, Q, 2.0 * mu.real, abs(mu) ** 2, active, m - 1, m, m, active)
            cur -= 2
    k = cur
    # the residual row vanishes left of the new boundary
    H[m, active:k - 1] = 0.0

    Vtmp = work.Vtmp[:, active:k]
    np.matmul(V[:, active:m], Q[:, :k - active], out=Vtmp)
    V[:, active:k] = Vtmp

    prods = extend(op, arnoldi, work, k - 1, k, rng, logger)
    return k, prods

def detect_convergence(H: NDArray, active: int, k: int, tol: float) -> int:
    """
    Furthest boundary behind the locked part where the factorization decouples.

    Scans ``H[i+1, i]`` for ``i`` in ``[active, k-1)`` and returns ``i+1`` for
    the last negligible entry, ``active`` when there is none. That entry is
    set to exactly zero.
    """
    boundary = active
    for i in range(active, k - 1):
        if is_offdiagonal_small(H, i, tol):
            boundary = i + 1
    if boundary > active:
        H[boundary, boundary - 1] = 0.0
    return boundary

def lock_block(arnoldi: Arnoldi, work: ArnoldiWorkspace, lo: int, hi: int, k: int,
               tol: float, variant: SchurVariant = SchurVariant.GENERAL_REAL) -> bool:
    """
    Reduce the decoupled block ``[lo, hi]`` of ``H`` to Schur form and rotate
    the basis accordingly.

    The rotations act on the block, the coupling above it (rows ``< lo``) and
    to its right (columns up to ``k``); columns ``< lo`` of ``V`` are never
    touched.

    Returns
    -------
    bool
        Success of the local Schur reduction; on failure the partial
        rotations are still applied so the factorization stays consistent.
    """
    if hi <= lo:
        return True
    V, H    = arnoldi.V, arnoldi.H
    size    = hi - lo + 1
    Q       = work.identity(size)
    ok      = local_schurfact(H, Q, lo, hi, tol=tol, width=k, variant=variant, qoff=lo)

    Vtmp    = work.Vtmp[:, lo:hi + 1]
    np.matmul(V[:, lo:hi + 1], Q, out=Vtmp)
    V[:, lo:hi + 1] = Vtmp
    return ok

# ---------------------------------------------------------------------------------
#! EOF
# ---------------------------------------------------------------------------------
