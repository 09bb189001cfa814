"""
Dense real Schur decomposition of small Hessenberg matrices.

The projected matrix of an Arnoldi factorization is upper Hessenberg. It is
reduced to real Schur form ``H = Q T Q^T`` by the implicitly shifted QR
algorithm: Wilkinson single shifts for real eigenvalue estimates and
Francis double shifts (two real rotations per bulge chasing step) for
complex conjugate pairs, so that the whole computation stays in real
arithmetic. ``T`` is quasi upper triangular: 1x1 diagonal blocks hold real
eigenvalues, 2x2 blocks hold conjugate pairs.

The kernels operate in place on sub-blocks of larger arrays:

- ``lo``, ``hi``      : inclusive range of the active diagonal block,
- ``width``           : left rotations touch columns ``[.., width)``,
- ``rowmax``          : right rotations touch rows ``[0, rowmax]``,
- ``qoff``            : column ``i`` of ``H`` is column ``i - qoff`` of ``Q``.

With these the same kernels serve the standalone solver, the deflation of
locked blocks inside a factorization and the implicit restart (where
``rowmax`` includes the residual row below the square part).

-------------------------------------------------------
file        :   partial_schur/algebra/eigen/schur.py
author      :   Maksymilian Kliczkowski
-------------------------------------------------------
"""

import math
from enum import Enum, unique
from typing import Optional, Sequence, Union

import numba
import numpy as np
import scipy.linalg as sla
from numpy.typing import NDArray

# ----------------------------------------------------------------------------------------
#! Variants
# ----------------------------------------------------------------------------------------

@unique
class SchurVariant(Enum):
    '''
    Shift strategy of the dense solver, fixed for a whole run.

    - GENERAL_REAL : real single and double shifts, complex pairs end up in 2x2 blocks.
    - REAL_ONLY    : single real shifts only, for operators with a real spectrum.
    '''
    GENERAL_REAL    = 'general_real'
    REAL_ONLY       = 'real_only'

    @classmethod
    def from_value(cls, variant: Union['SchurVariant', str]) -> 'SchurVariant':
        if isinstance(variant, cls):
            return variant
        try:
            return cls(str(variant).lower())
        except ValueError:
            raise ValueError(f"Invalid Schur variant {variant!r}, expected one of {[v.value for v in cls]}") from None

# ----------------------------------------------------------------------------------------
#! Rotation kernels
# ----------------------------------------------------------------------------------------

@numba.njit(cache=True)
def is_offdiagonal_small(H: np.ndarray, i: int, tol: float) -> bool:
    """
    Negligibility of the sub-diagonal entry ``H[i+1, i]`` relative to its
    diagonal neighbours. The test is ``<=`` rather than a strict ``<`` so that
    an exact zero is negligible even next to two zero diagonal entries.
    """
    return abs(H[i + 1, i]) <= tol * (abs(H[i, i]) + abs(H[i + 1, i + 1]))

@numba.njit(cache=True)
def givens(f, g):
    """
    Rotation ``(c, s, r)`` with ``[c s; -s c] [f; g] = [r; 0]``.
    """
    a = float(f)
    b = float(g)
    if b == 0.0:
        return 1.0, 0.0, a
    if a == 0.0:
        return 0.0, 1.0, b
    r = math.hypot(a, b)
    return a / r, b / r, r

@numba.njit(cache=True)
def rotate_rows(H: np.ndarray, c: float, s: float, i: int, jlo: int, jhi: int):
    """Left rotation of rows ``i, i+1`` restricted to columns ``[jlo, jhi)``."""
    for j in range(jlo, jhi):
        a       = H[i, j]
        b       = H[i + 1, j]
        H[i, j]     = c * a + s * b
        H[i + 1, j] = -s * a + c * b

@numba.njit(cache=True)
def rotate_cols(H: np.ndarray, c: float, s: float, i: int, rlo: int, rhi: int):
    """Right rotation (transposed) of columns ``i, i+1`` restricted to rows ``[rlo, rhi)``."""
    for r in range(rlo, rhi):
        a       = H[r, i]
        b       = H[r, i + 1]
        H[r, i]     = c * a + s * b
        H[r, i + 1] = -s * a + c * b

@numba.njit(cache=True)
def _similarity(H, Q, c, s, i, jlo, width, rowmax, qoff):
    rotate_rows(H, c, s, i, jlo, width)
    rotate_cols(H, c, s, i, 0, rowmax + 1)
    rotate_cols(Q, c, s, i - qoff, 0, Q.shape[0])

# ----------------------------------------------------------------------------------------
#! Shifted QR sweeps
# ----------------------------------------------------------------------------------------

@numba.njit(cache=True)
def single_shift_qr(H: np.ndarray, Q: np.ndarray, mu: float,
                    lo: int, hi: int, width: int, rowmax: int, qoff: int):
    """
    One implicit single shift QR sweep with shift ``mu`` over the
    unreduced block ``[lo, hi]`` (at least 2x2).
    """
    c, s, _ = givens(H[lo, lo] - mu, H[lo + 1, lo])
    _similarity(H, Q, c, s, lo, lo, width, rowmax, qoff)

    # chase the bulge at (i+2, i) down to the bottom
    for i in range(lo, hi - 1):
        c, s, r = givens(H[i + 1, i], H[i + 2, i])
        rotate_rows(H, c, s, i + 1, i, width)
        H[i + 1, i] = r
        H[i + 2, i] = 0.0
        rotate_cols(H, c, s, i + 1, 0, rowmax + 1)
        rotate_cols(Q, c, s, i + 1 - qoff, 0, Q.shape[0])

@numba.njit(cache=True)
def double_shift_qr(H: np.ndarray, Q: np.ndarray, shift_sum: float, shift_prod: float,
                    lo: int, hi: int, width: int, rowmax: int, qoff: int):
    """
    One implicit Francis double shift sweep over the unreduced block
    ``[lo, hi]`` (at least 3x3). The shifts are the roots of
    ``z^2 - shift_sum z + shift_prod``, so a complex conjugate pair is
    applied in real arithmetic.
    """
    h00 = H[lo, lo]
    h10 = H[lo + 1, lo]
    h01 = H[lo, lo + 1]
    h11 = H[lo + 1, lo + 1]
    h21 = H[lo + 2, lo + 1]

    # first column of (H - mu1)(H - mu2)
    p1  = h00 * h00 + h01 * h10 - shift_sum * h00 + shift_prod
    p2  = h10 * (h00 + h11 - shift_sum)
    p3  = h21 * h10

    c1, s1, nrm = givens(p2, p3)
    c2, s2, _   = givens(p1, nrm)
    rotate_rows(H, c1, s1, lo + 1, lo, width)
    rotate_rows(H, c2, s2, lo, lo, width)
    rotate_cols(H, c1, s1, lo + 1, 0, rowmax + 1)
    rotate_cols(H, c2, s2, lo, 0, rowmax + 1)
    rotate_cols(Q, c1, s1, lo + 1 - qoff, 0, Q.shape[0])
    rotate_cols(Q, c2, s2, lo - qoff, 0, Q.shape[0])

    # the bulge occupies (i+1, i-1) and (i+2, i-1)
    for i in range(lo + 1, hi - 1):
        c1, s1, nrm = givens(H[i + 1, i - 1], H[i + 2, i - 1])
        c2, s2, r   = givens(H[i, i - 1], nrm)
        rotate_rows(H, c1, s1, i + 1, i - 1, width)
        rotate_rows(H, c2, s2, i, i - 1, width)
        H[i, i - 1]     = r
        H[i + 1, i - 1] = 0.0
        H[i + 2, i - 1] = 0.0
        rotate_cols(H, c1, s1, i + 1, 0, rowmax + 1)
        rotate_cols(H, c2, s2, i, 0, rowmax + 1)
        rotate_cols(Q, c1, s1, i + 1 - qoff, 0, Q.shape[0])
        rotate_cols(Q, c2, s2, i - qoff, 0, Q.shape[0])

    c, s, r = givens(H[hi - 1, hi - 2], H[hi, hi - 2])
    rotate_rows(H, c, s, hi - 1, hi - 2, width)
    H[hi - 1, hi - 2]   = r
    H[hi, hi - 2]       = 0.0
    rotate_cols(H, c, s, hi - 1, 0, rowmax + 1)
    rotate_cols(Q, c, s, hi - 1 - qoff, 0, Q.shape[0])

# ----------------------------------------------------------------------------------------
#! QR iteration
# ----------------------------------------------------------------------------------------

@numba.njit(cache=True)
def _schur_qr_loop(H, Q, start, stop, tol, maxiter, width, real_only, qoff):
    to  = stop
    it  = 0
    while to > start:
        it += 1
        if it > maxiter:
            return False

        # top of the unreduced block ending at `to`
        frm = to
        while frm > start and not is_offdiagonal_small(H, frm - 1, tol):
            frm -= 1

        if frm == to:
            H[to, to - 1] = 0.0
            to -= 1
            continue

        a   = H[to - 1, to - 1]
        b   = H[to - 1, to]
        c   = H[to, to - 1]
        d   = H[to, to]
        det = a * d - b * c
        t   = a + d
        disc = t * t - 4.0 * det

        if disc > 0.0:
            sq  = math.sqrt(disc)
            l1  = 0.5 * (t + sq)
            l2  = 0.5 * (t - sq)
            mu  = l1 if abs(d - l1) < abs(d - l2) else l2
            single_shift_qr(H, Q, mu, frm, to, width, to, qoff)
        elif real_only:
            single_shift_qr(H, Q, 0.5 * t, frm, to, width, to, qoff)
        elif frm + 1 == to:
            # converged 2x2 block of a conjugate pair
            if frm > start:
                H[frm, frm - 1] = 0.0
            to -= 2
        else:
            double_shift_qr(H, Q, t, det, frm, to, width, to, qoff)
    return True

def local_schurfact(H          : NDArray,
                    Q          : NDArray,
                    start      : int                            = 0,
                    stop       : Optional[int]                  = None,
                    tol        : Optional[float]                = None,
                    maxiter    : Optional[int]                  = None,
                    width      : Optional[int]                  = None,
                    variant    : Union[SchurVariant, str]       = SchurVariant.GENERAL_REAL,
                    qoff       : Optional[int]                  = None) -> bool:
    """
    Reduce the Hessenberg block ``H[start:stop+1, start:stop+1]`` to real
    Schur form in place, accumulating the rotations into ``Q``.

    Parameters
    ----------
    H : ndarray
        Upper Hessenberg matrix (at least within the block). Entries above
        the block (rows ``< start``) and to its right (columns up to
        ``width``) are transformed consistently.
    Q : ndarray
        Orthogonal factor, updated as ``Q <- Q G^T`` for every rotation ``G``.
        Pass the identity to obtain ``H_old = Q T Q^T`` for the block.
    start, stop : int
        Inclusive block range (default: the whole matrix).
    tol : float
        Negligibility threshold of sub-diagonal entries (default: machine epsilon).
    maxiter : int
        Iteration cap (default ``100 * block size``).
    width : int
        Number of columns of ``H`` touched by left rotations (default ``H.shape[1]``).
    variant : SchurVariant
        ``REAL_ONLY`` disables double shifts.
    qoff : int
        Column offset between ``H`` and ``Q``: default ``0`` when ``Q`` has as
        many columns as ``H``, otherwise ``start``.

    Returns
    -------
    bool
        ``False`` when the iteration cap was hit before full reduction.
    """
    variant = SchurVariant.from_value(variant)
    stop    = H.shape[0] - 1 if stop is None else int(stop)
    start   = int(start)
    if stop <= start:
        return True
    if tol is None:
        tol = float(np.finfo(H.dtype).eps)
    if maxiter is None:
        maxiter = 100 * (stop - start + 1)
    if width is None:
        width = H.shape[1]
    if qoff is None:
        qoff = 0 if Q.shape[1] >= H.shape[1] else start
    return bool(_schur_qr_loop(H, Q, start, stop, float(tol), int(maxiter), int(width),
                               variant is SchurVariant.REAL_ONLY, int(qoff)))

# ----------------------------------------------------------------------------------------
#! Reordering
# ----------------------------------------------------------------------------------------

def schur_blocks(T: NDArray, tol: float) -> list:
    """
    Diagonal block structure of a quasi triangular ``T`` as a list of
    ``(start, size)`` pairs, size 1 or 2.
    """
    n       = T.shape[0]
    blocks  = []
    i       = 0
    while i < n:
        if i + 1 < n and not is_offdiagonal_small(T, i, tol):
            blocks.append((i, 2))
            i += 2
        else:
            blocks.append((i, 1))
            i += 1
    return blocks

def swap_schur_blocks(T: NDArray, Q: NDArray, j: int, p: int, q: int, qoff: int = 0) -> bool:
    """
    Exchange the adjacent diagonal blocks ``T[j:j+p, j:j+p]`` and
    ``T[j+p:j+p+q, j+p:j+p+q]`` by an orthogonal similarity.

    The invariant subspace of the lower block is ``range([-X; I])`` with
    ``A11 X - X A22 = A12``; an orthonormal basis of it (QR factorization)
    moves the lower block up. The swap is rejected, leaving ``T`` and ``Q``
    untouched, when the transformed window is not block triangular to
    working precision.
    """
    n       = p + q
    W       = T[j:j + n, j:j + n]
    A11     = W[:p, :p]
    A22     = W[p:, p:]
    A12     = W[:p, p:]
    try:
        X   = sla.solve_sylvester(A11, -A22, A12)
    except np.linalg.LinAlgError:
        # blocks with a common eigenvalue
        return False
    if not np.all(np.isfinite(X)):
        return False

    Z       = np.vstack([-X, np.eye(q, dtype=T.dtype)])
    G, _    = sla.qr(Z)
    G       = G.astype(T.dtype, copy=False)
    Wn      = G.T @ W @ G

    eps     = np.finfo(T.dtype).eps
    thresh  = max(10.0 * eps * max(1.0, np.linalg.norm(X)) * np.linalg.norm(W), np.finfo(T.dtype).tiny)
    if np.abs(Wn[q:, :q]).max() > thresh:
        return False

    width                   = T.shape[1]
    T[j:j + n, j:width]     = G.T @ T[j:j + n, j:width]
    T[:j + n, j:j + n]      = T[:j + n, j:j + n] @ G
    T[j + q:j + n, j:j + q] = 0.0
    c                       = j - qoff
    Q[:, c:c + n]           = Q[:, c:c + n] @ G
    return True

def reorder_schur(T: NDArray, Q: NDArray, select: Sequence[int], tol: Optional[float] = None, qoff: int = 0) -> int:
    """
    Move the diagonal blocks containing the positions ``select`` to the top
    left of the quasi triangular ``T``, in the given order, updating ``Q``
    so that ``Q T Q^T`` is preserved.

    Positions refer to the block structure before the call; both members of
    a 2x2 block select the whole block. The first block that cannot be moved
    up stops the reordering.

    Returns
    -------
    int
        Number of leading rows of ``T`` now occupied by selected blocks.
    """
    if tol is None:
        tol = float(np.finfo(T.dtype).eps)

    blocks  = schur_blocks(T, tol)
    starts  = [b[0] for b in blocks]
    sizes   = [b[1] for b in blocks]
    ids     = list(range(len(blocks)))

    # original block id of every position
    owner   = {}
    for b, (s, size) in enumerate(blocks):
        for pos in range(s, s + size):
            owner[pos] = b

    wanted  = []
    for pos in select:
        b = owner.get(int(pos))
        if b is not None and b not in wanted:
            wanted.append(b)

    top     = 0
    for b in wanted:
        cur = ids.index(b)
        while cur > top:
            ok = swap_schur_blocks(T, Q, starts[cur - 1], sizes[cur - 1], sizes[cur], qoff)
            if not ok:
                break
            p, q                    = sizes[cur - 1], sizes[cur]
            sizes[cur - 1], sizes[cur] = q, p
            starts[cur]             = starts[cur - 1] + q
            ids[cur - 1], ids[cur]  = ids[cur], ids[cur - 1]
            cur -= 1
        if cur != top:
            break
        top += 1
    return int(sum(sizes[:top]))

# ----------------------------------------------------------------------------------------
#! EOF
# ----------------------------------------------------------------------------------------
