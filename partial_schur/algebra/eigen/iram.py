"""
Implicitly restarted Arnoldi method (IRAM) for partial Schur decompositions.

The driver cycles through

    Expand -> Classify -> CheckDone -> SelectShifts -> Restart -> Lock -> Expand

until the ``nev`` most wanted Ritz values have converged or the restart budget
is used up:

- Expand        : Arnoldi steps up to ``maxdim`` columns,
- Classify      : dense Schur form of the active part of ``H``, Ritz values
                  and residual estimates,
- CheckDone     : converged values are partitioned to the front, the run
                  stops once the ``nev`` most wanted ones, locked values
                  included, are all among them,
- SelectShifts  : the unconverged ones are sorted by the target, the least
                  wanted become exact shifts,
- Restart       : implicit QR sweeps compress the factorization,
- Lock          : decoupled leading blocks are frozen in Schur form.

On termination the wanted, converged but not yet locked values are moved to
the top of the projected Schur form and rotated into the factorization, so
the returned ``PartialSchur`` contains every converged wanted eigenvalue.
The ``reason`` of the result is decided after this step: a rejected swap
turns a converged run into a stalled one.

Example
-------
>>> res = partial_schur(A, nev=4, tol=1e-10)
>>> res.schur.eigenvalues
>>> vals, vecs = partial_eigen(res.schur)

-------------------------------------------------------
file        :   partial_schur/algebra/eigen/iram.py
author      :   Maksymilian Kliczkowski
-------------------------------------------------------
"""

import math
import time
import numbers
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Tuple, Union

import numpy as np
import scipy.sparse as sp
from numpy.typing import NDArray, DTypeLike

from .arnoldi import (Arnoldi, ArnoldiWorkspace, check_start_vector, set_start_vector, reinitialize,
                      extend, implicit_restart, detect_convergence, lock_block)
from .operators import as_operator, operator_dimension
from .result import (EigenSolver, EigenResult, EigenSolverError, EigenSolverErrorMsg,
                     PartialSchur, PartialSchurResult, Termination)
from .ritz import (RitzValues, IsConverged, copy_eigenvalues, copy_residuals, eigvalues,
                   partition, schur_eigenvector, sort_by_target)
from .schur import SchurVariant, local_schurfact, reorder_schur, schur_blocks
from .targets import Target
from ..utils import complex_dtype, get_rng, machine_eps, resolve_dtype
from ...common.flog import Logger, get_global_logger, log_phase_summary

# ---------------------------------------------------------------------------------
#! Parameters
# ---------------------------------------------------------------------------------

@dataclass
class IRAMParameters:
    """
    Configuration of a restart run.

    Attributes:
        mindim  : Krylov dimension kept after a restart.
        maxdim  : Krylov dimension before a restart (default ``2 * mindim``, clamped to ``n - 1``).
        nev     : number of wanted eigenvalues (default ``mindim``).
        tol     : relative residual tolerance (default machine epsilon of the working type).
        maxiter : restart budget.
        which   : target ordering.
        variant : dense Schur strategy.
    """
    mindim  : int                               = 5
    maxdim  : Optional[int]                     = None
    nev     : Optional[int]                     = None
    tol     : Optional[float]                   = None
    maxiter : int                               = 20
    which   : Union[Target, str]                = Target.LM
    variant : Union[SchurVariant, str]          = SchurVariant.GENERAL_REAL

    def resolve(self, n: int, dtype: DTypeLike = np.float64) -> 'IRAMParameters':
        """
        Fill in the defaults for an operator of dimension ``n`` and check the
        combination.

        Raises:
            EigenSolverError: on any inconsistent value.
        """
        def _int(name, value):
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, f"{name} must be an integer, got {value!r}")
            return int(value)

        mindim = _int('mindim', self.mindim)
        if mindim < 1:
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, f"mindim must be >= 1, got {mindim}")

        if self.maxdim is None:
            maxdim = min(2 * mindim, n - 1)
        else:
            maxdim = _int('maxdim', self.maxdim)
            if maxdim >= n:
                raise EigenSolverError(EigenSolverErrorMsg.DIM_MISMATCH,
                                       f"maxdim must be smaller than the dimension {n}, got {maxdim}")
        if mindim > maxdim:
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT,
                                   f"mindim must not exceed maxdim, got mindim={mindim}, maxdim={maxdim} (n={n})")

        nev = mindim if self.nev is None else _int('nev', self.nev)
        if nev < 1 or nev > maxdim:
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT,
                                   f"nev must satisfy 1 <= nev <= maxdim={maxdim}, got {nev}")

        tol = machine_eps(dtype) if self.tol is None else float(self.tol)
        if not math.isfinite(tol) or tol <= 0.0:
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, f"tol must be positive, got {self.tol!r}")

        maxiter = _int('maxiter', self.maxiter)
        if maxiter < 0:
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, f"maxiter must be >= 0, got {maxiter}")

        try:
            which   = Target.from_value(self.which)
            variant = SchurVariant.from_value(self.variant)
        except ValueError as e:
            raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, str(e)) from e

        return replace(self, mindim=mindim, maxdim=maxdim, nev=nev, tol=tol,
                       maxiter=maxiter, which=which, variant=variant)

# ---------------------------------------------------------------------------------
#! Termination
# ---------------------------------------------------------------------------------

def _wanted_positions(ritz: RitzValues, m: int, nev: int, target: Target) -> NDArray:
    """
    Positions of the ``nev`` most wanted values among ``ritz.values[:m]``,
    the locked eigenvalues included. A conjugate pair split by the cut is
    taken whole.
    """
    perm    = target.argsort(ritz.values[:m])
    count   = nev
    if count < m:
        last, nxt = ritz.values[perm[count - 1]], ritz.values[perm[count]]
        if last.imag != 0.0 and nxt == np.conj(last):
            count += 1
    return perm[:count]

def _finalize(arnoldi: Arnoldi, work: ArnoldiWorkspace, ritz: RitzValues,
              active: int, m: int, positions: NDArray, eps: float) -> Tuple[int, bool]:
    """
    Rotate the Ritz values at ``positions`` (converged, unlocked, in target
    order) to the front of the active block and lock them.

    ``work.Htmp[active:m, active:m]`` and ``work.Qtmp`` must still hold the
    Schur form ``H[active:m, active:m] = Q T Q^T`` of the last classification.

    Returns
    -------
    (int, bool)
        The new number of locked columns and whether every selected block
        reached the front.
    """
    if len(positions) == 0:
        return active, True

    V, H    = arnoldi.V, arnoldi.H
    size    = m - active
    T       = work.Htmp[active:m, active:m]
    Q       = work.Qtmp[:size, :size]

    select      = np.asarray(positions) - active
    expected    = sum(sz for s, sz in schur_blocks(T, eps) if np.any((select >= s) & (select < s + sz)))
    nsel        = reorder_schur(T, Q, select, eps)
    if nsel == 0:
        return active, False

    h                       = H[m, m - 1]
    H[active:m, active:m]   = T
    if active > 0:
        H[:active, active:m] = H[:active, active:m] @ Q
    H[m, active:m]          = h * Q[size - 1, :]

    Vtmp = work.Vtmp[:, active:m]
    np.matmul(V[:, active:m], Q, out=Vtmp)
    V[:, active:m] = Vtmp

    new = active + nsel
    if new < m:
        H[new, new - 1] = 0.0
    copy_eigenvalues(ritz.values[active:new], H[active:new, active:new], eps)
    return new, nsel >= expected

# ---------------------------------------------------------------------------------
#! Driver
# ---------------------------------------------------------------------------------

def partial_schur(A             : Any                                   = None,
                  mindim        : int                                   = 5,
                  maxdim        : Optional[int]                         = None,
                  nev           : Optional[int]                         = None,
                  tol           : Optional[float]                       = None,
                  maxiter       : int                                   = 20,
                  which         : Union[Target, str]                    = Target.LM,
                  *,
                  matvec        : Optional[Callable[[NDArray], NDArray]] = None,
                  n             : Optional[int]                         = None,
                  variant       : Union[SchurVariant, str]              = SchurVariant.GENERAL_REAL,
                  v0            : Optional[NDArray]                     = None,
                  seed          : Optional[Union[int, np.random.Generator]] = None,
                  dtype         : Optional[DTypeLike]                   = None,
                  logger        : Optional[Logger]                      = None,
                  verbose       : bool                                  = False) -> PartialSchurResult:
    """
    Partial Schur decomposition ``A Q = Q R`` of a real operator by the
    implicitly restarted Arnoldi method.

    Parameters
    ----------
    A :
        Dense array, scipy sparse matrix, ``LinearOperator`` or any object
        with ``dimension()`` and ``apply(v)``. Alternatively pass ``matvec``
        and ``n``.
    mindim, maxdim :
        Krylov dimensions after and before a restart, ``1 <= mindim <= maxdim < n``.
    nev :
        Number of wanted eigenvalues, ``1 <= nev <= maxdim`` (default ``mindim``).
    tol :
        A Ritz pair is converged when its residual is below ``tol * |value|``.
    maxiter :
        Maximum number of restart cycles.
    which :
        Target ordering ('LM', 'SM', 'LR', 'SR', 'LI', 'SI').
    variant :
        ``SchurVariant.REAL_ONLY`` for operators with a real spectrum.
    v0 :
        Start vector (random when omitted, seeded by ``seed`` or PY_GLOBAL_SEED).
    dtype :
        Working type, float64 or float32 (default: the operator's).
    logger, verbose :
        Per-cycle diagnostics are logged when ``verbose`` is set.

    Returns
    -------
    PartialSchurResult
        The locked partial Schur form (views of the internal buffers) and
        the run statistics. Non-convergence is not an error: ``converged``
        is False and ``reason`` tells why the loop stopped.

    Raises
    ------
    EigenSolverError
        On structural misconfiguration, before any allocation.
    """
    op      = as_operator(A, matvec, n, dtype)
    n       = operator_dimension(op)
    dtype   = resolve_dtype(dtype, getattr(op, 'dtype', None))
    if np.issubdtype(dtype, np.complexfloating):
        raise EigenSolverError(EigenSolverErrorMsg.NOT_REAL, f"Only real operators are supported, got dtype {dtype}")
    if dtype not in (np.dtype(np.float32), np.dtype(np.float64)):
        raise EigenSolverError(EigenSolverErrorMsg.INVALID_INPUT, f"Unsupported working type {dtype}")

    params  = IRAMParameters(mindim, maxdim, nev, tol, maxiter, which, variant).resolve(n, dtype)
    if v0 is not None:
        v0 = check_start_vector(v0, n)

    logger  = logger if logger is not None else get_global_logger()
    mindim, m, nev  = params.mindim, params.maxdim, params.nev
    target, variant = params.which, params.variant
    eps             = machine_eps(dtype)

    logger.title(f"IRAM: n={n}, nev={nev}, mindim={mindim}, maxdim={m}, which={target}", 70, '=', verbose=verbose)

    # allocation, once per run
    arnoldi = Arnoldi(n, m, dtype)
    work    = ArnoldiWorkspace.allocate(n, m, dtype)
    ritz    = RitzValues(m, dtype)
    rng     = get_rng(seed)
    isconv  = IsConverged(ritz, params.tol)
    H       = arnoldi.H
    timings = {'expand': 0.0, 'classify': 0.0, 'restart': 0.0, 'lock': 0.0}
    t_start = time.perf_counter()

    if v0 is None:
        reinitialize(arnoldi, work, rng, 0)
    else:
        set_start_vector(arnoldi, v0)
    prods       = extend(op, arnoldi, work, 0, mindim, rng, logger)

    active      = 0
    k           = mindim
    converged   = 0
    restarts    = 0
    cycles      = 0
    classified  = False
    wanted      = np.zeros(0, dtype=ritz.order.dtype)
    reason      = Termination.MAXITER

    for it in range(1, params.maxiter + 1):
        cycles  = it
        # Expand
        t0      = time.perf_counter()
        prods  += extend(op, arnoldi, work, k, m, rng, logger)
        t1      = time.perf_counter()
        timings['expand'] += t1 - t0

        # Classify
        size    = m - active
        T       = work.Htmp[active:m, active:m]
        T[:]    = H[active:m, active:m]
        Q       = work.identity(size)
        if not local_schurfact(T, Q, 0, size - 1, tol=eps, variant=variant):
            classified  = False
            reason      = Termination.STALLED
            logger.warning(f"Dense Schur iteration stalled in cycle {it}, returning {active} locked columns.")
            break
        classified = True
        copy_eigenvalues(ritz.values[active:m], T, eps)
        copy_residuals(ritz.residuals[active:m], T, Q, H[m, m - 1], eps, ritz.work)

        # CheckDone: only the nev most wanted values, locked ones included, count
        ritz.reset_order(active, m)
        converged   = active + partition(isconv, ritz.order[active:m], active, ritz.index_work)
        wanted      = _wanted_positions(ritz, m, nev, target)
        found       = sum(1 for p in wanted if p < active or isconv.at(p))
        t2          = time.perf_counter()
        timings['classify'] += t2 - t1
        logger.info(f"cycle {it:3d}: active={active}, converged={converged}, wanted={found}/{len(wanted)}, "
                    f"k={k}, mvproducts={prods}", lvl=1, verbose=verbose)
        if found == len(wanted):
            reason = Termination.CONVERGED
            break
        if it == params.maxiter:
            break

        # SelectShifts + Restart
        sort_by_target(ritz, converged, m, target)
        k = min(mindim + converged, (mindim + m) // 2)
        k = min(max(k, converged, active + 1), m)
        if k >= m:
            reason = Termination.STALLED
            logger.warning(f"No room for a restart at maxdim={m} (k={k}), stopping after {it} cycles.")
            break
        k, mv       = implicit_restart(op, arnoldi, work, ritz, k, m, active, variant, rng, logger)
        prods      += mv
        restarts   += 1
        t3 = time.perf_counter()
        timings['restart'] += t3 - t2

        # Lock
        new_active = detect_convergence(H, active, k, params.tol)
        if new_active > active:
            if lock_block(arnoldi, work, active, new_active - 1, k, eps, variant):
                logger.debug(f"locked columns {active}..{new_active - 1}", lvl=2)
                copy_eigenvalues(ritz.values[active:new_active], H[active:new_active, active:new_active], eps)
                active = new_active
            else:
                logger.warning(f"Schur reduction of the block {active}..{new_active - 1} stalled, not locked.")
        timings['lock'] += time.perf_counter() - t3

    nfound = 0
    if classified:
        before          = active
        selected        = [p for p in wanted if p >= before and isconv.at(p)]
        active, moved   = _finalize(arnoldi, work, ritz, before, m, selected, eps)
        nfound          = sum(1 for p in wanted if p < before) + (len(selected) if moved else active - before)
        if not moved and reason is Termination.CONVERGED:
            reason = Termination.STALLED
            logger.warning(f"Schur reordering rejected a swap, locked {active - before} of "
                           f"{len(selected)} converged values.")

    done = reason is Termination.CONVERGED
    if reason is Termination.MAXITER:
        total = len(wanted) if classified else nev
        logger.warning(f"IRAM stopped after {cycles} cycles ({restarts} restarts): "
                       f"{nfound} of {total} wanted eigenvalues converged.")
    if verbose:
        log_phase_summary(logger, timings, time.perf_counter() - t_start, title="IRAM",
                          extra_info=[f"reason={reason}, locked={active}, mvproducts={prods}, restarts={restarts}"])

    schur = PartialSchur(arnoldi.V[:, :active], H[:active, :active])
    return PartialSchurResult(schur=schur, mvproducts=prods, nconverged=active, converged=done,
                              restarts=restarts, reason=reason)

# ---------------------------------------------------------------------------------
#! Eigenpairs
# ---------------------------------------------------------------------------------

def partial_eigen(schur: PartialSchur) -> Tuple[NDArray, NDArray]:
    """
    Eigenvalues and unit eigenvectors from a partial Schur form.

    For ``A Q = Q R`` and ``R y = lambda y`` the vector ``x = Q y`` satisfies
    ``A x = lambda x``. Eigenvectors of conjugate pairs are conjugate.

    Returns
    -------
    (values, vectors)
        Complex arrays of shape ``(nconv,)`` and ``(n, nconv)`` in the block
        order of ``R``.
    """
    Q, R    = schur
    nconv   = R.shape[0]
    cdtype  = complex_dtype(R.dtype)
    eps     = machine_eps(R.dtype)
    values  = eigvalues(R, eps)
    vectors = np.zeros((Q.shape[0], nconv), dtype=cdtype)
    y       = np.zeros(nconv, dtype=cdtype)
    blocks  = schur_blocks(R, eps)
    for b, (s, size) in enumerate(blocks):
        for p in range(s, s + size):
            e               = schur_eigenvector(R, blocks, b, values[p], y)
            x               = Q[:, :e] @ y[:e]
            vectors[:, p]   = x / np.linalg.norm(x)
    return values, vectors

# ---------------------------------------------------------------------------------
#! Solver class
# ---------------------------------------------------------------------------------

class IRAMEigensolver(EigenSolver):
    """
    Implicitly restarted Arnoldi eigensolver for real non-symmetric operators.

    Computes ``k`` eigenpairs selected by ``which`` through a partial Schur
    decomposition and returns them in the common ``EigenResult`` format.

    Args:
        k:          Number of eigenvalues to compute
        which:      Target ordering ('LM', 'SM', 'LR', 'SR', 'LI', 'SI')
        mindim:     Krylov dimension after a restart (default ``max(k + 1, 5)``)
        maxdim:     Krylov dimension before a restart (default ``2 * mindim``)
        tol:        Relative residual tolerance (default machine epsilon)
        maxiter:    Maximum number of restarts
        variant:    'auto' (real only for symmetric matrices), 'general_real' or 'real_only'
        seed:       Seed of the random start vector

    Example:
        >>> solver = IRAMEigensolver(k=4, which='LR', tol=1e-10)
        >>> result = solver.solve(A)
        >>> result.eigenvalues
    """

    def __init__(self,
                k           : int                       = 6,
                which       : Union[Target, str]        = 'LM',
                mindim      : Optional[int]             = None,
                maxdim      : Optional[int]             = None,
                tol         : Optional[float]           = None,
                maxiter     : int                       = 20,
                variant     : Union[SchurVariant, str]  = 'auto',
                seed        : Optional[int]             = None,
                verbose     : bool                      = False,
                logger      : Optional[Logger]          = None):
        if k < 1:
            raise ValueError(f"k must be positive, got {k}")
        if tol is not None and tol <= 0:
            raise ValueError(f"tol must be positive, got {tol}")

        self.k          = k
        self.which      = Target.from_value(which)
        self.mindim     = mindim
        self.maxdim     = maxdim
        self.tol        = tol
        self.maxiter    = maxiter
        self.variant    = variant if variant == 'auto' else SchurVariant.from_value(variant)
        self.seed       = seed
        self.verbose    = verbose
        self.logger     = logger
        self.last       : Optional[PartialSchurResult] = None

    @staticmethod
    def is_iterative_solver() -> bool:
        return True

    @staticmethod
    def is_sparse_solver() -> bool:
        return True

    # ----------------------------------------------------------------------------

    def _choose_variant(self, A) -> SchurVariant:
        if self.variant != 'auto':
            return self.variant
        # symmetry is only checked for explicit matrices
        if isinstance(A, np.ndarray) or sp.issparse(A):
            return SchurVariant.REAL_ONLY if self._is_symmetric(A) else SchurVariant.GENERAL_REAL
        return SchurVariant.GENERAL_REAL

    def solve(self,
            A       : Any                                       = None,
            matvec  : Optional[Callable[[NDArray], NDArray]]    = None,
            n       : Optional[int]                             = None,
            v0      : Optional[NDArray]                         = None) -> EigenResult:
        """
        Solve for the wanted eigenpairs.

        Args:
            A: Matrix, sparse matrix, LinearOperator or operator object
            matvec: Matrix-vector product function (if A not provided)
            n: Dimension of the problem (required together with matvec)
            v0: Initial vector (random if None)

        Returns:
            EigenResult with eigenvalues, eigenvectors, Schur vectors and residual norms
        """
        op      = as_operator(A, matvec, n)
        dim     = operator_dimension(op)
        mindim  = self.mindim if self.mindim is not None else max(self.k + 1, 5)
        maxdim  = self.maxdim if self.maxdim is not None else min(2 * mindim, dim - 1)
        mindim  = min(mindim, maxdim)

        logger  = self.logger if self.logger is not None else get_global_logger()
        res     = logger.timing(partial_schur)(op, mindim=mindim, maxdim=maxdim, nev=self.k, tol=self.tol,
                                                maxiter=self.maxiter, which=self.which, variant=self._choose_variant(A),
                                                v0=v0, seed=self.seed, logger=logger, verbose=self.verbose)
        self.last = res

        values, vectors = partial_eigen(res.schur)
        order           = self.which.argsort(values)[:self.k]
        values          = values[order]
        vectors         = vectors[:, order]

        residual_norms  = np.zeros(len(values))
        for j in range(len(values)):
            x                   = vectors[:, j]
            Ax                  = op.apply(np.ascontiguousarray(x.real)) + 1j * op.apply(np.ascontiguousarray(x.imag))
            residual_norms[j]   = np.linalg.norm(Ax - values[j] * x)

        return EigenResult(
            eigenvalues     = values,
            eigenvectors    = vectors,
            subspacevectors = res.schur.Q,
            iterations      = res.restarts,
            converged       = res.converged,
            residual_norms  = residual_norms
        )

# ---------------------------------------------------------------------------------
#! EOF
# ---------------------------------------------------------------------------------
