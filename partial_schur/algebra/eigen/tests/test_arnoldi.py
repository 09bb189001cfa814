'''
Tests of the Arnoldi factorization: extension, breakdown handling,
implicit restarts, convergence detection and locking.

File        : partial_schur/algebra/eigen/tests/test_arnoldi.py
Author      : Maksymilian Kliczkowski
'''

import pytest
import numpy as np
import scipy.linalg as sla

from partial_schur.algebra.eigen.arnoldi import (Arnoldi, ArnoldiWorkspace, extend, reinitialize,
                                                 set_start_vector, implicit_restart, detect_convergence,
                                                 lock_block)
from partial_schur.algebra.eigen.operators import as_operator
from partial_schur.algebra.eigen.result import EigenSolverError
from partial_schur.algebra.eigen.ritz import RitzValues, copy_eigenvalues, sort_by_target
from partial_schur.algebra.eigen.schur import local_schurfact
from partial_schur.algebra.eigen.targets import Target

EPS = np.finfo(np.float64).eps

# -------------------------------------------------------------------

def create_random_nonsymmetric_matrix(n, seed=42):
    rng = np.random.default_rng(seed)
    return rng.standard_normal((n, n))

def arnoldi_residual(A, arnoldi, k):
    V, H = arnoldi.V, arnoldi.H
    return np.linalg.norm(A @ V[:, :k] - V[:, :k + 1] @ H[:k + 1, :k])

def orthogonality(arnoldi, k):
    V = arnoldi.V[:, :k]
    return np.linalg.norm(V.T @ V - np.eye(k))

def build(A, maxdim, k, seed=0, v0=None):
    op      = as_operator(A)
    arn     = Arnoldi(A.shape[0], maxdim)
    work    = ArnoldiWorkspace.allocate(A.shape[0], maxdim)
    rng     = np.random.default_rng(seed)
    if v0 is None:
        reinitialize(arn, work, rng)
    else:
        set_start_vector(arn, v0)
    prods   = extend(op, arn, work, 0, k, rng)
    return op, arn, work, rng, prods

def classify(arn, work, ritz, active, m, target=Target.LM):
    ''' Ritz values of the active block, sorted most wanted first. '''
    size    = m - active
    T       = arn.H[active:m, active:m].copy()
    Q       = np.eye(size)
    assert local_schurfact(T, Q)
    copy_eigenvalues(ritz.values[active:m], T, EPS)
    ritz.reset_order(active, m)
    sort_by_target(ritz, active, m, target)

# -------------------------------------------------------------------

class TestExtend:

    def test_arnoldi_relation(self):
        A                       = create_random_nonsymmetric_matrix(40)
        op, arn, work, rng, p   = build(A, 12, 12)
        assert p == 12
        assert arnoldi_residual(A, arn, 12) < 1e-12 * np.linalg.norm(A)
        assert orthogonality(arn, 13) < 1e-13
        # Hessenberg structure with cleared rows below the sub-diagonal
        assert np.all(np.tril(arn.H[:, :12], -2) == 0.0)

    def test_extend_in_two_steps_is_consistent(self):
        A                       = create_random_nonsymmetric_matrix(30, seed=1)
        op, arn, work, rng, p   = build(A, 10, 4)
        p                      += extend(op, arn, work, 4, 10, rng)
        assert p == 10
        assert arnoldi_residual(A, arn, 10) < 1e-12 * np.linalg.norm(A)

    def test_breakdown_on_invariant_subspace(self):
        A       = np.diag(np.arange(1.0, 7.0))
        v0      = np.zeros(6)
        v0[:2]  = 1.0
        op, arn, work, rng, p = build(A, 4, 4, v0=v0)
        assert p == 4
        assert arn.H[2, 1] == 0.0
        assert arnoldi_residual(A, arn, 4) < 1e-13
        assert orthogonality(arn, 5) < 1e-13

    def test_start_vector_validation(self):
        arn = Arnoldi(5, 3)
        with pytest.raises(EigenSolverError):
            set_start_vector(arn, np.ones(4))
        with pytest.raises(EigenSolverError):
            set_start_vector(arn, np.zeros(5))

    def test_capacity_validation(self):
        with pytest.raises(EigenSolverError):
            Arnoldi(5, 5)
        with pytest.raises(EigenSolverError):
            Arnoldi(5, 0)

# -------------------------------------------------------------------

class TestImplicitRestart:

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_restart_keeps_relation(self, seed):
        n, m, k                 = 50, 14, 6
        A                       = create_random_nonsymmetric_matrix(n, seed=seed)
        op, arn, work, rng, _   = build(A, m, m, seed=seed)
        ritz                    = RitzValues(m)
        classify(arn, work, ritz, 0, m)

        knew, prods = implicit_restart(op, arn, work, ritz, k, m, 0, rng=rng)
        assert knew in (k, k + 1)
        assert prods == 1
        assert arnoldi_residual(A, arn, knew) < 1e-10 * np.linalg.norm(A)
        assert orthogonality(arn, knew + 1) < 1e-12

    def test_exact_shifts_filter_unwanted_values(self):
        # after restarting with the unwanted Ritz values of a normal matrix,
        # the wanted ones are reproduced by the compressed factorization
        n       = 30
        rng     = np.random.default_rng(3)
        Q, _    = np.linalg.qr(rng.standard_normal((n, n)))
        lam     = np.concatenate([[10.0, 9.0, 8.0], np.linspace(0.1, 1.0, n - 3)])
        A       = Q @ np.diag(lam) @ Q.T
        m, k    = 12, 3
        op, arn, work, rng, _ = build(A, m, m)
        ritz    = RitzValues(m)
        before  = None
        for _ in range(6):
            extend(op, arn, work, k, m, rng)
            classify(arn, work, ritz, 0, m)
            before  = np.sort(ritz.values[ritz.order[:3]].real)
            k, _    = implicit_restart(op, arn, work, ritz, 3, m, 0, rng=rng)
        np.testing.assert_allclose(before, [8.0, 9.0, 10.0], atol=1e-8)
        vals = np.sort(np.linalg.eigvals(arn.H[:k, :k]).real)
        np.testing.assert_allclose(vals[-3:], [8.0, 9.0, 10.0], atol=1e-6)

# -------------------------------------------------------------------

class TestLocking:

    def test_detect_convergence(self):
        H           = np.triu(np.ones((7, 6)), -1)
        H[3, 2]     = 1e-20
        assert detect_convergence(H, 0, 6, 1e-10) == 3
        assert H[3, 2] == 0.0
        H[5, 4]     = 1e-18
        assert detect_convergence(H, 3, 6, 1e-10) == 5
        assert detect_convergence(H, 5, 6, 1e-10) == 5

    def test_no_negligible_entry(self):
        H = np.triu(np.ones((5, 4)), -1)
        assert detect_convergence(H, 0, 4, 1e-10) == 0
        np.testing.assert_array_equal(H, np.triu(np.ones((5, 4)), -1))

    def test_locked_columns_are_never_touched(self):
        # start vector inside an invariant subspace of dimension 3
        n           = 20
        rng         = np.random.default_rng(5)
        B           = rng.standard_normal((3, 3))
        C           = rng.standard_normal((n - 3, n - 3))
        A           = sla.block_diag(B, C)
        v0          = np.zeros(n)
        v0[:3]      = rng.standard_normal(3)
        m           = 10
        op, arn, work, rng, _ = build(A, m, m, v0=v0)
        assert arn.H[3, 2] == 0.0

        active      = detect_convergence(arn.H, 0, m, EPS)
        assert active == 3
        assert lock_block(arn, work, 0, active - 1, m, EPS)
        R           = arn.H[:3, :3]
        assert np.all(np.tril(R, -2) == 0.0)
        np.testing.assert_allclose(np.sort_complex(np.linalg.eigvals(R)),
                                   np.sort_complex(np.linalg.eigvals(B)), atol=1e-10)
        assert arnoldi_residual(A, arn, m) < 1e-10 * np.linalg.norm(A)

        V_locked    = arn.V[:, :3].copy()
        H_locked    = arn.H[:3, :3].copy()
        ritz        = RitzValues(m)
        k           = m
        for _ in range(3):
            extend(op, arn, work, k, m, rng)
            classify(arn, work, ritz, active, m)
            k, _    = implicit_restart(op, arn, work, ritz, 6, m, active, rng=rng)
            np.testing.assert_array_equal(arn.V[:, :3], V_locked)
            np.testing.assert_array_equal(arn.H[:3, :3], H_locked)
        assert arnoldi_residual(A, arn, k) < 1e-10 * np.linalg.norm(A)

    def test_lock_single_column_is_noop(self):
        A                       = create_random_nonsymmetric_matrix(10)
        op, arn, work, rng, _   = build(A, 5, 5)
        H0, V0                  = arn.H.copy(), arn.V.copy()
        assert lock_block(arn, work, 2, 2, 5, EPS)
        np.testing.assert_array_equal(arn.H, H0)
        np.testing.assert_array_equal(arn.V, V0)

# -------------------------------------------------------------------
#! EOF
# -------------------------------------------------------------------
