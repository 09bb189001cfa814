'''
Tests of the Ritz value bookkeeping: eigenvalue extraction, residual
estimates, convergence predicate, partitioning and target ordering.

File        : partial_schur/algebra/eigen/tests/test_ritz.py
Author      : Maksymilian Kliczkowski
'''

import pytest
import numpy as np
import scipy.linalg as sla

from partial_schur.algebra.eigen.ritz import (RitzValues, IsConverged, copy_eigenvalues, copy_residuals,
                                              eigvalues, partition, sort_by_target)
from partial_schur.algebra.eigen.schur import local_schurfact
from partial_schur.algebra.eigen.targets import Target

EPS = np.finfo(np.float64).eps

# -------------------------------------------------------------------

class TestEigenvalueExtraction:

    def test_conjugate_pair_is_exact(self):
        T       = np.array([[1.5, -2.0], [2.0, 1.5]])
        vals    = eigvalues(T)
        assert set(vals.tolist()) == {1.5 + 2.0j, 1.5 - 2.0j}

    def test_rotation_block(self):
        vals = eigvalues(np.array([[0.0, -1.0], [1.0, 0.0]]))
        assert set(vals.tolist()) == {1j, -1j}

    def test_real_roots_from_unreduced_block(self):
        vals = eigvalues(np.array([[2.0, 1.0], [1.0, 2.0]]))
        assert sorted(vals.real.tolist()) == [1.0, 3.0]
        assert np.all(vals.imag == 0.0)

    def test_mixed_blocks(self):
        T       = np.array([[4.0, 1.0, 2.0, 0.3],
                            [0.0, 1.0, -3.0, 0.1],
                            [0.0, 3.0, 1.0, 0.2],
                            [0.0, 0.0, 0.0, -2.0]])
        dst     = np.zeros(4, dtype=complex)
        copy_eigenvalues(dst, T, EPS)
        np.testing.assert_array_equal(dst, [4.0, 1 + 3j, 1 - 3j, -2.0])

# -------------------------------------------------------------------

class TestResiduals:

    @pytest.mark.parametrize("m,seed", [(6, 0), (10, 1), (15, 2)])
    def test_matches_explicit_eigenvectors(self, m, seed):
        rng     = np.random.default_rng(seed)
        H0      = sla.hessenberg(rng.standard_normal((m, m)))
        h       = 0.3
        T       = H0.copy()
        Q       = np.eye(m)
        assert local_schurfact(T, Q)

        vals    = eigvalues(T)
        rs      = np.zeros(m)
        copy_residuals(rs, T, Q, h, EPS, np.zeros(m, dtype=complex))

        lam, Z  = np.linalg.eig(H0)
        for i, v in enumerate(vals):
            j       = int(np.argmin(np.abs(lam - v)))
            z       = Z[:, j] / np.linalg.norm(Z[:, j])
            assert rs[i] == pytest.approx(abs(h) * abs(z[-1]), rel=1e-7, abs=1e-14)

    def test_conjugate_partners_share_residual(self):
        rng     = np.random.default_rng(4)
        m       = 8
        T       = sla.hessenberg(rng.standard_normal((m, m)))
        Q       = np.eye(m)
        assert local_schurfact(T, Q)
        vals    = eigvalues(T)
        rs      = np.zeros(m)
        copy_residuals(rs, T, Q, 1.0, EPS, np.zeros(m, dtype=complex))
        for i in range(m - 1):
            if vals[i].imag != 0.0 and vals[i + 1] == np.conj(vals[i]):
                assert rs[i] == rs[i + 1]

    def test_zero_coupling_gives_zero_residuals(self):
        T   = np.triu(np.arange(1.0, 17.0).reshape(4, 4))
        rs  = np.ones(4)
        copy_residuals(rs, T, np.eye(4), 0.0, EPS, np.zeros(4, dtype=complex))
        np.testing.assert_array_equal(rs, 0.0)

# -------------------------------------------------------------------

class TestConvergenceAndPartition:

    def _ritz(self):
        ritz            = RitzValues(6)
        ritz.values[:]  = [3.0, 2.0 + 1.0j, 2.0 - 1.0j, 1.0, 0.5, 0.0]
        ritz.residuals[:] = [1e-12, 1e-3, 1e-3, 1e-14, 1.0, 1e-20]
        return ritz

    def test_is_converged_is_relative(self):
        ritz    = self._ritz()
        conv    = IsConverged(ritz, 1e-10)
        assert [conv(i) for i in range(6)] == [True, False, False, True, False, False]

    def test_is_converged_follows_order(self):
        ritz            = self._ritz()
        ritz.order[:]   = [3, 4, 5, 0, 1, 2]
        conv            = IsConverged(ritz, 1e-10)
        assert conv(0) and not conv(1) and conv(3)

    def test_partition_is_stable(self):
        idx     = np.arange(8)
        split   = partition(lambda i: i % 2 == 0, idx)
        assert split == 4
        np.testing.assert_array_equal(idx, [0, 2, 4, 6, 1, 3, 5, 7])

    def test_partition_with_offset_and_converged_predicate(self):
        ritz    = self._ritz()
        ritz.reset_order(1, 6)
        conv    = IsConverged(ritz, 1e-10)
        split   = partition(conv, ritz.order[1:6], 1)
        assert split == 1
        np.testing.assert_array_equal(ritz.order[1:6], [3, 1, 2, 4, 5])

    def test_partition_all_or_nothing(self):
        idx = np.array([5, 3, 1])
        assert partition(lambda i: True, idx) == 3
        np.testing.assert_array_equal(idx, [5, 3, 1])
        assert partition(lambda i: False, idx) == 0
        np.testing.assert_array_equal(idx, [5, 3, 1])

    def test_partition_through_preallocated_buffer(self):
        ritz            = self._ritz()
        ritz.order[:]   = [5, 4, 3, 2, 1, 0]
        conv            = IsConverged(ritz, 1e-10)
        work            = ritz.index_work
        for _ in range(3):
            ritz.order[:]   = [5, 4, 3, 2, 1, 0]
            split           = partition(conv, ritz.order, 0, work)
            assert split == 2
            np.testing.assert_array_equal(ritz.order, [3, 0, 5, 4, 2, 1])
        assert work is ritz.index_work
        assert work.dtype == ritz.order.dtype

    def test_converged_at_position_ignores_order(self):
        ritz            = self._ritz()
        ritz.order[:]   = [5, 4, 3, 2, 1, 0]
        conv            = IsConverged(ritz, 1e-10)
        assert [conv.at(p) for p in range(6)] == [True, False, False, True, False, False]
        assert conv(2) == conv.at(3)

# -------------------------------------------------------------------

class TestTargets:

    VALUES = np.array([1.0, -1.0, 2.0j, -2.0j, 0.5, -3.0 + 0.1j])

    @pytest.mark.parametrize("which,expected", [
        (Target.LM, [5, 2, 3, 0, 1, 4]),
        (Target.SM, [4, 0, 1, 2, 3, 5]),
        (Target.LR, [0, 4, 2, 3, 1, 5]),
        (Target.SR, [5, 1, 2, 3, 4, 0]),
        (Target.LI, [2, 3, 5, 0, 1, 4]),
        (Target.SI, [0, 1, 4, 5, 2, 3]),
    ])
    def test_stable_argsort(self, which, expected):
        np.testing.assert_array_equal(which.argsort(self.VALUES), expected)

    def test_sort_by_target_only_touches_range(self):
        ritz            = RitzValues(6)
        ritz.values[:]  = self.VALUES
        sort_by_target(ritz, 2, 6, Target.LM)
        np.testing.assert_array_equal(ritz.order, [0, 1, 5, 2, 3, 4])

    @pytest.mark.parametrize("name,target", [("LM", Target.LM), ("sr", Target.SR),
                                             ("largest_imag", Target.LI), (Target.SM, Target.SM)])
    def test_from_value(self, name, target):
        assert Target.from_value(name) is target

    def test_invalid_target(self):
        with pytest.raises(ValueError):
            Target.from_value("XX")

# -------------------------------------------------------------------
#! EOF
# -------------------------------------------------------------------
