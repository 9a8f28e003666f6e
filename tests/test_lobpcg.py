# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest
from scipy.stats import ortho_group

from orthoeig.lobpcg import EigResult, EigStatus, Order, lobpcg


def _hermitian(eigenvalues, seed):
    """Random rotation of diag(eigenvalues) and its eigenvectors."""
    n = len(eigenvalues)
    V = ortho_group.rvs(n, random_state=seed)
    return V @ np.diag(eigenvalues) @ V.T, V


LARGE_GAP = np.concatenate([[100.0, 80.0], np.linspace(1.0, 10.0, 28)])
SMALL_GAP = np.concatenate([[0.1, 0.5], np.linspace(5.0, 20.0, 28)])


def test_largest_pairs_converge():
    A, _ = _hermitian(LARGE_GAP, seed=0)
    x = np.random.default_rng(0).uniform(size=(30, 2))

    res = lobpcg(A, x, tol=1e-6, maxiter=200, order=Order.LARGEST)
    assert res.status is EigStatus.OK
    assert res.is_ok
    np.testing.assert_allclose(res.values, [100.0, 80.0], atol=1e-6)
    assert res.vectors.shape == (30, 2)
    assert np.all(res.residual_norms <= 1e-6)
    np.testing.assert_allclose(
        A @ res.vectors, res.vectors * res.values, atol=1e-5
    )


def test_smallest_pairs_converge():
    A, _ = _hermitian(SMALL_GAP, seed=1)
    x = np.random.default_rng(1).uniform(size=(30, 2))

    res = lobpcg(lambda y: A @ y, x, tol=1e-6, maxiter=500, order="smallest")
    assert res.has_result
    np.testing.assert_allclose(res.values, [0.1, 0.5], atol=1e-6)


def test_constraints_deflate_top_pair():
    A, V = _hermitian(LARGE_GAP, seed=2)
    x = np.random.default_rng(2).uniform(size=(30, 1))

    res = lobpcg(A, x, constraints=V[:, :1], tol=1e-6, maxiter=200)
    assert res.is_ok
    np.testing.assert_allclose(res.values, [80.0], atol=1e-6)
    assert abs(V[:, 0] @ res.vectors[:, 0]) < 1e-8


def test_small_problem_is_solved_densely():
    A = np.diag([6.0, 5.0, 4.0, 3.0, 2.0, 1.0])
    constraints = np.eye(6)[:, :2]
    x = np.ones((6, 1))

    res = lobpcg(A, x, constraints=constraints, tol=1e-10)
    assert res.is_ok
    np.testing.assert_allclose(res.values, [4.0])
    np.testing.assert_allclose(np.abs(res.vectors[:, 0]), np.eye(6)[2], atol=1e-12)


def test_exhausted_dimension_gives_no_result():
    res = lobpcg(np.eye(4), np.ones((4, 1)), constraints=np.eye(4))
    assert res.status is EigStatus.NO_RESULT
    assert not res.has_result
    assert res.values is None and res.vectors is None
    assert res.residual_norms is None
    assert res.cause


def test_empty_block_gives_no_result():
    res = lobpcg(np.eye(4), np.zeros((4, 0)))
    assert res.status is EigStatus.NO_RESULT


def test_unconverged_step_reports_err():
    A, _ = _hermitian(np.linspace(1.0, 2.0, 50), seed=3)
    x = np.random.default_rng(3).uniform(size=(50, 3))

    res = lobpcg(A, x, tol=1e-14, maxiter=1)
    assert res.status is EigStatus.ERR
    assert res.has_result
    assert res.cause
    assert len(res.values) == res.vectors.shape[1] == len(res.residual_norms) == 3
    assert np.all(np.diff(res.values) <= 0)


def test_constraint_shape_mismatch_raises():
    with pytest.raises(ValueError):
        lobpcg(np.eye(6), np.ones((6, 1)), constraints=np.ones((5, 1)))


def test_result_constructors():
    ok = EigResult.ok(np.ones(1), np.ones((3, 1)), np.zeros(1))
    assert ok.is_ok and ok.cause is None
    err = EigResult.err(np.ones(1), np.ones((3, 1)), np.ones(1), "slow")
    assert err.has_result and not err.is_ok
    none = EigResult.no_result("nothing")
    assert not none.has_result and none.cause == "nothing"


def test_jacobi_preconditioner_smallest_pairs():
    rng = np.random.default_rng(7)
    B = rng.normal(size=(40, 40))
    A = np.diag(np.arange(1.0, 41.0)) + 0.1 * (B + B.T)
    jacobi = np.diag(1.0 / np.diag(A))
    x = rng.uniform(size=(40, 2))

    res = lobpcg(
        A, x, preconditioner=jacobi, tol=1e-6, maxiter=200, order="smallest"
    )
    assert res.has_result
    np.testing.assert_allclose(res.values, np.linalg.eigvalsh(A)[:2], atol=1e-5)


def test_non_finite_operator_gives_no_result():
    A = np.eye(4)
    A[0, 0] = np.nan
    res = lobpcg(A, np.ones((4, 1)))
    assert res.status is EigStatus.NO_RESULT
    assert res.cause
