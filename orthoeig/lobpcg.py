# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Block eigen-step for Hermitian operators.

`lobpcg` converges a block of extremal eigenpairs, optionally restricted to
the orthogonal complement of a constraint subspace, and reports the outcome
as an `EigResult` instead of raising on non-convergence.
"""

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

import numpy as np
import scipy.linalg
from scipy.sparse.linalg import LinearOperator, aslinearoperator
from scipy.sparse.linalg import lobpcg as _scipy_lobpcg

logger = logging.getLogger(__name__)

OperatorLike = Union[np.ndarray, LinearOperator, Callable[[np.ndarray], np.ndarray]]

# scipy refuses to iterate when fewer than this many free dimensions per
# block column remain; such problems are solved densely instead
DENSE_RATIO: int = 5


class Order(Enum):
    """Which end of the spectrum to converge to."""

    LARGEST = "largest"
    SMALLEST = "smallest"


class EigStatus(Enum):
    OK = "ok"
    ERR = "err"
    NO_RESULT = "no_result"


@dataclass(frozen=True)
class EigResult:
    """
    Outcome of one block eigen-step.

    `values`, `vectors` (as columns) and `residual_norms` are co-indexed.
    ERR results still carry the best eigenpairs found; NO_RESULT carries
    none.
    """

    status: EigStatus
    values: Optional[np.ndarray] = None
    vectors: Optional[np.ndarray] = None
    residual_norms: Optional[np.ndarray] = None
    cause: Optional[str] = None

    @classmethod
    def ok(cls, values, vectors, residual_norms) -> "EigResult":
        return cls(EigStatus.OK, values, vectors, residual_norms)

    @classmethod
    def err(cls, values, vectors, residual_norms, cause: str) -> "EigResult":
        return cls(EigStatus.ERR, values, vectors, residual_norms, cause)

    @classmethod
    def no_result(cls, cause: str) -> "EigResult":
        return cls(EigStatus.NO_RESULT, cause=cause)

    @property
    def is_ok(self) -> bool:
        return self.status is EigStatus.OK

    @property
    def has_result(self) -> bool:
        return self.status is not EigStatus.NO_RESULT


def _as_operator(a: OperatorLike, n: int, dtype) -> LinearOperator:
    if isinstance(a, LinearOperator) or not callable(a):
        op = aslinearoperator(a)
        if op.shape != (n, n):
            raise ValueError(f"Operator of shape {op.shape} does not match n={n}")
        return op
    return LinearOperator((n, n), matvec=a, matmat=a, dtype=dtype)


def _dense_step(op, k, constraints, largest, dtype):
    """Exact eigenpairs of `op` restricted to the complement of `constraints`."""
    n = op.shape[0]
    if constraints is None:
        P = np.eye(n, dtype=dtype)
    else:
        P = scipy.linalg.null_space(constraints.conj().T)
    m = P.shape[1]
    if m < k:
        return None
    T = P.conj().T @ op.matmat(P)
    T = (T + T.conj().T) / 2
    subset = [m - k, m - 1] if largest else [0, k - 1]
    values, V = scipy.linalg.eigh(T, subset_by_index=subset)
    return values, P @ V


def lobpcg(
    operator: OperatorLike,
    x: np.ndarray,
    preconditioner: Optional[OperatorLike] = None,
    constraints: Optional[np.ndarray] = None,
    tol: float = 1e-5,
    maxiter: Optional[int] = None,
    order: Order = Order.LARGEST,
) -> EigResult:
    """
    Converge a block of extremal eigenpairs of a Hermitian operator.

    Parameters
    ----------
    operator : (n, n) ndarray, LinearOperator or callable
        Hermitian operator; a callable is applied to (n, k) blocks.
    x : (n, k) ndarray
        Initial guess, one column per wanted eigenpair.
    preconditioner : ndarray, LinearOperator, callable or None
        Approximate inverse of the operator.
    constraints : (n, p) ndarray or None
        Columns spanning a subspace the eigenvectors must be orthogonal to.
    tol : float
        Residual norm below which an eigenpair counts as converged.
    maxiter : int or None
        Iteration cap passed to the solver.
    order : Order
        Largest or smallest eigenvalues.

    Returns
    -------
    EigResult
        Eigenvalues sorted from the requested end of the spectrum.
    """
    order = Order(order)
    largest = order is Order.LARGEST

    x = np.asarray(x)
    if x.ndim == 1:
        x = x[:, None]
    n, k = x.shape
    if not np.issubdtype(x.dtype, np.inexact):
        x = x.astype(float)
    if k == 0:
        return EigResult.no_result("empty initial block")

    if constraints is not None:
        constraints = np.asarray(constraints)
        if constraints.ndim != 2 or constraints.shape[0] != n:
            raise ValueError(
                f"constraints must have {n} rows, got shape {constraints.shape}"
            )
        if constraints.shape[1] == 0:
            constraints = None
    n_constraints = 0 if constraints is None else constraints.shape[1]
    if n - n_constraints < k:
        return EigResult.no_result(
            f"{n_constraints} constraints leave fewer than {k} free dimensions"
        )

    op = _as_operator(operator, n, x.dtype)
    M = None
    if preconditioner is not None:
        M = _as_operator(preconditioner, n, x.dtype)

    try:
        if n - n_constraints < DENSE_RATIO * k:
            logger.debug("lobpcg: n=%d, k=%d, solving densely", n, k)
            dense = _dense_step(op, k, constraints, largest, x.dtype)
            if dense is None:
                return EigResult.no_result("constraints span the whole space")
            values, vectors = dense
        else:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                values, vectors = _scipy_lobpcg(
                    op,
                    x,
                    M=M,
                    Y=constraints,
                    tol=tol,
                    maxiter=maxiter,
                    largest=largest,
                )
            for w in caught:
                logger.debug("lobpcg: %s", w.message)
    except (np.linalg.LinAlgError, ValueError) as exc:
        # ValueError: scipy found infs or NaNs in the projected problem
        logger.debug("lobpcg failed: %s", exc)
        return EigResult.no_result(str(exc))

    idx = np.argsort(values)
    if largest:
        idx = idx[::-1]
    values = np.asarray(values)[idx]
    vectors = np.asarray(vectors)[:, idx]

    residual = op.matmat(vectors) - vectors * values
    norms = np.linalg.norm(residual, axis=0)
    logger.debug("lobpcg: values=%s residual norms=%s", values, norms)

    if np.all(norms <= tol):
        return EigResult.ok(values, vectors, norms)
    return EigResult.err(
        values,
        vectors,
        norms,
        f"residual norm {norms.max():.3e} above tolerance {tol:.3e}",
    )
