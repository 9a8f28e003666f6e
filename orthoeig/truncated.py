# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Truncated eigenvalue decomposition by deflation.

`TruncatedEig` extracts one batch of extremal eigenpairs; iterating over it
yields successive batches, each constrained to be orthogonal to every
eigenvector found before.

Example
-------
>>> import numpy as np
>>> from orthoeig import TruncatedEig, Order
>>> A = np.diag([10.0, 5.0, 2.0, 1.0, 0.5, 0.1])
>>> teig = TruncatedEig(A, Order.LARGEST, precision=1e-8, maxiter=100, rng=0)
>>> values, vectors = teig.take(3)
>>> np.round(values, 6)
array([10.,  5.,  2.])
"""

import copy
import logging
from typing import Iterator, Optional, Tuple

import numpy as np

from .lobpcg import EigResult, Order, lobpcg
from .utils import RngLike, as_rng, random_block, real_dtype

logger = logging.getLogger(__name__)

DEFAULT_PRECISION: float = 1e-5

# Looser than the solver precision: a batch whose residual exceeds this is
# treated as unconverged and ends the deflation sequence.
# TODO: scale with `precision` instead of a fixed bound.
ACCEPT_RESIDUAL: float = 0.1


class TruncatedEig:
    """
    Batch extraction of extremal eigenpairs of a Hermitian matrix.

    Parameters
    ----------
    problem : (n, n) ndarray
        Hermitian matrix.
    order : Order
        Largest or smallest eigenvalues first.
    precision : float
        Residual tolerance handed to the block solver.
    maxiter : int or None
        Iteration cap of the block solver, ``2 * n`` by default.
    constraints : (n, p) ndarray or None
        Subspace the eigenvectors must be orthogonal to.
    rng : int, numpy.random.Generator or None
        Source of the random initial blocks.
    """

    def __init__(
        self,
        problem: np.ndarray,
        order: Order = Order.LARGEST,
        precision: float = DEFAULT_PRECISION,
        maxiter: Optional[int] = None,
        constraints: Optional[np.ndarray] = None,
        rng: RngLike = None,
    ):
        problem = np.asarray(problem)
        if problem.ndim != 2 or problem.shape[0] != problem.shape[1]:
            raise ValueError("TruncatedEig requires a square matrix.")
        if not np.issubdtype(problem.dtype, np.inexact):
            problem = problem.astype(float)
        self.problem = problem
        self.order = Order(order)
        self.precision = precision
        self.maxiter = 2 * problem.shape[0] if maxiter is None else maxiter
        self.constraints = None
        if constraints is not None:
            self.with_constraints(constraints)
        self.rng = as_rng(rng)

    @property
    def n(self) -> int:
        return self.problem.shape[0]

    def with_precision(self, precision: float) -> "TruncatedEig":
        self.precision = precision
        return self

    def with_maxiter(self, maxiter: int) -> "TruncatedEig":
        self.maxiter = maxiter
        return self

    def with_constraints(self, constraints: np.ndarray) -> "TruncatedEig":
        constraints = np.asarray(constraints)
        if constraints.ndim == 1:
            constraints = constraints[:, None]
        if constraints.ndim != 2 or constraints.shape[0] != self.n:
            raise ValueError(
                f"constraints must have {self.n} rows, got shape {constraints.shape}"
            )
        self.constraints = constraints
        return self

    def once(self, num: int) -> EigResult:
        """Run the block solver once for `num` eigenpairs from a random start."""
        x = random_block(self.n, num, dtype=self.problem.dtype, rng=self.rng)
        return lobpcg(
            lambda y: self.problem @ y,
            x,
            None,
            self.constraints,
            self.precision,
            self.maxiter,
            self.order,
        )

    def batches(self, step_size: int = 1, **kwargs) -> "TruncatedEigIterator":
        return TruncatedEigIterator(self, step_size, **kwargs)

    def __iter__(self) -> "TruncatedEigIterator":
        return self.batches(1)

    def take(self, num: int, step_size: int = 1) -> Tuple[np.ndarray, np.ndarray]:
        """
        Pull up to `num` batches and concatenate them.

        Fewer than `num * step_size` eigenpairs come back when the sequence
        stops early on an unconverged batch.
        """
        values, vectors = [], []
        for _, (vals, vecs) in zip(range(num), self.batches(step_size)):
            values.append(vals)
            vectors.append(vecs)
        if not values:
            return (
                np.zeros(0, dtype=real_dtype(self.problem.dtype)),
                np.zeros((self.n, 0), dtype=self.problem.dtype),
            )
        return np.concatenate(values), np.hstack(vectors)


class TruncatedEigIterator:
    """
    Deflating sequence of eigenpair batches.

    The iterator owns a private copy of the `TruncatedEig` it was built
    from, random generator included; every accepted batch is appended to that copy's constraints, so
    later batches are orthogonal to all earlier ones. The sequence ends at
    the first batch with a residual above `accept_tol` and never resumes.
    """

    def __init__(
        self,
        eig: TruncatedEig,
        step_size: int = 1,
        accept_tol: float = ACCEPT_RESIDUAL,
    ):
        if step_size < 1:
            raise ValueError("step_size must be positive")
        self.eig = copy.copy(eig)
        self.eig.rng = copy.deepcopy(eig.rng)
        self.step_size = step_size
        self.accept_tol = accept_tol
        self._stopped = False

    @property
    def constraints(self) -> Optional[np.ndarray]:
        """Deflation basis accumulated so far."""
        return self.eig.constraints

    @property
    def stopped(self) -> bool:
        return self._stopped

    def __iter__(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        return self

    def __next__(self) -> Tuple[np.ndarray, np.ndarray]:
        if self._stopped:
            raise StopIteration

        res = self.eig.once(self.step_size)
        accepted = res.has_result and np.all(res.residual_norms <= self.accept_tol)
        if not accepted:
            logger.debug(
                "TruncatedEig stopped: %s (residual norms %s, gate %.3g)",
                res.status.name,
                res.residual_norms,
                self.accept_tol,
            )
            self._stopped = True
            raise StopIteration

        if self.eig.constraints is None:
            constraints = res.vectors.copy()
        else:
            constraints = np.hstack([self.eig.constraints, res.vectors])
        self.eig.constraints = constraints
        logger.debug("TruncatedEig: %d constraint vectors", constraints.shape[1])

        return res.values, res.vectors
