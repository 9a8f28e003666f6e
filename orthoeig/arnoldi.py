# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Arnoldi iteration on top of an orthogonalizer.

Builds the Krylov basis span{v, A v, A^2 v, ...} and the upper Hessenberg
matrix H with A Q[:, :k] = Q H.
"""

import logging
from itertools import islice
from typing import Callable, List, Optional, Tuple, Union

import numpy as np

from .orthogonalizer import MGS, Orthogonalizer
from .utils import DEFAULT_RTOL

logger = logging.getLogger(__name__)

Operator = Union[np.ndarray, Callable[[np.ndarray], np.ndarray]]


def _as_matvec(a: Operator) -> Callable[[np.ndarray], np.ndarray]:
    if callable(a):
        return a
    a = np.asarray(a)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError("Arnoldi iteration requires a square matrix.")
    return lambda x: a @ x


class Arnoldi:
    """
    Iterator over the columns of the Hessenberg matrix.

    Each step applies the operator to the newest basis vector and appends
    the result to `ortho`. Iteration ends after the first dependent vector
    (an invariant subspace was found) or once the basis is full.
    """

    def __init__(
        self,
        a: Operator,
        v: np.ndarray,
        ortho: Orthogonalizer,
        rtol: float = DEFAULT_RTOL,
    ):
        if not ortho.is_empty():
            raise ValueError("Arnoldi requires an empty orthogonalizer")
        self._apply = _as_matvec(a)
        self.ortho = ortho
        self.rtol = rtol
        self.h: List[np.ndarray] = []

        _, accepted = ortho.append(v, rtol)
        if not accepted:
            raise ValueError("Starting vector must be non-zero")
        self._v = ortho.get_q()[:, -1]
        self._done = False

    def __iter__(self):
        return self

    def __next__(self) -> np.ndarray:
        if self._done:
            raise StopIteration
        w = np.asarray(self._apply(self._v))
        coef, accepted = self.ortho.append(w, self.rtol)
        self.h.append(coef)
        if not accepted:
            logger.debug("Arnoldi: Krylov space exhausted at %d", len(self.ortho))
            self._done = True
            raise StopIteration
        self._v = self.ortho.get_q()[:, -1]
        return coef

    def decomposition(self) -> Tuple[np.ndarray, np.ndarray]:
        """Current basis Q and Hessenberg matrix H of shape (len(Q), steps)."""
        Q = self.ortho.get_q()
        n = Q.shape[1]
        H = np.zeros((n, len(self.h)), dtype=Q.dtype)
        for j, coef in enumerate(self.h):
            k = min(n, len(coef))
            H[:k, j] = coef[:k]
        return Q, H

    def complete(self) -> Tuple[np.ndarray, np.ndarray]:
        """Run to exhaustion and return (Q, H)."""
        for _ in self:
            pass
        return self.decomposition()


def arnoldi_mgs(
    a: Operator,
    v: np.ndarray,
    krylov_size: Optional[int] = None,
    rtol: float = DEFAULT_RTOL,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Arnoldi decomposition with modified Gram-Schmidt.

    Parameters
    ----------
    a : (n, n) ndarray or callable
        Operator, applied as ``a @ x`` or ``a(x)``.
    v : (n,) ndarray
        Starting vector.
    krylov_size : int or None
        Maximum number of Arnoldi steps; None runs until the Krylov space
        is exhausted.

    Returns
    -------
    Q : (n, k) ndarray
    H : (k, steps) ndarray
    """
    v = np.asarray(v)
    dtype = np.result_type(v.dtype, getattr(a, "dtype", float), float)
    arnoldi = Arnoldi(a, v, MGS(v.shape[0], dtype=dtype), rtol)
    if krylov_size is None:
        return arnoldi.complete()
    for _ in islice(arnoldi, krylov_size):
        pass
    return arnoldi.decomposition()
