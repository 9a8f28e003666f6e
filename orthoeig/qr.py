# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging
from enum import Enum
from typing import Iterable, List, Tuple

import numpy as np

from .orthogonalizer import CGS, MGS, Orthogonalizer
from .utils import DEFAULT_RTOL

logger = logging.getLogger(__name__)


class Strategy(Enum):
    """What `qr` does with a vector that is dependent on the current basis."""

    # stop consuming the input at the first dependent vector
    TERMINATE = "terminate"
    # drop the dependent vector and carry on
    SKIP = "skip"
    # keep its coefficients without growing Q, so R is not square:
    #
    #   x x x x x
    #   0 x x x x
    #   0 0 0 x x
    #   0 0 0 0 x
    FULL = "full"


def qr(
    vectors: Iterable[np.ndarray],
    ortho: Orthogonalizer,
    rtol: float = DEFAULT_RTOL,
    strategy: Strategy = Strategy.TERMINATE,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Online QR decomposition driven by an arbitrary orthogonalizer.

    Vectors are drawn from `vectors` one at a time, so a generator is
    only consumed as far as needed.

    Parameters
    ----------
    vectors : iterable of (dim,) ndarray
        Columns of the matrix to factorise, in order.
    ortho : Orthogonalizer
        Empty orthogonalizer; it is filled with the basis Q.
    rtol : float
        Relative tolerance below which a residual counts as dependent.
    strategy : Strategy
        Handling of dependent vectors.

    Returns
    -------
    Q : (dim, n) ndarray
        Orthonormal columns.
    R : (n, m) ndarray
        Upper triangular (trapezoidal under Strategy.FULL), one column per
        recorded input vector.
    """
    if not ortho.is_empty():
        raise ValueError("qr requires an empty orthogonalizer")
    strategy = Strategy(strategy)

    coefs: List[np.ndarray] = []
    for j, a in enumerate(vectors):
        coef, accepted = ortho.append(a, rtol)
        if accepted:
            coefs.append(coef)
            continue
        logger.debug("qr: vector %d is dependent (%s)", j, strategy.name)
        if strategy is Strategy.TERMINATE:
            break
        if strategy is Strategy.FULL:
            coefs.append(coef)

    Q = ortho.get_q()
    n = Q.shape[1]
    m = len(coefs)
    R = np.zeros((n, m), dtype=Q.dtype)
    for j, coef in enumerate(coefs):
        k = min(n, len(coef))
        R[:k, j] = coef[:k]
    return Q, R


def mgs(
    vectors: Iterable[np.ndarray],
    dim: int,
    rtol: float = DEFAULT_RTOL,
    strategy: Strategy = Strategy.TERMINATE,
    dtype=float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Online QR decomposition using modified Gram-Schmidt."""
    return qr(vectors, MGS(dim, dtype=dtype), rtol, strategy)


def cgs(
    vectors: Iterable[np.ndarray],
    dim: int,
    rtol: float = DEFAULT_RTOL,
    strategy: Strategy = Strategy.TERMINATE,
    dtype=float,
    reorth: bool = True,
) -> Tuple[np.ndarray, np.ndarray]:
    """Online QR decomposition using classical Gram-Schmidt."""
    return qr(vectors, CGS(dim, dtype=dtype, reorth=reorth), rtol, strategy)
