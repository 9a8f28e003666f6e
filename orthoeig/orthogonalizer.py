# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Orthogonalizers: build an orthonormal basis one vector at a time.

An orthogonalizer owns a (dim, len) basis Q with orthonormal columns.
`append` projects a candidate onto the complement of Q and keeps the
normalised residual when it is large enough; `orthogonalize` only projects.
"""

import logging
from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np

from .utils import DEFAULT_RTOL, scale_tol

logger = logging.getLogger(__name__)


class Orthogonalizer(ABC):
    """Accumulator of an orthonormal basis."""

    @property
    @abstractmethod
    def dim(self) -> int:
        """Dimension of the input vectors."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of basis vectors stored so far."""

    def is_full(self) -> bool:
        """True once the basis spans the whole space."""
        return len(self) == self.dim

    def is_empty(self) -> bool:
        return len(self) == 0

    @abstractmethod
    def orthogonalize(self, a: np.ndarray) -> np.ndarray:
        """
        Remove the components of `a` along the current basis, in place.

        Parameters
        ----------
        a : (dim,) ndarray
            Vector to project; overwritten with its residual.

        Returns
        -------
        coef : (len,) ndarray
            Coefficients of `a` against each basis vector.
        """

    @abstractmethod
    def append(
        self, a: np.ndarray, rtol: float = DEFAULT_RTOL
    ) -> Tuple[np.ndarray, bool]:
        """
        Try to extend the basis with `a`.

        Returns
        -------
        coef : (len + 1,) ndarray
            Coefficients against the old basis; the last entry is the
            residual norm of `a`.
        accepted : bool
            False when the residual is below `rtol * ||a||`, in which case
            the basis is left unchanged.
        """

    @abstractmethod
    def get_q(self) -> np.ndarray:
        """Snapshot of the basis as a (dim, len) array."""


class _GramSchmidt(Orthogonalizer):
    """Shared storage and acceptance logic of the Gram-Schmidt kernels."""

    def __init__(self, dim: int, dtype=float):
        if dim < 0:
            raise ValueError("dim must be non-negative")
        self._dim = int(dim)
        self.dtype = np.dtype(dtype)
        # column buffer, only the first `_len` columns are meaningful
        self._q = np.zeros((self._dim, self._dim), dtype=self.dtype)
        self._len = 0

    @property
    def dim(self) -> int:
        return self._dim

    def __len__(self) -> int:
        return self._len

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dim={self._dim}, len={self._len})"

    @property
    def _basis(self) -> np.ndarray:
        return self._q[:, : self._len]

    def _check_input(self, a) -> np.ndarray:
        a = np.asarray(a)
        if a.shape != (self._dim,):
            raise ValueError(
                f"Expected a vector of shape ({self._dim},), got {a.shape}"
            )
        if np.iscomplexobj(a) and not np.issubdtype(self.dtype, np.complexfloating):
            raise TypeError("Complex vector passed to a real orthogonalizer")
        return a

    def orthogonalize(self, a: np.ndarray) -> np.ndarray:
        a = self._check_input(a)
        if not np.can_cast(self.dtype, a.dtype, "same_kind"):
            raise TypeError(
                f"Cannot orthogonalize a {a.dtype} array in place "
                f"against a {self.dtype} basis"
            )
        return self._project(a)

    @abstractmethod
    def _project(self, a: np.ndarray) -> np.ndarray:
        """Subtract the basis components from `a` in place, return them."""

    def append(
        self, a: np.ndarray, rtol: float = DEFAULT_RTOL
    ) -> Tuple[np.ndarray, bool]:
        if rtol < 0:
            raise ValueError("rtol must be non-negative")
        a = self._check_input(a).astype(self.dtype, copy=True)
        threshold = scale_tol(a, rtol)

        n = self._len
        coef = np.zeros(n + 1, dtype=self.dtype)
        coef[:n] = self._project(a)
        nrm = np.linalg.norm(a)
        coef[n] = nrm

        if self.is_full() or nrm == 0.0 or nrm < threshold:
            logger.debug(
                "%r rejected vector: residual %.3e < %.3e", self, nrm, threshold
            )
            return coef, False

        self._q[:, n] = a / nrm
        self._len += 1
        return coef, True

    def get_q(self) -> np.ndarray:
        return self._basis.copy()


class MGS(_GramSchmidt):
    """
    Modified Gram-Schmidt.

    Each basis vector is removed from the running residual in turn, so
    rounding errors of earlier projections are seen by later ones.
    """

    def _project(self, a: np.ndarray) -> np.ndarray:
        coef = np.zeros(self._len, dtype=np.result_type(self.dtype, a.dtype))
        for i in range(self._len):
            q = self._q[:, i]
            c = np.vdot(q, a)
            a -= c * q
            coef[i] = c
        return coef


class CGS(_GramSchmidt):
    """
    Classical Gram-Schmidt with optional re-orthogonalization.

    All coefficients come from one block product ``Q^H a``. With `reorth`
    the projection is repeated once on the residual and the two sets of
    coefficients are summed, which restores orthogonality to working
    precision.
    """

    def __init__(self, dim: int, dtype=float, reorth: bool = True):
        super().__init__(dim, dtype)
        self.reorth = reorth

    def _project(self, a: np.ndarray) -> np.ndarray:
        Q = self._basis
        coef = Q.conj().T @ a
        a -= Q @ coef
        if self.reorth:
            extra = Q.conj().T @ a
            a -= Q @ extra
            coef = coef + extra
        return coef
