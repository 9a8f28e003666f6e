# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
orthoeig
========

Incremental orthogonalization and deflating truncated eigensolvers.

Public API
~~~~~~~~~~
- Orthogonalizers
    - `Orthogonalizer`, `MGS`, `CGS`
- Online QR
    - `qr`, `mgs`, `cgs`, `Strategy`
- Krylov subspaces
    - `Arnoldi`, `arnoldi_mgs`
- Eigenproblems
    - `lobpcg`, `Order`, `EigResult`, `EigStatus`
    - `TruncatedEig`, `TruncatedEigIterator`

Everything else lives in sub-modules and is **not** considered part of the
stable interface.

Example
-------
>>> import numpy as np, orthoeig as oe
>>> A = np.random.randn(5, 3)
>>> Q, R = oe.mgs(A.T, dim=5)
>>> np.allclose(Q @ R, A)
True
"""

from importlib.metadata import version as _pkg_version

from .arnoldi import Arnoldi, arnoldi_mgs
from .lobpcg import EigResult, EigStatus, Order, lobpcg
from .orthogonalizer import CGS, MGS, Orthogonalizer

# ---------------------------------------------------------------------
# Re-export the high-level functions users are expected to call.
# Each of these names is implemented in one of the internal sub-modules.
# ---------------------------------------------------------------------
from .qr import Strategy, cgs, mgs, qr
from .truncated import ACCEPT_RESIDUAL, TruncatedEig, TruncatedEigIterator
from .utils import DEFAULT_RTOL

__all__ = [
    "Orthogonalizer",
    "MGS",
    "CGS",
    "qr",
    "mgs",
    "cgs",
    "Strategy",
    "Arnoldi",
    "arnoldi_mgs",
    "lobpcg",
    "Order",
    "EigResult",
    "EigStatus",
    "TruncatedEig",
    "TruncatedEigIterator",
    "ACCEPT_RESIDUAL",
    "DEFAULT_RTOL",
]

# ---------------------------------------------------------------------
# Version string (helps “pip show orthoeig”, Sphinx, etc.)
# ---------------------------------------------------------------------
try:  # installed via pip / build backend
    __version__ = _pkg_version(__name__)
except Exception:  # running from a checkout
    __version__ = "0.0.0.dev0"

# ---------------------------------------------------------------------
# Optional: lightweight default logging config so users see warnings
# only if they deliberately enable them.
# ---------------------------------------------------------------------
import logging as _logging

_logging.getLogger(__name__).addHandler(_logging.NullHandler())
