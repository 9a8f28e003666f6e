# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

from typing import Optional, Union

import numpy as np

DEFAULT_RTOL: float = 1e-10

RngLike = Optional[Union[int, np.random.Generator]]


def scale_tol(a: np.ndarray, rtol: float) -> float:
    """Return an absolute tolerance scaled to the vector magnitude."""
    return rtol * float(np.linalg.norm(a))


def real_dtype(dtype) -> np.dtype:
    """Real counterpart of a (possibly complex) dtype, e.g. complex64 -> float32."""
    return np.empty(0, dtype=dtype).real.dtype


def as_rng(rng: RngLike = None) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def random_block(n: int, k: int, dtype=float, rng: RngLike = None) -> np.ndarray:
    """
    Uniform(0, 1) block of shape (n, k) cast to `dtype`.

    Complex dtypes get a zero imaginary part, only the cast changes.
    """
    rng = as_rng(rng)
    return rng.uniform(0.0, 1.0, size=(n, k)).astype(dtype)
