"""
Module 1: Gradient Estimation
Input: Image (rows × cols × channels)
Output: Per-channel horizontal and vertical derivatives (dx, dy)
Implementation: From Scratch

Method:
1. Promote the image to a precision type that cannot overflow
2. Differentiate each axis with the interior stencil
3. Replace the first and last sample of each axis with one-sided stencils
4. Narrow the result back to the working scalar type
"""

import logging
from typing import Tuple

import numpy as np
from numpy.typing import DTypeLike, NDArray

from .config import (DEFAULT_INTERIOR_STENCIL, DEFAULT_LOWER_STENCIL,
                     DEFAULT_UPPER_STENCIL)

logger = logging.getLogger(__name__)


def working_dtype(dtype: DTypeLike) -> np.dtype:
    """
    Scalar type of gradients, histograms and features for an image dtype.

    Floating point images keep their precision; everything else (bool,
    integers) decays to float64.
    """
    dtype = np.dtype(dtype)
    if np.issubdtype(dtype, np.floating):
        return dtype
    return np.dtype(np.float64)


def precision_dtype(dtype: DTypeLike) -> np.dtype:
    """Intermediate type the stencils are evaluated in."""
    return np.promote_types(working_dtype(dtype), np.float64)


def _window(f: NDArray, axis: int, start: int, stop: int) -> NDArray:
    index = [slice(None)] * f.ndim
    index[axis] = slice(start, stop)
    return f[tuple(index)]


class Stencil:
    """
    Finite difference evaluated for the samples [start, stop) of one axis.

    ``reach`` is the number of neighbors read (before, after) the sample,
    which decides whether the stencil can be used at an image border.
    """

    name = None
    reach = (0, 0)

    def __call__(self, f, axis, start, stop):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class ForwardDifferences(Stencil):
    name = 'forward'
    reach = (0, 1)

    def __call__(self, f, axis, start, stop):
        return _window(f, axis, start + 1, stop + 1) - _window(f, axis, start, stop)


class BackwardDifferences(Stencil):
    name = 'backward'
    reach = (1, 0)

    def __call__(self, f, axis, start, stop):
        return _window(f, axis, start, stop) - _window(f, axis, start - 1, stop - 1)


class CentralDifferences(Stencil):
    name = 'central'
    reach = (1, 1)

    def __call__(self, f, axis, start, stop):
        # midpoint(-f(x-1), f(x+1))
        return (_window(f, axis, start + 1, stop + 1) - _window(f, axis, start - 1, stop - 1)) / 2


class TwoPointDifferences(Stencil):
    name = 'two-point'
    reach = (1, 1)

    def __call__(self, f, axis, start, stop):
        return _window(f, axis, start + 1, stop + 1) - _window(f, axis, start - 1, stop - 1)


STENCILS = {
    stencil.name: stencil
    for stencil in (ForwardDifferences(), BackwardDifferences(),
                    CentralDifferences(), TwoPointDifferences())
}


def make_stencil(name: str) -> Stencil:
    """Look up a stencil by name."""
    try:
        return STENCILS[name]
    except (KeyError, TypeError):
        raise ValueError(
            f"Unknown stencil {name!r}; expected one of {sorted(STENCILS)}"
        ) from None


class Gradient:
    """
    Image gradient with explicit border handling.

    Samples at index 0 of an axis use the lower-border stencil, samples at
    index dim-1 the upper-border stencil and all others the interior stencil.
    """

    def __init__(
        self,
        interior: str = DEFAULT_INTERIOR_STENCIL,
        lower: str = DEFAULT_LOWER_STENCIL,
        upper: str = DEFAULT_UPPER_STENCIL,
    ) -> None:
        """
        Args:
            interior (str): Stencil for samples away from the border
            lower (str): Stencil for the first sample of an axis (must not look back)
            upper (str): Stencil for the last sample of an axis (must not look ahead)
        """
        self.interior = make_stencil(interior)
        self.lower = make_stencil(lower)
        self.upper = make_stencil(upper)

        if self.lower.reach[0] != 0:
            raise ValueError(f"Stencil {lower!r} reads before the first sample")
        if self.upper.reach[1] != 0:
            raise ValueError(f"Stencil {upper!r} reads past the last sample")

    def differentiate(self, f: NDArray, axis: int, dtype: DTypeLike) -> NDArray:
        """
        Derivative of ``f`` along ``axis``, stored as ``dtype``.

        An axis with a single sample has no neighbors and a zero derivative.
        """
        n = f.shape[axis]
        out = np.zeros(f.shape, dtype=dtype)

        if n < 2:
            return out

        _window(out, axis, 0, 1)[...] = self.lower(f, axis, 0, 1)
        _window(out, axis, n - 1, n)[...] = self.upper(f, axis, n - 1, n)

        if n > 2:
            _window(out, axis, 1, n - 1)[...] = self.interior(f, axis, 1, n - 1)

        return out

    def __call__(self, image: NDArray) -> Tuple[NDArray, NDArray]:
        """
        Compute (dx, dy) of a rank-2 or rank-3 image.

        Args:
            image (np.ndarray): Image of shape (rows, cols) or (rows, cols, channels)

        Returns:
            tuple: (dx, dy) with the image's shape in the working scalar type;
                dx differentiates along columns, dy along rows
        """
        image = np.asarray(image)
        dtype = working_dtype(image.dtype)

        logger.debug(
            f"Differentiating {image.shape} {image.dtype} image "
            f"(interior={self.interior.name}, lower={self.lower.name}, upper={self.upper.name})"
        )

        # Integer subtraction wraps and float32 loses digits; do the
        # arithmetic in a wider type.
        f = image.astype(precision_dtype(image.dtype), copy=False)

        dx = self.differentiate(f, 1, dtype)
        dy = self.differentiate(f, 0, dtype)

        return dx, dy

    def __repr__(self):
        return (f"Gradient(interior={self.interior.name!r}, "
                f"lower={self.lower.name!r}, upper={self.upper.name!r})")


def gradient(
    image: NDArray,
    interior: str = DEFAULT_INTERIOR_STENCIL,
    lower: str = DEFAULT_LOWER_STENCIL,
    upper: str = DEFAULT_UPPER_STENCIL,
) -> Tuple[NDArray, NDArray]:
    """Convenience wrapper around :class:`Gradient`."""
    return Gradient(interior, lower, upper)(image)
