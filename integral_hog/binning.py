"""
Module 3: Orientation Binning
Input: Gradient components (dx, dy) of the dominant channel
Output: Orientation weight in [0, 1) and soft-binned votes
Implementation: From Scratch

Method:
1. Map the gradient direction to [0, 1) over a half circle (unsigned)
   or a full circle (signed)
2. Spread the weight over bins 0..n-1: center = weight * (n - 1)
3. Split the vote magnitude between floor(center) and the next bin
   proportionally to the distance from each bin (linear interpolation)
"""

from typing import Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray


def _as_float(dx: ArrayLike, dy: ArrayLike) -> Tuple[NDArray, NDArray]:
    dx = np.asarray(dx)
    dy = np.asarray(dy)
    dtype = np.result_type(dx, dy)
    if not np.issubdtype(dtype, np.floating):
        dtype = np.dtype(np.float64)
    return dx.astype(dtype, copy=False), dy.astype(dtype, copy=False)


def _finish(weight: NDArray):
    # An angle that rounds up to a full turn is the same orientation as 0.
    weight = np.where(weight >= 1, 0, weight)
    # Adding +0 turns -0.0 into +0.0.
    weight = weight + weight.dtype.type(0)
    return weight[()] if weight.ndim == 0 else weight


def unsigned_binning(dx: ArrayLike, dy: ArrayLike):
    """
    Orientation over a half circle (0° to 180°) mapped to [0, 1).

    Opposite gradients fall into the same bin, e.g. (+1, 0) and (-1, 0) both
    map to 0 and (0, +1) and (0, -1) both map to 0.5.
    """
    dx, dy = _as_float(dx, dy)
    dtype = dx.dtype
    eps = np.finfo(dtype).eps
    pi = dtype.type(np.pi)

    ax = np.abs(dx)
    ay = np.abs(dy)

    # Lanes with dx ~ 0 are replaced by ±π/2 below.
    with np.errstate(divide='ignore', invalid='ignore'):
        slope = np.arctan(dy / dx)

    angle = np.where(
        (ax < eps) & (ay < eps),
        dtype.type(0),
        np.where(ax > eps, slope, np.copysign(pi / 2, dy)),
    )
    # Map [-π/2, +π/2) to [0, π)
    angle = np.where(angle < 0, angle + pi, angle)

    return _finish(angle / pi)


def signed_binning(dx: ArrayLike, dy: ArrayLike):
    """
    Orientation over a full circle (0° to 360°) mapped to [0, 1).

    (+1, 0) maps to 0 and (-1, 0) to 0.5.
    """
    dx, dy = _as_float(dx, dy)
    dtype = dx.dtype
    two_pi = 2 * dtype.type(np.pi)

    angle = np.arctan2(dy, dx)
    angle = np.where(angle < 0, angle + two_pi, angle)

    return _finish(angle / two_pi)


BINNINGS = {
    'unsigned': unsigned_binning,
    'signed': signed_binning,
}


class Binning:
    """Orientation binning selected by name."""

    def __init__(self, kind: str = 'unsigned') -> None:
        if kind not in BINNINGS:
            raise ValueError(
                f"Unknown binning {kind!r}; expected one of {sorted(BINNINGS)}"
            )
        self.kind = kind
        self._weight = BINNINGS[kind]

    def __call__(self, dx: ArrayLike, dy: ArrayLike):
        return self._weight(dx, dy)

    def __eq__(self, other):
        return isinstance(other, Binning) and other.kind == self.kind

    def __repr__(self):
        return f"Binning({self.kind!r})"


class SoftBinning:
    """
    Linear interpolation of per-pixel votes between two neighboring bins.

    Instances are used as the per-cell callback of
    :meth:`IntegralHistogram.scan` or, through :meth:`votes`, to produce
    the dense vote array in one go.
    """

    def __init__(
        self,
        weights: NDArray,
        magnitudes: NDArray,
        n_bins: int,
        skip: Optional[NDArray] = None,
    ) -> None:
        """
        Args:
            weights (np.ndarray): Orientation weights in [0, 1), one per pixel
            magnitudes (np.ndarray): Vote magnitudes, same shape as weights
            n_bins (int): Number of orientation bins
            skip (np.ndarray): Optional boolean array; True excludes a pixel
        """
        weights = np.asarray(weights)
        magnitudes = np.asarray(magnitudes)

        self.n_bins = n_bins
        # Pixels with a magnitude of exactly zero do not vote
        self.valid = magnitudes != 0

        if skip is not None:
            self.valid &= ~np.asarray(skip, dtype=bool)

        scale = weights.dtype.type(n_bins - 1)

        center = weights * scale
        lower = np.floor(center)
        # Clamp to the last bin; it receives the whole vote when center == n-1
        upper = np.minimum(lower + 1, scale)
        alpha = center - lower

        weighted = alpha * magnitudes

        self.lower = lower.astype(np.intp)
        self.upper = upper.astype(np.intp)
        # (1 - alpha) * mag, expanded
        self.value1 = magnitudes - weighted
        self.value2 = weighted

    def __call__(self, h: NDArray, index: Tuple[int, ...]) -> None:
        """Add the votes of pixel ``index`` to the histogram slice ``h``."""
        if not self.valid[index]:
            return

        h[self.lower[index]] += self.value1[index]
        h[self.upper[index]] += self.value2[index]

    def votes(self, dtype=None) -> NDArray:
        """
        Dense votes of every pixel.

        Returns:
            np.ndarray: Array of shape (*pixels, n_bins)
        """
        if dtype is None:
            dtype = self.value1.dtype

        out = np.zeros((*self.valid.shape, self.n_bins), dtype=dtype)
        idx = np.nonzero(self.valid)

        np.add.at(out, (*idx, self.lower[idx]), self.value1[idx])
        np.add.at(out, (*idx, self.upper[idx]), self.value2[idx])

        return out
