"""
Module 4: Integral Histogram
Input: Per-pixel votes (through a voter callback or a dense vote array)
Output: Cumulative histogram H of shape (*[d + 1 for d in dims], *bins)
Implementation: From Scratch

Method:
1. Allocate H with one extra leading row/column per spatial axis (all zero)
2. Wavefront scan: H[i+1] is built from its already computed neighbors by
   inclusion-exclusion, then the pixel at i adds its own votes
3. Any axis-aligned box [a, b) is recovered with 2^N lookups:
   sum_K (-1)^popcount(K) H[c_K]
"""

import logging
import time
from typing import Callable, Sequence, Tuple, Union

import numpy as np
from numpy.typing import ArrayLike, DTypeLike, NDArray

logger = logging.getLogger(__name__)

Coordinate = Union[int, NDArray]


def _popcount(value: int) -> int:
    return bin(value).count('1')


def _corner_bits(mask: int, ndim: int) -> Tuple[int, ...]:
    return tuple((mask >> axis) & 1 for axis in range(ndim))


class IntegralHistogram:
    """
    N-dimensional integral histogram.

    H[i_1, ..., i_N] holds the per-bin sum of the votes of all pixels whose
    coordinates are strictly below (i_1, ..., i_N).
    """

    def __init__(self, dtype: DTypeLike = np.float64) -> None:
        self.dtype = np.dtype(dtype)
        self._n_spatial = 0
        self._n_bin_axes = 1
        self._histogram = np.zeros((0,), dtype=self.dtype)

    @property
    def histogram(self) -> NDArray:
        return self._histogram

    @histogram.setter
    def histogram(self, value: ArrayLike) -> None:
        """Restore a previously computed histogram (the array is copied)."""
        value = np.array(value, copy=True)
        if not np.issubdtype(value.dtype, np.floating):
            value = value.astype(np.float64)

        if value.ndim <= self._n_bin_axes:
            raise ValueError(
                f"Integral histogram needs at least one spatial axis besides "
                f"{self._n_bin_axes} bin axes, got shape {value.shape}"
            )

        self.dtype = value.dtype
        self._n_spatial = value.ndim - self._n_bin_axes
        self._histogram = value

    @property
    def dims(self) -> Tuple[int, ...]:
        """Spatial extent of the scanned domain (histogram shape minus one)."""
        return tuple(n - 1 for n in self._histogram.shape[:self._n_spatial])

    @property
    def bins(self) -> Tuple[int, ...]:
        return self._histogram.shape[self._n_spatial:]

    def is_empty(self) -> bool:
        return self._histogram.size == 0

    def clear(self) -> None:
        self._n_spatial = 0
        self._histogram = np.zeros((0,), dtype=self.dtype)

    def resize(self, dims: Sequence[int], bins: Union[int, Sequence[int]]) -> None:
        """
        Allocate a zeroed histogram for a domain of ``dims`` pixels.

        Args:
            dims (tuple): Spatial extent, one entry per axis
            bins (int or tuple): Number of bins, or a tuple for multi-axis histograms
        """
        dims = tuple(int(d) for d in dims)
        bins = (int(bins),) if np.isscalar(bins) else tuple(int(b) for b in bins)

        if not dims:
            raise ValueError("Integral histogram needs at least one spatial axis")
        if not bins:
            raise ValueError("Integral histogram needs at least one bin axis")

        self._n_spatial = len(dims)
        self._n_bin_axes = len(bins)
        self._histogram = np.zeros(tuple(d + 1 for d in dims) + bins, dtype=self.dtype)

    def scan(self, binning: Callable[[NDArray, Tuple[int, ...]], None]) -> None:
        """
        Fill the histogram with a wavefront scan over every pixel.

        ``binning(h, index)`` is called once per pixel in row-major order with
        ``h`` the (writable) histogram slice H[index + 1]; it adds the
        pixel's votes to ``h``.
        """
        H = self._histogram
        H[...] = 0

        ndim = self._n_spatial
        full = (1 << ndim) - 1

        # H[i+1] = sum over all corners except i+1 itself. Corners with an
        # odd number of i+1 coordinates missing are added, the rest
        # subtracted; for 2-D: H[i, j+1] + H[i+1, j] - H[i, j].
        neighbors = []
        for mask in range(full):
            sign = 1 if (ndim - _popcount(mask)) % 2 == 1 else -1
            neighbors.append((sign, _corner_bits(mask, ndim)))

        start = time.perf_counter()

        for index in np.ndindex(*self.dims):
            target = tuple(i + 1 for i in index)
            h = H[target]

            for sign, bits in neighbors:
                corner = H[tuple(i + b for i, b in zip(index, bits))]
                if sign > 0:
                    h += corner
                else:
                    h -= corner

            binning(h, index)

        logger.debug(
            f"Scanned {self.dims} integral histogram with bins {self.bins} "
            f"in {time.perf_counter() - start:.3f}s"
        )

    def accumulate(self, votes: ArrayLike) -> None:
        """
        Fill the histogram from dense per-pixel votes of shape (*dims, *bins).

        Successive cumulative sums over the spatial axes yield the same
        histogram as :meth:`scan` with a voter adding ``votes[index]``.
        """
        votes = np.asarray(votes)
        expected = self.dims + self.bins

        if votes.shape != expected:
            raise ValueError(
                f"Votes of shape {votes.shape} do not match histogram domain {expected}"
            )

        H = self._histogram
        H[...] = 0

        inner = H[(slice(1, None),) * self._n_spatial]
        inner[...] = votes

        for axis in range(self._n_spatial):
            inner[...] = np.cumsum(inner, axis=axis)

        logger.debug(f"Accumulated {self.dims} integral histogram with bins {self.bins}")

    def intersect(self, a: Sequence[Coordinate], b: Sequence[Coordinate]) -> NDArray:
        """
        Histogram of the box [a, b) in O(2^N).

        Args:
            a (tuple): Lower corner, one coordinate per spatial axis (inclusive)
            b (tuple): Upper corner, one coordinate per spatial axis (exclusive)

        Coordinates can be ints or broadcastable integer arrays, in which case
        one histogram is returned per broadcast position.

        Returns:
            np.ndarray: Histogram of shape (*broadcast, *bins)
        """
        ndim = self._n_spatial
        if len(a) != ndim or len(b) != ndim:
            raise ValueError(
                f"Expected {ndim} coordinates per corner, got {len(a)} and {len(b)}"
            )

        H = self._histogram
        result = None

        # Bit d of mask set: take axis d from the lower corner.
        for mask in range(1 << ndim):
            bits = _corner_bits(mask, ndim)
            corner = tuple(a[d] if bit else b[d] for d, bit in enumerate(bits))
            term = H[corner]

            if result is None:
                result = np.array(term, dtype=self.dtype, copy=True)
            elif _popcount(mask) % 2:
                result -= term
            else:
                result += term

        return result
