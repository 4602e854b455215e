"""
Module 5: Integral HOG Descriptor
Input: Image (rows × cols × channels) or a precomputed gradient pair (dx, dy)
Output: HOG features of any rectangular region
        (block_rows × block_cols × cells_per_block_rows × cells_per_block_cols × bins)
Implementation: From Scratch

Method:
1. Compute the image gradient and the vote magnitude of every channel
2. Keep the channel with the strongest magnitude at each pixel
3. Bin the edge direction (gradient rotated by +90°) and soft-bin the votes
   into an integral histogram
4. For a region, recover every cell histogram with four lookups and
   normalize each block of cells jointly

Unlike a direct HOG, the histogram is built once per image and any number of
regions (e.g. sliding detection windows) can be described afterwards at a
cost independent of their size.
"""

import logging
import numbers
from multiprocessing import cpu_count
from threading import Thread
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .binning import Binning, SoftBinning
from .block_norm import (BLOCK_NORMS, HYSTERESIS_NORMS, BlockNormalizer,
                         check_clip, check_epsilon)
from .bounds import Bounds, as_bounds, is_region
from .config import (DEFAULT_BINNING, DEFAULT_BLOCK_NORM, DEFAULT_BLOCK_SIZE,
                     DEFAULT_BLOCK_STRIDE, DEFAULT_CELL_SIZE, DEFAULT_CLIP_NORM,
                     DEFAULT_INTERIOR_STENCIL, DEFAULT_LOWER_STENCIL,
                     DEFAULT_MAGNITUDE, DEFAULT_N_BINS, DEFAULT_UPPER_STENCIL,
                     NUM_THREADS)
from .gradient import Gradient, working_dtype
from .integral_histogram import IntegralHistogram
from .magnitude import Magnitude, dominant_channel, select_channel

logger = logging.getLogger(__name__)


def _run_threads(func, total, nthreads=1):
    """
    Run ``func(thread_id, start, stop)`` over ``total`` items split into
    contiguous chunks, one thread per chunk.
    """
    nthreads = min(nthreads, total, cpu_count())
    if nthreads <= 1:
        func(0, 0, total)
        return

    inc = total / nthreads
    inds = [0] + [int(inc * i) for i in range(1, nthreads)] + [total]
    threads = [Thread(target=func, args=(i, inds[i], inds[i + 1])) for i in range(nthreads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def _is_positive_int(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool) and value > 0


def _check_pair(name: str, value, default: Tuple[int, int]) -> Tuple[int, int]:
    if value is None:
        return default

    try:
        items = tuple(value)
    except TypeError:
        raise ValueError(f"{name} must be a (width, height) pair, got {value!r}") from None

    if len(items) != 2 or not all(_is_positive_int(item) for item in items):
        raise ValueError(f"{name} must be a pair of positive integers, got {value!r}")

    return int(items[0]), int(items[1])


class IntegralHOGDescriptor:
    """
    Histogram of Oriented Gradients computed through an integral histogram.

    Sizes are given as (width, height) pairs in pixels. Every parameter left
    as None takes the package default (see ``integral_hog.config``).
    """

    def __init__(
        self,
        cell_size: Optional[Tuple[int, int]] = None,
        block_size: Optional[Tuple[int, int]] = None,
        block_stride: Optional[Tuple[int, int]] = None,
        n_bins: Optional[int] = None,
        magnitude: Optional[str] = None,
        binning: Optional[str] = None,
        block_norm: Optional[str] = None,
        clip_norm: Optional[float] = None,
        epsilon: Optional[float] = None,
        n_jobs: Optional[int] = None,
        interior: str = DEFAULT_INTERIOR_STENCIL,
        lower: str = DEFAULT_LOWER_STENCIL,
        upper: str = DEFAULT_UPPER_STENCIL,
    ) -> None:
        """
        Args:
            cell_size (tuple): Cell extent (default: (8, 8))
            block_size (tuple): Block extent, a multiple of the cell size (default: (16, 16))
            block_stride (tuple): Distance between neighboring blocks (default: (8, 8))
            n_bins (int): Number of orientation bins (default: 9)
            magnitude (str): Vote profile: 'identity', 'square' or 'sqrt'
            binning (str): Orientation range: 'unsigned' (180°) or 'signed' (360°)
            block_norm (str): 'l1', 'l1-hys', 'l1-sqrt', 'l2' or 'l2-hys'
            clip_norm (float): Clipping threshold of the hysteresis norms (default: 0.2)
            epsilon (float): Regularization of the norms (default: machine epsilon)
            n_jobs (int): Threads used to describe batches of regions (default: CPU count)
            interior (str): Gradient stencil away from the image border
            lower (str): Gradient stencil at the first row/column
            upper (str): Gradient stencil at the last row/column
        """
        self._histogram = IntegralHistogram()
        self._gradient = Gradient(interior, lower, upper)

        self._n_bins = DEFAULT_N_BINS
        self._magnitude = Magnitude(DEFAULT_MAGNITUDE)
        self._binning = Binning(DEFAULT_BINNING)

        self.cell_size = cell_size
        self.block_size = block_size
        self.block_stride = block_stride
        self.n_bins = n_bins
        self.magnitude = magnitude
        self.binning = binning
        self.block_norm = block_norm
        self.clip_norm = clip_norm
        self.epsilon = epsilon
        self.n_jobs = n_jobs

    # Configuration

    @property
    def cell_size(self) -> Tuple[int, int]:
        return self._cell_size

    @cell_size.setter
    def cell_size(self, value):
        self._cell_size = _check_pair('cell_size', value, DEFAULT_CELL_SIZE)

    @property
    def block_size(self) -> Tuple[int, int]:
        return self._block_size

    @block_size.setter
    def block_size(self, value):
        self._block_size = _check_pair('block_size', value, DEFAULT_BLOCK_SIZE)

    @property
    def block_stride(self) -> Tuple[int, int]:
        return self._block_stride

    @block_stride.setter
    def block_stride(self, value):
        self._block_stride = _check_pair('block_stride', value, DEFAULT_BLOCK_STRIDE)

    @property
    def n_bins(self) -> int:
        return self._n_bins

    @n_bins.setter
    def n_bins(self, value):
        if value is None:
            value = DEFAULT_N_BINS
        if not _is_positive_int(value):
            raise ValueError(f"n_bins must be a positive integer, got {value!r}")

        # The bin count is baked into the histogram.
        if value != self._n_bins:
            self._histogram.clear()
        self._n_bins = int(value)

    @property
    def magnitude(self) -> str:
        return self._magnitude.kind

    @magnitude.setter
    def magnitude(self, value):
        magnitude = Magnitude(DEFAULT_MAGNITUDE if value is None else value)
        if magnitude != self._magnitude:
            self._histogram.clear()
        self._magnitude = magnitude

    @property
    def binning(self) -> str:
        return self._binning.kind

    @binning.setter
    def binning(self, value):
        binning = Binning(DEFAULT_BINNING if value is None else value)
        if binning != self._binning:
            self._histogram.clear()
        self._binning = binning

    @property
    def block_norm(self) -> str:
        return self._block_norm

    @block_norm.setter
    def block_norm(self, value):
        if value is None:
            value = DEFAULT_BLOCK_NORM
        if value not in BLOCK_NORMS:
            raise ValueError(
                f"Unknown block norm {value!r}; expected one of {sorted(BLOCK_NORMS)}"
            )
        self._block_norm = value

    @property
    def clip_norm(self) -> Optional[float]:
        """Clipping threshold in effect; None for norms without hysteresis."""
        if self._clip_norm is not None:
            return self._clip_norm
        if self._block_norm in HYSTERESIS_NORMS:
            return DEFAULT_CLIP_NORM
        return None

    @clip_norm.setter
    def clip_norm(self, value):
        self._clip_norm = check_clip(value)

    @property
    def epsilon(self) -> Optional[float]:
        """Norm regularization; None stands for the machine epsilon of the features."""
        return self._epsilon

    @epsilon.setter
    def epsilon(self, value):
        self._epsilon = check_epsilon(value)

    @property
    def n_jobs(self) -> Optional[int]:
        return self._n_jobs

    @n_jobs.setter
    def n_jobs(self, value):
        if value is not None and not _is_positive_int(value):
            raise ValueError(f"n_jobs must be a positive integer or None, got {value!r}")
        self._n_jobs = value

    @property
    def gradient(self) -> Gradient:
        return self._gradient

    # State

    @property
    def histogram(self) -> NDArray:
        """
        Integral histogram of shape (rows + 1, cols + 1, n_bins), zero-sized if empty.

        The array is a read-only view; assign to this property to replace it.
        """
        if self.is_empty():
            return np.zeros((0, 0, self._n_bins), dtype=self._histogram.dtype)

        view = self._histogram.histogram.view()
        view.flags.writeable = False
        return view

    @histogram.setter
    def histogram(self, value):
        if value is None:
            self._histogram.clear()
            return

        value = np.asarray(value)

        if value.ndim != 3:
            raise ValueError(
                f"Integral histogram must have rank 3 (rows + 1, cols + 1, bins), "
                f"got shape {value.shape}"
            )
        if value.shape[-1] != self._n_bins:
            raise ValueError(
                f"Integral histogram has {value.shape[-1]} bins, expected n_bins = {self._n_bins}"
            )

        if value.size == 0:
            self._histogram.clear()
        else:
            self._histogram.histogram = value

    def is_empty(self) -> bool:
        return self._histogram.is_empty()

    def __bool__(self):
        return not self.is_empty()

    @property
    def dtype(self) -> np.dtype:
        return self._histogram.dtype

    # Histogram construction

    def compute(self, image, *, mask=None, vectorized: bool = False) -> None:
        """
        Build the integral histogram of an image.

        By default the histogram is filled by a wavefront scan, one pixel at a
        time. ``vectorized=True`` builds the same histogram from dense votes
        with cumulative sums, which is much faster on large images.

        Args:
            image (np.ndarray or tuple): Image of shape (rows, cols) or
                (rows, cols, channels), or a (dx, dy) pair of precomputed
                gradients of such a shape
            mask (np.ndarray or callable): Optional boolean array of shape
                (rows, cols) or ``mask(row, col)``; True excludes the pixel
            vectorized (bool): Use cumulative sums instead of the scan

        Raises:
            TypeError: If the image rank is neither 2 nor 3
            ValueError: If gradient shapes differ or the mask is invalid
        """
        dx, dy = self._gradients(image)

        if dx.ndim == 2:
            dx = dx[..., np.newaxis]
            dy = dy[..., np.newaxis]

        rows, cols = dx.shape[:2]
        dtype = dx.dtype

        if dx.size == 0:
            logger.debug(f"Empty image {dx.shape}; clearing integral histogram")
            self._histogram = IntegralHistogram(dtype)
            return

        skip = self._skip_mask(mask, rows, cols)

        magnitudes = self._magnitude(dx, dy)
        channel = dominant_channel(magnitudes)

        votes = select_channel(magnitudes, channel)
        gx = select_channel(dx, channel)
        gy = select_channel(dy, channel)

        # Bin the edge direction, orthogonal to the gradient, so that a
        # vertical edge lands in the 90° bin.
        weights = self._binning(-gy, gx)

        voter = SoftBinning(weights, votes, self._n_bins, skip)

        histogram = IntegralHistogram(dtype)
        histogram.resize((rows, cols), self._n_bins)

        if vectorized:
            histogram.accumulate(voter.votes(dtype))
        else:
            histogram.scan(voter)

        self._histogram = histogram

        logger.debug(
            f"Computed {rows}x{cols} integral histogram "
            f"({self.binning}, {self.magnitude}, {self._n_bins} bins, {dtype}, "
            f"{'vectorized' if vectorized else 'scan'})"
        )

    def _gradients(self, image) -> Tuple[NDArray, NDArray]:
        if isinstance(image, (tuple, list)) and len(image) == 2 and all(
            isinstance(g, np.ndarray) for g in image
        ):
            dx, dy = image

            if dx.ndim not in (2, 3) or dy.ndim not in (2, 3):
                raise TypeError(
                    f"Gradients must have rank 2 or 3, got {dx.ndim} and {dy.ndim}"
                )
            if dx.shape != dy.shape:
                raise ValueError(
                    f"Gradient shapes differ: dx {dx.shape} vs dy {dy.shape}"
                )

            dtype = working_dtype(np.result_type(dx, dy))
            return dx.astype(dtype, copy=False), dy.astype(dtype, copy=False)

        image = np.asarray(image)
        if image.ndim not in (2, 3):
            raise TypeError(
                f"Image must have rank 2 (rows, cols) or 3 (rows, cols, channels), "
                f"got shape {image.shape}"
            )

        return self._gradient(image)

    @staticmethod
    def _skip_mask(mask, rows: int, cols: int) -> Optional[NDArray]:
        if mask is None:
            return None

        if isinstance(mask, (np.ndarray, list, tuple)):
            skip = np.asarray(mask, dtype=bool)
            if skip.shape != (rows, cols):
                raise ValueError(
                    f"Mask shape {skip.shape} does not match image shape {(rows, cols)}"
                )
            return skip

        if callable(mask):
            skip = np.empty((rows, cols), dtype=bool)
            for i in range(rows):
                for j in range(cols):
                    skip[i, j] = bool(mask(i, j))
            return skip

        raise ValueError(
            f"Mask must be an array of shape {(rows, cols)} or a callable "
            f"mask(row, col), got {type(mask).__name__}"
        )

    # Feature extraction

    def features(self, bounds=None) -> NDArray:
        """
        Describe one region or a batch of regions.

        Args:
            bounds (Bounds, tuple or list): None for the whole image, one
                region (Bounds or (x, y, width, height)), or an iterable of
                regions

        Returns:
            np.ndarray: Rank-5 features for a single region; rank-6 features
                (one rank-5 block per region) for a batch

        Raises:
            ValueError: If a region exceeds the image or the regions of a
                batch do not all yield the same feature shape
        """
        if bounds is not None and not isinstance(bounds, Bounds):
            # Iterate once; bounds may be a generator of regions.
            bounds = list(bounds)

        single = bounds is None or is_region(bounds)

        if self.is_empty():
            return np.zeros((0,) * (5 if single else 6), dtype=self.dtype)

        if bounds is None:
            rows, cols = self._histogram.dims
            bounds = Bounds(0, 0, cols, rows)

        if single:
            bounds = as_bounds(bounds)
            shape = self._feature_shape(bounds)
            out = np.zeros(shape, dtype=self.dtype)
            self._describe(bounds, out)
            return out

        return self._describe_batch([as_bounds(region) for region in bounds])

    __call__ = features

    @property
    def features_(self) -> NDArray:
        return self.features()

    def _feature_shape(self, bounds: Bounds) -> Tuple[int, ...]:
        rows, cols = self._histogram.dims
        bounds.validate(cols, rows)

        if bounds.area() == 0:
            return (0, 0, 0, 0, 0)

        block_w, block_h = self._block_size
        stride_w, stride_h = self._block_stride
        cell_w, cell_h = self._cell_size

        block_rows = max((bounds.height - block_h) // stride_h + 1, 0)
        block_cols = max((bounds.width - block_w) // stride_w + 1, 0)

        return (block_rows, block_cols, block_h // cell_h, block_w // cell_w, self._n_bins)

    def _describe(self, bounds: Bounds, out: NDArray) -> None:
        if out.size == 0:
            return

        block_rows, block_cols, cell_rows, cell_cols, _ = out.shape
        stride_w, stride_h = self._block_stride
        cell_w, cell_h = self._cell_size

        # Top-left corner of every cell, broadcast to
        # (block_rows, block_cols, cell_rows, cell_cols).
        y1 = (
            (bounds.y + np.arange(block_rows) * stride_h)[:, None, None, None]
            + (np.arange(cell_rows) * cell_h)[None, None, :, None]
        )
        x1 = (
            (bounds.x + np.arange(block_cols) * stride_w)[None, :, None, None]
            + (np.arange(cell_cols) * cell_w)[None, None, None, :]
        )

        cells = self._histogram.intersect((y1, x1), (y1 + cell_h, x1 + cell_w))

        blocks = cells.reshape(block_rows * block_cols, -1)
        self._normalizer()(blocks)

        out[...] = blocks.reshape(out.shape)

    def _describe_batch(self, regions) -> NDArray:
        if not regions:
            return np.zeros((0,) * 6, dtype=self.dtype)

        # Validate every region before any worker starts.
        first = regions[0]
        shape = self._feature_shape(first)

        for index, region in enumerate(regions[1:], 1):
            region_shape = self._feature_shape(region)
            if region_shape != shape:
                raise ValueError(
                    f"Region {index} {tuple(region)} yields features of shape "
                    f"{region_shape}, but region 0 {tuple(first)} yields {shape}"
                )

        out = np.zeros((len(regions),) + shape, dtype=self.dtype)
        errors = []

        def thread(threadid, start, stop):
            try:
                for index in range(start, stop):
                    self._describe(regions[index], out[index])
            except Exception as error:
                errors.append(error)

        nthreads = NUM_THREADS if self._n_jobs is None else self._n_jobs
        logger.debug(f"Describing {len(regions)} regions of shape {shape} with up to {nthreads} threads")

        _run_threads(thread, len(regions), nthreads)

        if errors:
            raise errors[0]

        return out

    def _normalizer(self) -> BlockNormalizer:
        return BlockNormalizer(self._block_norm, self._clip_norm, self._epsilon)

    # Serialization

    def _config(self) -> dict:
        return {
            'cell_size': self._cell_size,
            'block_size': self._block_size,
            'block_stride': self._block_stride,
            'n_bins': self._n_bins,
            'magnitude': self.magnitude,
            'binning': self.binning,
            'block_norm': self._block_norm,
            'clip_norm': self._clip_norm,
            'epsilon': self._epsilon,
            'n_jobs': self._n_jobs,
            'interior': self._gradient.interior.name,
            'lower': self._gradient.lower.name,
            'upper': self._gradient.upper.name,
        }

    def __getstate__(self):
        return self._config(), self.histogram

    def __setstate__(self, state):
        config, histogram = state
        self.__init__(**config)
        self.histogram = histogram

    def __repr__(self):
        args = ', '.join(f"{key}={value!r}" for key, value in self._config().items())
        return f"{type(self).__name__}({args})"
