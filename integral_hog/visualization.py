"""
Visualization of HOG features as per-cell orientation glyphs.
"""

import math
from typing import Optional, Tuple

import cv2
import numpy as np
from numpy.typing import NDArray


def cell_histograms(
    features: NDArray,
    cell_size: Tuple[int, int],
    block_stride: Tuple[int, int],
) -> NDArray:
    """
    Average the histogram of every cell over all blocks that cover it.

    Args:
        features (np.ndarray): Rank-5 features (block_rows, block_cols, cell_rows, cell_cols, bins)
        cell_size (tuple): Cell extent (width, height)
        block_stride (tuple): Block stride (width, height)

    Returns:
        np.ndarray: Histograms on the cell grid (grid_rows, grid_cols, bins)
    """
    block_rows, block_cols, cell_rows, cell_cols, n_bins = features.shape
    cell_w, cell_h = cell_size
    stride_w, stride_h = block_stride

    if features.size == 0:
        return np.zeros((0, 0, n_bins))

    # Cell origins in pixels are snapped to the cell grid.
    grid_rows = ((block_rows - 1) * stride_h) // cell_h + cell_rows
    grid_cols = ((block_cols - 1) * stride_w) // cell_w + cell_cols

    total = np.zeros((grid_rows, grid_cols, n_bins))
    count = np.zeros((grid_rows, grid_cols, 1))

    for i in range(block_rows):
        for j in range(block_cols):
            r = (i * stride_h) // cell_h
            c = (j * stride_w) // cell_w
            total[r:r + cell_rows, c:c + cell_cols] += features[i, j]
            count[r:r + cell_rows, c:c + cell_cols] += 1

    return np.divide(total, count, out=np.zeros_like(total), where=count > 0)


def render(
    features: NDArray,
    cell_size: Tuple[int, int] = (8, 8),
    block_stride: Tuple[int, int] = (8, 8),
    shape: Optional[Tuple[int, int]] = None,
    binning: str = 'unsigned',
    scale: float = 1.0,
) -> NDArray:
    """
    Draw one line per orientation bin through the center of every cell.

    Line length and brightness grow with the bin value; lines follow the
    binned edge direction.

    Args:
        features (np.ndarray): Rank-5 features of one region
        cell_size (tuple): Cell extent (width, height) used to compute the features
        block_stride (tuple): Block stride (width, height) used to compute the features
        shape (tuple): Canvas size (rows, cols) before scaling; defaults to the
            area covered by the cells
        binning (str): 'unsigned' (bins span 180°) or 'signed' (bins span 360°)
        scale (float): Canvas magnification

    Returns:
        np.ndarray: Grayscale uint8 canvas
    """
    if binning not in ('unsigned', 'signed'):
        raise ValueError(f"Unknown binning {binning!r}; expected 'signed' or 'unsigned'")
    if not scale > 0:
        raise ValueError(f"scale must be positive, got {scale}")

    features = np.asarray(features, dtype=np.float64)
    if features.ndim != 5:
        raise ValueError(f"Expected rank-5 features, got shape {features.shape}")

    cells = cell_histograms(features, cell_size, block_stride)
    grid_rows, grid_cols, n_bins = cells.shape
    cell_w, cell_h = cell_size

    if shape is None:
        shape = (grid_rows * cell_h, grid_cols * cell_w)

    rows = int(round(shape[0] * scale))
    cols = int(round(shape[1] * scale))
    canvas = np.zeros((rows, cols), dtype=np.uint8)

    peak = cells.max() if cells.size else 0.0
    if peak <= 0:
        return canvas

    cells = cells / peak
    period = math.pi if binning == 'unsigned' else 2 * math.pi
    half_length = 0.5 * min(cell_w, cell_h) * scale

    for r in range(grid_rows):
        for c in range(grid_cols):
            cx = (c + 0.5) * cell_w * scale
            cy = (r + 0.5) * cell_h * scale

            for b in range(n_bins):
                value = cells[r, c, b]
                if value <= 0:
                    continue

                angle = b / max(n_bins - 1, 1) * period
                dx = value * half_length * math.cos(angle)
                dy = value * half_length * math.sin(angle)

                pt1 = (int(round(cx - dx)), int(round(cy - dy)))
                pt2 = (int(round(cx + dx)), int(round(cy + dy)))
                cv2.line(canvas, pt1, pt2, int(255 * math.sqrt(value)))

    return canvas
