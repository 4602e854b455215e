import json
import time
import logging
import argparse
from pathlib import Path

import cv2
import numpy as np

from integral_hog.binning import Binning, SoftBinning
from integral_hog.block_norm import BlockNormalizer
from integral_hog.bounds import Bounds
from integral_hog.descriptor import IntegralHOGDescriptor
from integral_hog.gradient import gradient
from integral_hog.magnitude import Magnitude, dominant_channel, select_channel

logger = logging.getLogger(__name__)


def synthetic_image(rows, cols, seed=0):
    """Smooth random blobs with a few sharp rectangles, uint8 grayscale."""
    rng = np.random.default_rng(seed)
    noise = rng.random((rows // 8 + 1, cols // 8 + 1))
    img = cv2.resize(noise, (cols, rows), interpolation=cv2.INTER_CUBIC)
    img = np.clip(img * 255, 0, 255).astype(np.uint8)

    for _ in range(8):
        x, y = int(rng.integers(0, cols)), int(rng.integers(0, rows))
        w, h = int(rng.integers(8, 64)), int(rng.integers(8, 64))
        cv2.rectangle(img, (x, y), (x + w, y + h), int(rng.integers(0, 256)), -1)

    return img


def sliding_windows(rows, cols, window=(64, 128), step=(8, 8)):
    win_w, win_h = window
    step_w, step_h = step
    return [
        Bounds(x, y, win_w, win_h)
        for y in range(0, rows - win_h + 1, step_h)
        for x in range(0, cols - win_w + 1, step_w)
    ]


# Direct HOG Baseline
class DirectHOG:
    """Per-window HOG summing every cell's votes pixel by pixel."""

    def __init__(self, descriptor):
        self.descriptor = descriptor
        self.normalizer = BlockNormalizer(descriptor.block_norm, descriptor.clip_norm, descriptor.epsilon)

    def votes(self, img):
        dx, dy = gradient(img[..., np.newaxis] if img.ndim == 2 else img)
        magnitudes = Magnitude(self.descriptor.magnitude)(dx, dy)
        channel = dominant_channel(magnitudes)
        weights = Binning(self.descriptor.binning)(
            -select_channel(dy, channel), select_channel(dx, channel)
        )
        return SoftBinning(weights, select_channel(magnitudes, channel), self.descriptor.n_bins).votes()

    def features(self, votes, bounds):
        d = self.descriptor
        (cell_w, cell_h), (block_w, block_h), (stride_w, stride_h) = d.cell_size, d.block_size, d.block_stride
        block_rows = (bounds.height - block_h) // stride_h + 1
        block_cols = (bounds.width - block_w) // stride_w + 1
        cell_rows, cell_cols = block_h // cell_h, block_w // cell_w

        X = np.zeros((block_rows, block_cols, cell_rows, cell_cols, d.n_bins), dtype=votes.dtype)
        for i in range(block_rows):
            for j in range(block_cols):
                for k in range(cell_rows):
                    for l in range(cell_cols):
                        y = bounds.y + i * stride_h + k * cell_h
                        x = bounds.x + j * stride_w + l * cell_w
                        X[i, j, k, l] = votes[y:y + cell_h, x:x + cell_w].sum(axis=(0, 1))
                block = X[i, j].reshape(-1)
                self.normalizer(block)
        return X


# OpenCV Baseline (gradient and binning conventions differ, timing only)
def opencv_hog(img, windows, descriptor):
    win_w, win_h = windows[0].width, windows[0].height
    hog = cv2.HOGDescriptor(
        (win_w, win_h), descriptor.block_size, descriptor.block_stride,
        descriptor.cell_size, descriptor.n_bins,
    )
    locations = tuple((w.x, w.y) for w in windows)
    return hog.compute(img, winStride=(8, 8), padding=(0, 0), locations=locations)


def run_benchmark(sizes, repeats, output=None, n_jobs=None, scan=False):
    descriptor = IntegralHOGDescriptor(n_jobs=n_jobs)
    direct = DirectHOG(descriptor)
    results = []

    for rows, cols in sizes:
        img = synthetic_image(rows, cols)
        windows = sliding_windows(rows, cols)

        if not windows:
            logger.info(f"Skipping {rows}x{cols}: smaller than a 64x128 window")
            continue

        logger.info(f"Benchmarking {len(windows)} windows on a {rows}x{cols} image...")

        timings = {"Integral": [], "Direct": [], "OpenCV": []}
        for _ in range(repeats):
            start_time = time.perf_counter()
            descriptor.compute(img, vectorized=not scan)
            integral = descriptor.features(windows)
            timings["Integral"].append(time.perf_counter() - start_time)

            start_time = time.perf_counter()
            votes = direct.votes(img)
            reference = np.stack([direct.features(votes, w) for w in windows])
            timings["Direct"].append(time.perf_counter() - start_time)

            start_time = time.perf_counter()
            opencv_hog(img, windows, descriptor)
            timings["OpenCV"].append(time.perf_counter() - start_time)

        max_error = float(np.max(np.abs(integral - reference)))

        for method, values in timings.items():
            best = min(values)
            logger.info(f"    [{method}] Time: {best:.3f}s ({best / len(windows) * 1e3:.3f} ms/window)")
            results.append({
                "method": method,
                "rows": rows,
                "cols": cols,
                "windows": len(windows),
                "time_seconds": best,
            })

        logger.info(f"    Integral vs Direct max abs difference: {max_error:.3e}")
        results.append({"rows": rows, "cols": cols, "max_abs_difference": max_error})

    if output is not None:
        output = Path(output)
        output.parent.mkdir(exist_ok=True, parents=True)
        with open(output, "w") as f:
            json.dump(results, f, indent=2)
        logger.info(f"Results saved to {output}")

    return results


def parse_size(value):
    rows, cols = value.lower().split("x")
    return int(rows), int(cols)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Integral vs direct HOG on synthetic images")
    parser.add_argument("--sizes", nargs="+", type=parse_size, default=[(128, 64), (240, 320), (480, 640)],
                        help="Image sizes as ROWSxCOLS")
    parser.add_argument("--repeats", type=int, default=3, help="Runs per size (best time is reported)")
    parser.add_argument("--jobs", type=int, default=None, help="Threads for batched extraction")
    parser.add_argument("--output", default=None, help="Optional JSON file for the metrics")
    parser.add_argument("--scan", action="store_true", help="Build the integral histogram with the per-pixel scan")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    run_benchmark(args.sizes, args.repeats, args.output, args.jobs, args.scan)
