"""
Module 6: Block Normalization
Input: Concatenated cell histograms of a block (or a stack of blocks)
Output: The same array, normalized in place along its last axis
Implementation: From Scratch

Schemes (Dalal & Triggs):
- l1:      v / (||v||_1 + eps)
- l1-hys:  l1, clip to max value, l1 again
- l1-sqrt: sqrt of l1
- l2:      v / sqrt(||v||_2^2 + eps^2)
- l2-hys:  l2, clip to max value, l2 again (SIFT-style thresholding)
"""

import numbers
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from .config import DEFAULT_BLOCK_NORM, DEFAULT_CLIP_NORM


def _divide(v: NDArray, denominator: NDArray) -> NDArray:
    # A zero divisor only happens for an all-zero block with eps = 0.
    return np.divide(v, denominator, out=v, where=denominator != 0)


def l1_norm(v: NDArray, epsilon: float = 0.0) -> NDArray:
    denominator = np.sum(np.abs(v), axis=-1, keepdims=True) + epsilon
    return _divide(v, denominator)


def l1_hys(v: NDArray, clip: float = DEFAULT_CLIP_NORM, epsilon: float = 0.0) -> NDArray:
    l1_norm(v, epsilon)
    np.minimum(v, clip, out=v)
    return l1_norm(v, epsilon)


def l1_sqrt(v: NDArray, epsilon: float = 0.0) -> NDArray:
    l1_norm(v, epsilon)
    # sqrt of negative input is NaN
    np.maximum(v, 0, out=v)
    return np.sqrt(v, out=v)


def l2_norm(v: NDArray, epsilon: float = 0.0) -> NDArray:
    denominator = np.sqrt(np.sum(v * v, axis=-1, keepdims=True) + epsilon * epsilon)
    return _divide(v, denominator)


def l2_hys(v: NDArray, clip: float = DEFAULT_CLIP_NORM, epsilon: float = 0.0) -> NDArray:
    l2_norm(v, epsilon)
    np.minimum(v, clip, out=v)
    return l2_norm(v, epsilon)


BLOCK_NORMS = {
    'l1': l1_norm,
    'l1-hys': l1_hys,
    'l1-sqrt': l1_sqrt,
    'l2': l2_norm,
    'l2-hys': l2_hys,
}

HYSTERESIS_NORMS = ('l1-hys', 'l2-hys')


def check_clip(clip) -> Optional[float]:
    if clip is None:
        return None
    if isinstance(clip, bool) or not isinstance(clip, numbers.Real):
        raise TypeError(f"clip_norm must be a number, got {type(clip).__name__}")
    if not clip > 0:
        raise ValueError(f"clip_norm must be positive, got {clip}")
    return clip


def check_epsilon(epsilon) -> Optional[float]:
    if epsilon is None:
        return None
    if isinstance(epsilon, bool) or not isinstance(epsilon, numbers.Real):
        raise TypeError(f"epsilon must be a number, got {type(epsilon).__name__}")
    if not epsilon >= 0:
        raise ValueError(f"epsilon must be non-negative, got {epsilon}")
    return epsilon


class BlockNormalizer:
    """
    Block normalization scheme selected by name.

    ``clip`` only applies to the hysteresis schemes and defaults to 0.2;
    ``epsilon`` defaults to the machine epsilon of the block's dtype.
    """

    def __init__(
        self,
        kind: str = DEFAULT_BLOCK_NORM,
        clip: Optional[float] = None,
        epsilon: Optional[float] = None,
    ) -> None:
        if kind not in BLOCK_NORMS:
            raise ValueError(
                f"Unknown block norm {kind!r}; expected one of {sorted(BLOCK_NORMS)}"
            )
        self.kind = kind
        self.clip = check_clip(clip)
        self.epsilon = check_epsilon(epsilon)

    def __call__(self, block: NDArray) -> NDArray:
        epsilon = self.epsilon
        if epsilon is None:
            epsilon = np.finfo(block.dtype).eps
        epsilon = block.dtype.type(epsilon)

        if self.kind in HYSTERESIS_NORMS:
            clip = DEFAULT_CLIP_NORM if self.clip is None else self.clip
            return BLOCK_NORMS[self.kind](block, block.dtype.type(clip), epsilon)

        return BLOCK_NORMS[self.kind](block, epsilon)

    def __repr__(self):
        return f"BlockNormalizer({self.kind!r}, clip={self.clip!r}, epsilon={self.epsilon!r})"
