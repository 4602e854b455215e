"""
Module 2: Gradient Magnitude Voting
Input: Per-channel gradients (dx, dy)
Output: Per-pixel vote magnitude of the dominant channel
Implementation: From Scratch

Profiles:
- identity: sqrt(dx² + dy²)
- square:   dx² + dy²
- sqrt:     sqrt(sqrt(dx² + dy²))
"""

import numpy as np
from numpy.typing import NDArray


def square_magnitude(dx: NDArray, dy: NDArray) -> NDArray:
    return dx * dx + dy * dy


def magnitude(dx: NDArray, dy: NDArray) -> NDArray:
    # Both squares are non-negative, so no hypot scaling is needed.
    return np.sqrt(square_magnitude(dx, dy))


def sqrt_magnitude(dx: NDArray, dy: NDArray) -> NDArray:
    return np.sqrt(magnitude(dx, dy))


MAGNITUDES = {
    'identity': magnitude,
    'square': square_magnitude,
    'sqrt': sqrt_magnitude,
}


class Magnitude:
    """Vote magnitude profile selected by name."""

    def __init__(self, kind: str = 'identity') -> None:
        if kind not in MAGNITUDES:
            raise ValueError(
                f"Unknown magnitude {kind!r}; expected one of {sorted(MAGNITUDES)}"
            )
        self.kind = kind
        self._vote = MAGNITUDES[kind]

    def __call__(self, dx: NDArray, dy: NDArray) -> NDArray:
        return self._vote(dx, dy)

    def __eq__(self, other):
        return isinstance(other, Magnitude) and other.kind == self.kind

    def __repr__(self):
        return f"Magnitude({self.kind!r})"


def dominant_channel(magnitudes: NDArray) -> NDArray:
    """
    Index of the channel with the strongest vote for every pixel.

    Args:
        magnitudes (np.ndarray): Vote magnitudes of shape (rows, cols, channels)

    Returns:
        np.ndarray: Channel indices (rows, cols); ties go to the lowest index
    """
    return np.argmax(magnitudes, axis=-1)


def select_channel(values: NDArray, channel: NDArray) -> NDArray:
    """Pick ``values[i, j, channel[i, j]]`` for every pixel."""
    return np.take_along_axis(values, channel[..., np.newaxis], axis=-1)[..., 0]
