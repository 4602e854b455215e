"""
Rectangular regions of interest for feature extraction.
"""

import numbers
import operator
from typing import NamedTuple


class Bounds(NamedTuple):
    """Axis-aligned rectangle; ``x`` is the column offset, ``y`` the row offset."""

    x: int
    y: int
    width: int
    height: int

    def area(self) -> int:
        return self.width * self.height

    def validate(self, cols: int, rows: int) -> None:
        """
        Check that the rectangle lies within a (rows, cols) domain.

        Raises:
            ValueError: If any edge lies outside the domain
        """
        for name in self._fields:
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"Bounds {name} cannot be negative, got {value}")

        if self.x + self.width > cols:
            raise ValueError(
                f"Bounds x + width = {self.x + self.width} exceeds the number of columns {cols}"
            )
        if self.y + self.height > rows:
            raise ValueError(
                f"Bounds y + height = {self.y + self.height} exceeds the number of rows {rows}"
            )


def is_region(value) -> bool:
    """True for a single region: a Bounds or a flat sequence of four integers."""
    if isinstance(value, Bounds):
        return True
    try:
        items = tuple(value)
    except TypeError:
        return False
    return len(items) == 4 and all(
        isinstance(item, numbers.Integral) and not isinstance(item, bool)
        for item in items
    )


def as_bounds(value) -> Bounds:
    """
    Convert a Bounds or a (x, y, width, height) sequence to Bounds.

    Raises:
        TypeError: If the value is not a sequence of integers
        ValueError: If the sequence does not have four entries
    """
    if isinstance(value, Bounds):
        return value

    try:
        items = tuple(value)
    except TypeError:
        raise TypeError(
            f"Expected bounds (x, y, width, height), got {type(value).__name__}"
        ) from None

    if len(items) != 4:
        raise ValueError(f"Expected 4 bounds (x, y, width, height), got {len(items)}")

    return Bounds(*(operator.index(item) for item in items))
