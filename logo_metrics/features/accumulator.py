"""Single-pass accumulation of alpha occupancy statistics."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(slots=True)
class Accumulation:
    """Running sums collected while scanning the alpha channel.

    Every field combines associatively, so a buffer may be scanned in
    horizontal bands and the partial results merged in any order.
    """

    width: int
    height: int
    min_x: int
    min_y: int
    max_x: int = 0
    max_y: int = 0
    filled_pixels: int = 0
    total_alpha: int = 0
    sum_x: int = 0
    sum_y: int = 0
    weight_left: int = 0
    weight_right: int = 0
    weight_top: int = 0
    weight_bottom: int = 0

    @classmethod
    def empty(cls, width: int, height: int) -> "Accumulation":
        return cls(width=width, height=height, min_x=width, min_y=height)

    @classmethod
    def scan(
        cls,
        alpha: np.ndarray,
        width: int,
        height: int,
        row_offset: int = 0,
    ) -> "Accumulation":
        """Fold the rows of *alpha* (starting at buffer row *row_offset*)."""
        acc = cls.empty(width, height)
        rows, cols = np.nonzero(alpha)
        if rows.size == 0:
            return acc

        weights = alpha[rows, cols].astype(np.int64)
        ys = rows.astype(np.int64) + row_offset
        xs = cols.astype(np.int64)

        # Midline pixels fall to the right/bottom side.
        left = xs < width / 2
        top = ys < height / 2

        acc.min_x = int(xs.min())
        acc.max_x = int(xs.max())
        acc.min_y = int(ys.min())
        acc.max_y = int(ys.max())
        acc.filled_pixels = int(rows.size)
        acc.total_alpha = int(weights.sum())
        acc.sum_x = int((xs * weights).sum())
        acc.sum_y = int((ys * weights).sum())
        acc.weight_left = int(weights[left].sum())
        acc.weight_right = acc.total_alpha - acc.weight_left
        acc.weight_top = int(weights[top].sum())
        acc.weight_bottom = acc.total_alpha - acc.weight_top
        return acc

    def merge(self, other: "Accumulation") -> "Accumulation":
        """Return the accumulation covering both *self* and *other*."""
        if (self.width, self.height) != (other.width, other.height):
            raise ValueError("Cannot merge accumulations from different buffers")
        return Accumulation(
            width=self.width,
            height=self.height,
            min_x=min(self.min_x, other.min_x),
            min_y=min(self.min_y, other.min_y),
            max_x=max(self.max_x, other.max_x),
            max_y=max(self.max_y, other.max_y),
            filled_pixels=self.filled_pixels + other.filled_pixels,
            total_alpha=self.total_alpha + other.total_alpha,
            sum_x=self.sum_x + other.sum_x,
            sum_y=self.sum_y + other.sum_y,
            weight_left=self.weight_left + other.weight_left,
            weight_right=self.weight_right + other.weight_right,
            weight_top=self.weight_top + other.weight_top,
            weight_bottom=self.weight_bottom + other.weight_bottom,
        )
