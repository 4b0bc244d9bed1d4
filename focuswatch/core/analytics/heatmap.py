"""Suspicion heatmap with time-based decay.

Keeps the positions where subjects were flagged and fades them out over a fixed
window. Points are evicted eagerly on every read; the window is the only cap.
An alpha-weighted occupancy grid is derived for overlays and the API.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from focuswatch.core.types import HeatPoint, Point


@dataclass
class HeatmapConfig:
    """Configuration for point decay and the summary grid."""

    decay_ms: int = 20000
    grid_size: tuple[int, int] = (16, 9)
    # Overlay opacity at alpha == 1.
    max_opacity: float = 0.4
    radius_px: int = 60


class HeatmapTracker:
    """Accumulate flagged positions and fade them over `decay_ms`."""

    def __init__(self, config: HeatmapConfig | None = None, frame_size: tuple[int, int] | None = None):
        """Create a tracker; `frame_size` is (width, height) used for the grid."""

        self.config = config or HeatmapConfig()
        self.frame_size = frame_size
        self._points: list[HeatPoint] = []

    def __len__(self) -> int:
        return len(self._points)

    def add(self, position: Point, now: float) -> None:
        self._points.append(HeatPoint(position=(float(position[0]), float(position[1])), created_at=now))

    def prune(self, now: float) -> None:
        """Drop points whose age reached the decay window."""

        window = float(self.config.decay_ms)
        self._points = [p for p in self._points if (now - p.created_at) * 1000.0 < window]

    def points(self, now: float) -> list[tuple[HeatPoint, float]]:
        """Return live points with their alpha (1 when new, -> 0 at the window)."""

        self.prune(now)
        window = float(self.config.decay_ms)
        out: list[tuple[HeatPoint, float]] = []
        for p in self._points:
            age = max(0.0, (now - p.created_at) * 1000.0)
            out.append((p, 1.0 - age / window))
        return out

    def grid(self, now: float) -> np.ndarray:
        """Return an alpha-weighted occupancy grid of shape (rows, cols)."""

        gx, gy = self.config.grid_size
        grid = np.zeros((gy, gx), dtype=np.float64)
        live = self.points(now)
        if not live or self.frame_size is None:
            return grid
        w, h = self.frame_size
        if w <= 0 or h <= 0:
            return grid

        pts = np.asarray([p.position for p, _ in live], dtype=np.float64)
        weights = np.asarray([a for _, a in live], dtype=np.float64)
        i = (pts[:, 0] * (gx / float(w))).astype(np.int64)
        j = (pts[:, 1] * (gy / float(h))).astype(np.int64)
        np.clip(i, 0, gx - 1, out=i)
        np.clip(j, 0, gy - 1, out=j)
        idx = j * gx + i
        grid[:] = np.bincount(idx, weights=weights, minlength=gx * gy).reshape(gy, gx)
        return grid

    def summary(self, now: float) -> dict:
        """Return a JSON-serializable summary used by the API/UI."""

        live = self.points(now)
        grid = self.grid(now)
        if grid.size and float(grid.max()) > 0.0:
            flat_index = int(grid.argmax())
            j, i = divmod(flat_index, grid.shape[1])
            max_cell: list[int] | None = [int(i), int(j)]
        else:
            max_cell = None
        return {
            "decay_ms": int(self.config.decay_ms),
            "points": [
                {"x": p.position[0], "y": p.position[1], "alpha": round(alpha, 4)} for p, alpha in live
            ],
            "grid_size": list(self.config.grid_size),
            "cells": grid.tolist(),
            "max_cell": max_cell,
        }

    def clear(self) -> None:
        self._points.clear()
