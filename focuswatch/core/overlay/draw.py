"""Overlay drawing helpers (OpenCV).

Produces the composited surface used for snapshots, the MJPEG stream and the
evidence clip chunks: dimmed video, heatmap, per-subject markers and flagged
object boxes.
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from focuswatch.core.monitors.objects import BOX_LABELS, DEFAULT_ALLOWED_CLASSES
from focuswatch.core.types import Point, SuspicionVerdict, TickSummary

# BGR
SUSPECT_COLOR = (38, 38, 220)  # red
OK_COLOR = (74, 163, 22)  # green
HEAT_COLOR = (0, 0, 255)
OBJECT_COLOR = (0, 0, 255)
DIM_ALPHA = 0.25


@dataclass(frozen=True)
class DrawInstruction:
    """How one subject is drawn, keyed by its suspicious flag."""

    color: tuple[int, int, int]
    label: str
    center: Point
    radius: float
    label_origin: Point
    shoulder_line: tuple[Point, Point] | None


def draw_instruction(verdict: SuspicionVerdict) -> DrawInstruction:
    color = SUSPECT_COLOR if verdict.suspicious else OK_COLOR
    label = "SUSPECT" if verdict.suspicious else "OK"
    x, y = verdict.position
    line = None
    if verdict.shoulder_left is not None and verdict.shoulder_right is not None:
        line = (verdict.shoulder_left, verdict.shoulder_right)
    return DrawInstruction(
        color=color,
        label=label,
        center=(x, y),
        radius=verdict.shoulder_width * 0.9,
        label_origin=(x - 20, y - verdict.shoulder_width),
        shoulder_line=line,
    )


def _blend_circle(img: np.ndarray, center: tuple[int, int], radius: int, color, alpha: float) -> None:
    """Alpha-blend a filled circle, touching only its bounding box."""

    h, w = img.shape[:2]
    cx, cy = center
    x1, y1 = max(0, cx - radius), max(0, cy - radius)
    x2, y2 = min(w, cx + radius + 1), min(h, cy + radius + 1)
    if x2 <= x1 or y2 <= y1:
        return
    roi = img[y1:y2, x1:x2]
    layer = roi.copy()
    cv2.circle(layer, (cx - x1, cy - y1), radius, color, -1)
    cv2.addWeighted(layer, float(alpha), roi, float(1.0 - alpha), 0, roi)


def draw_overlays(frame: np.ndarray, summary: TickSummary, heat_radius: int = 60, heat_opacity: float = 0.4) -> np.ndarray:
    """Return a copy of `frame` with the tick's overlays drawn."""

    img = frame.copy()
    dim = np.zeros_like(img)
    cv2.addWeighted(dim, DIM_ALPHA, img, 1.0 - DIM_ALPHA, 0, img)

    for verdict in summary.verdicts:
        ins = draw_instruction(verdict)
        cx, cy = int(ins.center[0]), int(ins.center[1])
        cv2.circle(img, (cx, cy), max(1, int(ins.radius)), ins.color, 2)
        cv2.putText(
            img,
            ins.label,
            (int(ins.label_origin[0]), max(int(ins.label_origin[1]), 0)),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            ins.color,
            1,
            cv2.LINE_AA,
        )
        if ins.shoulder_line is not None:
            (lx, ly), (rx, ry) = ins.shoulder_line
            cv2.line(img, (int(lx), int(ly)), (int(rx), int(ry)), ins.color, 3)

    for point in (summary.heatmap or {}).get("points", []):
        alpha = float(point.get("alpha", 0.0))
        if alpha <= 0.0:
            continue
        _blend_circle(img, (int(point["x"]), int(point["y"])), heat_radius, HEAT_COLOR, alpha * heat_opacity)

    for det in summary.objects:
        x, y, w, h = (int(v) for v in det.bbox)
        cv2.rectangle(img, (x, y), (x + w, y + h), OBJECT_COLOR, 4)
        kind = DEFAULT_ALLOWED_CLASSES.get(det.label, det.label)
        cv2.putText(
            img,
            BOX_LABELS.get(kind, det.label.upper()),
            (x, max(y - 8, 0)),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.7,
            OBJECT_COLOR,
            2,
            cv2.LINE_AA,
        )
    return img
