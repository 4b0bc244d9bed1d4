"""Shared type definitions used across the monitoring core.

This module intentionally centralizes small, stable types (keypoints, subjects,
per-tick readings, verdicts, and capture records) so extractor/scorer/session
code can stay strongly typed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np

Frame = np.ndarray

BBox = tuple[float, float, float, float]  # x, y, w, h in pixels
Point = tuple[float, float]

# 21 normalized (x, y) landmarks: 0 = wrist, 4 = thumb tip, 20 = pinky tip.
HandLandmarks = Sequence[Point]

AlertChannel = Literal["audio", "object"]


@dataclass(frozen=True)
class Keypoint:
    """One named pose keypoint in pixel coordinates."""

    name: str
    x: float
    y: float
    score: float


@dataclass
class PoseSubject:
    """One detected person for a single tick (no identity across ticks)."""

    index: int
    score: float
    keypoints: dict[str, Keypoint] = field(default_factory=dict)

    def keypoint(self, name: str) -> Keypoint | None:
        return self.keypoints.get(name)


@dataclass(frozen=True)
class ObjectDetection:
    """Raw object detector output."""

    label: str
    confidence: float
    bbox: BBox


@dataclass(frozen=True)
class PoseSignal:
    """Head geometry derived from one subject's nose and shoulders."""

    subject_index: int
    head_turn_ratio: float
    head_down_ratio: float
    nose: Point
    shoulder_left: Point
    shoulder_right: Point
    shoulder_width: float


@dataclass(frozen=True)
class SignalReading:
    """Fused per-subject inputs to the scorer."""

    head_turn_ratio: float
    head_down_ratio: float
    gesture_suspicious: bool
    audio_level: float


@dataclass(frozen=True)
class SuspicionVerdict:
    """Scorer output for one subject in one tick."""

    subject_index: int
    score: int
    suspicious: bool
    position: Point
    shoulder_width: float = 1.0
    shoulder_left: Point | None = None
    shoulder_right: Point | None = None
    reading: SignalReading | None = None


@dataclass(frozen=True)
class HeatPoint:
    position: Point
    created_at: float


@dataclass(frozen=True)
class ClipChunk:
    data: bytes
    captured_at: float


@dataclass(frozen=True)
class TimelineSample:
    timestamp: float
    suspicious_count: int


@dataclass(frozen=True)
class AlertEvent:
    """Alert published to the UI.

    `display_ms` is how long the banner stays visible; it is independent of the
    cooldown that gates how often the channel may fire.
    """

    channel: AlertChannel
    message: str
    severity: str
    created_at: float
    display_ms: int = 2000


@dataclass
class TickSummary:
    """Metadata payload associated with one processed render tick."""

    tick_id: int
    timestamp: float
    total_subjects: int
    suspicious_count: int
    verdicts: list[SuspicionVerdict]
    alerts: list[AlertEvent] = field(default_factory=list)
    heatmap: dict[str, Any] = field(default_factory=dict)
    objects: list[ObjectDetection] = field(default_factory=list)
    audio_level: float = 0.0
    focus: dict[str, Any] | None = None
    frame_size: tuple[int, int] = (0, 0)
    fps: float = 0.0
