"""Monitoring configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `FW_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from focuswatch.core.analytics.heatmap import HeatmapConfig
from focuswatch.core.analytics.scoring import ScoringRules


class MonitorSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `FW_` env overrides."""

    model_config = SettingsConfigDict(env_prefix="FW_", validate_assignment=True)

    video_source: str = Field("webcam", description="webcam|file")
    video_path: str | None = None
    camera_index: int = 0

    # Ultralytics models. The pose model must emit COCO-17 keypoints.
    pose_model: str = "yolo11n-pose.pt"
    object_model: str = "yolo11n.pt"
    max_subjects: int = 30
    enable_hands: bool = True
    enable_objects: bool = True
    enable_audio: bool = True
    audio_device: str | None = None

    # Exam-mode confidence floors.
    min_pose_score: float = 0.10
    min_keypoint_score: float = 0.25

    # Scoring thresholds.
    turn_low: float = 0.20
    turn_high: float = 0.30
    down_low: float = 0.15
    down_high: float = 0.25
    gesture_max_palm_width: float = 0.05
    gesture_min_wrist_y: float = 0.65

    audio_threshold: float = 0.18
    # Weight of the previous spectrum when smoothing microphone levels.
    audio_smoothing: float = 0.8
    audio_alert_cooldown_ms: int = 3000
    alert_display_ms: int = 2000

    object_min_confidence: float = 0.50
    object_alert_cooldown_ms: int = 4000

    heatmap_decay_ms: int = 20000
    heatmap_grid: str = Field("16x9", description="e.g. 16x9")

    clip_window_ms: int = 5000
    clip_cooldown_ms: int = 7000
    snapshot_cooldown_ms: int = 5000
    chunk_interval_ms: int = 200
    jpeg_quality: int = 70

    timeline_interval_ms: int = 1000

    # Class-mode focus strictness (0 = lenient, 1 = strict).
    focus_strictness: float = 0.5
    # Class mode: write the whole session as one video when it stops.
    record_session: bool = False

    # Optional cap for the render tick loop. Use 0 to run as fast as possible.
    target_fps: float = 15.0
    output_dir: str = "evidence"

    @field_validator(
        "min_pose_score",
        "min_keypoint_score",
        "audio_threshold",
        "object_min_confidence",
        "gesture_min_wrist_y",
        "focus_strictness",
    )
    @classmethod
    def _validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= float(v) <= 1.0:
            raise ValueError("value must be in [0, 1]")
        return float(v)

    @field_validator("turn_low", "turn_high", "down_low", "down_high", "gesture_max_palm_width")
    @classmethod
    def _validate_ratio(cls, v: float) -> float:
        if float(v) < 0.0:
            raise ValueError("ratio thresholds must be >= 0")
        return float(v)

    @field_validator(
        "audio_alert_cooldown_ms",
        "alert_display_ms",
        "object_alert_cooldown_ms",
        "snapshot_cooldown_ms",
        "clip_cooldown_ms",
    )
    @classmethod
    def _validate_cooldown(cls, v: int) -> int:
        if int(v) < 0:
            raise ValueError("cooldowns must be >= 0")
        return int(v)

    @field_validator("heatmap_decay_ms", "clip_window_ms", "chunk_interval_ms", "timeline_interval_ms")
    @classmethod
    def _validate_window(cls, v: int) -> int:
        if int(v) <= 0:
            raise ValueError("windows and intervals must be > 0")
        return int(v)

    @field_validator("audio_smoothing")
    @classmethod
    def _validate_smoothing(cls, v: float) -> float:
        if not 0.0 <= float(v) < 1.0:
            raise ValueError("audio_smoothing must be in [0, 1)")
        return float(v)

    @field_validator("heatmap_grid")
    @classmethod
    def _validate_grid(cls, v: str) -> str:
        _parse_grid(v)  # will raise if invalid
        return v

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file"}:
            raise ValueError("video_source must be webcam|file")
        return v

    @field_validator("jpeg_quality")
    @classmethod
    def _validate_jpeg_quality(cls, v: int) -> int:
        if not 10 <= int(v) <= 100:
            raise ValueError("jpeg_quality must be in [10, 100]")
        return int(v)

    @field_validator("target_fps")
    @classmethod
    def _validate_target_fps(cls, v: float) -> float:
        if v < 0:
            raise ValueError("target_fps must be >= 0")
        return float(v)

    @field_validator("max_subjects")
    @classmethod
    def _validate_max_subjects(cls, v: int) -> int:
        if int(v) <= 0:
            raise ValueError("max_subjects must be >= 1")
        return int(v)


def settings_to_dict(settings: MonitorSettings) -> dict[str, Any]:
    """Convert settings to a plain dict."""

    return cast(dict[str, Any], settings.model_dump())


def _parse_grid(grid: str) -> tuple[int, int]:
    """Parse a grid spec like "16x9" into (cols, rows)."""

    if "x" not in grid.lower():
        raise ValueError("heatmap_grid must be formatted as <cols>x<rows>, e.g., 16x9")
    gx, gy = grid.lower().split("x")
    gx_i, gy_i = int(gx), int(gy)
    if gx_i <= 0 or gy_i <= 0:
        raise ValueError("heatmap_grid values must be > 0")
    return gx_i, gy_i


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/focuswatch.config.yml)."""

    return Path(os.getenv("FW_CONFIG", "config/focuswatch.config.yml"))


def load_settings() -> MonitorSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = MonitorSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged = {**data, **env_overrides}
    return MonitorSettings(**merged)


def scoring_rules_from_settings(settings: MonitorSettings) -> ScoringRules:
    return ScoringRules(
        turn_low=settings.turn_low,
        turn_high=settings.turn_high,
        down_low=settings.down_low,
        down_high=settings.down_high,
        audio_threshold=settings.audio_threshold,
    )


def heatmap_from_settings(settings: MonitorSettings) -> HeatmapConfig:
    return HeatmapConfig(decay_ms=settings.heatmap_decay_ms, grid_size=_parse_grid(settings.heatmap_grid))
