"""Pydantic models for the HTTP/WS API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class StatsSchema(BaseModel):
    """High-level summary stats payload."""

    running: bool
    total_subjects: int
    suspicious_count: int
    fps: float
    audio_level: float
    hottest_cell: list[int] | None
    error: str | None = None


class ReportSchema(BaseModel):
    """Session report payload."""

    generatedAt: str
    sampledSeconds: int
    maxSuspicious: int
    avgSuspicious: float
    rawSamples: list[dict[str, Any]]


class ConfigSchema(BaseModel):
    """Runtime configuration payload."""

    video_source: str
    video_path: str | None = None
    camera_index: int = Field(default=0, ge=0)
    pose_model: str
    object_model: str
    enable_hands: bool = True
    enable_objects: bool = True
    enable_audio: bool = True
    min_pose_score: float = Field(default=0.10, ge=0.0, le=1.0)
    min_keypoint_score: float = Field(default=0.25, ge=0.0, le=1.0)
    turn_low: float = Field(default=0.20, ge=0.0)
    turn_high: float = Field(default=0.30, ge=0.0)
    down_low: float = Field(default=0.15, ge=0.0)
    down_high: float = Field(default=0.25, ge=0.0)
    audio_threshold: float = Field(default=0.18, ge=0.0, le=1.0)
    audio_smoothing: float = Field(default=0.8, ge=0.0, lt=1.0)
    object_min_confidence: float = Field(default=0.50, ge=0.0, le=1.0)
    heatmap_decay_ms: int = Field(default=20000, gt=0)
    clip_cooldown_ms: int = Field(default=7000, ge=0)
    snapshot_cooldown_ms: int = Field(default=5000, ge=0)
    focus_strictness: float = Field(default=0.5, ge=0.0, le=1.0)
    record_session: bool = False
    target_fps: float = Field(default=15.0, ge=0)
    jpeg_quality: int = Field(default=70, ge=10, le=100)
    output_dir: str = "evidence"

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file"}:
            raise ValueError("video_source must be webcam|file")
        return v
