"""Monitoring session orchestration.

A `MonitoringSession` owns every piece of mutable state for one start -> stop
cycle: cooldowns, the clip buffer, the heatmap, the timeline and the audio
monitor. Each render tick runs extraction for all subjects, then scoring against
a single audio snapshot, then the side effects (heatmap, evidence, timeline).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Protocol

import numpy as np

from focuswatch.core.analytics.focus import focus_summary
from focuswatch.core.analytics.heatmap import HeatmapTracker
from focuswatch.core.analytics.report import EmptySessionError, SessionReport, export_report, summarize
from focuswatch.core.analytics.scoring import SuspicionScorer
from focuswatch.core.analytics.timeline import TimelineRecorder
from focuswatch.core.config.settings import (
    MonitorSettings,
    heatmap_from_settings,
    scoring_rules_from_settings,
)
from focuswatch.core.evidence.capture import ClipWriter, EvidenceCaptureManager
from focuswatch.core.monitors.audio import AudioLevelMonitor, AudioSource
from focuswatch.core.monitors.objects import ObjectAlertMonitor
from focuswatch.core.overlay.draw import draw_overlays
from focuswatch.core.signals.extractors import analyze_gesture, extract_pose_signals
from focuswatch.core.types import (
    Frame,
    HandLandmarks,
    ObjectDetection,
    PoseSubject,
    TickSummary,
)

logger = logging.getLogger(__name__)


class SessionStartError(RuntimeError):
    """Raised when a session cannot start (no camera, models unavailable)."""


class PoseDetector(Protocol):
    def detect(self, frame: np.ndarray) -> list[PoseSubject]:
        """Return this frame's subjects."""


class HandDetector(Protocol):
    def detect(self, frame: np.ndarray) -> list[HandLandmarks]:
        """Return normalized landmarks for every hand."""


class ObjectDetector(Protocol):
    def detect(self, frame: np.ndarray) -> list[ObjectDetection]:
        """Return class-named detections."""


@dataclass
class TickInputs:
    """Detector outputs for one tick."""

    poses: Sequence[PoseSubject] = field(default_factory=list)
    hands: Sequence[HandLandmarks] = field(default_factory=list)
    objects: Sequence[ObjectDetection] = field(default_factory=list)


class MonitoringSession:
    """One exam monitoring session.

    Detectors are optional: `process()` accepts precomputed `TickInputs`, while
    `tick()` runs the injected detectors on a frame first.
    """

    def __init__(
        self,
        settings: MonitorSettings | None = None,
        pose_detector: PoseDetector | None = None,
        hand_detector: HandDetector | None = None,
        object_detector: ObjectDetector | None = None,
        audio_source: AudioSource | None = None,
        output_dir: str | Path | None = None,
        writer: ClipWriter | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or MonitorSettings()
        s = self.settings
        self.pose_detector = pose_detector
        self.hand_detector = hand_detector
        self.object_detector = object_detector
        self._clock = clock

        started = clock()
        self.started_at = started
        self.tag = datetime.fromtimestamp(started).strftime("%Y%m%d-%H%M%S")
        self.output_dir = Path(output_dir if output_dir is not None else s.output_dir)

        self.scorer = SuspicionScorer(scoring_rules_from_settings(s))
        self.heatmap = HeatmapTracker(heatmap_from_settings(s))
        self.timeline = TimelineRecorder(s.timeline_interval_ms, start_at=started)
        self.evidence = EvidenceCaptureManager(
            self.output_dir,
            self.tag,
            clip_window_ms=s.clip_window_ms,
            clip_cooldown_ms=s.clip_cooldown_ms,
            snapshot_cooldown_ms=s.snapshot_cooldown_ms,
            writer=writer,
        )
        self._snapshot_pending = False
        self.objects = ObjectAlertMonitor(
            min_confidence=s.object_min_confidence,
            cooldown_ms=s.object_alert_cooldown_ms,
            alert_display_ms=s.alert_display_ms,
            on_snapshot=self._request_snapshot,
        )
        self.audio = AudioLevelMonitor(
            audio_source,
            threshold=s.audio_threshold,
            alert_cooldown_ms=s.audio_alert_cooldown_ms,
            alert_display_ms=s.alert_display_ms,
            clock=clock,
        )
        self.tick_id = 0
        self.running = False
        self._stopped = False
        self.report: SessionReport | None = None
        self.report_path: Path | None = None
        self.recording_path: Path | None = None

    def start(self, audio_thread: bool = True) -> None:
        """Mark the session live and start the audio loop (best-effort)."""

        if self.running or self._stopped:
            return
        self.running = True
        if self.settings.enable_audio:
            self.audio.start(run_thread=audio_thread)
        if self.settings.record_session:
            self.evidence.start_session_recording()
        logger.info("Monitoring session %s started", self.tag)

    def _request_snapshot(self, _now: float) -> None:
        # The composited frame only exists once the tick's summary is built.
        self._snapshot_pending = True

    def detect(self, frame: Frame) -> TickInputs:
        """Run the injected detectors on `frame`."""

        poses = self.pose_detector.detect(frame) if self.pose_detector is not None else []
        hands = self.hand_detector.detect(frame) if self.hand_detector is not None else []
        objects = self.object_detector.detect(frame) if self.object_detector is not None else []
        return TickInputs(poses=poses, hands=hands, objects=objects)

    def tick(self, frame: Frame, now: float | None = None) -> TickSummary:
        """Detect on `frame` and process the results."""

        return self.process(self.detect(frame), frame=frame, now=now)

    def process(self, inputs: TickInputs, frame: Frame | None = None, now: float | None = None) -> TickSummary:
        """Score one tick's detector outputs and apply its side effects."""

        s = self.settings
        ts = self._clock() if now is None else float(now)
        self.tick_id += 1
        frame_size = (0, 0)
        if frame is not None:
            h, w = frame.shape[:2]
            frame_size = (int(w), int(h))
            if self.heatmap.frame_size is None:
                self.heatmap.frame_size = frame_size

        # Extraction completes for every subject before any scoring.
        signals = extract_pose_signals(inputs.poses, s.min_pose_score, s.min_keypoint_score)
        gesture = analyze_gesture(inputs.hands, s.gesture_max_palm_width, s.gesture_min_wrist_y)
        audio_level = self.audio.level
        alerts = self.audio.drain_alerts()

        verdicts = self.scorer.evaluate(signals, gesture, audio_level)
        suspicious_count = 0
        for verdict in verdicts:
            if not verdict.suspicious:
                continue
            suspicious_count += 1
            self.heatmap.add(verdict.position, ts)
            if self.scorer.needs_evidence(verdict):
                self.evidence.request_clip(ts)

        self._snapshot_pending = False
        if s.enable_objects:
            alerts.extend(self.objects.process(inputs.objects, ts))
            flagged = list(self.objects.last_flagged)
        else:
            flagged = []

        self.timeline.record(suspicious_count, ts)
        focus = focus_summary(inputs.poses, s.focus_strictness)

        summary = TickSummary(
            tick_id=self.tick_id,
            timestamp=ts,
            total_subjects=len(signals),
            suspicious_count=suspicious_count,
            verdicts=verdicts,
            alerts=alerts,
            heatmap=self.heatmap.summary(ts),
            objects=flagged,
            audio_level=float(audio_level),
            focus=asdict(focus),
            frame_size=frame_size,
        )

        if self._snapshot_pending:
            self._snapshot_pending = False
            composite = self.compose(frame, summary) if frame is not None else None
            self.evidence.request_snapshot(composite, ts)
        return summary

    def compose(self, frame: Frame, summary: TickSummary) -> np.ndarray:
        """Return the frame with this tick's overlays (the snapshot surface)."""

        return draw_overlays(frame, summary, heat_opacity=self.heatmap.config.max_opacity)

    def push_chunk(self, data: bytes, now: float | None = None) -> None:
        if not self.running:
            return
        self.evidence.push_chunk(data, self._clock() if now is None else float(now))

    def stop(self, now: float | None = None) -> SessionReport | None:
        """Stop the session and summarise its timeline.

        Ticks processed without `start()` still count. Returns None when nothing
        was sampled. In-flight clip media is dropped; a session recording is
        written first.
        """

        if self._stopped:
            return self.report
        self._stopped = True
        self.running = False
        self.audio.stop()
        if self.evidence.recording:
            ended = self._clock() if now is None else float(now)
            self.recording_path = self.evidence.stop_session_recording(ended)
        self.evidence.stop()
        samples = self.timeline.drain()
        self.heatmap.clear()
        try:
            report = summarize(samples, now=now)
        except EmptySessionError as exc:
            logger.warning("Session %s: %s", self.tag, exc)
            return None
        self.report = report
        try:
            self.report_path = export_report(report, self.output_dir, self.tag)
        except OSError:
            logger.exception("Failed to export session report")
        logger.info(
            "Monitoring session %s stopped: %d samples, max %d, avg %.2f",
            self.tag,
            report.sampled_seconds,
            report.max_suspicious,
            report.avg_suspicious,
        )
        return report
