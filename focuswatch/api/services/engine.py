from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import replace
from pathlib import Path

import cv2
import numpy as np

from focuswatch.core.analytics.report import SessionReport
from focuswatch.core.config.settings import MonitorSettings
from focuswatch.core.detectors.yolo import YoloObjectDetector, YoloPoseDetector
from focuswatch.core.monitors.audio import AudioSource, SoundDeviceSource
from focuswatch.core.session import MonitoringSession, SessionStartError
from focuswatch.core.types import TickSummary
from focuswatch.core.video_sources.base import FileSource, VideoSource, WebcamSource

logger = logging.getLogger(__name__)


class MonitorEngine:
    """Runs the capture -> tick -> chunk pipeline for one monitoring session.

    - capture thread continuously reads frames
    - tick thread runs detectors and `MonitoringSession.process()`, draws overlays
    - chunk thread JPEG-encodes the latest composited frame every
      `chunk_interval_ms` into the session's clip buffer

    The audio monitor runs its own thread inside the session.
    """

    def __init__(self, settings: MonitorSettings) -> None:
        self.settings = settings
        self.session: MonitoringSession | None = None
        self.source: VideoSource | None = None
        self.running = False
        self.last_error: str | None = None
        self.last_report: SessionReport | None = None

        self._capture_thread: threading.Thread | None = None
        self._tick_thread: threading.Thread | None = None
        self._chunk_thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._capture_lock = threading.Lock()
        self._capture_event = threading.Event()
        self._latest_captured_frame: np.ndarray | None = None
        self._latest_frame: bytes | None = None
        self._latest_summary: TickSummary | None = None
        self._tick_fps = 0.0
        self._tick_times: deque[float] = deque()

    def _make_source(self) -> VideoSource:
        """Instantiate the configured `VideoSource`."""

        if self.settings.video_source == "file" and self.settings.video_path:
            video_path = Path(self.settings.video_path)
            if not video_path.exists():
                raise RuntimeError(f"Video path not found: {video_path}")
            return FileSource(str(video_path))
        return WebcamSource(self.settings.camera_index)

    def _make_audio_source(self) -> AudioSource | None:
        if not self.settings.enable_audio:
            return None
        return SoundDeviceSource(device=self.settings.audio_device, smoothing=self.settings.audio_smoothing)

    def _make_session(self) -> MonitoringSession:
        """Load models and build the session; model errors are fatal to start."""

        s = self.settings
        pose = YoloPoseDetector(s.pose_model, conf=s.min_pose_score, max_det=s.max_subjects)
        objects = YoloObjectDetector(s.object_model) if s.enable_objects else None
        hands = None
        if s.enable_hands:
            from focuswatch.core.detectors.hands import MediaPipeHandDetector

            hands = MediaPipeHandDetector()
        return MonitoringSession(
            s,
            pose_detector=pose,
            hand_detector=hands,
            object_detector=objects,
            audio_source=self._make_audio_source(),
        )

    def start(self) -> None:
        """Acquire the camera, load models and start background threads.

        Raises:
            SessionStartError: If the video source or a model cannot be opened.
                The engine is left stopped with nothing retained.
        """

        if self.running:
            return
        try:
            self.source = self._make_source()
        except Exception as exc:
            self.last_error = "Failed to initialize video source"
            logger.exception(self.last_error)
            raise SessionStartError(f"{self.last_error}: {exc}") from exc
        try:
            self.session = self._make_session()
        except Exception as exc:
            self.source.close()
            self.source = None
            self.last_error = "Failed to load detection models"
            logger.exception(self.last_error)
            raise SessionStartError(f"{self.last_error}: {exc}") from exc

        self.session.start()
        self.running = True
        self.last_error = None
        self._capture_event.clear()
        self._capture_thread = threading.Thread(target=self._capture_loop, daemon=True)
        self._tick_thread = threading.Thread(target=self._tick_loop, daemon=True)
        self._chunk_thread = threading.Thread(target=self._chunk_loop, daemon=True)
        self._capture_thread.start()
        self._tick_thread.start()
        self._chunk_thread.start()

    def stop(self) -> SessionReport | None:
        """Stop threads, release the camera and return the session report (if any)."""

        self.running = False
        self._capture_event.set()
        for t in (self._capture_thread, self._tick_thread, self._chunk_thread):
            if t and t.is_alive():
                t.join(timeout=2)
        if self.source:
            self.source.close()
            self.source = None
        report = None
        if self.session is not None:
            report = self.session.stop()
            self.session = None
        self.last_report = report
        return report

    def _capture_loop(self) -> None:
        logger.debug("Capture loop started")
        while self.running and self.source:
            frame = self.source.read()
            if frame is None:
                time.sleep(0.01)
                continue
            with self._capture_lock:
                self._latest_captured_frame = frame
            self._capture_event.set()

    def _tick_loop(self) -> None:
        """Run one session tick per captured frame, paced by `target_fps`."""

        logger.debug("Tick loop started")
        target_fps = float(self.settings.target_fps)
        while self.running:
            if not self._capture_event.wait(timeout=0.5):
                continue
            with self._capture_lock:
                frame = self._latest_captured_frame
                self._latest_captured_frame = None
                self._capture_event.clear()
            session = self.session
            if frame is None or session is None:
                continue

            start = time.perf_counter()
            try:
                summary = session.tick(frame)
                composite = session.compose(frame, summary)
                self.last_error = None
            except Exception:
                self.last_error = "Tick processing failed"
                logger.exception(self.last_error)
                continue

            now = time.perf_counter()
            self._tick_times.append(now)
            while self._tick_times and (now - self._tick_times[0]) > 1.0:
                self._tick_times.popleft()
            if len(self._tick_times) >= 2:
                span = now - self._tick_times[0]
                if span > 0:
                    self._tick_fps = float((len(self._tick_times) - 1) / span)
            summary = replace(summary, fps=self._tick_fps)

            ok, jpg = cv2.imencode(".jpg", composite, [int(cv2.IMWRITE_JPEG_QUALITY), self.settings.jpeg_quality])
            with self._lock:
                self._latest_summary = summary
                if ok:
                    self._latest_frame = jpg.tobytes()

            if target_fps > 0:
                delay = (1.0 / target_fps) - (time.perf_counter() - start)
                if delay > 0:
                    time.sleep(delay)

    def _chunk_loop(self) -> None:
        """Push the latest encoded frame into the clip buffer at a fixed cadence."""

        logger.debug("Chunk loop started")
        interval = self.settings.chunk_interval_ms / 1000.0
        while self.running:
            time.sleep(interval)
            with self._lock:
                data = self._latest_frame
            session = self.session
            if data is None or session is None:
                continue
            try:
                session.push_chunk(data)
            except Exception:
                logger.exception("Failed to buffer media chunk")

    def latest_frame(self) -> bytes | None:
        """Return the latest encoded JPEG bytes (or `None` if not ready)."""

        with self._lock:
            return self._latest_frame

    def latest_summary(self) -> TickSummary | None:
        with self._lock:
            return self._latest_summary
