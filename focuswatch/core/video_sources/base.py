"""Video source abstractions.

The monitor consumes frames through a small interface (`VideoSource`) so the
capture implementation (webcam/file) can be swapped without touching the
session. Opening a source that does not exist raises `RuntimeError`; the engine
treats that as a fatal start failure.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod

import cv2

from focuswatch.core.types import Frame

logger = logging.getLogger(__name__)


class VideoSource(ABC):
    """Base interface for anything that can produce video frames."""

    @abstractmethod
    def read(self) -> Frame | None:
        """Return the next frame, or `None` when unavailable."""

        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any underlying resources."""

        raise NotImplementedError


class OpenCVSource(VideoSource):
    """A `VideoSource` backed by `cv2.VideoCapture`."""

    def __init__(self, source: str | int) -> None:
        self.cap = cv2.VideoCapture(source)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {source}")

    def read(self) -> Frame | None:
        ok, frame = self.cap.read()
        if not ok:
            return None
        return frame

    def close(self) -> None:
        self.cap.release()


class WebcamSource(OpenCVSource):
    """Webcam capture that always hands out the newest frame.

    A reader thread drains the driver buffer so a slow render tick never works on
    a stale frame.
    """

    def __init__(self, index: int = 0, width: int = 1280, height: int = 720) -> None:
        super().__init__(index)
        ok, _ = self.cap.read()
        if not ok:
            self.cap.release()
            raise RuntimeError(f"Camera {index} opened but returned no frames")
        logger.info("Opened camera index=%s", index)

        try:
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            pass
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        self._lock = threading.Lock()
        self._running = True
        self._latest_frame: Frame | None = None
        self._latest_seq = 0
        self._delivered_seq = 0
        self._reader_thread = threading.Thread(target=self._reader_loop, daemon=True)
        self._reader_thread.start()

    def _reader_loop(self) -> None:
        while self._running:
            ok, frame = self.cap.read()
            if not ok:
                time.sleep(0.01)
                continue
            with self._lock:
                self._latest_frame = frame
                self._latest_seq += 1

    def read(self) -> Frame | None:
        """Return the newest frame, or None if nothing new arrived since the last read."""

        with self._lock:
            frame = self._latest_frame
            seq = self._latest_seq
        if frame is None or seq == self._delivered_seq:
            return None
        self._delivered_seq = seq
        return frame

    def close(self) -> None:
        self._running = False
        try:
            if self._reader_thread.is_alive():
                self._reader_thread.join(timeout=1)
        finally:
            self.cap.release()


class FileSource(OpenCVSource):
    """Video file played back in real time, looping at EOF."""

    def __init__(self, path: str) -> None:
        self._path = path
        super().__init__(path)
        fps = 0.0
        try:
            fps = float(self.cap.get(cv2.CAP_PROP_FPS))
        except Exception:
            fps = 0.0
        self._source_fps = fps if fps > 0.0 else None
        self._start_perf: float | None = None
        self._frame_index = 0

    def _pace(self) -> None:
        if self._source_fps is None or self._start_perf is None:
            return
        expected = self._frame_index / self._source_fps
        delay = expected - (time.perf_counter() - self._start_perf)
        if delay > 0:
            time.sleep(delay)

    def read(self) -> Frame | None:
        if self._start_perf is None:
            self._start_perf = time.perf_counter()
            self._frame_index = 0

        ok, frame = self.cap.read()
        if not ok:
            # EOF: rewind and restart pacing.
            if not self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0):
                return None
            self._start_perf = time.perf_counter()
            self._frame_index = 0
            ok, frame = self.cap.read()
            if not ok:
                return None
        self._frame_index += 1
        self._pace()
        return frame
