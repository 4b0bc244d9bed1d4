"""Evidence capture: rolling clip buffer and full-frame snapshots.

Two independent, cooldown-gated mechanisms:
- clips: the media producer pushes JPEG chunks into a time-windowed ring buffer;
  a save request materializes whatever the window holds at that moment;
- snapshots: a still image of the composited frame (video + overlays).

An optional session recording keeps every chunk between start and stop and is
written once, through the same clip writer, when the session ends.

Capture is best-effort. Encoder or filesystem failures are logged and the
request becomes a no-op; nothing here raises into the render loop.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Protocol

import cv2
import numpy as np

from focuswatch.core.cooldown import CooldownChannel
from focuswatch.core.types import ClipChunk, Frame

logger = logging.getLogger(__name__)


class EncoderUnavailableError(RuntimeError):
    """Raised by writers when the media encoder cannot produce the artifact."""


class ClipRingBuffer:
    """Chunks captured within the last `window_ms`, evicted on insert.

    The media producer pushes from its own thread while the tick thread takes
    snapshots, so every access goes through the buffer lock.
    """

    def __init__(self, window_ms: int = 5000) -> None:
        self.window_ms = int(window_ms)
        self._chunks: deque[ClipChunk] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._chunks)

    def push(self, chunk: ClipChunk) -> None:
        with self._lock:
            self._chunks.append(chunk)
            now = chunk.captured_at
            while self._chunks and (now - self._chunks[0].captured_at) * 1000.0 >= self.window_ms:
                self._chunks.popleft()

    def snapshot(self) -> tuple[ClipChunk, ...]:
        with self._lock:
            return tuple(self._chunks)

    def clear(self) -> None:
        with self._lock:
            self._chunks.clear()


class ClipWriter(Protocol):
    def write(self, chunks: Sequence[ClipChunk], path: Path) -> Path:
        """Persist `chunks` to `path` and return the written path."""


class OpenCVClipWriter:
    """Write JPEG chunks as an MJPG AVI through `cv2.VideoWriter`."""

    suffix = ".avi"

    def __init__(self, fps: float = 5.0) -> None:
        self.fps = float(fps)

    def write(self, chunks: Sequence[ClipChunk], path: Path) -> Path:
        frames: list[np.ndarray] = []
        for chunk in chunks:
            frame = cv2.imdecode(np.frombuffer(chunk.data, dtype=np.uint8), cv2.IMREAD_COLOR)
            if frame is not None:
                frames.append(frame)
        if not frames:
            raise EncoderUnavailableError("No decodable chunks in clip buffer")

        h, w = frames[0].shape[:2]
        fourcc = cv2.VideoWriter_fourcc(*"MJPG")
        writer = cv2.VideoWriter(str(path), fourcc, self.fps, (w, h))
        if not writer.isOpened():
            raise EncoderUnavailableError(f"Cannot open video writer for {path}")
        try:
            for frame in frames:
                if frame.shape[:2] != (h, w):
                    frame = cv2.resize(frame, (w, h), interpolation=cv2.INTER_LINEAR)
                writer.write(frame)
        finally:
            writer.release()
        return path


def _clip_timestamp(now: float) -> str:
    # ISO-like with ':' and '.' replaced so the name is filesystem safe.
    return datetime.fromtimestamp(now).isoformat(timespec="milliseconds").replace(":", "-").replace(".", "-")


def _snapshot_timestamp(now: float) -> str:
    return datetime.fromtimestamp(now).strftime("%Y-%m-%d_%H-%M-%S")


class EvidenceCaptureManager:
    """Own the clip buffer and both capture cooldowns for one session."""

    def __init__(
        self,
        output_dir: str | Path,
        session_tag: str,
        clip_window_ms: int = 5000,
        clip_cooldown_ms: int = 7000,
        snapshot_cooldown_ms: int = 5000,
        writer: ClipWriter | None = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.session_tag = session_tag
        self.buffer = ClipRingBuffer(clip_window_ms)
        self.clip_cooldown = CooldownChannel("evidence_clip", int(clip_cooldown_ms))
        self.snapshot_cooldown = CooldownChannel("snapshot", int(snapshot_cooldown_ms))
        self.writer: ClipWriter = writer or OpenCVClipWriter()
        self.saved_clips: list[Path] = []
        self.saved_snapshots: list[Path] = []
        self.recording_path: Path | None = None
        self._used_names: set[str] = set()
        self._recording: list[ClipChunk] | None = None
        self._recording_lock = threading.Lock()

    @property
    def recording(self) -> bool:
        return self._recording is not None

    def push_chunk(self, data: bytes, now: float) -> None:
        if not data:
            return
        chunk = ClipChunk(data=bytes(data), captured_at=now)
        self.buffer.push(chunk)
        with self._recording_lock:
            if self._recording is not None:
                self._recording.append(chunk)

    def _unique_path(self, stem: str, suffix: str) -> Path:
        name = f"{stem}{suffix}"
        n = 1
        while name in self._used_names:
            n += 1
            name = f"{stem}_{n}{suffix}"
        self._used_names.add(name)
        return self.output_dir / name

    def request_clip(self, now: float) -> Path | None:
        """Save the current buffer as a clip if the clip cooldown allows it.

        Only a successful save restarts the cooldown. The buffer itself is never
        cleared by a save.
        """

        if not self.clip_cooldown.ready(now):
            return None
        chunks = self.buffer.snapshot()
        if not chunks:
            logger.debug("Clip requested with an empty buffer; skipping")
            return None
        suffix = getattr(self.writer, "suffix", ".avi")
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self._unique_path(f"cheatEvidence_{_clip_timestamp(now)}", suffix)
            written = self.writer.write(chunks, path)
        except Exception as exc:
            logger.warning("Evidence clip not saved: %s", exc)
            return None
        self.clip_cooldown.fire(now)
        self.saved_clips.append(written)
        logger.info("Evidence clip saved: %s (%d chunks)", written, len(chunks))
        return written

    def request_snapshot(self, frame: Frame | None, now: float) -> Path | None:
        """Write a PNG of the composited frame if the snapshot cooldown allows it."""

        if not self.snapshot_cooldown.try_fire(now):
            return None
        if frame is None or getattr(frame, "size", 0) == 0:
            logger.debug("Snapshot requested without a frame; skipping")
            return None
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self._unique_path(f"CheatEvidence_FULL_{_snapshot_timestamp(now)}", ".png")
            if not cv2.imwrite(str(path), frame):
                raise EncoderUnavailableError(f"PNG encoder failed for {path}")
        except Exception as exc:
            logger.warning("Snapshot not saved: %s", exc)
            return None
        self.saved_snapshots.append(path)
        logger.info("Full-frame snapshot saved: %s", path)
        return path

    def start_session_recording(self) -> None:
        """Keep every pushed chunk until `stop_session_recording()`."""

        with self._recording_lock:
            if self._recording is None:
                self._recording = []
        logger.info("Session recording started")

    def stop_session_recording(self, now: float) -> Path | None:
        """Write everything recorded since the start as one video.

        Returns None when nothing was recorded or the writer failed.
        """

        with self._recording_lock:
            chunks, self._recording = self._recording, None
        if not chunks:
            return None
        suffix = getattr(self.writer, "suffix", ".avi")
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self._unique_path(f"focuswatch-class_{_clip_timestamp(now)}", suffix)
            written = self.writer.write(chunks, path)
        except Exception as exc:
            logger.warning("Session recording not saved: %s", exc)
            return None
        self.recording_path = written
        logger.info("Session recording saved: %s (%d chunks)", written, len(chunks))
        return written

    def stop(self) -> None:
        """Drop any buffered media; in-flight chunks are not persisted.

        An unfinished session recording is discarded as well.
        """

        self.buffer.clear()
        with self._recording_lock:
            self._recording = None
