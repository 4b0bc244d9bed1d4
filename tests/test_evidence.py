from __future__ import annotations

import threading
from pathlib import Path

import cv2
import numpy as np
import pytest

from focuswatch.core.evidence.capture import (
    ClipRingBuffer,
    EncoderUnavailableError,
    EvidenceCaptureManager,
    OpenCVClipWriter,
)
from focuswatch.core.types import ClipChunk


class _RecordingWriter:
    suffix = ".webm"

    def __init__(self, fail: bool = False):
        self.calls: list[tuple[int, Path]] = []
        self.fail = fail

    def write(self, chunks, path):
        if self.fail:
            raise EncoderUnavailableError("no encoder")
        self.calls.append((len(chunks), path))
        return path


def test_ring_buffer_evicts_by_age_on_insert():
    buf = ClipRingBuffer(window_ms=5000)
    for i in range(30):
        buf.push(ClipChunk(data=b"x", captured_at=i * 0.2))
    chunks = buf.snapshot()
    # Last push at 5.8s keeps chunks strictly younger than 5s: 0.8s is evicted, 1.0s kept.
    assert chunks[0].captured_at == pytest.approx(1.0, abs=0.21)
    assert all((5.8 - c.captured_at) < 5.0 for c in chunks)
    assert len(buf) == len(chunks)


def test_clip_request_writes_buffer_and_keeps_it(tmp_path: Path):
    writer = _RecordingWriter()
    mgr = EvidenceCaptureManager(tmp_path, "tag", writer=writer)
    for i in range(5):
        mgr.push_chunk(b"chunk", now=100.0 + i * 0.2)

    path = mgr.request_clip(now=101.0)
    assert path is not None
    assert path.name.startswith("cheatEvidence_")
    assert path.suffix == ".webm"
    assert writer.calls == [(5, path)]
    assert len(mgr.buffer) == 5


def test_clip_requests_within_cooldown_are_noops(tmp_path: Path):
    writer = _RecordingWriter()
    mgr = EvidenceCaptureManager(tmp_path, "tag", clip_cooldown_ms=7000, writer=writer)
    mgr.push_chunk(b"a", now=0.0)
    assert mgr.request_clip(now=1.0) is not None

    mgr.push_chunk(b"b", now=2.0)
    before = mgr.buffer.snapshot()
    assert mgr.request_clip(now=7.999) is None
    assert mgr.buffer.snapshot() == before
    assert len(writer.calls) == 1

    assert mgr.request_clip(now=8.0) is not None
    assert len(writer.calls) == 2


def test_clip_request_with_empty_buffer_does_not_start_cooldown(tmp_path: Path):
    writer = _RecordingWriter()
    mgr = EvidenceCaptureManager(tmp_path, "tag", writer=writer)
    assert mgr.request_clip(now=0.0) is None
    mgr.push_chunk(b"a", now=0.5)
    assert mgr.request_clip(now=1.0) is not None


def test_encoder_failure_is_swallowed(tmp_path: Path):
    mgr = EvidenceCaptureManager(tmp_path, "tag", writer=_RecordingWriter(fail=True))
    mgr.push_chunk(b"a", now=0.0)
    assert mgr.request_clip(now=0.1) is None
    assert mgr.saved_clips == []


def test_snapshot_cooldown_and_file(tmp_path: Path):
    mgr = EvidenceCaptureManager(tmp_path, "tag", snapshot_cooldown_ms=5000)
    frame = np.zeros((8, 8, 3), dtype=np.uint8)
    first = mgr.request_snapshot(frame, now=1000.0)
    assert first is not None and first.exists()
    assert first.name.startswith("CheatEvidence_FULL_") and first.suffix == ".png"
    assert mgr.request_snapshot(frame, now=1004.0) is None
    second = mgr.request_snapshot(frame, now=1005.0)
    assert second is not None and second != first


def test_snapshot_names_are_unique_within_a_second(tmp_path: Path):
    mgr = EvidenceCaptureManager(tmp_path, "tag", snapshot_cooldown_ms=0)
    frame = np.zeros((8, 8, 3), dtype=np.uint8)
    a = mgr.request_snapshot(frame, now=1000.1)
    b = mgr.request_snapshot(frame, now=1000.2)
    assert a is not None and b is not None
    assert a != b


def test_snapshot_without_frame_is_noop(tmp_path: Path):
    mgr = EvidenceCaptureManager(tmp_path, "tag")
    assert mgr.request_snapshot(None, now=0.0) is None


def test_stop_drops_buffer(tmp_path: Path):
    mgr = EvidenceCaptureManager(tmp_path, "tag")
    mgr.push_chunk(b"a", now=0.0)
    mgr.stop()
    assert len(mgr.buffer) == 0


def test_opencv_writer_rejects_undecodable_chunks(tmp_path: Path):
    writer = OpenCVClipWriter()
    with pytest.raises(EncoderUnavailableError):
        writer.write([ClipChunk(data=b"not a jpeg", captured_at=0.0)], tmp_path / "x.avi")


def test_opencv_writer_writes_jpeg_chunks(tmp_path: Path):
    frame = np.full((32, 32, 3), 127, dtype=np.uint8)
    ok, jpg = cv2.imencode(".jpg", frame)
    assert ok
    chunks = [ClipChunk(data=jpg.tobytes(), captured_at=i * 0.2) for i in range(3)]
    try:
        path = OpenCVClipWriter().write(chunks, tmp_path / "clip.avi")
    except EncoderUnavailableError:
        pytest.skip("OpenCV build cannot write MJPG video on this platform")
    assert path.exists()


def test_session_recording_keeps_every_chunk(tmp_path: Path):
    writer = _RecordingWriter()
    mgr = EvidenceCaptureManager(tmp_path, "tag", clip_window_ms=1000, writer=writer)
    mgr.push_chunk(b"before", now=0.0)
    mgr.start_session_recording()
    assert mgr.recording
    for i in range(10):
        mgr.push_chunk(b"c", now=1.0 + i)
    assert len(mgr.buffer) == 1

    path = mgr.stop_session_recording(now=12.0)
    assert path is not None and path.suffix == ".webm"
    assert writer.calls == [(10, path)]
    assert mgr.recording_path == path
    assert not mgr.recording
    assert mgr.stop_session_recording(now=13.0) is None


def test_empty_or_failed_session_recording_is_noop(tmp_path: Path):
    mgr = EvidenceCaptureManager(tmp_path, "tag", writer=_RecordingWriter())
    mgr.start_session_recording()
    assert mgr.stop_session_recording(now=1.0) is None

    failing = EvidenceCaptureManager(tmp_path, "tag", writer=_RecordingWriter(fail=True))
    failing.start_session_recording()
    failing.push_chunk(b"a", now=0.0)
    assert failing.stop_session_recording(now=1.0) is None
    assert failing.recording_path is None


def test_stop_discards_unfinished_recording(tmp_path: Path):
    mgr = EvidenceCaptureManager(tmp_path, "tag", writer=_RecordingWriter())
    mgr.start_session_recording()
    mgr.push_chunk(b"a", now=0.0)
    mgr.stop()
    assert not mgr.recording


def test_ring_buffer_snapshots_while_another_thread_pushes():
    buf = ClipRingBuffer(window_ms=1000)
    errors = []

    def _produce():
        try:
            for i in range(5000):
                buf.push(ClipChunk(data=b"x", captured_at=i * 0.25))
        except Exception as exc:  # pragma: no cover - surfaced through `errors`
            errors.append(exc)

    producer = threading.Thread(target=_produce)
    producer.start()
    while producer.is_alive():
        chunks = buf.snapshot()
        if chunks:
            assert (chunks[-1].captured_at - chunks[0].captured_at) < 1.0
            assert list(chunks) == sorted(chunks, key=lambda c: c.captured_at)
    producer.join()
    assert errors == []
    # Window of 1 s at 0.25 s spacing: the chunk exactly 1 s old is evicted.
    assert len(buf) == 4
