from __future__ import annotations

import time

import numpy as np
import pytest

from focuswatch.api.services.engine import MonitorEngine
from focuswatch.core.config.settings import MonitorSettings
from focuswatch.core.session import MonitoringSession, SessionStartError
from focuswatch.core.video_sources.base import VideoSource


class _FrameSource(VideoSource):
    def __init__(self):
        self.closed = False

    def read(self):
        time.sleep(0.01)
        return np.zeros((48, 64, 3), dtype=np.uint8)

    def close(self):
        self.closed = True


def test_missing_video_file_fails_start():
    engine = MonitorEngine(MonitorSettings(video_source="file", video_path="/nonexistent/video.mp4"))
    with pytest.raises(SessionStartError):
        engine.start()
    assert engine.running is False
    assert engine.last_error is not None
    assert engine.session is None


def test_model_failure_releases_source(monkeypatch: pytest.MonkeyPatch):
    source = _FrameSource()
    engine = MonitorEngine(MonitorSettings(enable_audio=False))
    monkeypatch.setattr(engine, "_make_source", lambda: source)

    def _boom():
        raise OSError("weights not found")

    monkeypatch.setattr(engine, "_make_session", _boom)
    with pytest.raises(SessionStartError, match="models"):
        engine.start()
    assert source.closed
    assert engine.source is None
    assert not engine.running


def test_engine_runs_ticks_and_stops(monkeypatch: pytest.MonkeyPatch, tmp_path):
    settings = MonitorSettings(enable_audio=False, target_fps=0, chunk_interval_ms=20, output_dir=str(tmp_path))
    engine = MonitorEngine(settings)
    source = _FrameSource()
    monkeypatch.setattr(engine, "_make_source", lambda: source)
    monkeypatch.setattr(engine, "_make_session", lambda: MonitoringSession(settings, output_dir=tmp_path))

    engine.start()
    try:
        deadline = time.time() + 3.0
        while time.time() < deadline:
            if engine.latest_summary() is not None and engine.latest_frame() is not None:
                break
            time.sleep(0.02)
        summary = engine.latest_summary()
        assert summary is not None
        assert summary.frame_size == (64, 48)
        assert engine.latest_frame()[:2] == b"\xff\xd8"
    finally:
        engine.stop()
    assert source.closed
    assert engine.session is None
    assert not engine.running
