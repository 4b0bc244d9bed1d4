from __future__ import annotations

import time

import numpy as np
import pytest

from focuswatch.core.monitors.audio import (
    AUDIO_ALERT_MESSAGE,
    AudioLevelMonitor,
    SoundDeviceSource,
    spectrum_level,
)


class _FakeSource:
    def __init__(self, values=(0,), fail_open: bool = False):
        self.values = list(values)
        self.fail_open = fail_open
        self.opened = 0
        self.closed = 0

    def open(self):
        if self.fail_open:
            raise OSError("no microphone")
        self.opened += 1

    def read_spectrum(self):
        value = self.values.pop(0) if len(self.values) > 1 else self.values[0]
        return np.full(256, value, dtype=np.uint8)

    def close(self):
        self.closed += 1


def test_spectrum_level_normalizes_mean():
    assert spectrum_level(np.full(256, 255, dtype=np.uint8)) == 1.0
    assert spectrum_level(np.zeros(256, dtype=np.uint8)) == 0.0
    assert spectrum_level(np.array([0, 255], dtype=np.uint8)) == pytest.approx(0.5)
    assert spectrum_level(None) == 0.0
    assert spectrum_level(np.array([], dtype=np.uint8)) == 0.0


def test_open_failure_leaves_monitor_inactive():
    mon = AudioLevelMonitor(_FakeSource(fail_open=True))
    assert mon.start(run_thread=False) is False
    assert not mon.active
    assert mon.level == 0.0
    assert mon.sample(now=0.0) == 0.0


def test_no_source_is_inactive():
    mon = AudioLevelMonitor(None)
    assert mon.start(run_thread=False) is False
    assert mon.level == 0.0


def test_level_is_last_write_wins():
    mon = AudioLevelMonitor(_FakeSource(values=[51, 102]))
    assert mon.start(run_thread=False)
    mon.sample(now=0.0)
    assert mon.level == pytest.approx(0.2)
    mon.sample(now=0.1)
    assert mon.level == pytest.approx(0.4)


def test_alerts_respect_cooldown():
    mon = AudioLevelMonitor(_FakeSource(values=[128]), threshold=0.18, alert_cooldown_ms=3000)
    mon.start(run_thread=False)
    for t in (0.0, 1.0, 2.9, 3.0, 4.0):
        mon.sample(now=t)
    alerts = mon.drain_alerts()
    assert [a.created_at for a in alerts] == [0.0, 3.0]
    assert alerts[0].message == AUDIO_ALERT_MESSAGE
    assert alerts[0].channel == "audio"
    assert mon.drain_alerts() == []


def test_quiet_room_never_alerts():
    seen = []
    mon = AudioLevelMonitor(_FakeSource(values=[20]), on_alert=seen.append)
    mon.start(run_thread=False)
    for t in range(5):
        mon.sample(now=float(t))
    assert mon.drain_alerts() == []
    assert seen == []


def test_stop_releases_source_and_resets_level():
    src = _FakeSource(values=[200])
    mon = AudioLevelMonitor(src)
    mon.start(run_thread=False)
    mon.sample(now=0.0)
    mon.stop()
    assert src.closed == 1
    assert not mon.active
    assert mon.level == 0.0


def test_background_thread_samples():
    src = _FakeSource(values=[255])
    mon = AudioLevelMonitor(src, interval_s=0.001)
    assert mon.start(run_thread=True)
    try:
        for _ in range(200):
            if mon.level > 0:
                break
            time.sleep(0.005)
        assert mon.level == pytest.approx(1.0)
    finally:
        mon.stop()


def _feed(src: SoundDeviceSource, block: np.ndarray) -> float:
    src._samples.extend(block.tolist())
    return spectrum_level(src.read_spectrum())


def test_sounddevice_source_smooths_between_reads():
    src = SoundDeviceSource(samplerate=44100, fft_size=512)
    t = np.arange(512) / 44100.0
    loud = _feed(src, 0.5 * np.sin(2 * np.pi * 1000.0 * t))
    quiet = _feed(src, np.zeros(512))
    assert loud > 0.0
    # A single silent block only pulls the level down gradually.
    assert 0.5 * loud < quiet < loud

    for _ in range(100):
        level = _feed(src, np.zeros(512))
    assert level == 0.0


def test_sounddevice_source_without_smoothing_tracks_each_block():
    src = SoundDeviceSource(fft_size=512, smoothing=0.0)
    t = np.arange(512) / 44100.0
    assert _feed(src, 0.5 * np.sin(2 * np.pi * 1000.0 * t)) > 0.0
    assert _feed(src, np.zeros(512)) == 0.0


def test_sounddevice_source_needs_a_full_block():
    src = SoundDeviceSource(fft_size=512)
    src._samples.extend([0.1] * 100)
    assert src.read_spectrum() is None


def test_sounddevice_source_rejects_bad_smoothing():
    with pytest.raises(ValueError):
        SoundDeviceSource(smoothing=1.0)
