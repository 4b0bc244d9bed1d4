"""Ambient audio level monitoring.

The monitor runs its own sampling thread, decoupled from the render tick rate. It
reduces each frequency-domain buffer to one normalized volume and publishes it as
the latest known level (last write wins). Failing to open a microphone is not
fatal: the monitor stays inactive and the scorer simply never sees audio.
"""

from __future__ import annotations

import importlib
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any, Protocol

import numpy as np

from focuswatch.core.cooldown import CooldownChannel
from focuswatch.core.types import AlertEvent

logger = logging.getLogger(__name__)

AUDIO_ALERT_MESSAGE = "Talking / whisper detected"


class AudioSource(Protocol):
    """Anything that yields byte-scaled frequency magnitudes (0..255)."""

    def open(self) -> None:
        """Acquire the device; raise on failure."""

    def read_spectrum(self) -> np.ndarray | None:
        """Return the latest spectrum, or None when no data is ready."""

    def close(self) -> None:
        """Release the device."""


def spectrum_level(spectrum: np.ndarray | None) -> float:
    """Return the mean magnitude of a byte spectrum normalized to [0, 1]."""

    if spectrum is None or len(spectrum) == 0:
        return 0.0
    arr = np.asarray(spectrum, dtype=np.float64)
    level = float(arr.sum() / arr.size / 255.0)
    return max(0.0, min(1.0, level))


class SoundDeviceSource:
    """Microphone input through `sounddevice`, analysed like a browser AnalyserNode.

    A 512-point FFT over the most recent samples yields 256 linear magnitudes.
    Each read blends them with the previous read (`smoothing` is the weight of the
    previous value) before the dB magnitudes are mapped linearly from
    [min_db, max_db] to [0, 255].
    """

    def __init__(
        self,
        samplerate: int = 44100,
        fft_size: int = 512,
        device: int | str | None = None,
        min_db: float = -100.0,
        max_db: float = -30.0,
        smoothing: float = 0.8,
    ) -> None:
        if not 0.0 <= float(smoothing) < 1.0:
            raise ValueError("smoothing must be in [0, 1)")
        self.samplerate = int(samplerate)
        self.fft_size = int(fft_size)
        self.device = device
        self.min_db = float(min_db)
        self.max_db = float(max_db)
        self.smoothing = float(smoothing)
        self._smoothed: np.ndarray | None = None
        self._stream: Any | None = None
        self._lock = threading.Lock()
        self._samples: deque[float] = deque(maxlen=self.fft_size)
        self._window = np.blackman(self.fft_size)

    def open(self) -> None:
        sd = importlib.import_module("sounddevice")

        def _callback(indata, _frames, _time_info, status) -> None:
            if status:
                logger.debug("Audio input status: %s", status)
            with self._lock:
                self._samples.extend(np.asarray(indata[:, 0], dtype=np.float64).tolist())

        self._stream = sd.InputStream(
            samplerate=self.samplerate,
            channels=1,
            blocksize=self.fft_size,
            device=self.device,
            callback=_callback,
        )
        self._stream.start()

    def read_spectrum(self) -> np.ndarray | None:
        with self._lock:
            if len(self._samples) < self.fft_size:
                return None
            block = np.asarray(self._samples, dtype=np.float64)
        mags = np.abs(np.fft.rfft(block * self._window))[: self.fft_size // 2] / self.fft_size
        if self._smoothed is not None:
            mags = self.smoothing * self._smoothed + (1.0 - self.smoothing) * mags
        self._smoothed = mags
        db = 20.0 * np.log10(np.maximum(mags, 1e-12))
        scaled = (db - self.min_db) * (255.0 / (self.max_db - self.min_db))
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def close(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            finally:
                self._stream = None
                self._smoothed = None


class AudioLevelMonitor:
    """Sample an `AudioSource` on its own thread and raise cooldown-gated alerts."""

    def __init__(
        self,
        source: AudioSource | None,
        threshold: float = 0.18,
        alert_cooldown_ms: int = 3000,
        alert_display_ms: int = 2000,
        interval_s: float = 1.0 / 60.0,
        on_alert: Callable[[AlertEvent], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.source = source
        self.threshold = float(threshold)
        self.alert_display_ms = int(alert_display_ms)
        self.interval_s = float(interval_s)
        self.on_alert = on_alert
        self.cooldown = CooldownChannel("audio", int(alert_cooldown_ms))
        self._clock = clock
        self._level = 0.0
        self._active = False
        self._running = False
        self._thread: threading.Thread | None = None
        self._alerts: deque[AlertEvent] = deque(maxlen=32)
        self._alerts_lock = threading.Lock()

    @property
    def level(self) -> float:
        """Latest published level; 0.0 while inactive."""

        return self._level if self._active else 0.0

    @property
    def active(self) -> bool:
        return self._active

    def start(self, run_thread: bool = True) -> bool:
        """Open the source and start sampling; return whether the monitor is active.

        Safe to call multiple times; subsequent calls while active are ignored.
        """

        if self._active:
            return True
        if self.source is None:
            logger.warning("No audio source configured; audio monitoring disabled")
            return False
        try:
            self.source.open()
        except Exception as exc:
            logger.warning("Microphone unavailable, audio monitoring disabled: %s", exc)
            return False
        self._active = True
        logger.info("Audio monitoring started")
        if run_thread:
            self._running = True
            self._thread = threading.Thread(target=self._loop, daemon=True)
            self._thread.start()
        return True

    def stop(self) -> None:
        """Stop sampling and release the source."""

        self._running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2)
        self._thread = None
        if self._active and self.source is not None:
            try:
                self.source.close()
            except Exception:
                logger.exception("Failed to close audio source")
        self._active = False
        self._level = 0.0

    def sample(self, now: float | None = None) -> float:
        """Run one sampling cycle and return the new level."""

        if not self._active or self.source is None:
            return 0.0
        ts = self._clock() if now is None else now
        level = spectrum_level(self.source.read_spectrum())
        self._level = level
        if level > self.threshold and self.cooldown.try_fire(ts):
            event = AlertEvent(
                channel="audio",
                message=AUDIO_ALERT_MESSAGE,
                severity="warning",
                created_at=ts,
                display_ms=self.alert_display_ms,
            )
            with self._alerts_lock:
                self._alerts.append(event)
            if self.on_alert is not None:
                self.on_alert(event)
        return level

    def drain_alerts(self) -> list[AlertEvent]:
        with self._alerts_lock:
            out = list(self._alerts)
            self._alerts.clear()
        return out

    def _loop(self) -> None:
        logger.debug("Audio loop started")
        while self._running:
            try:
                self.sample()
            except Exception:
                logger.exception("Audio sampling failed")
            time.sleep(self.interval_s)
