"""1 Hz sampling of the per-tick suspicious count."""

from __future__ import annotations

import time

from focuswatch.core.types import TimelineSample


class TimelineRecorder:
    """Append at most one sample per `interval_ms` of wall-clock time.

    The render loop calls `record()` every tick; ticks that fall inside the current
    interval are ignored. The first interval starts when the recorder is created.
    """

    def __init__(self, interval_ms: int = 1000, start_at: float | None = None) -> None:
        self.interval_ms = int(interval_ms)
        self._last_record_at = time.time() if start_at is None else float(start_at)
        self._samples: list[TimelineSample] = []

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> tuple[TimelineSample, ...]:
        return tuple(self._samples)

    def record(self, suspicious_count: int, now: float) -> bool:
        """Record `suspicious_count` if a full interval elapsed; return whether it did."""

        if round((now - self._last_record_at) * 1000.0, 3) < self.interval_ms:
            return False
        self._samples.append(TimelineSample(timestamp=now, suspicious_count=int(suspicious_count)))
        self._last_record_at = now
        return True

    def drain(self) -> list[TimelineSample]:
        """Return all samples and clear the timeline."""

        out = list(self._samples)
        self._samples.clear()
        return out
