"""Timestamp-based cooldown gates for rate-limited side effects."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CooldownChannel:
    """A named gate that allows firing once every `cooldown_ms` milliseconds.

    State is a single timestamp compared against the caller-supplied clock, so the
    channel can be inspected and driven deterministically in tests.
    """

    name: str
    cooldown_ms: int
    last_fired_at: float | None = None

    def elapsed_ms(self, now: float) -> float | None:
        if self.last_fired_at is None:
            return None
        return (now - self.last_fired_at) * 1000.0

    def ready(self, now: float) -> bool:
        """Return True when the channel may fire at `now` (boundary inclusive)."""

        elapsed = self.elapsed_ms(now)
        # Round to the microsecond so float timestamps land on the boundary.
        return elapsed is None or round(elapsed, 3) >= self.cooldown_ms

    def fire(self, now: float) -> None:
        self.last_fired_at = now

    def try_fire(self, now: float) -> bool:
        """Fire if ready; return whether the channel fired."""

        if not self.ready(now):
            return False
        self.fire(now)
        return True

    def remaining_ms(self, now: float) -> float:
        elapsed = self.elapsed_ms(now)
        if elapsed is None:
            return 0.0
        return max(0.0, float(self.cooldown_ms) - elapsed)

    def reset(self) -> None:
        self.last_fired_at = None
