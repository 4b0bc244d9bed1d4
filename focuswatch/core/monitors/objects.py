"""Prohibited object alerts.

Filters object detector predictions to an allow-list of classes above a
confidence floor. Qualifying detections share one cooldown channel; every alert
that fires also asks for a full-frame snapshot.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from focuswatch.core.cooldown import CooldownChannel
from focuswatch.core.types import AlertEvent, ObjectDetection

# COCO class -> alert kind. "book" stands in for paper/cheat sheets.
DEFAULT_ALLOWED_CLASSES: dict[str, str] = {
    "cell phone": "phone",
    "book": "paper",
}

ALERT_MESSAGES: dict[str, str] = {
    "phone": "CHEATING: Phone Detected!",
    "paper": "CHEATING: Paper / Book Detected!",
}

BOX_LABELS: dict[str, str] = {
    "phone": "PHONE DETECTED",
    "paper": "CHEAT SHEET",
}


class ObjectAlertMonitor:
    def __init__(
        self,
        min_confidence: float = 0.50,
        cooldown_ms: int = 4000,
        alert_display_ms: int = 2000,
        allowed_classes: dict[str, str] | None = None,
        on_snapshot: Callable[[float], object] | None = None,
    ) -> None:
        self.min_confidence = float(min_confidence)
        self.alert_display_ms = int(alert_display_ms)
        self.allowed_classes = dict(allowed_classes or DEFAULT_ALLOWED_CLASSES)
        self.on_snapshot = on_snapshot
        self.cooldown = CooldownChannel("object", int(cooldown_ms))
        self.last_flagged: list[ObjectDetection] = []

    def kind_of(self, detection: ObjectDetection) -> str | None:
        return self.allowed_classes.get(detection.label)

    def filter_detections(self, detections: Iterable[ObjectDetection]) -> list[ObjectDetection]:
        """Keep allow-listed detections at or above the confidence floor."""

        return [
            d
            for d in detections
            if d.label in self.allowed_classes and d.confidence >= self.min_confidence
        ]

    def process(self, detections: Iterable[ObjectDetection], now: float) -> list[AlertEvent]:
        """Return alerts fired for this tick's detections."""

        flagged = self.filter_detections(detections)
        self.last_flagged = flagged
        alerts: list[AlertEvent] = []
        for det in flagged:
            if not self.cooldown.try_fire(now):
                continue
            kind = self.allowed_classes[det.label]
            alerts.append(
                AlertEvent(
                    channel="object",
                    message=ALERT_MESSAGES.get(kind, f"CHEATING: {det.label} Detected!"),
                    severity="critical",
                    created_at=now,
                    display_ms=self.alert_display_ms,
                )
            )
            if self.on_snapshot is not None:
                self.on_snapshot(now)
        return alerts
