"""MediaPipe Hands integration.

`mediapipe` is an optional dependency (extra `hands`) and is imported when the
detector is constructed, so the rest of the service runs without it.
"""

from __future__ import annotations

import importlib
from typing import Any

import cv2
import numpy as np

from focuswatch.core.types import HandLandmarks


class MediaPipeHandDetector:
    """Return normalized 21-point landmark lists for every detected hand."""

    def __init__(self, max_num_hands: int = 4, min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5):
        mp = importlib.import_module("mediapipe")
        self._hands: Any = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=int(max_num_hands),
            min_detection_confidence=float(min_detection_confidence),
            min_tracking_confidence=float(min_tracking_confidence),
        )

    def detect(self, frame: np.ndarray) -> list[HandLandmarks]:
        # MediaPipe expects RGB; OpenCV frames are BGR.
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        result = self._hands.process(rgb)
        hands = getattr(result, "multi_hand_landmarks", None) or []
        return [[(float(lm.x), float(lm.y)) for lm in hand.landmark] for hand in hands]

    def close(self) -> None:
        self._hands.close()
