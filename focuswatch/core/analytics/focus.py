"""Class-mode focus estimation.

A lighter policy than exam scoring: a subject is focused when the nose stays
within a strictness-dependent band around the shoulder center.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from focuswatch.core.types import PoseSubject


@dataclass(frozen=True)
class FocusSummary:
    total: int
    focused: int
    percent: int
    level: str


def is_focused(subject: PoseSubject, strictness: float, min_keypoint_score: float = 0.3) -> bool:
    """Return True when the head offset is inside the allowed band."""

    nose = subject.keypoint("nose")
    ls = subject.keypoint("left_shoulder")
    rs = subject.keypoint("right_shoulder")
    if ls is None or rs is None or ls.score <= min_keypoint_score or rs.score <= min_keypoint_score:
        return False
    if nose is None or nose.score <= min_keypoint_score:
        return False
    center = (ls.x + rs.x) / 2.0
    width = abs(ls.x - rs.x)
    allowed = width * (1.0 - strictness)
    return abs(nose.x - center) < allowed


def focus_level(percent: int) -> str:
    if percent > 80:
        return "focused"
    if percent > 50:
        return "warning"
    return "danger"


def focus_summary(
    subjects: Iterable[PoseSubject],
    strictness: float = 0.5,
    min_pose_score: float = 0.25,
) -> FocusSummary:
    """Count focused subjects among those above `min_pose_score`."""

    total = 0
    focused = 0
    for subject in subjects:
        if subject.score < min_pose_score:
            continue
        total += 1
        if is_focused(subject, strictness):
            focused += 1
    percent = round(focused / total * 100) if total > 0 else 0
    return FocusSummary(total=total, focused=focused, percent=percent, level=focus_level(percent))
