"""Per-tick signal extraction from detector outputs.

Pose geometry is derived from the nose and both shoulders (COCO keypoint names);
gesture geometry from MediaPipe-style hand landmarks in normalized coordinates.
Subjects that cannot be measured reliably are skipped (None), never raised.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from focuswatch.core.types import HandLandmarks, PoseSignal, PoseSubject

REQUIRED_KEYPOINTS = ("nose", "left_shoulder", "right_shoulder")

HAND_WRIST = 0
HAND_THUMB_TIP = 4
HAND_PINKY_TIP = 20
HAND_LANDMARK_COUNT = 21

# Vertical ratio is normalized by a slightly widened shoulder span.
HEAD_DOWN_WIDTH_FACTOR = 1.2


def extract_pose_signal(
    subject: PoseSubject,
    min_pose_score: float = 0.10,
    min_keypoint_score: float = 0.25,
) -> PoseSignal | None:
    """Compute head turn/down ratios for a subject, or None if it is unusable."""

    if subject.score < min_pose_score:
        return None

    nose = subject.keypoint("nose")
    ls = subject.keypoint("left_shoulder")
    rs = subject.keypoint("right_shoulder")
    if nose is None or ls is None or rs is None:
        return None
    if min(nose.score, ls.score, rs.score) < min_keypoint_score:
        return None

    center_x = (ls.x + rs.x) / 2.0
    center_y = (ls.y + rs.y) / 2.0
    # Overlapping shoulders (side view) would divide by zero.
    width = abs(ls.x - rs.x) or 1.0

    head_turn_ratio = abs(nose.x - center_x) / width
    head_down_ratio = (nose.y - center_y) / (width * HEAD_DOWN_WIDTH_FACTOR)

    return PoseSignal(
        subject_index=subject.index,
        head_turn_ratio=float(head_turn_ratio),
        head_down_ratio=float(head_down_ratio),
        nose=(float(nose.x), float(nose.y)),
        shoulder_left=(float(ls.x), float(ls.y)),
        shoulder_right=(float(rs.x), float(rs.y)),
        shoulder_width=float(width),
    )


def extract_pose_signals(
    subjects: Iterable[PoseSubject],
    min_pose_score: float = 0.10,
    min_keypoint_score: float = 0.25,
) -> list[PoseSignal]:
    """Extract signals for every usable subject, preserving detector order."""

    signals: list[PoseSignal] = []
    for subject in subjects:
        signal = extract_pose_signal(subject, min_pose_score, min_keypoint_score)
        if signal is not None:
            signals.append(signal)
    return signals


def hand_is_suspicious(
    hand: HandLandmarks,
    max_palm_width: float = 0.05,
    min_wrist_y: float = 0.65,
) -> bool:
    """Return True for a narrow (clenched/occluded) hand held low in the frame."""

    if len(hand) < HAND_LANDMARK_COUNT:
        return False
    wrist: Sequence[float] = hand[HAND_WRIST]
    thumb: Sequence[float] = hand[HAND_THUMB_TIP]
    pinky: Sequence[float] = hand[HAND_PINKY_TIP]
    palm_width = abs(thumb[0] - pinky[0])
    return palm_width < max_palm_width and wrist[1] > min_wrist_y


def analyze_gesture(
    hands: Iterable[HandLandmarks],
    max_palm_width: float = 0.05,
    min_wrist_y: float = 0.65,
) -> bool:
    """Return True if any detected hand is flagged suspicious this tick."""

    return any(hand_is_suspicious(h, max_palm_width, min_wrist_y) for h in hands)
