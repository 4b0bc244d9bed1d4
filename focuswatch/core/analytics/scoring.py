"""Additive suspicion scoring.

Each rule is an explicit threshold/weight pair. Rules are independent and stack:
a head turn past both turn thresholds contributes both weights.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from focuswatch.core.types import PoseSignal, SignalReading, SuspicionVerdict


@dataclass(frozen=True)
class ScoringRules:
    """Thresholds and weights for the suspicion score."""

    turn_low: float = 0.20
    turn_high: float = 0.30
    down_low: float = 0.15
    down_high: float = 0.25
    audio_threshold: float = 0.18
    turn_weight: int = 1
    down_weight: int = 1
    audio_weight: int = 1
    gesture_weight: int = 2
    # Score at which a subject is flagged.
    suspicious_score: int = 2
    # Score at which an evidence clip is requested.
    evidence_score: int = 3


def score_reading(reading: SignalReading, rules: ScoringRules | None = None) -> int:
    """Return the integer suspicion score for one reading."""

    r = rules or ScoringRules()
    score = 0
    if reading.head_turn_ratio > r.turn_low:
        score += r.turn_weight
    if reading.head_turn_ratio > r.turn_high:
        score += r.turn_weight
    if reading.head_down_ratio > r.down_low:
        score += r.down_weight
    if reading.head_down_ratio > r.down_high:
        score += r.down_weight
    if reading.audio_level > r.audio_threshold:
        score += r.audio_weight
    if reading.gesture_suspicious:
        score += r.gesture_weight
    return score


class SuspicionScorer:
    """Turn a tick's extracted signals into per-subject verdicts."""

    def __init__(self, rules: ScoringRules | None = None) -> None:
        self.rules = rules or ScoringRules()

    def verdict(self, signal: PoseSignal, gesture_suspicious: bool, audio_level: float) -> SuspicionVerdict:
        reading = SignalReading(
            head_turn_ratio=signal.head_turn_ratio,
            head_down_ratio=signal.head_down_ratio,
            gesture_suspicious=bool(gesture_suspicious),
            audio_level=float(audio_level),
        )
        score = score_reading(reading, self.rules)
        return SuspicionVerdict(
            subject_index=signal.subject_index,
            score=score,
            suspicious=score >= self.rules.suspicious_score,
            position=signal.nose,
            shoulder_width=signal.shoulder_width,
            shoulder_left=signal.shoulder_left,
            shoulder_right=signal.shoulder_right,
            reading=reading,
        )

    def evaluate(
        self,
        signals: Iterable[PoseSignal],
        gesture_suspicious: bool,
        audio_level: float,
    ) -> list[SuspicionVerdict]:
        """Score every signal against the same gesture flag and audio snapshot."""

        # Materialize first: all subjects are extracted before any is scored.
        extracted = list(signals)
        return [self.verdict(s, gesture_suspicious, audio_level) for s in extracted]

    def needs_evidence(self, verdict: SuspicionVerdict) -> bool:
        return verdict.score >= self.rules.evidence_score
