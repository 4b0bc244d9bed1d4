from __future__ import annotations

import numpy as np

from focuswatch.core.overlay.draw import OK_COLOR, SUSPECT_COLOR, draw_instruction, draw_overlays
from focuswatch.core.types import ObjectDetection, SuspicionVerdict, TickSummary


def _verdict(suspicious: bool) -> SuspicionVerdict:
    return SuspicionVerdict(
        subject_index=0,
        score=2 if suspicious else 0,
        suspicious=suspicious,
        position=(50.0, 40.0),
        shoulder_width=20.0,
        shoulder_left=(40.0, 60.0),
        shoulder_right=(60.0, 60.0),
    )


def test_instruction_depends_only_on_flag():
    sus = draw_instruction(_verdict(True))
    ok = draw_instruction(_verdict(False))
    assert (sus.color, sus.label) == (SUSPECT_COLOR, "SUSPECT")
    assert (ok.color, ok.label) == (OK_COLOR, "OK")
    assert sus.radius == 18.0
    assert sus.label_origin == (30.0, 20.0)
    assert sus.shoulder_line == ((40.0, 60.0), (60.0, 60.0))


def test_empty_summary_dims_copy():
    frame = np.full((20, 20, 3), 200, dtype=np.uint8)
    summary = TickSummary(tick_id=1, timestamp=0.0, total_subjects=0, suspicious_count=0, verdicts=[])
    out = draw_overlays(frame, summary)
    assert out is not frame
    assert out.shape == frame.shape
    assert int(out[0, 0, 0]) < 200
    assert int(frame[0, 0, 0]) == 200


def test_draws_subjects_heat_and_objects():
    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    summary = TickSummary(
        tick_id=1,
        timestamp=0.0,
        total_subjects=1,
        suspicious_count=1,
        verdicts=[_verdict(True)],
        heatmap={"points": [{"x": 80.0, "y": 80.0, "alpha": 1.0}, {"x": 5.0, "y": 5.0, "alpha": 0.0}]},
        objects=[ObjectDetection(label="cell phone", confidence=0.9, bbox=(10.0, 70.0, 20.0, 20.0))],
    )
    out = draw_overlays(frame, summary, heat_radius=10, heat_opacity=0.5)
    assert out.shape == frame.shape
    # Heat point tints red (BGR channel 2).
    assert int(out[80, 80, 2]) > 0
    # Zero-alpha points are skipped.
    assert int(out[5, 5, 2]) == 0
    assert out.any()
