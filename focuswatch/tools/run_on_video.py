"""Replay a recorded exam video through a monitoring session.

Ticks are timestamped from the video clock (frame index / fps) so cooldowns,
heatmap decay and the 1 Hz timeline behave as they would live, regardless of
how fast frames are decoded.
"""

from __future__ import annotations

import argparse
import json
import logging
import time
from dataclasses import asdict, is_dataclass
from pathlib import Path

import cv2
import numpy as np

from focuswatch.core.config.settings import MonitorSettings
from focuswatch.core.session import MonitoringSession


class _DummyDetector:
    def detect(self, frame):  # pragma: no cover - trivial
        return []


def _to_jsonable(obj):
    if is_dataclass(obj):
        return asdict(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(v) for v in obj]
    return obj


def _build_session(args, settings: MonitorSettings, started_at: float) -> MonitoringSession:
    if args.mock:
        pose = hands = objects = _DummyDetector()
    else:
        from focuswatch.core.detectors.yolo import YoloObjectDetector, YoloPoseDetector

        pose = YoloPoseDetector(args.pose_model, conf=settings.min_pose_score)
        objects = YoloObjectDetector(args.object_model)
        hands = None
        if args.hands:
            from focuswatch.core.detectors.hands import MediaPipeHandDetector

            hands = MediaPipeHandDetector()
    return MonitoringSession(
        settings,
        pose_detector=pose,
        hand_detector=hands,
        object_detector=objects,
        output_dir=args.evidence_dir,
        clock=lambda: started_at,
    )


def run(args) -> int:
    cap = cv2.VideoCapture(args.input)
    if not cap.isOpened():
        raise SystemExit(f"Cannot open video {args.input}")
    fps = float(cap.get(cv2.CAP_PROP_FPS)) or 30.0

    settings = MonitorSettings(enable_audio=False, jpeg_quality=args.jpeg_quality)
    started_at = time.time()
    session = _build_session(args, settings, started_at)
    session.start(audio_thread=False)

    chunk_every = max(1, int(round(fps * settings.chunk_interval_ms / 1000.0)))
    outputs = []
    frame_index = 0
    while True:
        ok, frame = cap.read()
        if not ok:
            break
        now = started_at + frame_index / fps
        summary = session.tick(frame, now=now)
        if frame_index % chunk_every == 0:
            ok_jpg, jpg = cv2.imencode(
                ".jpg", session.compose(frame, summary), [int(cv2.IMWRITE_JPEG_QUALITY), settings.jpeg_quality]
            )
            if ok_jpg:
                session.push_chunk(jpg.tobytes(), now=now)
        outputs.append(_to_jsonable(summary))
        frame_index += 1
        if args.max_frames and frame_index >= args.max_frames:
            break
    cap.release()

    report = session.stop(now=started_at + frame_index / fps)
    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(
            {"ticks": outputs, "report": report.to_payload() if report is not None else None},
            f,
            indent=2,
        )
    print(f"Wrote {len(outputs)} tick summaries to {out_path}")
    if report is None:
        print("No data recorded for this exam session.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay an exam video through the monitoring pipeline")
    parser.add_argument("--input", required=True, help="Path to video file")
    parser.add_argument("--output", required=True, help="Where to save JSON output")
    parser.add_argument("--evidence-dir", default="evidence", help="Where clips/snapshots/report go")
    parser.add_argument("--pose-model", default="yolo11n-pose.pt")
    parser.add_argument("--object-model", default="yolo11n.pt")
    parser.add_argument("--hands", action="store_true", help="Enable MediaPipe hand gestures")
    parser.add_argument("--jpeg-quality", type=int, default=70)
    parser.add_argument("--max-frames", type=int, default=0, help="Limit frames for quick tests")
    parser.add_argument("--mock", action="store_true", help="Use dummy detectors (no model download)")
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return run(build_parser().parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
