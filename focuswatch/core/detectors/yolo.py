"""Ultralytics YOLO detector integration.

Two thin adapters around `ultralytics.YOLO`:
- `YoloPoseDetector` turns a pose model's output into `PoseSubject`s with COCO
  keypoint names;
- `YoloObjectDetector` returns `ObjectDetection`s labelled with COCO class names.

Torch stays an optional runtime dependency: ONNX exports run without it.
"""

from __future__ import annotations

import importlib
import os
from contextlib import nullcontext
from typing import Any

import numpy as np
from ultralytics import YOLO

from focuswatch.core.types import Keypoint, ObjectDetection, PoseSubject

COCO_KEYPOINT_NAMES = (
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
)


def _to_numpy(value: Any) -> np.ndarray:
    if hasattr(value, "cpu"):
        value = value.cpu()
    return value.numpy() if hasattr(value, "numpy") else np.asarray(value)


def keypoints_from_array(kpts: np.ndarray | None) -> dict[str, Keypoint]:
    """Map an (N, 3) x/y/confidence array onto COCO keypoint names."""

    if kpts is None or kpts.size == 0:
        return {}
    out: dict[str, Keypoint] = {}
    for name, row in zip(COCO_KEYPOINT_NAMES, kpts, strict=False):
        score = float(row[2]) if len(row) > 2 else 1.0
        out[name] = Keypoint(name=name, x=float(row[0]), y=float(row[1]), score=score)
    return out


class _YoloBase:
    """Shared model loading and CPU tuning."""

    _torch_threads_configured: bool = False

    def __init__(self, model_name: str, conf: float, task: str | None = None) -> None:
        # Optional CPU tuning, env-driven so deployments can choose per machine.
        self._configure_torch_threads_from_env()

        self.model_name = model_name
        self.is_onnx = model_name.lower().endswith(".onnx")
        self.device: str = "cpu"
        self._torch_inference_mode: Any | None = None
        if not self.is_onnx:
            try:
                torch = importlib.import_module("torch")
                self._torch_inference_mode = torch.inference_mode
            except Exception:
                self._torch_inference_mode = None
        self.model = YOLO(model_name, task=task)
        if not self.is_onnx:
            try:
                self.model.to(self.device)
            except Exception:
                # predict(device='cpu') still enforces CPU.
                pass
        self.conf = conf

    @classmethod
    def _configure_torch_threads_from_env(cls) -> None:
        """Configure torch thread counts from environment variables (one-time)."""

        if _YoloBase._torch_threads_configured:
            return
        _YoloBase._torch_threads_configured = True

        threads_s = os.getenv("FW_TORCH_THREADS")
        if threads_s is None or not threads_s.strip():
            return
        try:
            torch = importlib.import_module("torch")
            torch.set_num_threads(max(1, int(threads_s)))
        except Exception:
            return

    def _predict(self, frame: np.ndarray, **kwargs: Any) -> Any | None:
        infer_ctx = self._torch_inference_mode() if self._torch_inference_mode is not None else nullcontext()
        with infer_ctx:
            results = self.model.predict(frame, conf=self.conf, verbose=False, device=self.device, **kwargs)
        if not results:
            return None
        # Single-frame inference => first result.
        return results[0]


class YoloPoseDetector(_YoloBase):
    """Multi-person pose estimation returning per-tick subjects."""

    def __init__(self, model_name: str = "yolo11n-pose.pt", conf: float = 0.10, max_det: int = 30) -> None:
        super().__init__(model_name, conf, task="pose")
        self.max_det = int(max_det)

    def detect(self, frame: np.ndarray) -> list[PoseSubject]:
        result = self._predict(frame, classes=[0], max_det=self.max_det)
        if result is None:
            return []
        boxes = getattr(result, "boxes", None)
        if boxes is None or len(boxes) == 0:
            return []
        confs_np = _to_numpy(boxes.conf)

        kpts = getattr(result, "keypoints", None)
        kpts_np = None
        if kpts is not None and getattr(kpts, "data", None) is not None:
            kpts_np = _to_numpy(kpts.data)

        subjects: list[PoseSubject] = []
        for i, conf_v in enumerate(confs_np):
            kp = kpts_np[i] if kpts_np is not None and i < int(kpts_np.shape[0]) else None
            subjects.append(PoseSubject(index=i, score=float(conf_v), keypoints=keypoints_from_array(kp)))
        return subjects


class YoloObjectDetector(_YoloBase):
    """COCO object detection returning class-named detections."""

    def __init__(self, model_name: str = "yolo11n.pt", conf: float = 0.25) -> None:
        super().__init__(model_name, conf, task="detect")

    def detect(self, frame: np.ndarray) -> list[ObjectDetection]:
        result = self._predict(frame)
        if result is None:
            return []
        boxes = getattr(result, "boxes", None)
        if boxes is None or len(boxes) == 0:
            return []
        # Ultralytics Boxes.data = (x1,y1,x2,y2,conf,cls)
        data_np = _to_numpy(boxes.data)
        if data_np.ndim != 2 or data_np.shape[1] < 6:
            return []
        names = getattr(result, "names", None) or getattr(self.model, "names", {}) or {}

        out: list[ObjectDetection] = []
        for row in data_np:
            x1, y1, x2, y2, conf_v, cls_v = (float(v) for v in row[:6])
            label = str(names.get(int(cls_v), int(cls_v)))
            out.append(ObjectDetection(label=label, confidence=conf_v, bbox=(x1, y1, x2 - x1, y2 - y1)))
        return out
