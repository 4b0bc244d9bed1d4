import sys
from types import SimpleNamespace

import numpy as np
import pytest

import focuswatch.core.detectors.yolo as yolo_mod


class _FakeBoxes:
    def __init__(self, data=None, conf=None):
        self.data = data
        self.conf = conf

    def __len__(self):
        if self.data is not None:
            return int(self.data.shape[0])
        if self.conf is not None:
            return int(len(self.conf))
        return 0


class _FakeKeypoints:
    def __init__(self, data):
        self.data = data


class _FakeResult:
    def __init__(self, boxes=None, keypoints=None, names=None):
        self.boxes = boxes
        self.keypoints = keypoints
        self.names = names


class _FakeYOLO:
    results: list = []

    def __init__(self, model_name, task=None):
        self.model_name = model_name
        self.task = task
        self.predict_calls = []

    def to(self, device):
        return self

    def predict(self, frame, **kwargs):
        self.predict_calls.append(kwargs)
        return list(self.results)


def test_keypoints_from_array_maps_coco_names():
    arr = np.zeros((17, 3), dtype=np.float32)
    arr[0] = (10, 20, 0.9)
    arr[5] = (1, 2, 0.5)
    kps = yolo_mod.keypoints_from_array(arr)
    assert len(kps) == 17
    assert kps["nose"].x == 10.0 and kps["nose"].score == pytest.approx(0.9)
    assert kps["left_shoulder"].y == 2.0
    assert yolo_mod.keypoints_from_array(None) == {}


def test_pose_detector_builds_subjects(monkeypatch):
    kpts = np.zeros((2, 17, 3), dtype=np.float32)
    kpts[1, 0] = (5, 6, 0.8)
    result = _FakeResult(
        boxes=_FakeBoxes(conf=np.array([0.9, 0.4], dtype=np.float32)),
        keypoints=_FakeKeypoints(kpts),
    )
    monkeypatch.setattr(_FakeYOLO, "results", [result])
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)

    det = yolo_mod.YoloPoseDetector("pose.onnx", conf=0.1, max_det=5)
    subjects = det.detect(np.zeros((10, 10, 3), dtype=np.uint8))
    assert [s.index for s in subjects] == [0, 1]
    assert subjects[1].keypoint("nose").x == 5.0
    assert det.model.task == "pose"
    assert det.model.predict_calls[0]["classes"] == [0]
    assert det.model.predict_calls[0]["max_det"] == 5


def test_pose_detector_empty_result(monkeypatch):
    monkeypatch.setattr(_FakeYOLO, "results", [])
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)
    det = yolo_mod.YoloPoseDetector("pose.onnx")
    assert det.detect(np.zeros((10, 10, 3), dtype=np.uint8)) == []


def test_object_detector_names_and_xywh(monkeypatch):
    data = np.array([[10, 20, 40, 60, 0.7, 67], [0, 0, 5, 5, 0.3, 73]], dtype=np.float32)
    result = _FakeResult(boxes=_FakeBoxes(data=data), names={67: "cell phone", 73: "book"})
    monkeypatch.setattr(_FakeYOLO, "results", [result])
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)

    det = yolo_mod.YoloObjectDetector("det.onnx")
    out = det.detect(np.zeros((10, 10, 3), dtype=np.uint8))
    assert [d.label for d in out] == ["cell phone", "book"]
    assert out[0].bbox == (10.0, 20.0, 30.0, 40.0)
    assert abs(out[0].confidence - 0.7) < 1e-6
    assert det.model.task == "detect"


def test_configure_torch_threads_from_env(monkeypatch):
    monkeypatch.setattr(yolo_mod._YoloBase, "_torch_threads_configured", False)
    calls = []
    monkeypatch.setitem(sys.modules, "torch", SimpleNamespace(set_num_threads=calls.append))
    monkeypatch.setenv("FW_TORCH_THREADS", "3")
    yolo_mod._YoloBase._configure_torch_threads_from_env()
    assert calls == [3]
