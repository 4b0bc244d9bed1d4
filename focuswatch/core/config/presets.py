from __future__ import annotations

from typing import Any


# Sensitivity presets. Each patches a subset of MonitorSettings.
#
# Notes:
# - turn/down thresholds control how far the head may move before scoring
# - audio_threshold is the normalized mean spectrum level treated as talking
# - focus_strictness only affects the class-mode focus percentage


PRESETS: dict[str, dict[str, Any]] = {
    # Default exam monitoring.
    "standard": {
        "turn_low": 0.20,
        "turn_high": 0.30,
        "down_low": 0.15,
        "down_high": 0.25,
        "audio_threshold": 0.18,
        "object_min_confidence": 0.50,
        "focus_strictness": 0.5,
    },
    # Small rooms with close cameras; flags earlier.
    "strict": {
        "turn_low": 0.15,
        "turn_high": 0.25,
        "down_low": 0.10,
        "down_high": 0.20,
        "audio_threshold": 0.12,
        "object_min_confidence": 0.40,
        "focus_strictness": 0.7,
    },
    # Large halls and noisy rooms; fewer false positives.
    "lenient": {
        "turn_low": 0.25,
        "turn_high": 0.40,
        "down_low": 0.20,
        "down_high": 0.35,
        "audio_threshold": 0.25,
        "object_min_confidence": 0.60,
        "focus_strictness": 0.3,
    },
}


PRESET_LABELS: dict[str, str] = {
    "standard": "Standard",
    "strict": "Strict",
    "lenient": "Lenient",
}


def list_presets() -> list[dict[str, Any]]:
    return [
        {
            "id": preset_id,
            "label": PRESET_LABELS.get(preset_id, preset_id),
            "settings": PRESETS[preset_id],
        }
        for preset_id in PRESETS.keys()
    ]


def preset_patch(preset_id: str) -> dict[str, Any]:
    if preset_id not in PRESETS:
        raise KeyError(preset_id)
    return dict(PRESETS[preset_id])


def matching_preset(values: dict[str, Any]) -> str | None:
    """Return the id of the preset whose every field equals `values`, if any."""

    for preset_id, patch in PRESETS.items():
        if all(values.get(key) == value for key, value in patch.items()):
            return preset_id
    return None
