"""Monitoring configuration endpoints.

Edits are kept in memory for the next session; a running session keeps the
settings it was started with. Persist changes through the YAML file or `FW_`
environment variables.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from focuswatch.api.schemas.models import ConfigSchema
from focuswatch.api.services.state import get_settings, reload_settings
from focuswatch.core.config.presets import list_presets, matching_preset, preset_patch
from focuswatch.core.config.settings import MonitorSettings, settings_to_dict

router = APIRouter(prefix="/config", tags=["config"])


def _as_schema(settings: MonitorSettings) -> ConfigSchema:
    return ConfigSchema.model_validate(settings_to_dict(settings))


@router.get("", response_model=ConfigSchema)
def read_config() -> ConfigSchema:
    return _as_schema(get_settings())


@router.post("", response_model=ConfigSchema)
def write_config(cfg: ConfigSchema) -> ConfigSchema:
    """Replace the editable fields; the rest keep their loaded values."""

    return _as_schema(reload_settings(cfg.model_dump()))


@router.get("/presets")
def read_presets() -> dict[str, Any]:
    """List sensitivity presets and the one the current settings match."""

    current = settings_to_dict(get_settings())
    return {"presets": list_presets(), "active": matching_preset(current)}


@router.post("/presets/{preset_id}", response_model=ConfigSchema)
def apply_preset(preset_id: str) -> ConfigSchema:
    """Patch the current settings with a preset's thresholds."""

    try:
        patch = preset_patch(preset_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown preset: {preset_id}") from None
    current = settings_to_dict(get_settings())
    return _as_schema(reload_settings({**current, **patch}))
