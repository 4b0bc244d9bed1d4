"""In-process state for settings and the monitoring engine.

FastAPI routes use this module to access the singleton `MonitorEngine` and the
report of the last finished session.
"""

from __future__ import annotations

from threading import RLock

from focuswatch.api.services.engine import MonitorEngine
from focuswatch.core.analytics.report import SessionReport
from focuswatch.core.config.settings import MonitorSettings, load_settings, settings_to_dict

_settings: MonitorSettings | None = None
_engine: MonitorEngine | None = None
_last_report: SessionReport | None = None
_lock = RLock()


def get_settings() -> MonitorSettings:
    """Return cached settings, loading them on first use."""

    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings()
    return _settings


def reload_settings(data: dict | None = None) -> MonitorSettings:
    """Reload settings; a running session keeps its settings until it stops.

    Args:
        data: Optional patch dict merged into the loaded settings.
    """

    global _settings
    with _lock:
        base = load_settings()
        if data:
            _settings = MonitorSettings(**{**settings_to_dict(base), **data})
        else:
            _settings = base
    return _settings


def get_engine() -> MonitorEngine | None:
    """Return the running engine, if any."""

    with _lock:
        return _engine


def start_session() -> MonitorEngine:
    """Create and start an engine; `SessionStartError` propagates and nothing is kept."""

    global _engine
    with _lock:
        if _engine is not None and _engine.running:
            return _engine
        engine = MonitorEngine(get_settings())
        engine.start()
        _engine = engine
    return _engine


def stop_session() -> SessionReport | None:
    """Stop the running engine and return its report (None for an empty session)."""

    global _engine, _last_report
    with _lock:
        if _engine is None:
            return None
        report = _engine.stop()
        _engine = None
        _last_report = report
    return report


def get_last_report() -> SessionReport | None:
    with _lock:
        return _last_report


def stop_engine() -> None:
    """Stop and discard the singleton engine instance (if present)."""

    stop_session()
