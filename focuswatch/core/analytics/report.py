"""Session report reduction and export."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from focuswatch.core.types import TimelineSample

logger = logging.getLogger(__name__)


class EmptySessionError(Exception):
    """Raised when a report is requested for a session with no timeline samples."""


@dataclass(frozen=True)
class SessionReport:
    generated_at: float
    sampled_seconds: int
    max_suspicious: int
    avg_suspicious: float
    raw_samples: tuple[TimelineSample, ...]

    def to_payload(self) -> dict[str, Any]:
        """Return the export payload consumed by report renderers."""

        return {
            "generatedAt": datetime.fromtimestamp(self.generated_at).isoformat(timespec="seconds"),
            "sampledSeconds": self.sampled_seconds,
            "maxSuspicious": self.max_suspicious,
            "avgSuspicious": self.avg_suspicious,
            "rawSamples": [
                {
                    "time": datetime.fromtimestamp(s.timestamp).strftime("%H:%M:%S"),
                    "timestamp": s.timestamp,
                    "suspects": s.suspicious_count,
                }
                for s in self.raw_samples
            ],
        }


def summarize(samples: Sequence[TimelineSample], now: float | None = None) -> SessionReport:
    """Reduce a finished timeline into summary statistics.

    Each sample stands for roughly one monitored second.

    Raises:
        EmptySessionError: If the timeline has no samples.
    """

    if not samples:
        raise EmptySessionError("No data recorded for this exam session.")
    counts = [s.suspicious_count for s in samples]
    return SessionReport(
        generated_at=time.time() if now is None else float(now),
        sampled_seconds=len(counts),
        max_suspicious=max(counts),
        avg_suspicious=round(sum(counts) / len(counts), 2),
        raw_samples=tuple(samples),
    )


def report_filename(report: SessionReport, session_tag: str) -> str:
    day = datetime.fromtimestamp(report.generated_at).strftime("%Y-%m-%d")
    return f"FocusWatch_Exam_Report_{day}_{session_tag}.json"


def export_report(report: SessionReport, output_dir: str | Path, session_tag: str) -> Path:
    """Write the report payload as JSON and return the file path."""

    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / report_filename(report, session_tag)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report.to_payload(), f, indent=2)
    logger.info("Session report written to %s", path)
    return path
