"""Append one step per invocation."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable

import structlog

from .models import STATUS_FAILED, STATUS_PASSED, Step, utc_now
from .store import load_report, save_report

LOGGER = structlog.get_logger("ci_reporter.recorder")


def record_step(
    path: Path,
    phase: str,
    status: str,
    message: str,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> Step:
    """Load the report, append a step stamped with the current time and save it."""

    report = load_report(path)
    step = Step(phase=phase, status=status, message=message, timestamp=clock())
    if status not in (STATUS_PASSED, STATUS_FAILED):
        LOGGER.debug("step_status_unrecognized", phase=phase, status=status)

    save_report(path, report.with_step(step))
    LOGGER.info("step_recorded", path=str(path), phase=phase, status=status, index=len(report.steps) + 1)
    return step
