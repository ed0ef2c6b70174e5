"""Seal a report with its aggregate summary."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable

import structlog

from .models import Summary, build_summary, utc_now
from .store import load_report, save_report

LOGGER = structlog.get_logger("ci_reporter.finalizer")


def finalize_report(path: Path, *, clock: Callable[[], datetime] = utc_now) -> Summary:
    """Compute the summary over the current steps and attach it.

    Finalizing an already-finalized report recomputes the summary; the steps
    are never touched.
    """

    report = load_report(path)
    if report.is_finalized:
        LOGGER.info("report_refinalized", path=str(path))

    summary = build_summary(report.steps, report.run.start_time, clock())
    save_report(path, report.with_summary(summary))
    LOGGER.info(
        "report_finalized",
        path=str(path),
        overall_status=summary.overall_status,
        success_rate=summary.success_rate,
        total_steps=summary.total_steps,
    )
    return summary
