"""Human-readable renderings of a report."""

from __future__ import annotations

import json
import os
import sys
from datetime import timezone
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .errors import ReportIOError
from .models import STATUS_FAILED, STATUS_PASSED, Report, Step
from .output_config import OutputFormat

METRICS_HEADING = "### 📊 Test Metrics"
STEPS_HEADING = "#### 📋 Detailed Steps"
NO_SUMMARY = "⚠️ No summary data available"


def _format_timestamp(step: Step) -> str:
    return step.timestamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def render_markdown(report: Report) -> str:
    """Render the Test Metrics block appended to CI summaries."""

    lines = [METRICS_HEADING]
    summary = report.summary
    if summary is None:
        lines.append(NO_SUMMARY)
        return "\n".join(lines) + "\n"

    lines.append(f"- **Overall Status**: {summary.overall_status}")
    lines.append(f"- **Success Rate**: {summary.success_rate}")
    lines.append(f"- **Duration**: {summary.duration_seconds}s")
    lines.append("")
    lines.append(STEPS_HEADING)
    for step in report.steps:
        lines.append(f"- **{step.phase}**: {step.status} _({_format_timestamp(step)})_")
    return "\n".join(lines) + "\n"


def render_json(report: Report) -> str:
    return json.dumps(report.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2, ensure_ascii=False)


def append_to_summary_file(path: Path, text: str) -> None:
    try:
        with path.open("a", encoding="utf-8") as handle:
            handle.write(text)
    except OSError as exc:
        raise ReportIOError("append summary", path, exc.strerror or str(exc)) from exc


def publish(text: str, summary_path: Optional[Path], echo: Callable[[str], None]) -> None:
    """Append ``text`` to the CI summary file when one is configured, else echo it."""

    if summary_path is not None:
        append_to_summary_file(summary_path, text)
    else:
        echo(text.rstrip("\n"))


class ConsoleReporter:
    """
    Console view of a report that adapts to the environment.

    Interactive terminals get a rich panel and step table; CI logs, pipes and
    redirects get the plain Markdown block.
    """

    def __init__(self, output_format: OutputFormat = OutputFormat.AUTO, console: Optional[Console] = None):
        self.output_format = output_format
        self._detect_environment()
        self.console = console or Console()

    def _detect_environment(self) -> None:
        if self.output_format == OutputFormat.RICH:
            self.use_rich = True
        elif self.output_format in (OutputFormat.PLAIN, OutputFormat.JSON):
            self.use_rich = False
        else:  # AUTO
            is_terminal = sys.stdout.isatty()
            is_ci = any(name in os.environ for name in ("CI", "GITHUB_ACTIONS", "JENKINS_HOME", "GITLAB_CI", "TRAVIS"))
            self.use_rich = is_terminal and not is_ci

    def show(self, report: Report, echo: Callable[[str], None]) -> None:
        if self.output_format == OutputFormat.JSON:
            echo(render_json(report))
        elif self.use_rich:
            self.console.print(self._rich_view(report))
        else:
            echo(render_markdown(report).rstrip("\n"))

    def _rich_view(self, report: Report) -> Group:
        title = report.run.project_name or "E2E Test Report"
        summary = report.summary

        if summary is None:
            header = Panel(Text("No summary data available", style="yellow"), title=title, border_style="yellow")
        else:
            failed = summary.failed_steps > 0
            text = Text()
            text.append(f"Total: {summary.total_steps}  ", style="bold")
            text.append(f"Passed: {summary.passed_steps}  ", style="bold green")
            text.append(f"Failed: {summary.failed_steps}  ", style="bold red" if failed else "bold green")
            text.append(f"Success rate: {summary.success_rate}  ", style="bold")
            text.append(f"Duration: {summary.duration_seconds}s", style="bold cyan")
            status = "✗ FAILED" if failed else "✓ PASSED"
            header = Panel(
                text,
                title=Text(f"{title}: {status}", style="bold red" if failed else "bold green"),
                border_style="red" if failed else "green",
            )

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("#", style="dim", justify="right")
        table.add_column("Phase")
        table.add_column("Status")
        table.add_column("Message")
        table.add_column("Timestamp", style="dim")
        for index, step in enumerate(report.steps, start=1):
            table.add_row(
                str(index),
                step.phase,
                Text(step.status, style=_status_style(step.status)),
                step.message,
                _format_timestamp(step),
            )
        return Group(header, table)


def _status_style(status: str) -> str:
    if status == STATUS_PASSED:
        return "green"
    if status == STATUS_FAILED:
        return "red"
    return "yellow"
