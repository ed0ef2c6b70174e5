"""Entry point for the home-ci-reporter application."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn, Optional

import structlog
import typer

if __package__ in {None, ""}:
    sys.path.append(str(Path(__file__).resolve().parents[1]))
    __package__ = "ci_reporter"

from .artifacts import extract_artifacts, load_payload, render_execution_summary
from .errors import ReporterError
from .finalizer import finalize_report
from .logging_utils import configure_logging
from .models import RunInfo, utc_now
from .output_config import get_log_format, get_log_level, get_output_format, get_summary_path
from .platform_info import detect_environment, detect_runner
from .recorder import record_step
from .reporter import ConsoleReporter, publish, render_markdown
from .store import create_report, load_report

app = typer.Typer(
    help="Generate YAML reports for e2e test runs and post-process CI payloads.",
    add_completion=False,
)

LOGGER = structlog.get_logger("ci_reporter")


def _abort(exc: ReporterError) -> NoReturn:
    LOGGER.debug("command_failed", operation=exc.operation, path=str(exc.path), detail=exc.detail)
    typer.secho(f"Error: {exc}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1) from exc


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (debug, info, warning, error). Defaults to CI_REPORTER_LOG_LEVEL or warning.",
    ),
    log_format: Optional[str] = typer.Option(
        None,
        "--log-format",
        help="Log format: console, plain or json. Defaults from CONSOLE_OUTPUT_FORMAT.",
    ),
) -> None:
    """Record e2e test progress with atomic writes that keep the report valid YAML at all times."""

    configure_logging(get_log_level(log_level), get_log_format(log_format))


@app.command("init")
def init_command(
    report_file: Path = typer.Argument(..., help="Report file to create (overwritten if present)."),
    project_name: Optional[str] = typer.Argument(None, help="Optional project name stored in test_run."),
) -> None:
    """Initialize a new test report."""

    run_info = RunInfo(start_time=utc_now(), runner=detect_runner(), project_name=project_name or None)
    try:
        create_report(report_file, run_info, detect_environment())
    except ReporterError as exc:
        _abort(exc)
    typer.secho(f"Report initialized -> {report_file}", fg=typer.colors.GREEN)


@app.command("step")
def step_command(
    phase: str = typer.Argument(..., help="Test phase name."),
    status: str = typer.Argument(..., help="Step status, usually passed or failed."),
    message: str = typer.Argument(..., help="Free-form message."),
    file: Path = typer.Option(..., "--file", "-f", help="Report file path."),
) -> None:
    """Add a test step result."""

    try:
        step = record_step(file, phase, status, message)
    except ReporterError as exc:
        _abort(exc)
    typer.secho(f"Step recorded -> {step.phase}: {step.status}", fg=typer.colors.CYAN)


@app.command("finalize")
def finalize_command(
    file: Path = typer.Option(..., "--file", "-f", help="Report file path."),
) -> None:
    """Finalize the test report with a summary."""

    try:
        summary = finalize_report(file)
    except ReporterError as exc:
        _abort(exc)
    color = typer.colors.GREEN if summary.failed_steps == 0 else typer.colors.RED
    typer.secho(
        f"Report finalized -> {summary.overall_status} "
        f"({summary.passed_steps}/{summary.total_steps} passed, {summary.success_rate})",
        fg=color,
    )


@app.command("parse")
def parse_command(
    report_file: Path = typer.Argument(..., help="Report file to render."),
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        "-o",
        help="Console format when not writing to GITHUB_STEP_SUMMARY: auto, rich, plain or json.",
    ),
) -> None:
    """Render a report to the GitHub Actions step summary or the console."""

    try:
        report = load_report(report_file)
        summary_path = get_summary_path()
        if summary_path is not None:
            publish(render_markdown(report), summary_path, typer.echo)
        else:
            ConsoleReporter(get_output_format(output_format)).show(report, typer.echo)
    except ReporterError as exc:
        _abort(exc)


@app.command("extract")
def extract_command(
    payload_json: Path = typer.Argument(..., help="CI payload JSON file."),
    output_dir: Path = typer.Argument(..., help="Directory receiving decoded artifacts."),
) -> None:
    """Extract and decode base64 artifacts from a CI payload."""

    typer.echo("📦 Extracting artifacts...")
    try:
        result = extract_artifacts(load_payload(payload_json), output_dir)
    except ReporterError as exc:
        _abort(exc)
    for name in result.skipped:
        typer.secho(f"⚠️  Skipping empty artifact: {name}", fg=typer.colors.YELLOW)
    for path in result.written:
        typer.secho(f"✅ Decoded: {path.relative_to(output_dir)}", fg=typer.colors.GREEN)


@app.command("summary")
def summary_command(
    payload_json: Path = typer.Argument(..., help="CI payload JSON file."),
) -> None:
    """Generate an execution summary from a CI payload."""

    try:
        payload = load_payload(payload_json)
        publish(render_execution_summary(payload), get_summary_path(), typer.echo)
    except ReporterError as exc:
        _abort(exc)


def run() -> None:
    """CLI entry point for console_scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
