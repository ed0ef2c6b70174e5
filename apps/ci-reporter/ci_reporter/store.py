"""Report persistence: fixed YAML layout and atomic whole-file rewrite."""

from __future__ import annotations

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from .errors import ReportFormatError, ReportIOError, ReportNotFoundError
from .models import Environment, Report, RunInfo

LOGGER = structlog.get_logger("ci_reporter.store")

HEADER = "# E2E Test Report\n"
FILE_MODE = 0o644
_UNICODE_BREAKS = "\x85\u2028\u2029"


class ReportDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences under their parent key."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        return super().increase_indent(flow, False)

    def ignore_aliases(self, data: object) -> bool:
        # shared timestamps must be written out in full, never as &id/*id
        return True


def _represent_datetime(dumper: yaml.SafeDumper, value: datetime) -> yaml.Node:
    text = value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    return dumper.represent_scalar("tag:yaml.org,2002:timestamp", text)


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.Node:
    # NEL/LS/PS are read back as line breaks unless escaped inside double quotes
    if any(ch in value for ch in _UNICODE_BREAKS):
        return dumper.represent_scalar("tag:yaml.org,2002:str", value, style='"')
    return dumper.represent_str(value)


ReportDumper.add_representer(datetime, _represent_datetime)
ReportDumper.add_representer(str, _represent_str)


def dump_report(report: Report) -> str:
    """Return the exact text written for ``report``."""

    body = yaml.dump(
        report.as_document(),
        Dumper=ReportDumper,
        indent=2,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return HEADER + body


def create_report(path: Path, run: RunInfo, environment: Environment) -> Report:
    """Create a fresh report at ``path``, replacing any previous one."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ReportIOError("create directory", path.parent, exc.strerror or str(exc)) from exc

    if path.exists():
        LOGGER.warning("report_overwritten", path=str(path))
    report = Report(run=run, environment=environment)
    save_report(path, report)
    return report


def load_report(path: Path) -> Report:
    """Read and validate the report stored at ``path``."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ReportNotFoundError("read report", path, "file does not exist") from exc
    except UnicodeDecodeError as exc:
        raise ReportFormatError("read report", path, f"not UTF-8 text: {exc}") from exc
    except OSError as exc:
        raise ReportIOError("read report", path, exc.strerror or str(exc)) from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ReportFormatError("parse report", path, f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ReportFormatError("parse report", path, "document must be a mapping")

    try:
        report = Report.model_validate(data)
    except ValidationError as exc:
        raise ReportFormatError("parse report", path, str(exc)) from exc

    LOGGER.debug("report_loaded", path=str(path), steps=len(report.steps))
    return report


def save_report(path: Path, report: Report) -> None:
    """Replace ``path`` with the serialized report.

    The content goes to a temp file in the same directory which is then
    renamed over ``path``, so readers only ever see the old or the new
    complete document.
    """

    content = dump_report(report)
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as exc:
        raise ReportIOError("write report", path, exc.strerror or str(exc)) from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, FILE_MODE)
        os.replace(tmp_name, path)
    except OSError as exc:
        _discard(tmp_name)
        raise ReportIOError("write report", path, exc.strerror or str(exc)) from exc
    except BaseException:
        _discard(tmp_name)
        raise

    _fsync_directory(path.parent)
    LOGGER.debug("report_saved", path=str(path), steps=len(report.steps), finalized=report.is_finalized)


def _fsync_directory(directory: Path) -> None:
    """Persist the rename itself; the new content is already in place."""

    if os.name != "posix":
        return
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError as exc:
        LOGGER.warning("directory_fsync_failed", path=str(directory), error=str(exc))
        return
    try:
        os.fsync(fd)
    except OSError as exc:
        LOGGER.warning("directory_fsync_failed", path=str(directory), error=str(exc))
    finally:
        os.close(fd)


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass
