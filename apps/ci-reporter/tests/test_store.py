from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from ci_reporter import store
from ci_reporter.errors import ReportFormatError, ReportIOError, ReportNotFoundError
from ci_reporter.models import Environment, RunInfo, Step, build_summary
from ci_reporter.store import HEADER, create_report, dump_report, load_report, save_report

START = datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)


def _run(project_name: str | None = "proj") -> RunInfo:
    return RunInfo(start_time=START, runner="ci-host", project_name=project_name)


def _environment() -> Environment:
    return Environment(os="linux", arch="amd64", shell="/usr/local/bin/home-ci-reporter")


def test_create_writes_header_and_empty_document(tmp_path: Path) -> None:
    path = tmp_path / "reports" / "nested" / "report.yaml"

    report = create_report(path, _run(), _environment())

    assert path.exists()
    text = path.read_text(encoding="utf-8")
    assert text.startswith(HEADER)
    assert report.steps == []
    assert report.summary is None

    data = yaml.safe_load(text)
    assert data["test_run"]["runner"] == "ci-host"
    assert data["test_run"]["project_name"] == "proj"
    assert data["environment"] == {"os": "linux", "arch": "amd64", "shell": "/usr/local/bin/home-ci-reporter"}
    assert data["steps"] == []
    assert "summary" not in data


def test_layout_indents_nested_structures_by_two_spaces(tmp_path: Path) -> None:
    path = tmp_path / "report.yaml"
    report = create_report(path, _run(project_name=None), _environment())
    report = report.with_step(Step(phase="build", status="passed", message="ok", timestamp=START))
    save_report(path, report)

    text = path.read_text(encoding="utf-8")

    assert text.splitlines() == [
        "# E2E Test Report",
        "test_run:",
        "  start_time: 2024-05-01T10:00:00.123456Z",
        "  runner: ci-host",
        "environment:",
        "  os: linux",
        "  arch: amd64",
        "  shell: /usr/local/bin/home-ci-reporter",
        "steps:",
        "  - phase: build",
        "    status: passed",
        "    message: ok",
        "    timestamp: 2024-05-01T10:00:00.123456Z",
    ]


def test_round_trip_preserves_model(tmp_path: Path) -> None:
    path = tmp_path / "report.yaml"
    report = create_report(path, _run(), _environment())
    report = report.with_step(Step(phase="build", status="passed", message="ok: done", timestamp=START))
    report = report.with_step(Step(phase="test", status="failed", message="boom\nsecond line", timestamp=START))
    report = report.with_summary(build_summary(report.steps, START, START))
    save_report(path, report)
    first_text = path.read_text(encoding="utf-8")

    loaded = load_report(path)
    save_report(path, loaded)

    assert loaded == report
    assert load_report(path) == report
    assert path.read_text(encoding="utf-8") == first_text


def test_load_accepts_reports_without_fractional_seconds(tmp_path: Path) -> None:
    path = tmp_path / "report.yaml"
    path.write_text(
        "# E2E Test Report\n"
        "test_run:\n"
        "  start_time: 2024-05-01T10:00:00Z\n"
        "  runner: legacy\n"
        "environment:\n"
        "  os: unknown\n"
        "  arch: unknown\n"
        "  shell: ./home-ci-reporter\n"
        "steps: []\n",
        encoding="utf-8",
    )

    report = load_report(path)

    assert report.run.start_time == datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)
    assert report.run.project_name is None
    assert report.steps == []


def test_load_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ReportNotFoundError) as excinfo:
        load_report(tmp_path / "missing.yaml")

    assert "missing.yaml" in str(excinfo.value)
    assert excinfo.value.operation == "read report"


@pytest.mark.parametrize(
    "content",
    [
        "# E2E Test Report\ntest_run: [unclosed\n",
        "# E2E Test Report\n- just\n- a list\n",
        "# E2E Test Report\ntest_run:\n  runner: ci-host\n",
        "",
    ],
)
def test_load_rejects_malformed_content(tmp_path: Path, content: str) -> None:
    path = tmp_path / "report.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ReportFormatError):
        load_report(path)


def test_create_fails_when_parent_is_a_file(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(ReportIOError):
        create_report(blocker / "report.yaml", _run(), _environment())


def test_interrupted_write_leaves_original_untouched(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "report.yaml"
    report = create_report(path, _run(), _environment())
    original = path.read_bytes()

    def fail_replace(src: str, dst: object) -> None:
        assert Path(src).read_text(encoding="utf-8") == dump_report(updated)
        raise OSError(28, "No space left on device")

    updated = report.with_step(Step(phase="build", status="passed", message="ok", timestamp=START))
    monkeypatch.setattr(store.os, "replace", fail_replace)

    with pytest.raises(ReportIOError):
        save_report(path, updated)

    assert path.read_bytes() == original
    assert sorted(p.name for p in tmp_path.iterdir()) == ["report.yaml"]


def test_save_produces_readable_file_mode(tmp_path: Path) -> None:
    path = tmp_path / "report.yaml"

    create_report(path, _run(), _environment())

    if os.name == "posix":
        assert path.stat().st_mode & 0o777 == store.FILE_MODE


def test_shared_timestamps_are_written_without_aliases(tmp_path: Path) -> None:
    path = tmp_path / "report.yaml"
    report = create_report(path, _run(), _environment())
    report = report.with_step(Step(phase="build", status="passed", message="ok", timestamp=START))
    report = report.with_summary(build_summary(report.steps, START, START))

    save_report(path, report)

    text = path.read_text(encoding="utf-8")
    assert "&id" not in text
    assert "*id" not in text
    assert text.count("2024-05-01T10:00:00.123456Z") == 3
    assert load_report(path) == report


@pytest.mark.parametrize("message", ["\x85nel", "mid\x85nel", "trail\x85", "line\u2028sep", "para\u2029", "  padded  "])
def test_round_trip_keeps_unusual_line_breaks(tmp_path: Path, message: str) -> None:
    path = tmp_path / "report.yaml"
    report = create_report(path, _run(), _environment())
    report = report.with_step(Step(phase=f"phase{message}", status="passed", message=message, timestamp=START))

    save_report(path, report)
    loaded = load_report(path)

    assert loaded.steps[0].message == message
    assert loaded.steps[0].phase == f"phase{message}"
    assert loaded == report


@pytest.mark.skipif(os.name != "posix", reason="directory fsync is posix only")
def test_save_syncs_parent_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "report.yaml"
    report = create_report(path, _run(), _environment())
    opened: dict[int, str] = {}
    synced: list[str] = []
    real_open = os.open
    real_fsync = os.fsync

    def tracking_open(target, flags, *args, **kwargs):
        fd = real_open(target, flags, *args, **kwargs)
        opened[fd] = str(target)
        return fd

    def tracking_fsync(fd: int) -> None:
        synced.append(opened.get(fd, "<file>"))
        real_fsync(fd)

    monkeypatch.setattr(store.os, "open", tracking_open)
    monkeypatch.setattr(store.os, "fsync", tracking_fsync)

    save_report(path, report.with_step(Step(phase="build", status="passed", message="ok", timestamp=START)))

    assert str(tmp_path) in synced
    assert synced.index(str(tmp_path)) == len(synced) - 1
