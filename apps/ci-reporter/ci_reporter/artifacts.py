"""CI dispatch payloads: artifact extraction and execution summaries."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from .errors import ArtifactDecodeError, ReportFormatError, ReportIOError, ReportNotFoundError

LOGGER = structlog.get_logger("ci_reporter.artifacts")

_EMPTY_CONTENT = {"", "null"}


class ArtifactContent(BaseModel):
    """Base64 encoded artifact body."""

    content: Optional[str] = None


class CIPayload(BaseModel):
    """``client_payload`` sent by an external pipeline."""

    success: bool = False
    source: str = ""
    branch: str = ""
    commit: str = ""
    artifact_name: str = ""
    artifacts: dict[str, ArtifactContent] = Field(default_factory=dict)


@dataclass
class ExtractionResult:
    written: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def load_payload(path: Path) -> CIPayload:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ReportNotFoundError("read payload", path, "file does not exist") from exc
    except OSError as exc:
        raise ReportIOError("read payload", path, exc.strerror or str(exc)) from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ReportFormatError("parse payload", path, f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ReportFormatError("parse payload", path, "payload must be a JSON object")

    try:
        return CIPayload.model_validate(data)
    except ValidationError as exc:
        raise ReportFormatError("parse payload", path, str(exc)) from exc


def extract_artifacts(payload: CIPayload, output_dir: Path) -> ExtractionResult:
    """Decode every non-empty artifact into ``output_dir``."""

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ReportIOError("create directory", output_dir, exc.strerror or str(exc)) from exc

    root = output_dir.resolve()
    result = ExtractionResult()
    for filename, artifact in payload.artifacts.items():
        content = (artifact.content or "").strip()
        if content in _EMPTY_CONTENT:
            LOGGER.info("artifact_skipped", artifact=filename, reason="empty content")
            result.skipped.append(filename)
            continue

        destination = output_dir / filename
        if not destination.resolve().is_relative_to(root):
            raise ReportFormatError("extract artifact", destination, "name escapes the output directory")

        try:
            data = base64.b64decode("".join(content.split()), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ArtifactDecodeError("decode artifact", destination, f"invalid base64: {exc}") from exc

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as exc:
            raise ReportIOError("write artifact", destination, exc.strerror or str(exc)) from exc

        LOGGER.info("artifact_decoded", artifact=filename, bytes=len(data))
        result.written.append(destination)
    return result


def render_execution_summary(payload: CIPayload) -> str:
    """Render the execution details table for a dispatch payload."""

    emoji, status = ("✅", "SUCCESS") if payload.success else ("❌", "FAILURE")
    return (
        f"## {emoji} External Test Results: {status}\n"
        "\n"
        "### 📍 Execution Details\n"
        "| Property | Value |\n"
        "| :--- | :--- |\n"
        f"| **Source** | {payload.source} |\n"
        f"| **Branch** | `{payload.branch}` |\n"
        f"| **Commit** | `{payload.commit}` |\n"
        f"| **Artifact Name** | {payload.artifact_name} |\n"
    )
