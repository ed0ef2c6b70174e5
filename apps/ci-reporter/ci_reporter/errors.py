"""Error types raised by the report lifecycle and payload tooling."""

from __future__ import annotations

from pathlib import Path


class ReporterError(Exception):
    """Base error carrying the failed operation and the path it touched."""

    def __init__(self, operation: str, path: Path | str, detail: str) -> None:
        self.operation = operation
        self.path = Path(path)
        self.detail = detail
        super().__init__(f"{operation} {path}: {detail}")


class ReportIOError(ReporterError):
    """A path or directory could not be read, written or created."""


class ReportNotFoundError(ReportIOError):
    """The requested file does not exist."""


class ReportFormatError(ReporterError):
    """File content does not parse into the expected structure."""


class ArtifactDecodeError(ReporterError):
    """Artifact content is not valid base64."""
