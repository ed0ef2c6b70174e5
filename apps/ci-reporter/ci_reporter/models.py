"""Report document models and summary derivation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Iterable, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

STATUS_PASSED = "passed"
STATUS_FAILED = "failed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # naive timestamps in hand-edited reports are read as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDateTime = Annotated[datetime, AfterValidator(_as_utc)]


class RunInfo(BaseModel):
    """When and where the test run started. Written once by ``init``."""

    model_config = ConfigDict(frozen=True)

    start_time: UTCDateTime
    runner: str
    project_name: Optional[str] = None


class Environment(BaseModel):
    """Execution platform of the process that created the report."""

    model_config = ConfigDict(frozen=True)

    os: str
    arch: str
    shell: str


class Step(BaseModel):
    """Outcome of one recorded test phase."""

    model_config = ConfigDict(frozen=True)

    phase: str
    status: str
    message: str
    timestamp: UTCDateTime


class Summary(BaseModel):
    """Aggregate block attached by ``finalize``."""

    model_config = ConfigDict(frozen=True)

    end_time: UTCDateTime
    duration_seconds: int
    total_steps: int
    passed_steps: int
    failed_steps: int
    overall_status: str
    success_rate: str


class Report(BaseModel):
    """Complete test-run document as persisted on disk."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    run: RunInfo = Field(alias="test_run")
    environment: Environment
    steps: list[Step] = Field(default_factory=list)
    summary: Optional[Summary] = None

    @property
    def is_finalized(self) -> bool:
        return self.summary is not None

    def with_step(self, step: Step) -> "Report":
        """Return a copy with ``step`` appended after the existing steps."""

        return self.model_copy(update={"steps": [*self.steps, step]})

    def with_summary(self, summary: Summary) -> "Report":
        return self.model_copy(update={"summary": summary})

    def as_document(self) -> dict[str, Any]:
        """Return the persisted mapping with unset optional fields omitted.

        Timestamps stay ``datetime`` objects so the YAML dumper can emit them
        as plain timestamp scalars.
        """

        return self.model_dump(mode="python", by_alias=True, exclude_none=True)


def build_summary(steps: Iterable[Step], start_time: datetime, end_time: datetime) -> Summary:
    """Tally ``steps`` into a Summary for a run that spans start_time..end_time."""

    steps = list(steps)
    total = len(steps)
    passed = sum(1 for step in steps if step.status == STATUS_PASSED)
    failed = sum(1 for step in steps if step.status == STATUS_FAILED)

    # int() truncates toward zero; clock skew must not produce a negative duration
    duration = max(0, int((end_time - start_time).total_seconds()))

    success_rate = "0%"
    if total > 0:
        success_rate = f"{passed / total * 100:.0f}%"

    return Summary(
        end_time=end_time,
        duration_seconds=duration,
        total_steps=total,
        passed_steps=passed,
        failed_steps=failed,
        overall_status=STATUS_FAILED if failed > 0 else STATUS_PASSED,
        success_rate=success_rate,
    )
