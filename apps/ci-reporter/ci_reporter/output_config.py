"""Output, logging and CI summary configuration resolved from CLI and environment."""

import os
from enum import Enum
from pathlib import Path
from typing import Literal, Optional


class OutputFormat(str, Enum):
    """Console rendering used by ``parse`` when no CI summary file is set."""
    AUTO = "auto"
    RICH = "rich"
    PLAIN = "plain"
    JSON = "json"


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"
LOG_LEVEL_ENV_VAR = "CI_REPORTER_LOG_LEVEL"
SUMMARY_ENV_VAR = "GITHUB_STEP_SUMMARY"

DEFAULT_LOG_LEVEL = "warning"


def get_output_format(cli_override: str | None = None) -> OutputFormat:
    """
    Get the output format with priority: CLI parameter > Environment variable > Default (auto).
    """
    if cli_override:
        try:
            return OutputFormat(cli_override.lower())
        except ValueError:
            pass

    env_value = os.environ.get(ENV_VAR_NAME)
    if env_value:
        try:
            return OutputFormat(env_value.lower())
        except ValueError:
            pass

    return OutputFormat.AUTO


def get_log_format(cli_override: str | None = None) -> LogFormat:
    """
    Get the log format with priority: CLI parameter > Environment variable > Default (console).

    Output formats map onto log formats: auto/rich -> console, plain -> plain, json -> json.
    """
    if cli_override:
        format_lower = cli_override.lower()
        if format_lower in ("json", "console", "plain"):
            return format_lower  # type: ignore

    env_value = os.environ.get(ENV_VAR_NAME)
    if env_value:
        format_lower = env_value.lower()
        if format_lower == "json":
            return "json"
        elif format_lower == "plain":
            return "plain"
        elif format_lower in ("auto", "rich"):
            return "console"

    return "console"


def get_log_level(cli_override: str | None = None) -> str:
    if cli_override:
        return cli_override
    return os.environ.get(LOG_LEVEL_ENV_VAR) or DEFAULT_LOG_LEVEL


def get_summary_path() -> Optional[Path]:
    """Return the CI summary file path, or None when the variable is unset or empty."""
    value = os.environ.get(SUMMARY_ENV_VAR, "")
    if not value:
        return None
    return Path(value)
