"""Host and platform detection for new reports."""

from __future__ import annotations

import platform
import socket
import sys
from typing import Optional

from .models import Environment

UNKNOWN = "unknown"

# platform.machine() spellings mapped onto the names CI tooling already uses
_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


def detect_runner() -> str:
    """Return the local host name, or an empty string when it is unavailable."""

    try:
        return socket.gethostname()
    except OSError:
        return ""


def normalize_arch(machine: str) -> str:
    machine = machine.strip().lower()
    if not machine:
        return UNKNOWN
    return _ARCH_ALIASES.get(machine, machine)


def detect_environment(shell: Optional[str] = None) -> Environment:
    """Describe the running platform.

    ``shell`` defaults to the path of the invoking program.
    """

    return Environment(
        os=platform.system().lower() or UNKNOWN,
        arch=normalize_arch(platform.machine()),
        shell=shell if shell is not None else sys.argv[0],
    )
