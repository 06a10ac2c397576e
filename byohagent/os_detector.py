"""Detection of the host operating system in normalized form."""

from __future__ import annotations

import re
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

from byohagent.errors import DetectOSError

_OS_NOT_DETECTED = "could not detect OS correctly"
_OS_LINE = "Operating System: "
_ARCH_LINE = "Architecture: "

_OS_RE = re.compile(re.escape(_OS_LINE) + r"[a-zA-Z]+[ a-zA-Z]*[a-zA-Z]+")
_VER_RE = re.compile(re.escape(_OS_LINE) + r"[a-zA-Z]+[ a-zA-Z]* (\d+(\.\d+)*)")
_ARCH_RE = re.compile(re.escape(_ARCH_LINE) + r"[a-zA-Z]+[ a-zA-Z0-9-]*")


def parse_hostnamectl(system_info: str) -> tuple[str, str, str]:
    """Extract (os, version, architecture) from hostnamectl output.

    Missing parts are returned as empty strings.
    """
    os_name = ver = arch = ""

    os_match = _OS_RE.search(system_info)
    if os_match:
        os_name = system_info[os_match.start() + len(_OS_LINE) : os_match.end()]

    ver_match = _VER_RE.search(system_info)
    if ver_match and os_match:
        ver = system_info[os_match.end() + 1 : ver_match.end()]

    arch_match = _ARCH_RE.search(system_info)
    if arch_match:
        arch = system_info[arch_match.start() + len(_ARCH_LINE) : arch_match.end()]

    return os_name, ver, arch


def normalize_os_name(os_name: str, ver: str, arch: str) -> str:
    """Return ``<os>_<ver>_<arch>`` with spaces replaced by underscores."""
    return f"{os_name}_{ver}_{arch}".replace(" ", "_")


def _get_hostnamectl() -> str:
    result = subprocess.run(["hostnamectl"], capture_output=True, text=True, check=True)
    return result.stdout


@dataclass
class OSDetector:
    """Detects the host OS once and caches the normalized result."""

    cached_normalized_os: str = ""

    def detect(self) -> str:
        """Return the normalized OS, e.g. ``Ubuntu_20.04.3_x86-64``."""
        return self.detect_by_hostnamectl(_get_hostnamectl)

    def detect_by_hostnamectl(self, get_system_info: Callable[[], str]) -> str:
        """Detect the OS from the output of the given hostnamectl provider."""
        if self.cached_normalized_os:
            return self.cached_normalized_os

        os_name, ver, arch = parse_hostnamectl(get_system_info())
        if not (os_name and ver and arch):
            raise DetectOSError(_OS_NOT_DETECTED)

        self.cached_normalized_os = normalize_os_name(os_name, ver, arch)
        return self.cached_normalized_os