"""Prechecks run before Kubernetes components are installed."""

from __future__ import annotations

import logging
import shutil
import sys

from byohagent.errors import InstallerError

PRE_REQUISITE_PACKAGES = ("socat", "ebtables", "ethtool", "conntrack")


def check_prerequisite_packages() -> None:
    """Raise InstallerError if a required executable is missing on Linux."""
    if not sys.platform.startswith("linux"):
        return
    missing = [pkg for pkg in PRE_REQUISITE_PACKAGES if shutil.which(pkg) is None]
    if missing:
        raise InstallerError(f"required package(s): [{' '.join(missing)}] not found")


def run_prechecks(logger: logging.Logger, os_name: str) -> bool:
    """Run all prechecks, log failures and report whether all passed."""
    try:
        check_prerequisite_packages()
    except InstallerError as exc:
        logger.error("Failed pre-requisite packages precheck: %s", exc)
        return False
    return True