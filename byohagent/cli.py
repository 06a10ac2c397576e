"""Command line for trying out the bundle installer."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from byohagent.bundle_downloader import BundleType, get_bundle_name
from byohagent.installer import (
    K8sInstaller,
    LogPrinter,
    list_supported_k8s,
    list_supported_os,
    new_installer,
    new_unchecked,
    preview_changes,
)
from byohagent.os_detector import OSDetector

_logger = logging.getLogger("byohagent")

_INTRO = (
    "The corresponding bundles (particular to a patch version) should be pushed to the OCI registry of choice\n"
    "By default, BYOH uses projects.registry.vmware.com\n\n"
    "Note: It may happen that a specific patch version of a k8s minor release is not available in the OCI registry\n\n"
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="byoh-installer")
    parser.add_argument("--list-supported", action="store_true",
                        help="List all supported OS, Kubernetes versions and BYOH Bundle names")
    parser.add_argument("--detect", action="store_true", help="Detects the current operating system")
    parser.add_argument("--install", action="store_true", help="Install a BYOH Bundle")
    parser.add_argument("--uninstall", action="store_true", help="Uninstall a BYOH Bundle")
    parser.add_argument("--bundle-repo", default="projects.registry.vmware.com",
                        help="BYOH Bundle Repository")
    parser.add_argument("--cache-path", default=".", help="Path to the local bundle cache")
    parser.add_argument("--k8s", default="1.22.1", help="Kubernetes version")
    parser.add_argument("--os", default="",
                        help="OS. If used with install/uninstall, override os detection")
    parser.add_argument("--tag", default="", help="BYOH Bundle tag")
    parser.add_argument("--preview-os-changes", action="store_true",
                        help="Preview the install and uninstall changes for the specified OS")
    return parser


def _format_table(rows: list[list[str]]) -> list[str]:
    widths = [max(len(row[col]) for row in rows) for col in range(len(rows[0]))]
    return [
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
        for row in rows
    ]


def _list_supported() -> int:
    rows = [["OS", "K8S Version", "BYOH Bundle Name"], ["---", "-----------", "----------------"]]
    os_filters, os_bundles = list_supported_os()
    for os_filter, os_bundle in zip(os_filters, os_bundles):
        for k8s in list_supported_k8s(os_bundle):
            rows.append([os_filter, " " + k8s, f"{get_bundle_name(os_bundle)}:{k8s}"])
    sys.stdout.write(_INTRO)
    for line in _format_table(rows):
        print(line)
    return 0


def _detect_os() -> int:
    try:
        detected = OSDetector().detect()
    except Exception as exc:
        _logger.error("Error detecting OS: %s", exc)
        return 1
    sys.stdout.write(f"Detected OS as: {detected}")
    return 0


def _run_installer(args: argparse.Namespace, install: bool) -> int:
    try:
        installer: K8sInstaller
        if args.os:
            installer = new_unchecked(args.os, BundleType.K8S, args.cache_path, _logger,
                                      LogPrinter(_logger))
        else:
            installer = new_installer(args.cache_path, BundleType.K8S, _logger)
    except Exception as exc:
        _logger.error("unable to create installer: %s", exc)
        return 1

    try:
        if install:
            installer.install(args.bundle_repo, args.k8s, args.tag)
        else:
            installer.uninstall(args.bundle_repo, args.k8s, args.tag)
    except Exception as exc:
        _logger.error("error installing/uninstalling: %s", exc)
        return 1
    return 0


def _preview_os_changes(args: argparse.Namespace) -> int:
    try:
        install_changes, uninstall_changes = preview_changes(args.os, args.k8s)
    except Exception as exc:
        _logger.error("error previewing changes for os %s k8s %s: %s", args.os, args.k8s, exc)
        return 1
    sys.stdout.write(f"Install changes:\n{install_changes}\n\n")
    sys.stdout.write(f"Uninstall changes:\n{uninstall_changes}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the installer command line and return its exit status."""
    args = _build_parser().parse_args(argv)

    if args.list_supported:
        return _list_supported()
    if args.detect:
        return _detect_os()
    if args.install:
        return _run_installer(args, install=True)
    if args.uninstall:
        return _run_installer(args, install=False)
    if args.preview_os_changes:
        return _preview_os_changes(args)

    print("No flag set. See --help")
    return 0


if __name__ == "__main__":
    sys.exit(main())