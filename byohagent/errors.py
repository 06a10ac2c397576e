"""Errors raised by the host installer."""

from __future__ import annotations


class InstallerError(Exception):
    """Base class for errors reported by the installer."""

    default_message = "Installer error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class DetectOSError(InstallerError):
    """The operating system could not be detected."""

    default_message = "Error detecting OS"


class OsK8sNotSupportedError(InstallerError):
    """The OS and Kubernetes version combination has no installer."""

    default_message = "No k8s support for OS"


class BundleDownloadError(InstallerError):
    """The bundle could not be downloaded."""

    default_message = "Error downloading bundle"


class BundleExtractError(InstallerError):
    """The downloaded bundle could not be extracted."""

    default_message = "Error extracting bundle"


class BundleInstallError(InstallerError):
    """Installing the bundle failed."""

    default_message = "Error installing bundle"


class BundleUninstallError(InstallerError):
    """Uninstalling the bundle failed."""

    default_message = "Error uninstalling bundle"