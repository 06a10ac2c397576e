"""Download and caching of installation bundles from an OCI registry."""

from __future__ import annotations

import enum
import logging
import os
import shutil
import subprocess
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field

from byohagent.errors import BundleDownloadError, BundleExtractError

DOWNLOAD_PATH_PERMISSIONS = 0o777

_DOWNLOAD_ERRORS: dict[str, type[Exception]] = {
    "no such host": BundleDownloadError,
    "connection timed out": BundleDownloadError,
    "temporary failure in name resolution": BundleDownloadError,
    "no space left on device": BundleExtractError,
}


class BundleType(str, enum.Enum):
    """Kinds of bundles that can be downloaded."""

    K8S = "k8s"


def get_bundle_name(normalized_os_version: str) -> str:
    """Return the repository name of the bundle for an OS."""
    return f"byoh-bundle-{normalized_os_version}_k8s".lower()


def convert_error(err: BaseException | None) -> BaseException | None:
    """Map known download failures to standard installer errors.

    Unknown errors are returned unchanged.
    """
    if err is None:
        return None
    text = str(err).lower()
    for suffix, error_class in _DOWNLOAD_ERRORS.items():
        if text.endswith(suffix):
            return error_class()
    return err


def _check_dir_exist(path: str) -> bool:
    return os.path.isdir(path)


@dataclass
class BundleDownloader:
    """Downloads bundles into a local cache directory."""

    bundle_type: BundleType = BundleType.K8S
    repo_addr: str = ""
    download_path: str = ""
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def __post_init__(self) -> None:
        self.bundle_type = BundleType(self.bundle_type)

    def download(self, normalized_os_version: str, k8s_version: str, tag: str) -> None:
        """Download the bundle with imgpkg unless it is already cached."""
        self.download_from_repo(normalized_os_version, k8s_version, tag, self._download_by_imgpkg)

    def download_from_repo(
        self,
        normalized_os_version: str,
        k8s_version: str,
        tag: str,
        download_by_tool: Callable[[str, str], None],
    ) -> None:
        """Download the bundle with the given tool unless it is already cached.

        The download goes into a temporary directory which is renamed to the
        bundle directory only when the download succeeds.
        """
        repo_path = self._bundle_path_with_repo()
        try:
            os.makedirs(repo_path, mode=DOWNLOAD_PATH_PERMISSIONS, exist_ok=True)

            bundle_dir = self.bundle_dir_path(k8s_version)
            if _check_dir_exist(bundle_dir):
                self.logger.info("Cache hit: %s", bundle_dir)
                return
            self.logger.info("Cache miss: %s", bundle_dir)

            temp_dir = tempfile.mkdtemp(prefix="tempBundle", dir=repo_path)
            try:
                bundle_addr = self._bundle_addr(normalized_os_version, tag)
                try:
                    download_by_tool(bundle_addr, temp_dir)
                except Exception as exc:
                    converted = convert_error(exc)
                    if converted is exc:
                        raise
                    raise converted from exc
                os.rename(temp_dir, bundle_dir)
            finally:
                if os.path.exists(temp_dir):
                    try:
                        shutil.rmtree(temp_dir)
                    except OSError as exc:
                        self.logger.error("Failed to remove temp bundle dir %s: %s", temp_dir, exc)
        finally:
            try:
                os.rmdir(repo_path)
            except OSError as exc:
                self.logger.error("Failed to remove directory %s: %s", repo_path, exc)

    def bundle_dir_path(self, k8s_version: str) -> str:
        """Return the directory that holds the bundle for a Kubernetes version."""
        # A dash rather than a colon keeps the name valid everywhere, and a
        # flat name lets the temp dir be renamed atomically.
        return f"{os.path.join(self._bundle_path_with_repo(), self.bundle_type.value)}-{k8s_version}"

    def _bundle_path_with_repo(self) -> str:
        return os.path.normpath(
            os.path.join(self.download_path, self.repo_addr.replace("/", "."))
        )

    def _bundle_addr(self, normalized_os_version: str, tag: str) -> str:
        return f"{self.repo_addr}/{get_bundle_name(normalized_os_version)}:{tag}"

    def _download_by_imgpkg(self, bundle_addr: str, bundle_dir_path: str) -> None:
        self.logger.info("Downloading bundle from %s", bundle_addr)
        result = subprocess.run(
            ["imgpkg", "pull", "--recursive", "-i", bundle_addr, "-o", bundle_dir_path],
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            message = result.stderr.strip() or f"imgpkg exited with status {result.returncode}"
            raise RuntimeError(message)