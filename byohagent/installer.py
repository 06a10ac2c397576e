"""Installation and removal of Kubernetes components for a given OS and version.

The components are packaged as bundles hosted on OCI registries.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field

from byohagent.algo import BaseK8sInstaller, Ubuntu20_4K8s1_22
from byohagent.bundle_downloader import BundleDownloader, BundleType
from byohagent.checks import run_prechecks
from byohagent.errors import (
    BundleInstallError,
    BundleUninstallError,
    DetectOSError,
    InstallerError,
    OsK8sNotSupportedError,
)
from byohagent.os_detector import OSDetector
from byohagent.output import OutputBuilder
from byohagent.registry import Registry

# Shell scripts with the complete install and uninstall procedure for
# Ubuntu 20.04 with Kubernetes 1.22.
DO_UBUNTU_20_4_K8S_1_22 = r"""
set -euo pipefail

BUNDLE_PATH=${BUNDLE_PATH:-"/var/lib/byoh/bundles"}

## disable swap
swapoff -a && sed -ri '/\sswap\s/s/^#?/#/' /etc/fstab

## disable firewall
ufw disable

## load kernal modules
modprobe overlay && modprobe br_netfilter

## adding os configuration
tar -C / -xvf "$BUNDLE_PATH/conf.tar" && sysctl --system 

## installing deb packages
for pkg in cri-tools kubernetes-cni kubectl kubeadm kubelet; do
  dpkg --install "$BUNDLE_PATH/$pkg.deb" && apt-mark hold $pkg
done

## intalling containerd
tar -C / -xvf "$BUNDLE_PATH/containerd.tar"

## starting containerd service
systemctl daemon-reload && systemctl enable containerd && systemctl start containerd"""

UNDO_UBUNTU_20_4_K8S_1_22 = r"""
set -euo pipefail

BUNDLE_PATH=${BUNDLE_PATH:-"/var/lib/byoh/bundles"}

## enable swap
swapon -a && sed -ri '/\sswap\s/s/^#?//' /etc/fstab

## enable firewall
ufw enable

## remove kernal modules
modprobe -r overlay && modprobe -r br_netfilter

## removing os configuration
tar tf "$BUNDLE_PATH/conf.tar" | xargs -n 1 echo '/' | sed 's/ //g' | xargs rm -f

## removing deb packages
for pkg in cri-tools kubernetes-cni kubectl kubeadm kubelet; do
	dpkg --purge $pkg
done

## removing containerd configurations and cni plugins
rm -rf /opt/cni/ && rm -rf /opt/containerd/ &&  tar tf "$BUNDLE_PATH/containerd.tar" | xargs -n 1 echo '/' | sed 's/ //g'  | grep -e '[^/]$' | xargs rm -f

## disabling containerd service
systemctl stop containerd && systemctl disable containerd && systemctl daemon-reload"""


@dataclass
class LogPrinter:
    """Sends every kind of installer output to a logger at info level."""

    logger: logging.Logger

    def desc(self, text: str) -> None:
        self.logger.info(text)

    def cmd(self, text: str) -> None:
        self.logger.info(text)

    def out(self, text: str) -> None:
        self.logger.info(text)

    def err(self, text: str) -> None:
        self.logger.info(text)

    def msg(self, text: str) -> None:
        self.logger.info(text)


def _apply_fmt(step_fmt: str, text: str) -> str:
    return (step_fmt or "%s") % (text,)


@dataclass
class StringPrinter:
    """Collects installer output as formatted lines of text."""

    steps: list[str] = field(default_factory=list)
    desc_fmt: str = ""
    cmd_fmt: str = ""
    out_fmt: str = ""
    err_fmt: str = ""
    msg_fmt: str = ""
    divider: str = "\n"

    def desc(self, text: str) -> None:
        self.steps.append(_apply_fmt(self.desc_fmt, text))

    def cmd(self, text: str) -> None:
        self.steps.append(_apply_fmt(self.cmd_fmt, text))

    def out(self, text: str) -> None:
        self.steps.append(_apply_fmt(self.out_fmt, text))

    def err(self, text: str) -> None:
        self.steps.append(_apply_fmt(self.err_fmt, text))

    def msg(self, text: str) -> None:
        self.steps.append(_apply_fmt(self.msg_fmt, text))

    def __str__(self) -> str:
        return (self.divider or "\n").join(self.steps)


def get_supported_registry(output_builder: OutputBuilder | None) -> Registry:
    """Return a registry with installers for the supported OS and Kubernetes versions."""
    registry = Registry()

    def add_bundle_installer(os_bundle: str, k8s_bundle: str) -> None:
        # The bundle path is set once the tag is known.
        registry.add_bundle_installer(
            os_bundle,
            k8s_bundle,
            BaseK8sInstaller(step_provider=Ubuntu20_4K8s1_22(), output_builder=output_builder),
        )

    linux_distro = "Ubuntu_20.04.1_x86-64"
    for k8s_filter in ("v1.21.*", "v1.22.*", "v1.23.*"):
        add_bundle_installer(linux_distro, k8s_filter)
    for k8s_filter in ("v1.21.*", "v1.22.*", "v1.23.*"):
        registry.add_k8s_filter(k8s_filter)
    registry.add_os_filter("Ubuntu_20.04.*_x86-64", linux_distro)

    return registry


@dataclass
class K8sInstaller:
    """Installs Kubernetes on the current OS from a downloaded bundle.

    A downloader without a download path runs in preview mode: every step
    is reported but no command is run and nothing is downloaded.
    """

    algo_registry: Registry
    bundle_downloader: BundleDownloader
    detected_os: str
    logger: logging.Logger

    def install(self, bundle_repo: str, k8s_ver: str, tag: str) -> None:
        """Install the given Kubernetes version."""
        self.bundle_downloader.repo_addr = bundle_repo
        algo_installer = self._algo_installer_with_bundle(k8s_ver, tag)
        try:
            algo_installer.install()
        except Exception as exc:
            raise BundleInstallError() from exc

    def uninstall(self, bundle_repo: str, k8s_ver: str, tag: str) -> None:
        """Uninstall the given Kubernetes version."""
        self.bundle_downloader.repo_addr = bundle_repo
        algo_installer = self._algo_installer_with_bundle(k8s_ver, tag)
        try:
            algo_installer.uninstall()
        except Exception as exc:
            raise BundleUninstallError() from exc

    def _algo_installer_with_bundle(self, k8s_ver: str, tag: str) -> BaseK8sInstaller:
        algo_installer, os_bundle = self.algo_registry.get_installer(self.detected_os, k8s_ver)
        if algo_installer is None:
            raise OsK8sNotSupportedError()
        self.logger.info("Current OS will be handled as %s", os_bundle)

        downloader = self.bundle_downloader
        bundle_path = downloader.bundle_dir_path(k8s_ver) if downloader.download_path else ""
        installer_copy = dataclasses.replace(algo_installer, bundle_path=bundle_path)

        if downloader.download_path:
            downloader.download(os_bundle, k8s_ver, tag)
        else:
            self.logger.info("Running in preview mode, skip bundle download")

        return installer_copy


def new_unchecked(
    current_os: str,
    bundle_type: BundleType | str,
    download_path: str,
    logger: logging.Logger,
    output_builder: OutputBuilder | None,
) -> K8sInstaller:
    """Return an installer without detecting the OS or checking the download path.

    An empty download path gives an installer in preview mode.
    """
    downloader = BundleDownloader(
        bundle_type=BundleType(bundle_type),
        repo_addr="",
        download_path=download_path,
        logger=logger,
    )
    registry = get_supported_registry(output_builder)
    if not registry.list_k8s(current_os):
        raise OsK8sNotSupportedError()
    return K8sInstaller(
        algo_registry=registry,
        bundle_downloader=downloader,
        detected_os=current_os,
        logger=logger,
    )


def new_installer(
    download_path: str, bundle_type: BundleType | str, logger: logging.Logger
) -> K8sInstaller:
    """Return an installer for the detected OS that caches bundles under download_path."""
    if not download_path:
        raise InstallerError("empty download path")

    try:
        os_name = OSDetector().detect()
    except Exception as exc:
        raise DetectOSError() from exc
    logger.info("Detected OS %s", os_name)

    if not run_prechecks(logger, os_name):
        raise InstallerError("precheck failed")

    return new_unchecked(os_name, bundle_type, download_path, logger, LogPrinter(logger))


def list_supported_os() -> tuple[list[str], list[str]]:
    """Return the supported OS filters and the bundle OS each maps to."""
    return get_supported_registry(None).list_os()


def list_supported_k8s(os_name: str) -> list[str]:
    """Return the Kubernetes versions supported for a bundle OS or host OS."""
    return get_supported_registry(None).list_k8s(os_name)


def preview_changes(os_name: str, k8s_ver: str) -> tuple[str, str]:
    """Describe the install and uninstall changes without applying them."""
    previewer = StringPrinter(msg_fmt="# %s")
    registry = get_supported_registry(previewer)
    algo_installer, _ = registry.get_installer(os_name, k8s_ver)
    if algo_installer is None:
        raise OsK8sNotSupportedError()

    algo_installer.install()
    install_text = str(previewer)
    previewer.steps = []
    algo_installer.uninstall()
    uninstall_text = str(previewer)
    return install_text, uninstall_text