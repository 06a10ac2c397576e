"""Ordered install and uninstall steps for Kubernetes components on a host."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

from byohagent.output import OutputBuilder
from byohagent.steps import ShellStep, Step, new_apt_step


class Installer(ABC):
    """Something that can install and uninstall a software bundle."""

    @abstractmethod
    def install(self) -> None:
        """Install the bundle."""

    @abstractmethod
    def uninstall(self) -> None:
        """Uninstall the bundle."""


class K8sStepProvider(ABC):
    """Supplies the ordered Kubernetes installation steps for a platform."""

    @abstractmethod
    def get_steps(self, installer: BaseK8sInstaller) -> list[Step]:
        """Return the steps in the order they must be applied."""


@dataclass
class BaseK8sInstaller(Installer):
    """Runs a provider's steps, rolling back applied steps on failure."""

    step_provider: K8sStepProvider
    output_builder: OutputBuilder | None = None
    bundle_path: str = ""

    def steps(self) -> list[Step]:
        return self.step_provider.get_steps(self)

    def install(self) -> None:
        for index, step in enumerate(self.steps()):
            try:
                step.do()
            except Exception:
                self._rollback(index)
                raise

    def uninstall(self) -> None:
        self._rollback(len(self.steps()) - 1)

    def _rollback(self, current_step: int) -> None:
        steps = self.steps()
        for step in reversed(steps[: current_step + 1]):
            try:
                step.undo()
            except Exception as exc:
                # Keep going so that as little as possible is left behind.
                if self.output_builder is not None:
                    self.output_builder.err(str(exc))


class Ubuntu20_4K8s1_22(K8sStepProvider):
    """Steps for Ubuntu 20.04 with Kubernetes 1.21 to 1.23."""

    def get_steps(self, installer: BaseK8sInstaller) -> list[Step]:
        # Order matters: kernel and OS setup first, CRI tools before the
        # packages that need them, containerd running before kubeadm.
        return [
            self._swap_step(installer),
            self._firewall_step(installer),
            self._kernel_mods_load_step(installer),
            self._os_wide_cfg_update_step(installer),
            new_apt_step(installer, "cri-tools.deb", True),
            new_apt_step(installer, "kubernetes-cni.deb", True),
            self._containerd_step(installer),
            self._containerd_daemon_step(installer),
            new_apt_step(installer, "kubelet.deb"),
            new_apt_step(installer, "kubectl.deb"),
            new_apt_step(installer, "kubeadm.deb"),
        ]

    @staticmethod
    def _swap_step(installer: BaseK8sInstaller) -> Step:
        return ShellStep(
            installer=installer,
            desc="SWAP",
            do_cmd=r"swapoff -a && sed -ri '/\sswap\s/s/^#?/#/' /etc/fstab",
            undo_cmd=r"swapon -a && sed -ri '/\sswap\s/s/^#?//' /etc/fstab",
        )

    @staticmethod
    def _firewall_step(installer: BaseK8sInstaller) -> Step:
        return ShellStep(
            installer=installer,
            desc="FIREWALL",
            do_cmd="ufw disable",
            undo_cmd="ufw enable",
        )

    @staticmethod
    def _kernel_mods_load_step(installer: BaseK8sInstaller) -> Step:
        return ShellStep(
            installer=installer,
            desc="KERNEL MODULES",
            do_cmd="modprobe overlay && modprobe br_netfilter",
            undo_cmd="modprobe -r overlay && modprobe -r br_netfilter",
        )

    @staticmethod
    def _os_wide_cfg_update_step(installer: BaseK8sInstaller) -> Step:
        conf_path = os.path.join(installer.bundle_path, "conf.tar")
        return ShellStep(
            installer=installer,
            desc="OS CONFIGURATION",
            do_cmd=f"tar -C / -xvf '{conf_path}' && sysctl --system",
            undo_cmd=f"tar tf '{conf_path}' | xargs -n 1 echo '/' | sed 's/ //g' | xargs rm -f",
        )

    @staticmethod
    def _containerd_step(installer: BaseK8sInstaller) -> Step:
        containerd_path = os.path.join(installer.bundle_path, "containerd.tar")
        undo_cmd = (
            "rm -rf /opt/cni/ && rm -rf /opt/containerd/ && "
            f"tar tf '{containerd_path}'"
            " | xargs -n 1 echo '/' | sed 's/ //g'"
            " | grep -e '[^/]$' | xargs rm -f"
        )
        return ShellStep(
            installer=installer,
            desc="CONTAINERD",
            do_cmd=f"tar -C / -xvf '{containerd_path}'",
            undo_cmd=undo_cmd,
        )

    @staticmethod
    def _containerd_daemon_step(installer: BaseK8sInstaller) -> Step:
        return ShellStep(
            installer=installer,
            desc="CONTAINERD SERVICE",
            do_cmd="systemctl daemon-reload && systemctl enable containerd && systemctl start containerd",
            undo_cmd="systemctl stop containerd && systemctl disable containerd && systemctl daemon-reload",
        )