"""Installation steps that run shell commands and can be rolled back."""

from __future__ import annotations

import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from byohagent.algo import BaseK8sInstaller

_DEFAULT_SHELL = "bash"


class Step(ABC):
    """A unit of installation work that can be applied and reverted."""

    @abstractmethod
    def do(self) -> None:
        """Apply the step."""

    @abstractmethod
    def undo(self) -> None:
        """Revert the step."""


@dataclass
class ShellStep(Step):
    """A step whose apply and revert actions are shell commands.

    When the owning installer has no bundle path the commands are only
    reported to the output builder, never run (preview mode).
    """

    installer: BaseK8sInstaller
    desc: str
    do_cmd: str
    undo_cmd: str

    def do(self) -> None:
        self.installer.output_builder.msg("Installing: " + self.desc)
        self._run(self.do_cmd)

    def undo(self) -> None:
        self.installer.output_builder.msg("Uninstalling: " + self.desc)
        self._run(self.undo_cmd)

    def _run(self, command: str) -> None:
        output = self.installer.output_builder
        shell = shutil.which(_DEFAULT_SHELL) or _DEFAULT_SHELL
        argv = [shell, "-c", command]
        output.cmd(f"{shell} -c {command}")

        if not self.installer.bundle_path:
            return

        try:
            result = subprocess.run(argv, capture_output=True, text=True, check=False)
        except OSError as exc:
            output.err(str(exc))
            raise

        # Output on stderr alone is not a failure: many tools warn there.
        if result.stderr:
            output.err(result.stderr)

        if result.returncode != 0:
            error = subprocess.CalledProcessError(
                result.returncode, argv, result.stdout, result.stderr
            )
            output.err(str(error))
            raise error

        if result.stdout:
            output.out(result.stdout)


def new_apt_step(installer: BaseK8sInstaller, apt_pkg: str, optional: bool = False) -> ShellStep:
    """Return a step that installs (and holds) or purges a .deb package from the bundle.

    An optional step only acts when the package file exists in the bundle.
    """
    pkg_name = apt_pkg.split(".")[0]
    pkg_path = os.path.join(installer.bundle_path, apt_pkg)

    do_cmd = f"dpkg --install '{pkg_path}' && apt-mark hold {pkg_name}"
    undo_cmd = f"dpkg --purge {pkg_name}"

    if optional:
        do_cmd = f"if [ -f {pkg_path} ]; then {do_cmd}; fi"
        undo_cmd = f"if [ -f {pkg_path} ]; then {undo_cmd}; fi"

    return ShellStep(installer=installer, desc=pkg_name, do_cmd=do_cmd, undo_cmd=undo_cmd)