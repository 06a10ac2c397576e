"""Running of cloud-init ``runcmd`` commands."""

from __future__ import annotations

import subprocess


class CmdRunner:
    """Runs commands through ``/bin/sh``."""

    def run_cmd(self, cmd: str) -> None:
        """Run ``cmd`` in a shell; raise CalledProcessError if it fails.

        Standard output is discarded; standard error goes to this process's.
        """
        subprocess.run(["/bin/sh", "-c", cmd], stdout=subprocess.DEVNULL, check=True)