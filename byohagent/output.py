"""Output sinks that receive messages while installation steps run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class OutputBuilder(Protocol):
    """Receives output as an installation algorithm runs."""

    def out(self, text: str) -> None:
        """Record info or content output."""

    def err(self, text: str) -> None:
        """Record error output."""

    def cmd(self, text: str) -> None:
        """Record a command about to be run."""

    def desc(self, text: str) -> None:
        """Record a description."""

    def msg(self, text: str) -> None:
        """Record a message."""


@dataclass
class OutputBuilderCounter:
    """Counts how many times any kind of output was produced."""

    log_called_cnt: int = 0

    def out(self, text: str) -> None:
        self.log_called_cnt += 1

    def err(self, text: str) -> None:
        self.log_called_cnt += 1

    def cmd(self, text: str) -> None:
        self.log_called_cnt += 1

    def desc(self, text: str) -> None:
        self.log_called_cnt += 1

    def msg(self, text: str) -> None:
        self.log_called_cnt += 1