"""Subprocess execution for external ledger and loader CLIs.

Every external binary (``spl-token``, ``solana``, ``neon-cli``) runs through a
``CommandRunner`` so substrates can be tested with a scripted fake. A missing
binary is a configuration problem; a hung binary is a connectivity problem.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from packages.devnet_shared.errors import ConfigurationError, ConnectivityError, codes


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured outcome of one external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def summary(self, limit: int = 400) -> str:
        """Return the trimmed stderr (or stdout) for diagnostics."""
        text = (self.stderr or self.stdout).strip()
        if len(text) > limit:
            return text[:limit] + "..."
        return text


class CommandRunner(Protocol):
    """Callable contract for running one external command."""

    def __call__(
        self,
        args: Sequence[str],
        *,
        timeout_seconds: float,
        endpoint: str = "",
    ) -> CommandResult:
        """Run ``args`` and return its captured result."""


def run_command(
    args: Sequence[str],
    *,
    timeout_seconds: float,
    endpoint: str = "",
) -> CommandResult:
    """Run one command with captured text output and a hard timeout."""
    argv = tuple(str(arg) for arg in args)
    try:
        completed = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"command not found: {argv[0]}",
            code=codes.COMMAND_NOT_FOUND,
            endpoint=endpoint,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise ConnectivityError(
            f"command timed out after {timeout_seconds:.1f}s: "
            f"{' '.join(argv[:3])}",
            code=codes.COMMAND_TIMEOUT,
            endpoint=endpoint,
        ) from exc
    return CommandResult(
        args=argv,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
