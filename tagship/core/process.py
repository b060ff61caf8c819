"""Subprocess invocation for external tools (cargo, strip, gh, docker, git...).

Tools are always invoked with an argument list, never through a shell.
Output is captured so that failures can be reported with diagnostics.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, for diagnostics."""
        return "\n".join(part.strip() for part in (self.stdout, self.stderr) if part.strip())


class CommandRunner(Protocol):
    """Anything that can run a command and return a ``CommandResult``."""

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        ...


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    input_text: str | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run *args* and capture its output.

    *env* is merged over the current process environment.  A missing
    executable is reported as exit code 127 rather than raised.
    """
    argv = tuple(str(arg) for arg in args)
    logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd or ".")
    run_env = {**os.environ, **env} if env else None
    try:
        proc = subprocess.run(
            argv,
            cwd=cwd,
            env=run_env,
            input=input_text,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        return CommandResult(args=argv, returncode=127, stderr=str(exc))
    except subprocess.TimeoutExpired as exc:
        stderr = exc.stderr.decode() if isinstance(exc.stderr, bytes) else (exc.stderr or "")
        return CommandResult(
            args=argv,
            returncode=124,
            stderr=f"{stderr}\nTimed out after {timeout}s".strip(),
        )
    if proc.returncode != 0:
        logger.debug("Command %s exited with %d", argv[0], proc.returncode)
    return CommandResult(
        args=argv,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
