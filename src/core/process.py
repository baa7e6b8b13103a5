# src/core/process.py — v1
"""Thin subprocess wrapper shared by the renderer, metadata scripts and git."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, lines: int = 20) -> str:
        """Last lines of stderr (or stdout) for error messages."""
        text = self.stderr.strip() or self.stdout.strip()
        return "\n".join(text.splitlines()[-lines:])


def run_command(
    args: Sequence[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout_s: float | None = None,
) -> CommandResult:
    """Run a command to completion, capturing its output.

    A missing executable is reported as exit code 127 and a timeout as 124,
    like a shell would, so callers only have one failure shape to handle.
    """
    logger.debug("Running %s (cwd=%s)", " ".join(args), cwd or ".")
    try:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=False,
        )
    except FileNotFoundError as e:
        return CommandResult(tuple(args), 127, "", str(e))
    except subprocess.TimeoutExpired as e:
        return CommandResult(tuple(args), 124, "", f"timed out after {e.timeout}s")
    return CommandResult(tuple(args), completed.returncode, completed.stdout, completed.stderr)
