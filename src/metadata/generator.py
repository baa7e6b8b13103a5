# src/metadata/generator.py — v1
"""Changelog and version-listing regeneration.

The actual artifacts are produced by project scripts (changelog and
versions listing). They only run when the docs track the upstream's latest
release, so older backport branches never overwrite them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from docspublisher.core.errors import DocsPublisherError
from docspublisher.core.process import run_command

logger = logging.getLogger(__name__)


class MetadataGenerationError(DocsPublisherError):
    """A changelog/versions script failed."""


class MetadataGenerator:
    """Run the configured metadata scripts with ``sh`` in the project root."""

    def __init__(self, scripts: list[str], shell: str = "sh") -> None:
        self._scripts = scripts
        self._shell = shell

    @property
    def scripts(self) -> list[str]:
        return list(self._scripts)

    def generate(self, project_root: Path) -> list[str]:
        """Run every script in order; stop at the first failure.

        Returns:
            The scripts that ran.

        Raises:
            MetadataGenerationError: If a script is missing or exits non-zero.
        """
        ran: list[str] = []
        for script in self._scripts:
            if not (project_root / script).is_file():
                raise MetadataGenerationError(f"Metadata script not found: {script}")
            logger.info("Running metadata script %s", script)
            result = run_command([self._shell, script], cwd=project_root)
            if not result.ok:
                raise MetadataGenerationError(
                    f"{script} exited with {result.returncode}: {result.tail()}"
                )
            ran.append(script)
        return ran
