# src/render/renderer.py — v1
"""Invoke the external site renderer over the whole tutorial tree.

Rendering is all-or-nothing. Its one structured output consumed downstream
is the site's ``search.json``, which is set aside as ``search_original.json``
so the merged index can take its place (and so other versions of the docs
can fetch this site's own, unmerged entries).
"""

from __future__ import annotations

import logging
import shlex
import time
from dataclasses import dataclass
from pathlib import Path

from docspublisher.core.errors import DocsPublisherError
from docspublisher.core.process import run_command
from docspublisher.storage import layout

logger = logging.getLogger(__name__)


class RenderError(DocsPublisherError):
    """The renderer failed or produced no search index."""


@dataclass
class RenderOutput:
    site_dir: Path
    search_index: Path
    duration_ms: int


class SiteRenderer:
    """Run the render command (``quarto render`` by default)."""

    def __init__(self, command: str = "quarto render", timeout_s: float | None = None) -> None:
        self._args = shlex.split(command)
        if not self._args:
            raise ValueError("render command must not be empty")
        self._timeout_s = timeout_s

    def render(self, project_root: Path, site_dir: Path) -> RenderOutput:
        """Render the site and set its search index aside.

        Raises:
            RenderError: On a non-zero exit or a missing ``search.json``.
        """
        start = time.monotonic()
        logger.info("Rendering site: %s", " ".join(self._args))
        result = run_command(self._args, cwd=project_root, timeout_s=self._timeout_s)
        duration_ms = int((time.monotonic() - start) * 1000)
        if not result.ok:
            raise RenderError(f"Renderer exited with {result.returncode}: {result.tail()}")

        search_index = layout.search_index_path(site_dir)
        if not search_index.is_file():
            raise RenderError(f"Renderer produced no search index at {search_index}")
        original = layout.original_search_index_path(site_dir)
        search_index.replace(original)
        logger.info("Rendered site in %dms", duration_ms)
        return RenderOutput(site_dir=site_dir, search_index=original, duration_ms=duration_ms)
