# src/core/errors.py — v1
"""Root of the docspublisher exception hierarchy.

Each component defines its own exceptions next to the code that raises
them; they all derive from DocsPublisherError so the CLI and the pipeline
runner can tell pipeline failures apart from programming errors.
"""

from __future__ import annotations


class DocsPublisherError(Exception):
    """Base class for every expected pipeline failure."""
