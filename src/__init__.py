# src/__init__.py — v1
"""docspublisher: build and publish multi-version tutorial documentation."""

from docspublisher.version import __version__

__all__ = ["__version__"]
