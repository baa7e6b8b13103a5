# src/core/models.py — v1
"""Shared Pydantic domain models and the version comparator.

Version ordering is used in two places: picking the newest patch release
of a minor family from the upstream tag list, and picking the newest
published version directory on the publish branch. Both go through
version_sort_key() so neither relies on string or filesystem order.
"""

from __future__ import annotations

import re
from functools import total_ordering
from typing import Iterable

from pydantic import BaseModel, ConfigDict

STABLE_TAG_RE = re.compile(r"^v(\d+)\.(\d+)\.(\d+)$")
MINOR_VERSION_RE = re.compile(r"^(\d+)\.(\d+)$")
_CHUNK_RE = re.compile(r"(\d+)")


def version_sort_key(name: str) -> tuple[tuple[int, int, str], ...]:
    """Natural version key in the spirit of ``sort -V``.

    Digit runs compare numerically and everything else compares as text, so
    ``v1.10`` sorts after ``v1.9`` and ``v1.10`` sorts before ``v1.10.0``.
    """
    key: list[tuple[int, int, str]] = []
    for chunk in _CHUNK_RE.split(name):
        if not chunk:
            continue
        if chunk.isdigit():
            key.append((1, int(chunk), ""))
        else:
            key.append((0, 0, chunk))
    return tuple(key)


def latest_by_version(names: Iterable[str]) -> str | None:
    """Return the version-maximal name, or None for an empty input."""
    ordered = sorted(names, key=version_sort_key)
    return ordered[-1] if ordered else None


@total_ordering
class ReleaseVersion(BaseModel):
    """A stable ``vMAJOR.MINOR.PATCH`` release of the upstream library."""

    model_config = ConfigDict(frozen=True)

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, tag: str) -> ReleaseVersion:
        """Parse a stable tag name. Pre-release or build suffixes are rejected."""
        match = STABLE_TAG_RE.match(tag.strip())
        if not match:
            raise ValueError(f"Not a stable release tag: {tag!r}")
        return cls(
            major=int(match.group(1)),
            minor=int(match.group(2)),
            patch=int(match.group(3)),
        )

    @classmethod
    def is_stable_tag(cls, tag: str) -> bool:
        return STABLE_TAG_RE.match(tag.strip()) is not None

    @property
    def minor_family(self) -> str:
        """The ``M.m`` family this release belongs to."""
        return f"{self.major}.{self.minor}"

    @property
    def tag(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"

    def in_family(self, minor_version: str) -> bool:
        return self.minor_family == minor_version

    def _as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ReleaseVersion):
            return NotImplemented
        return self._as_tuple() < other._as_tuple()

    def __str__(self) -> str:
        return self.tag


def parse_minor_version(value: str) -> str:
    """Normalize a ``M.m`` string (a leading ``v`` is accepted)."""
    candidate = value.strip().removeprefix("v")
    match = MINOR_VERSION_RE.match(candidate)
    if not match:
        raise ValueError(f"Not a minor version: {value!r}")
    return f"{int(match.group(1))}.{int(match.group(2))}"
