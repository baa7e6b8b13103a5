# src/search/models.py — v1
"""Search index entry model.

Entries are whatever the renderer emits; only ``href`` and ``objectID``
are interpreted. Every other field is carried through untouched.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class SearchIndexEntry(BaseModel):
    """One document record of the client-side search index."""

    model_config = ConfigDict(extra="allow")

    href: str | None = None
    objectID: str | None = None  # noqa: N815

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with exactly the fields the entry was built with."""
        return self.model_dump(exclude_unset=True)
