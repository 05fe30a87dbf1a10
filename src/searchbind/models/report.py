"""Reindex and rebuild reports."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ReindexResult(BaseModel):
    """Outcome of reindexing one document type."""

    type_name: str
    indexed: int = Field(default=0, description="Records read from the primary store")
    failed: int = Field(default=0, description="Records that were not written")
    batches: int = Field(default=0, description="Bulk requests submitted")


class TypeRebuildResult(BaseModel):
    """Outcome of rebuilding one document type."""

    type_name: str
    dropped: bool = False
    mapped: bool = False
    reindex: ReindexResult | None = None
    errors: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.mapped and not self.errors and self.reindex is not None and self.reindex.failed == 0


class RebuildReport(BaseModel):
    """Aggregate outcome of a full rebuild.

    ``started`` is ``False`` when another rebuild held the lock.
    """

    started: bool
    types: list[TypeRebuildResult] = Field(default_factory=list)
    took_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.started and all(t.succeeded for t in self.types)
