"""Index layer — Type registry, document codec, lifecycle management and bulk reindexing."""

from searchbind.index.codec import DocumentCodec
from searchbind.index.lifecycle import IndexManager, IndexState
from searchbind.index.registry import TypeRegistry

__all__ = ["DocumentCodec", "IndexManager", "IndexState", "TypeRegistry"]
