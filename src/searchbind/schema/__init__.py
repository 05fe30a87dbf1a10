"""Schema derivation — Markers, introspection and OpenSearch mapping derivation."""

from searchbind.schema.mapping import FieldDescriptor, ObjectMapping, derive_mapping
from searchbind.schema.markers import Index, SearchableComponent, SearchableId, SearchableProperty, Store, searchable

__all__ = [
    "FieldDescriptor",
    "Index",
    "ObjectMapping",
    "SearchableComponent",
    "SearchableId",
    "SearchableProperty",
    "Store",
    "derive_mapping",
    "searchable",
]
