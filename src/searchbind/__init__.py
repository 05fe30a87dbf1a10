"""searchbind — Map pydantic entities onto OpenSearch indices.

Schema mappings are derived from markers declared on the entities, documents
are kept in sync with a cluster-wide rebuild, and application search criteria
are translated into OpenSearch queries.
"""

from searchbind.schema.markers import (
    Index,
    SearchableComponent,
    SearchableId,
    SearchableProperty,
    Store,
    searchable,
)

__version__ = "0.1.0"

__all__ = [
    "Index",
    "SearchableComponent",
    "SearchableId",
    "SearchableProperty",
    "Store",
    "__version__",
    "searchable",
]
