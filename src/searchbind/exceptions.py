"""searchbind exceptions."""

from __future__ import annotations


class SearchBindError(Exception):
    """Base exception for searchbind errors."""


class SchemaError(SearchBindError):
    """Raised when an entity type cannot be mapped (detected at startup)."""


class ConfigurationError(SearchBindError):
    """Raised when configuration is invalid."""


class UnknownDocumentTypeError(SearchBindError):
    """Raised when a document type name or index does not resolve to a registered entity."""


class InvalidCriteriaError(SearchBindError, ValueError):
    """Raised when search criteria carry neither a query object nor a query string."""


class IndexLifecycleError(SearchBindError):
    """Raised when an index cannot be created or mapped."""


class ClusterConnectionError(SearchBindError):
    """Raised when the OpenSearch cluster cannot be reached."""
