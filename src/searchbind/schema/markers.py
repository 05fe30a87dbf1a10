"""Searchable markers — Declarative schema definitions for entity models.

Markers are attached to pydantic model fields through ``Annotated`` metadata
(field level) or applied as decorators to a ``property`` / ``computed_field``
getter (accessor level)::

    @searchable()
    class Article(BaseModel):
        id: Annotated[int, SearchableId()]
        title: Annotated[str | None, SearchableProperty(type="text", boost=2.0)] = None

        @property
        @SearchableProperty(index=Index.NOT_ANALYZED)
        def slug(self) -> str:
            return self.title.lower().replace(" ", "-")

Markers are plain frozen dataclasses rather than pydantic models so pydantic
keeps them untouched in ``FieldInfo.metadata``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

MARKER_ATTRIBUTE = "__searchable_marker__"
TYPE_ATTRIBUTE = "__searchable__"

_F = TypeVar("_F", bound=Callable[..., Any])
_T = TypeVar("_T", bound=type)


class Index(str, Enum):
    """How a property is indexed."""

    NA = "na"
    ANALYZED = "analyzed"
    NOT_ANALYZED = "not_analyzed"
    NO = "no"


class Store(str, Enum):
    """Whether a property is stored separately from ``_source``."""

    NA = "na"
    YES = "yes"
    NO = "no"


class _AccessorMarker:
    def __call__(self, getter: _F) -> _F:
        setattr(getter, MARKER_ATTRIBUTE, self)
        return getter


@dataclass(frozen=True)
class SearchableId(_AccessorMarker):
    """Marks the identifier property. Always mapped as ``keyword``."""

    index_name: str = ""
    format: str = ""
    index: Index = Index.NA
    boost: float = 1.0
    store: Store = Store.NA
    analyzer: str = ""
    search_analyzer: str = ""
    include_in_all: bool = True
    null_value: str = ""
    term_vector: str = ""
    omit_norms: bool = False
    omit_term_freq_and_positions: bool = False
    ignore_malformed: bool = False


@dataclass(frozen=True)
class SearchableProperty(_AccessorMarker):
    """Marks a scalar (or collection of scalars) property.

    ``type`` names the OpenSearch field type; when blank it is derived from
    the Python type of the property.
    """

    type: str = ""
    index_name: str = ""
    format: str = ""
    index: Index = Index.NA
    boost: float = 1.0
    store: Store = Store.NA
    analyzer: str = ""
    search_analyzer: str = ""
    include_in_all: bool = True
    null_value: str = ""
    term_vector: str = ""
    omit_norms: bool = False
    omit_term_freq_and_positions: bool = False
    ignore_malformed: bool = False


@dataclass(frozen=True)
class SearchableComponent(_AccessorMarker):
    """Marks an embedded model whose own markers are mapped as an object."""

    index_name: str = ""


Marker = SearchableId | SearchableProperty | SearchableComponent
MARKER_TYPES = (SearchableId, SearchableProperty, SearchableComponent)


@dataclass(frozen=True)
class SearchableType:
    """Class-level settings recorded by :func:`searchable`."""

    type: str = ""
    root: bool = True


def searchable(type: str = "", root: bool = True) -> Callable[[_T], _T]:  # noqa: A002
    """Class decorator declaring an entity type as searchable.

    Args:
        type: Explicit document type name. Defaults to the lower-cased class name.
        root: ``False`` for models that only appear embedded in other entities.
    """

    def decorator(cls: _T) -> _T:
        # stored in the class __dict__ so subclasses must opt in themselves
        setattr(cls, TYPE_ATTRIBUTE, SearchableType(type=type.strip().lower(), root=root))
        return cls

    return decorator


def searchable_type_of(cls: type) -> SearchableType | None:
    """Return the :func:`searchable` settings declared directly on ``cls``."""
    value = cls.__dict__.get(TYPE_ATTRIBUTE)
    return value if isinstance(value, SearchableType) else None
