"""Mapping derivation — Build OpenSearch mappings from marked entity models.

``derive_mapping`` walks the marked properties of an entity model and
produces an immutable :class:`ObjectMapping` tree. ``ObjectMapping.to_mapping``
renders that tree as the body of an OpenSearch ``put_mapping`` call.
"""

from __future__ import annotations

import enum
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from searchbind.exceptions import SchemaError
from searchbind.schema.introspection import PropertySpec, collect_properties
from searchbind.schema.markers import Index, SearchableId, SearchableProperty, Store

logger = logging.getLogger(__name__)

DEFAULT_SEGMENTATION_ANALYZER = "smartcn"

_TYPE_TRANSLATIONS = {
    "int": "integer",
    "bool": "boolean",
    "str": "text",
    "string": "text",
    "decimal": "double",
    "bigdecimal": "double",
    "datetime": "date",
    "uuid": "keyword",
    "dict": "object",
}


def translate_type(name: str) -> str:
    """Translate a Python-level type name into an OpenSearch field type."""
    return _TYPE_TRANSLATIONS.get(name, name)


def python_type_name(tp: type) -> str:
    """Lower-cased type name of ``tp``; enumerations always map to ``keyword``."""
    if issubclass(tp, enum.Enum):
        return "keyword"
    return tp.__name__.lower()


class FieldDescriptor(BaseModel):
    """Scalar field mapping. Unset (``None``) attributes are not rendered."""

    model_config = ConfigDict(frozen=True)

    type: str = "text"
    index_name: str | None = None
    format: str | None = None
    boost: float | None = None
    index: bool | None = None
    store: bool | None = None
    analyzer: str | None = None
    search_analyzer: str | None = None
    include_in_all: bool | None = None
    null_value: str | None = None
    term_vector: str | None = None
    omit_norms: bool | None = None
    omit_term_freq_and_positions: bool | None = None
    ignore_malformed: bool | None = None

    def to_mapping(self) -> dict[str, Any]:
        body: dict[str, Any] = {"type": self.type}
        for name in ("format", "boost", "index", "store", "analyzer", "search_analyzer",
                     "null_value", "term_vector", "ignore_malformed"):
            value = getattr(self, name)
            if value is not None:
                body[name] = value
        if self.omit_norms:
            body["norms"] = False
        if self.omit_term_freq_and_positions:
            body["index_options"] = "docs"
        return body


class ObjectMapping(BaseModel):
    """Mapping of an entity (root) or an embedded component (``embedded=True``)."""

    model_config = ConfigDict(frozen=True)

    properties: dict[str, FieldDescriptor | ObjectMapping] = Field(default_factory=dict)
    embedded: bool = False
    id_field: str | None = None

    def to_mapping(self) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if self.embedded:
            body["type"] = "object"
        body["properties"] = {name: prop.to_mapping() for name, prop in self.properties.items()}
        return body

    def field_count(self) -> int:
        """Number of field descriptors at every nesting level."""
        return sum(
            prop.field_count() if isinstance(prop, ObjectMapping) else 1 for prop in self.properties.values()
        )


ObjectMapping.model_rebuild()


def _common_options(marker: SearchableId | SearchableProperty, field_type: str) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if marker.index_name.strip():
        options["index_name"] = marker.index_name
    if marker.format.strip():
        options["format"] = marker.format
    if marker.index is Index.NO:
        options["index"] = False
    if (
        field_type in ("text", "keyword")
        and marker.index not in (Index.NOT_ANALYZED, Index.NO)
        and not marker.omit_norms
        and marker.boost != 1.0
    ):
        options["boost"] = marker.boost
    if marker.store is not Store.NA:
        options["store"] = marker.store is Store.YES
    if not marker.include_in_all:
        options["include_in_all"] = False
    if marker.null_value.strip():
        options["null_value"] = marker.null_value
    if marker.term_vector.strip():
        options["term_vector"] = marker.term_vector
    if marker.omit_norms:
        options["omit_norms"] = True
    if marker.omit_term_freq_and_positions:
        options["omit_term_freq_and_positions"] = True
    if field_type == "date" or marker.format.strip():
        options["ignore_malformed"] = marker.ignore_malformed
    return options


def id_descriptor(marker: SearchableId) -> FieldDescriptor:
    """Descriptor of an identifier property (always ``keyword``)."""
    options = _common_options(marker, "keyword")
    if marker.analyzer.strip():
        options["analyzer"] = marker.analyzer
    if marker.search_analyzer.strip():
        options["search_analyzer"] = marker.search_analyzer
    return FieldDescriptor(type="keyword", **options)


def property_descriptor(
    marker: SearchableProperty,
    component_type: type,
    default_analyzer: str = DEFAULT_SEGMENTATION_ANALYZER,
) -> FieldDescriptor:
    """Descriptor of a scalar property.

    The field type is the marker's explicit type, or is derived from the
    Python component type. ``Index.ANALYZED`` / ``Index.NOT_ANALYZED`` force
    ``text`` / ``keyword``.
    """
    field_type = translate_type(marker.type.strip() or python_type_name(component_type))
    if marker.index is Index.ANALYZED:
        field_type = "text"
    elif marker.index is Index.NOT_ANALYZED:
        field_type = "keyword"
    options = _common_options(marker, field_type)
    if field_type == "text":
        options["analyzer"] = marker.analyzer.strip() or default_analyzer
        if marker.search_analyzer.strip():
            options["search_analyzer"] = marker.search_analyzer
    return FieldDescriptor(type=field_type, **options)


def _derive(
    cls: type[BaseModel],
    embedded: bool,
    default_analyzer: str,
    stack: tuple[type, ...],
) -> ObjectMapping:
    if cls in stack:
        chain = " -> ".join(c.__name__ for c in (*stack, cls))
        raise SchemaError(f"Recursive searchable component: {chain}")

    properties: dict[str, FieldDescriptor | ObjectMapping] = {}
    id_field: str | None = None
    spec: PropertySpec
    for spec in collect_properties(cls):
        descriptor: FieldDescriptor | ObjectMapping
        if spec.is_id:
            descriptor = id_descriptor(spec.marker)  # type: ignore[arg-type]
            if not embedded and id_field is None:
                id_field = spec.key
        elif spec.is_component:
            descriptor = _derive(spec.component_type, True, default_analyzer, (*stack, cls))
        else:
            descriptor = property_descriptor(spec.marker, spec.component_type, default_analyzer)  # type: ignore[arg-type]
        if spec.key in properties:
            raise SchemaError(f"{cls.__name__}: duplicate field name '{spec.key}'")
        properties[spec.key] = descriptor

    return ObjectMapping(properties=properties, embedded=embedded, id_field=id_field)


def derive_mapping(cls: type[BaseModel], default_analyzer: str = DEFAULT_SEGMENTATION_ANALYZER) -> ObjectMapping:
    """Derive the schema mapping of an entity model.

    A model without any marked property yields an empty, valid mapping.

    Raises:
        SchemaError: On unmappable component types, conflicting markers,
            duplicate field names or recursive components.
    """
    mapping = _derive(cls, False, default_analyzer, ())
    if not mapping.properties:
        logger.warning("%s has no searchable properties", cls.__name__)
    return mapping
