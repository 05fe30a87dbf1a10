"""Document codec — Convert entities to OpenSearch documents and search hits back to entities."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError, to_jsonable_python

from searchbind.exceptions import UnknownDocumentTypeError
from searchbind.index.registry import TypeRegistry
from searchbind.schema.introspection import PropertySpec, collect_properties

logger = logging.getLogger(__name__)

_STRIPPED_COLLECTIONS = (list, tuple, set, frozenset)


def is_empty(value: Any) -> bool:
    """Whether a value is stripped from documents: None, blank string or empty collection."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, _STRIPPED_COLLECTIONS):
        return len(value) == 0
    return False


def _id_spec(entity_type: type[BaseModel]) -> PropertySpec | None:
    return next((spec for spec in collect_properties(entity_type) if spec.is_id), None)


class DocumentCodec:
    """Encodes entities into documents and decodes search hits into entities.

    Only marked properties are written. Empty values are stripped, so they do
    not survive a round trip.
    """

    def __init__(self, registry: TypeRegistry) -> None:
        self._registry = registry

    # ── Encoding ─────────────────────────────────────────────────────────

    def encode(self, entity: BaseModel) -> dict[str, Any] | None:
        """Encode ``entity`` into a JSON-compatible document.

        Returns:
            The document, or ``None`` when the entity cannot be serialized or
            one of its marked accessors raises; callers skip the record in
            that case.
        """
        try:
            document = self._encode_model(entity)
        except PydanticSerializationError:
            logger.error("Failed to encode %r", entity, exc_info=True)
            return None
        except Exception:
            logger.error("Failed to encode %r: a marked property raised", entity, exc_info=True)
            return None
        if not document:
            logger.warning("%r is empty", entity)
        return document

    def _encode_model(self, entity: BaseModel) -> dict[str, Any]:
        document: dict[str, Any] = {}
        for spec in collect_properties(type(entity)):
            value = getattr(entity, spec.name)
            if is_empty(value):
                continue
            if spec.is_component:
                value = self._encode_component(value, spec)
                if is_empty(value) or value == {}:
                    continue
            else:
                value = to_jsonable_python(value)
            document[spec.key] = value
        return document

    def _encode_component(self, value: Any, spec: PropertySpec) -> Any:
        if spec.is_collection:
            encoded = [self._encode_model(item) for item in value if item is not None]
            return [item for item in encoded if item]
        return self._encode_model(value)

    @staticmethod
    def document_id(entity: BaseModel) -> str | None:
        """String identifier of ``entity``: its ``SearchableId`` property, else its ``id`` attribute."""
        spec = _id_spec(type(entity))
        value = getattr(entity, spec.name) if spec is not None else getattr(entity, "id", None)
        return None if value is None else str(value)

    # ── Decoding ─────────────────────────────────────────────────────────

    def decode(self, hit: Mapping[str, Any]) -> BaseModel:
        """Decode a search hit into an entity of the hit's document type.

        The type is resolved from the hit's ``_index``.

        Raises:
            UnknownDocumentTypeError: If the index maps to no registered type.
            ValidationError: If the source does not validate against the model.
        """
        index_name = str(hit.get("_index", ""))
        type_name = self._registry.type_name_for_index(index_name)
        entity_type = self._registry.entity_type_for(type_name) if type_name else None
        if entity_type is None:
            raise UnknownDocumentTypeError(f"No searchable type registered for index '{index_name}'")
        return self.decode_source(hit.get("_source") or {}, entity_type)

    def decode_source(self, source: Mapping[str, Any], entity_type: type[BaseModel]) -> BaseModel:
        """Validate a document source into ``entity_type``."""
        return entity_type.model_validate(self._restore(source, entity_type))

    def _restore(self, source: Mapping[str, Any], entity_type: type[BaseModel]) -> dict[str, Any]:
        data = dict(source)
        for spec in collect_properties(entity_type):
            if spec.key not in data:
                continue
            value = data.pop(spec.key)
            if spec.accessor:
                continue
            if spec.is_component and value is not None:
                component = spec.component_type
                if spec.is_collection:
                    value = [self._restore(item, component) for item in value]
                else:
                    value = self._restore(value, component)
            data[spec.name] = value
        return data

