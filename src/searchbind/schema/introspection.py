"""Entity introspection — Collect the marked properties of an entity model.

Both the mapping derivation and the document codec work off the property
specs produced here, so the two always agree on which properties are
searchable and what their component types are.
"""

from __future__ import annotations

import collections.abc
import functools
import inspect
import logging
import types
import typing
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel

from searchbind.exceptions import SchemaError
from searchbind.schema.markers import (
    MARKER_ATTRIBUTE,
    MARKER_TYPES,
    Marker,
    SearchableComponent,
    SearchableId,
)

logger = logging.getLogger(__name__)

_COLLECTION_ORIGINS = frozenset(
    {
        list,
        set,
        frozenset,
        tuple,
        collections.abc.Sequence,
        collections.abc.MutableSequence,
        collections.abc.Set,
        collections.abc.MutableSet,
        collections.abc.Collection,
        collections.abc.Iterable,
    }
)


@dataclass(frozen=True)
class PropertySpec:
    """One marked, readable property of an entity model."""

    name: str
    marker: Marker
    annotation: Any
    component_type: type
    is_collection: bool
    accessor: bool

    @property
    def key(self) -> str:
        """Field name used in documents and mappings."""
        return self.marker.index_name or self.name

    @property
    def is_id(self) -> bool:
        return isinstance(self.marker, SearchableId)

    @property
    def is_component(self) -> bool:
        return isinstance(self.marker, SearchableComponent)


def unwrap_component_type(annotation: Any) -> tuple[Any, bool]:
    """Resolve the effective component type of a property annotation.

    Strips ``Annotated`` and ``Optional``, and unwraps the element type of
    collections. Returns ``(component, is_collection)``; ``component`` is
    ``None`` when no single concrete type can be determined.
    """
    origin = get_origin(annotation)
    if origin is Annotated:
        return unwrap_component_type(get_args(annotation)[0])
    if origin is Union or origin is types.UnionType:
        members = [a for a in get_args(annotation) if a is not type(None)]
        if len(members) != 1:
            return None, False
        return unwrap_component_type(members[0])
    if origin is Literal:
        values = get_args(annotation)
        return (type(values[0]) if values else None), False
    if origin in _COLLECTION_ORIGINS:
        args = [a for a in get_args(annotation) if a is not Ellipsis]
        if origin is tuple and len(set(args)) > 1:
            return None, True
        if not args:
            return None, True
        component, _ = unwrap_component_type(args[0])
        return component, True
    if origin is not None:
        # other generics (dict[str, int], ...) map by their origin
        return origin, False
    if annotation in _COLLECTION_ORIGINS:
        return None, True
    return annotation, False


def is_interface(tp: Any) -> bool:
    """Whether ``tp`` cannot be mapped unambiguously (abstract, protocol, Any, ...)."""
    if tp is None or tp is Any or not isinstance(tp, type):
        return True
    if getattr(tp, "_is_protocol", False):
        return True
    return inspect.isabstract(tp)


def _markers_in(metadata: typing.Iterable[Any], annotation: Any) -> list[Marker]:
    found = [m for m in metadata if isinstance(m, MARKER_TYPES)]
    if found:
        return found
    # markers nested inside Optional[Annotated[...]] stay in the annotation
    stack = [annotation]
    while stack:
        current = stack.pop()
        if get_origin(current) is Annotated:
            args = get_args(current)
            found.extend(m for m in args[1:] if isinstance(m, MARKER_TYPES))
            stack.append(args[0])
        elif get_origin(current) is Union or get_origin(current) is types.UnionType:
            stack.extend(get_args(current))
    return found


def _single_marker(owner: type, name: str, markers: list[Marker]) -> Marker | None:
    if not markers:
        return None
    kinds = {type(m) for m in markers}
    if len(kinds) > 1:
        raise SchemaError(
            f"{owner.__name__}.{name} declares conflicting markers: {sorted(k.__name__ for k in kinds)}"
        )
    return markers[0]


def _getter_of(attr: Any) -> Any:
    if isinstance(attr, property):
        return attr.fget
    wrapped = getattr(attr, "wrapped", None)
    if isinstance(wrapped, property):
        return wrapped.fget
    return None


def _accessor_markers(cls: type[BaseModel]) -> dict[str, tuple[Marker, Any]]:
    found: dict[str, tuple[Marker, Any]] = {}
    seen: set[str] = set()
    for klass in cls.__mro__:
        if klass in (BaseModel, object):
            continue
        for name, attr in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            getter = _getter_of(attr)
            marker = getattr(getter, MARKER_ATTRIBUTE, None) if getter is not None else None
            if marker is None:
                continue
            try:
                hints = typing.get_type_hints(getter, include_extras=True)
            except Exception as e:
                raise SchemaError(f"Cannot resolve return type of {cls.__name__}.{name}: {e}") from e
            found[name] = (marker, hints.get("return", Any))
    return found


@functools.cache
def collect_properties(cls: type[BaseModel]) -> tuple[PropertySpec, ...]:
    """Return the marked properties of ``cls``, in declaration order.

    Field-level markers come from ``Annotated`` metadata; accessor-level
    markers decorate property getters and take precedence over a field-level
    marker of the same name.

    Raises:
        SchemaError: If a marked property has conflicting markers or a
            component type that cannot be mapped.
    """
    if not (isinstance(cls, type) and issubclass(cls, BaseModel)):
        raise SchemaError(f"{cls!r} is not a pydantic model")

    merged: dict[str, tuple[Marker, Any, bool]] = {}
    for name, info in cls.model_fields.items():
        marker = _single_marker(cls, name, _markers_in(info.metadata, info.annotation))
        if marker is not None:
            merged[name] = (marker, info.annotation, False)
    for name, (marker, annotation) in _accessor_markers(cls).items():
        merged[name] = (marker, annotation, True)

    specs: list[PropertySpec] = []
    for name, (marker, annotation, accessor) in merged.items():
        component, is_collection = unwrap_component_type(annotation)
        if is_interface(component):
            raise SchemaError(f"{cls.__name__}.{name}: cannot map component type {annotation!r}")
        if isinstance(marker, SearchableComponent) and not issubclass(component, BaseModel):
            raise SchemaError(f"{cls.__name__}.{name}: component type {component.__name__} is not a model")
        specs.append(
            PropertySpec(
                name=name,
                marker=marker,
                annotation=annotation,
                component_type=component,
                is_collection=is_collection,
                accessor=accessor,
            )
        )
    logger.debug("Collected %d searchable properties from %s", len(specs), cls.__name__)
    return tuple(specs)
