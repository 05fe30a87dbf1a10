"""Type Registry — Bidirectional mapping between document type names and entity models.

The registry is the schema catalog: it derives and caches the mapping of every
registered entity model. Reads go against immutable snapshots; registration
replaces the snapshots under a lock, so lookups on hot paths never block.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
import threading
from collections.abc import Iterable
from types import MappingProxyType, ModuleType
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from searchbind.exceptions import SchemaError
from searchbind.schema.mapping import DEFAULT_SEGMENTATION_ANALYZER, ObjectMapping, derive_mapping
from searchbind.schema.markers import searchable_type_of

if TYPE_CHECKING:
    from searchbind.config.settings import IndexSettings

logger = logging.getLogger(__name__)

DEFAULT_INDEX_PREFIX = "index_"


def type_name_of(entity_type: type) -> str:
    """Document type name of a ``@searchable`` model: explicit override or lower-cased class name."""
    declared = searchable_type_of(entity_type)
    if declared is not None and declared.type:
        return declared.type
    return entity_type.__name__.lower()


class TypeRegistry:
    """Catalog of searchable entity models.

    Example:
        >>> registry = TypeRegistry()
        >>> registry.register(Article)
        'article'
        >>> registry.index_name_for("article")
        'index_article'
    """

    def __init__(
        self,
        index_prefix: str = DEFAULT_INDEX_PREFIX,
        default_analyzer: str = DEFAULT_SEGMENTATION_ANALYZER,
    ) -> None:
        self._index_prefix = index_prefix
        self._default_analyzer = default_analyzer
        self._write_lock = threading.Lock()
        self._types: MappingProxyType[str, type[BaseModel]] = MappingProxyType({})
        self._names: MappingProxyType[type, str] = MappingProxyType({})
        self._mappings: MappingProxyType[str, ObjectMapping] = MappingProxyType({})

    @classmethod
    def from_settings(cls, settings: IndexSettings) -> TypeRegistry:
        return cls(index_prefix=settings.prefix, default_analyzer=settings.segmentation_analyzer)

    # ── Registration ─────────────────────────────────────────────────────

    def register(self, entity_type: type[BaseModel]) -> str | None:
        """Register a ``@searchable`` entity model.

        Args:
            entity_type: The entity model class.

        Returns:
            The document type name, or ``None`` when the model is skipped
            (``root=False``, abstract, or a local/nested class).

        Raises:
            SchemaError: If the model is not searchable, its mapping cannot be
                derived, or its type name is already taken by another model.
        """
        declared = searchable_type_of(entity_type)
        if declared is None:
            raise SchemaError(f"{entity_type!r} is not decorated with @searchable")
        if not declared.root:
            logger.debug("Skipping non-root searchable type %s", entity_type.__qualname__)
            return None
        if inspect.isabstract(entity_type) or "." in entity_type.__qualname__:
            logger.debug("Skipping abstract or nested searchable type %s", entity_type.__qualname__)
            return None

        type_name = type_name_of(entity_type)
        with self._write_lock:
            existing = self._types.get(type_name)
            if existing is entity_type:
                return type_name
            if existing is not None:
                raise SchemaError(
                    f"Duplicate document type '{type_name}': {existing.__qualname__} and {entity_type.__qualname__}"
                )
            mapping = derive_mapping(entity_type, self._default_analyzer)
            self._types = MappingProxyType({**self._types, type_name: entity_type})
            self._names = MappingProxyType({**self._names, entity_type: type_name})
            self._mappings = MappingProxyType({**self._mappings, type_name: mapping})

        logger.info("Registered searchable type %s as '%s'", entity_type.__qualname__, type_name)
        return type_name

    def register_all(self, entity_types: Iterable[type[BaseModel]]) -> list[str]:
        """Register several models; returns the names of those not skipped."""
        names = [self.register(t) for t in entity_types]
        return [n for n in names if n is not None]

    def scan(self, *packages: str) -> list[str]:
        """Import every module of ``packages`` and register the searchable models defined there.

        Raises:
            SchemaError: If a package or module cannot be imported.
        """
        names: list[str] = []
        for package in packages:
            for module in self._iter_modules(package):
                for _, obj in inspect.getmembers(module, inspect.isclass):
                    if obj.__module__ != module.__name__ or searchable_type_of(obj) is None:
                        continue
                    name = self.register(obj)
                    if name is not None:
                        names.append(name)
        return names

    @staticmethod
    def _iter_modules(package: str) -> Iterable[ModuleType]:
        try:
            root = importlib.import_module(package)
            yield root
            if hasattr(root, "__path__"):
                for info in pkgutil.walk_packages(root.__path__, prefix=f"{root.__name__}."):
                    yield importlib.import_module(info.name)
        except ImportError as e:
            raise SchemaError(f"Cannot scan package '{package}': {e}") from e

    # ── Lookups ──────────────────────────────────────────────────────────

    def type_name_for(self, entity_type: type) -> str | None:
        """Type name of ``entity_type`` or of its nearest registered base class."""
        names = self._names
        for klass in entity_type.__mro__:
            name = names.get(klass)
            if name is not None:
                return name
        return None

    def entity_type_for(self, type_name: str) -> type[BaseModel] | None:
        return self._types.get(type_name)

    def index_name_for(self, type_name: str) -> str:
        """Index holding documents of ``type_name``: prefix + lower-cased name."""
        return f"{self._index_prefix}{type_name.lower()}"

    def type_name_for_index(self, index_name: str) -> str | None:
        if not index_name.startswith(self._index_prefix):
            return None
        type_name = index_name[len(self._index_prefix):]
        return type_name if type_name in self._types else None

    def mapping_for(self, type_name: str) -> ObjectMapping | None:
        return self._mappings.get(type_name)

    @property
    def type_names(self) -> list[str]:
        """Registered type names, in registration order."""
        return list(self._types)

    def __contains__(self, type_name: Any) -> bool:
        return type_name in self._types

    def __len__(self) -> int:
        return len(self._types)
