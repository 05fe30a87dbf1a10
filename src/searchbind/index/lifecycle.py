"""Index lifecycle — Create, map, drop and rebuild the index of every registered type.

Each document type moves through ``absent -> created -> mapped``. A full
rebuild runs under a cluster-wide named lock: it drops every index, ensures
them again and reindexes every type from the primary store. Rebuilds are
best effort per type; one failing type never aborts the others.
"""

from __future__ import annotations

import json
import logging
import time
from enum import Enum
from typing import Any

from opensearchpy import AsyncOpenSearch
from opensearchpy.exceptions import NotFoundError, OpenSearchException, RequestError
from pydantic import BaseModel

from searchbind.backends.locks import LockService
from searchbind.config.settings import IndexSettings
from searchbind.exceptions import IndexLifecycleError, UnknownDocumentTypeError
from searchbind.index.codec import DocumentCodec
from searchbind.index.registry import TypeRegistry
from searchbind.index.reindex import BulkReindexer
from searchbind.models.report import RebuildReport, ReindexResult, TypeRebuildResult

logger = logging.getLogger(__name__)

REBUILD_LOCK_NAME = "index_manager.rebuild"


class IndexState(str, Enum):
    """Lifecycle state of one document type's index."""

    ABSENT = "absent"
    CREATED = "created"
    MAPPED = "mapped"


class IndexManager:
    """Keeps cluster indices in sync with the schema catalog.

    Attributes:
        registry: Schema catalog of searchable types.
        codec: Document codec used for single-document writes.
    """

    def __init__(
        self,
        client: AsyncOpenSearch,
        registry: TypeRegistry,
        codec: DocumentCodec,
        reindexer: BulkReindexer,
        locks: LockService,
        settings: IndexSettings | None = None,
    ) -> None:
        self._client = client
        self.registry = registry
        self.codec = codec
        self._reindexer = reindexer
        self._locks = locks
        self._settings = settings or IndexSettings()
        self._states: dict[str, IndexState] = {}

    def state_of(self, type_name: str) -> IndexState:
        return self._states.get(type_name, IndexState.ABSENT)

    def index_name_for(self, type_name: str) -> str:
        return self.registry.index_name_for(type_name)

    # ── Schema ───────────────────────────────────────────────────────────

    async def ensure(self, type_name: str) -> IndexState:
        """Create the index of ``type_name`` if missing and push its mapping.

        A type already mapped by this manager is left untouched.

        Raises:
            UnknownDocumentTypeError: If ``type_name`` is not registered.
            IndexLifecycleError: If the cluster rejects the index or mapping.
        """
        if self.state_of(type_name) is IndexState.MAPPED:
            return IndexState.MAPPED
        mapping = self.registry.mapping_for(type_name)
        if mapping is None:
            raise UnknownDocumentTypeError(f"Unknown document type '{type_name}'")

        index_name = self.index_name_for(type_name)
        body = mapping.to_mapping()
        try:
            if not await self._client.indices.exists(index=index_name):
                await self._create_index(index_name)
            self._states[type_name] = IndexState.CREATED
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Mapping %s : %s", type_name, json.dumps(body))
            await self._client.indices.put_mapping(index=index_name, body=body)
        except OpenSearchException as e:
            raise IndexLifecycleError(f"Failed to ensure index {index_name}: {e}") from e
        self._states[type_name] = IndexState.MAPPED
        return IndexState.MAPPED

    async def _create_index(self, index_name: str) -> None:
        index_settings: dict[str, Any] = {
            "number_of_shards": self._settings.number_of_shards,
            "number_of_replicas": self._settings.number_of_replicas,
        }
        if self._settings.store_type:
            index_settings["store"] = {"type": self._settings.store_type}
        try:
            await self._client.indices.create(index=index_name, body={"settings": {"index": index_settings}})
            logger.info("Created index %s", index_name)
        except RequestError as e:
            if e.error != "resource_already_exists_exception":
                raise
            logger.debug("Index %s already exists", index_name)

    async def initialize(self) -> dict[str, IndexState]:
        """Ensure the index of every registered type; failures are logged per type."""
        for type_name in self.registry.type_names:
            try:
                await self.ensure(type_name)
            except IndexLifecycleError:
                logger.error("Failed to initialize index for %s", type_name, exc_info=True)
        return {name: self.state_of(name) for name in self.registry.type_names}

    async def register_type(self, entity_type: type[BaseModel]) -> str | None:
        """Register a type after startup and ensure its index."""
        type_name = self.registry.register(entity_type)
        if type_name is not None:
            await self.ensure(type_name)
        return type_name

    # ── Documents ────────────────────────────────────────────────────────

    def _target(self, entity: BaseModel) -> tuple[str, str]:
        type_name = self.registry.type_name_for(type(entity))
        if type_name is None:
            raise UnknownDocumentTypeError(f"{type(entity).__qualname__} is not a registered searchable type")
        doc_id = self.codec.document_id(entity)
        if doc_id is None:
            raise ValueError(f"{entity!r} has no identifier")
        return self.index_name_for(type_name), doc_id

    async def index(self, entity: BaseModel) -> dict[str, Any] | None:
        """Write ``entity`` to its index.

        Returns:
            The cluster response, or ``None`` when the entity could not be encoded.
        """
        index_name, doc_id = self._target(entity)
        document = self.codec.encode(entity)
        if document is None:
            logger.warning("Not indexing %r: encoding failed", entity)
            return None
        return await self._client.index(index=index_name, id=doc_id, body=document)

    async def delete(self, entity: BaseModel) -> dict[str, Any]:
        """Remove ``entity`` from its index."""
        index_name, doc_id = self._target(entity)
        return await self._client.delete(index=index_name, id=doc_id)

    async def index_all(self, type_name: str) -> ReindexResult:
        """Reindex every record of ``type_name`` from the primary store."""
        return await self._reindexer.reindex(type_name)

    # ── Rebuild ──────────────────────────────────────────────────────────

    async def _drop(self, type_name: str) -> bool:
        self._states[type_name] = IndexState.ABSENT
        index_name = self.index_name_for(type_name)
        if not await self._client.indices.exists(index=index_name):
            return False
        try:
            await self._client.indices.delete(index=index_name)
        except NotFoundError:
            return False
        logger.info("Dropped index %s", index_name)
        return True

    async def rebuild_all(self) -> RebuildReport:
        """Drop, recreate and reindex every registered type.

        Returns immediately with ``started=False`` when another rebuild holds
        the lock anywhere in the deployment.
        """
        if not await self._locks.try_lock(REBUILD_LOCK_NAME):
            logger.info("Rebuild already in progress, skipping")
            return RebuildReport(started=False)

        start = time.monotonic()
        outcomes = {name: TypeRebuildResult(type_name=name) for name in self.registry.type_names}
        try:
            for name, outcome in outcomes.items():
                try:
                    outcome.dropped = await self._drop(name)
                except OpenSearchException as e:
                    logger.error("Failed to drop index for %s", name, exc_info=True)
                    outcome.errors.append(f"drop: {e}")

            await self._extend_rebuild_lock()
            for name, outcome in outcomes.items():
                try:
                    await self.ensure(name)
                    outcome.mapped = True
                except IndexLifecycleError as e:
                    logger.error("Failed to recreate index for %s", name, exc_info=True)
                    outcome.errors.append(str(e))

            for name, outcome in outcomes.items():
                if not outcome.mapped:
                    continue
                await self._extend_rebuild_lock()
                try:
                    outcome.reindex = await self.index_all(name)
                except Exception as e:
                    logger.error("Failed to reindex %s", name, exc_info=True)
                    outcome.errors.append(f"reindex: {e}")

            logger.info("rebuild completed")
        finally:
            await self._locks.unlock(REBUILD_LOCK_NAME)

        return RebuildReport(
            started=True,
            types=list(outcomes.values()),
            took_ms=int((time.monotonic() - start) * 1000),
        )

    async def _extend_rebuild_lock(self) -> None:
        if not await self._locks.extend(REBUILD_LOCK_NAME):
            logger.warning("Rebuild lock was lost, another rebuild may start concurrently")
