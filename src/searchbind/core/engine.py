"""searchbind engine — Wires the search layer together and exposes the caller API.

Startup:
  1. Register the searchable entity types (explicitly or by package scan)
  2. ``initialize()`` verifies the cluster and ensures every index
  3. When index storage is ephemeral, a full rebuild is scheduled as a task

Runtime:
  - writes:  entity → DocumentCodec → OpenSearch
  - reads:   SearchCriteria → QueryTranslator → OpenSearch → DocumentCodec → entities
  - rebuild: lock → drop/recreate → BulkReindexer → PrimaryStore
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from searchbind.backends.client import ClusterHealth, cluster_health, create_client, verify_connection
from searchbind.backends.locks import LockService, create_lock_service
from searchbind.index.codec import DocumentCodec
from searchbind.index.lifecycle import IndexManager, IndexState
from searchbind.index.registry import TypeRegistry
from searchbind.index.reindex import BulkReindexer
from searchbind.search.service import Mapper, SearchService
from searchbind.search.translator import QueryTranslator

if TYPE_CHECKING:
    from opensearchpy import AsyncOpenSearch

    from searchbind.backends.store import PrimaryStore
    from searchbind.config.settings import Settings
    from searchbind.models.criteria import SearchCriteria
    from searchbind.models.report import RebuildReport, ReindexResult
    from searchbind.models.result import ResultPage

logger = logging.getLogger(__name__)


class SearchBindEngine:
    """Entry point for application code.

    Attributes:
        settings: Application configuration.
        registry: Schema catalog of searchable types.
        index_manager: Index lifecycle manager.
        search_service: Search execution and decoding.
    """

    def __init__(
        self,
        settings: Settings,
        store: PrimaryStore,
        client: AsyncOpenSearch | None = None,
        locks: LockService | None = None,
    ) -> None:
        self.settings = settings
        self.client = client if client is not None else create_client(settings.opensearch)
        self.locks = locks if locks is not None else create_lock_service(settings.lock)
        self.registry = TypeRegistry.from_settings(settings.index)
        self.codec = DocumentCodec(self.registry)
        self.reindexer = BulkReindexer(
            self.client,
            self.registry,
            self.codec,
            store,
            batch_size=settings.reindex.batch_size,
            max_concurrent_batches=settings.reindex.max_concurrent_batches,
        )
        self.index_manager = IndexManager(
            self.client,
            self.registry,
            self.codec,
            self.reindexer,
            self.locks,
            settings.index,
        )
        self.translator = QueryTranslator(
            self.registry,
            timeout=settings.search.timeout,
            max_page_size=settings.search.max_page_size,
        )
        self.search_service = SearchService(self.client, self.codec, self.translator)
        self._rebuild_task: asyncio.Task[RebuildReport] | None = None

    # ──────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────

    def register(self, *entity_types: type[BaseModel]) -> list[str]:
        """Register entity types before :meth:`initialize`."""
        return self.registry.register_all(entity_types)

    def scan(self, *packages: str) -> list[str]:
        """Register every searchable type defined in ``packages``."""
        return self.registry.scan(*packages)

    async def initialize(self, verify: bool = True) -> dict[str, IndexState]:
        """Ensure every registered index and schedule the startup rebuild if configured.

        Args:
            verify: Fetch cluster info first and fail fast when unreachable.
        """
        if verify:
            await verify_connection(self.client)
        states = await self.index_manager.initialize()
        if self.settings.index.auto_rebuild:
            logger.info("Index storage is ephemeral, scheduling a full rebuild")
            self._rebuild_task = asyncio.create_task(self.index_manager.rebuild_all(), name="searchbind-rebuild")
            self._rebuild_task.add_done_callback(self._on_rebuild_done)
        logger.info("searchbind engine initialized with %d types", len(self.registry))
        return states

    @property
    def rebuild_task(self) -> asyncio.Task[RebuildReport] | None:
        """The startup rebuild task, if one was scheduled."""
        return self._rebuild_task

    async def shutdown(self) -> None:
        """Wait for a running startup rebuild, then close connections."""
        if self._rebuild_task is not None and not self._rebuild_task.done():
            logger.info("Waiting for the startup rebuild to finish")
            await asyncio.wait({self._rebuild_task})
        await self.client.close()
        close = getattr(self.locks, "close", None)
        if close is not None:
            await close()
        logger.info("searchbind engine shut down")

    @staticmethod
    def _on_rebuild_done(task: asyncio.Task[RebuildReport]) -> None:
        if task.cancelled():
            logger.warning("Startup rebuild was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error("Startup rebuild failed: %s", error, exc_info=error)

    async def health_check(self) -> ClusterHealth:
        return await cluster_health(self.client)

    # ──────────────────────────────────────────────────────────────────────
    # Documents
    # ──────────────────────────────────────────────────────────────────────

    async def index(self, entity: BaseModel) -> dict[str, Any] | None:
        return await self.index_manager.index(entity)

    async def delete(self, entity: BaseModel) -> dict[str, Any]:
        return await self.index_manager.delete(entity)

    async def register_type(self, entity_type: type[BaseModel]) -> str | None:
        """Register a type at runtime and ensure its index."""
        return await self.index_manager.register_type(entity_type)

    # ──────────────────────────────────────────────────────────────────────
    # Search
    # ──────────────────────────────────────────────────────────────────────

    async def search(
        self,
        criteria: SearchCriteria,
        mapper: Mapper | None = None,
        limit: int | None = None,
    ) -> list[Any]:
        return await self.search_service.search(criteria, mapper=mapper, limit=limit)

    async def search_page(self, criteria: SearchCriteria, mapper: Mapper | None = None) -> ResultPage:
        return await self.search_service.search_page(criteria, mapper=mapper)

    async def count_terms_by_field(self, criteria: SearchCriteria, field: str) -> dict[str, int]:
        return await self.search_service.count_terms_by_field(criteria, field)

    # ──────────────────────────────────────────────────────────────────────
    # Administration
    # ──────────────────────────────────────────────────────────────────────

    async def rebuild(self) -> RebuildReport:
        """Full rebuild; a no-op report when one is already running."""
        return await self.index_manager.rebuild_all()

    async def index_all(self, type_name: str) -> ReindexResult:
        return await self.index_manager.index_all(type_name)
