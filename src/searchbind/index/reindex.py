"""Bulk reindexer — Re-ingest one document type from the primary store.

The primary store drives iteration and hands every page to a callback; the
callback turns the page into one bulk request and submits it as a task. A
shared done-callback logs partial and transport failures, so one bad batch
never stops the following ones.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Sequence
from typing import Any

from opensearchpy import AsyncOpenSearch

from searchbind.backends.store import PrimaryStore
from searchbind.exceptions import UnknownDocumentTypeError
from searchbind.index.codec import DocumentCodec
from searchbind.index.registry import TypeRegistry
from searchbind.models.report import ReindexResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20


def failure_manifest(response: dict[str, Any]) -> list[str]:
    """List the failed items of a bulk response as ``'[n] index/id: reason'`` lines."""
    failures: list[str] = []
    for position, item in enumerate(response.get("items", [])):
        outcome = next(iter(item.values()), {}) if item else {}
        error = outcome.get("error")
        if not error:
            continue
        reason = error.get("reason", error) if isinstance(error, dict) else error
        failures.append(f"[{position}] {outcome.get('_index')}/{outcome.get('_id')}: {reason}")
    return failures


class BulkReindexer:
    """Writes every record of a document type into its index with bulk requests.

    Args:
        client: OpenSearch client.
        registry: Schema catalog.
        codec: Document codec.
        store: Primary store the records are read from.
        batch_size: Records per bulk request.
        max_concurrent_batches: Bulk requests allowed in flight at once.
    """

    def __init__(
        self,
        client: AsyncOpenSearch,
        registry: TypeRegistry,
        codec: DocumentCodec,
        store: PrimaryStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_concurrent_batches: int = 4,
    ) -> None:
        self._client = client
        self._registry = registry
        self._codec = codec
        self._store = store
        self._batch_size = batch_size
        self._max_concurrent_batches = max_concurrent_batches

    async def reindex(self, type_name: str) -> ReindexResult:
        """Reindex every record of ``type_name``.

        Returns once all submitted batches have completed.

        Raises:
            UnknownDocumentTypeError: If ``type_name`` is not registered.
        """
        entity_type = self._registry.entity_type_for(type_name)
        if entity_type is None:
            raise UnknownDocumentTypeError(f"Unknown document type '{type_name}'")
        index_name = self._registry.index_name_for(type_name)
        result = ReindexResult(type_name=type_name)
        in_flight = asyncio.Semaphore(self._max_concurrent_batches)
        pending: set[asyncio.Task[Any]] = set()

        async def on_page(page: Sequence[Any]) -> None:
            try:
                result.indexed += len(page)
                body = self._bulk_body(page, index_name, result)
            except Exception:
                logger.error("Failed to build bulk request for %s", type_name, exc_info=True)
                return
            if not body:
                return
            await in_flight.acquire()
            try:
                task = asyncio.create_task(self._client.bulk(body=body))
            except Exception:
                in_flight.release()
                result.failed += len(body) // 2
                logger.error("Failed to submit bulk request for %s", type_name, exc_info=True)
                return
            result.batches += 1
            pending.add(task)
            task.add_done_callback(pending.discard)
            task.add_done_callback(lambda _: in_flight.release())
            task.add_done_callback(functools.partial(self._on_bulk_done, result, len(body) // 2))

        await self._store.iterate(entity_type, self._batch_size, on_page)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("indexed %d for %s", result.indexed, type_name)
        return result

    def _bulk_body(self, page: Sequence[Any], index_name: str, result: ReindexResult) -> list[dict[str, Any]]:
        body: list[dict[str, Any]] = []
        for entity in page:
            document = self._codec.encode(entity)
            try:
                doc_id = self._codec.document_id(entity) if document is not None else None
            except Exception:
                logger.error("Failed to read the identifier of %r", entity, exc_info=True)
                doc_id = None
            if document is None or doc_id is None:
                logger.warning("Skipping %r: no document or identifier", entity)
                result.failed += 1
                continue
            body.append({"index": {"_index": index_name, "_id": doc_id}})
            body.append(document)
        return body

    @staticmethod
    def _on_bulk_done(result: ReindexResult, actions: int, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            result.failed += actions
            logger.warning("Bulk request for %s was cancelled", result.type_name)
            return
        error = task.exception()
        if error is not None:
            result.failed += actions
            logger.error("Bulk request for %s failed: %s", result.type_name, error, exc_info=error)
            return
        failures = failure_manifest(task.result())
        if failures:
            result.failed += len(failures)
            logger.error(
                "Bulk request for %s had %d failures:\n%s",
                result.type_name,
                len(failures),
                "\n".join(failures),
            )
