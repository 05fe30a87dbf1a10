"""Primary store — Cursor-style bulk iteration over the system of record.

The bulk reindexer only supplies a per-page callback; paging and cursors are
the store's business.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, Protocol, runtime_checkable

PageCallback = Callable[[Sequence[Any]], Awaitable[None]]


@runtime_checkable
class PrimaryStore(Protocol):
    """Source of truth the search indices are rebuilt from."""

    async def iterate(self, entity_type: type, page_size: int, callback: PageCallback) -> None:
        """Invoke ``callback`` with successive pages of at most ``page_size`` records of ``entity_type``."""
        ...


class InMemoryStore:
    """Primary store holding entities in memory, keyed by their exact class."""

    def __init__(self, entities: Iterable[Any] = ()) -> None:
        self._records: dict[type, list[Any]] = {}
        self.add(*entities)

    def add(self, *entities: Any) -> None:
        for entity in entities:
            self._records.setdefault(type(entity), []).append(entity)

    def records(self, entity_type: type) -> list[Any]:
        return list(self._records.get(entity_type, ()))

    async def iterate(self, entity_type: type, page_size: int, callback: PageCallback) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        records = self.records(entity_type)
        for start in range(0, len(records), page_size):
            await callback(records[start:start + page_size])
