"""Key-value memory that persists across agent invocations."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class MemoryEntry:
    key: str
    description: str
    value: Any
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class MemoryCatalogEntry:
    """Summary of an entry without its value, shown to the model so it can decide what to load."""

    key: str
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)


class Memory(ABC):
    """Memory backend interface."""

    @abstractmethod
    async def has_entries(self) -> bool: ...

    @abstractmethod
    async def list_entries(self) -> list[MemoryCatalogEntry]: ...

    @abstractmethod
    async def read(self, keys: list[str] | None = None) -> dict[str, Any]:
        """Values for ``keys`` (all entries when omitted). Missing keys are skipped."""

    @abstractmethod
    async def write(
        self,
        key: str,
        value: Any,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> MemoryEntry: ...

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def clear(self) -> int: ...


class InMemoryStore(Memory):
    """Process-local store; entries survive across process() calls on the same agent."""

    def __init__(self) -> None:
        self._store: dict[str, MemoryEntry] = {}

    async def has_entries(self) -> bool:
        return bool(self._store)

    async def list_entries(self) -> list[MemoryCatalogEntry]:
        return [
            MemoryCatalogEntry(key=e.key, description=e.description, metadata=dict(e.metadata))
            for e in self._store.values()
        ]

    async def read(self, keys: list[str] | None = None) -> dict[str, Any]:
        wanted = list(self._store) if keys is None else keys
        snapshot: dict[str, Any] = {}
        for key in wanted:
            entry = self._store.get(key)
            if entry is None:
                continue
            entry.metadata["access_count"] = entry.metadata.get("access_count", 0) + 1
            entry.metadata["updated_at"] = time.time()
            snapshot[key] = entry.value
        return snapshot

    async def write(
        self,
        key: str,
        value: Any,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> MemoryEntry:
        now = time.time()
        existing = self._store.get(key)
        if existing is not None:
            base = {
                "created_at": existing.metadata.get("created_at", now),
                "updated_at": now,
                "access_count": existing.metadata.get("access_count", 0),
            }
            desc = description or existing.description
        else:
            base = {"created_at": now, "updated_at": now, "access_count": 0}
            desc = description or key

        entry = MemoryEntry(key=key, description=desc, value=value, metadata={**base, **(metadata or {})})
        self._store[key] = entry
        return MemoryEntry(key=key, description=desc, value=value, metadata=dict(entry.metadata))

    async def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    async def clear(self) -> int:
        count = len(self._store)
        self._store.clear()
        return count

    def __len__(self) -> int:
        return len(self._store)
