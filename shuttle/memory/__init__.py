from .store import InMemoryStore, Memory, MemoryCatalogEntry, MemoryEntry

__all__ = ["InMemoryStore", "Memory", "MemoryCatalogEntry", "MemoryEntry"]
