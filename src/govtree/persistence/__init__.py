"""Persistence layer — versioned store boundary and record layout."""

from govtree.persistence.records import Change, commit_if_changed
from govtree.persistence.store import Clone, MemoryStore, VersionedStore

__all__ = ["Change", "Clone", "MemoryStore", "VersionedStore", "commit_if_changed"]
