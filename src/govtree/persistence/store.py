"""Versioned store boundary and the in-memory reference store.

The governance core only needs a branch-capable, append-only snapshot
store with optimistic concurrency:

    clone(branch)      → Clone (a private working tree)
    Clone.read/write   → records at deterministic paths (writes are staged)
    Clone.is_dirty     → staged differences from the clone's base commit?
    Clone.commit(msg)  → local commit
    Clone.push()       → fast-forward the remote branch or raise
                         PushConflictError

A git repository satisfies this contract (see git_store.GitStore). The
MemoryStore below is a log-structured implementation kept in process;
it backs tests and single-process deployments.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from govtree.errors import PushConflictError

logger = logging.getLogger(__name__)


class Clone(ABC):
    """A working tree checked out from one branch of a store."""

    branch: str

    @abstractmethod
    def read(self, path: str) -> Optional[bytes]:
        """Return the file content at path, or None if absent."""

    @abstractmethod
    def write(self, path: str, data: bytes) -> None:
        """Write and stage a file."""

    @abstractmethod
    def remove(self, path: str) -> None:
        """Delete and stage the removal of a file (no-op if absent)."""

    @abstractmethod
    def list(self, prefix: str) -> list[str]:
        """Return sorted paths of all files under a directory prefix."""

    @abstractmethod
    def is_dirty(self) -> bool:
        """True if the working tree differs from the last commit."""

    @abstractmethod
    def commit(self, message: str) -> str:
        """Commit staged changes locally. Returns the commit id."""

    @abstractmethod
    def push(self) -> None:
        """Publish local commits. Raises PushConflictError if not a fast-forward."""

    def exists(self, path: str) -> bool:
        return self.read(path) is not None

    def cleanup(self) -> None:
        """Release local resources held by the working tree."""


class VersionedStore(ABC):
    """A remote holding branches of versioned trees."""

    @abstractmethod
    def clone(self, branch: str) -> Clone:
        """Check out the current head of a branch (empty if new)."""


# ------------------------------------------------------------------
# In-memory store
# ------------------------------------------------------------------

@dataclass(frozen=True)
class Commit:
    """An immutable snapshot in a MemoryStore branch."""
    commit_id: str
    parent_id: Optional[str]
    files: dict[str, bytes]
    message: str


def _commit_id(parent_id: Optional[str], files: dict[str, bytes], message: str) -> str:
    h = hashlib.sha256()
    h.update((parent_id or "").encode("utf-8"))
    for path in sorted(files):
        h.update(path.encode("utf-8"))
        h.update(b"\0")
        h.update(hashlib.sha256(files[path]).digest())
    h.update(message.encode("utf-8"))
    return h.hexdigest()


class MemoryStore(VersionedStore):
    """Log-structured in-process store with per-branch commit history.

    Usage:
        store = MemoryStore()
        clone = store.clone("main")
        clone.write("motion/1.json", b"{}")
        clone.commit("Create motion 1")
        clone.push()
    """

    def __init__(self) -> None:
        self._branches: dict[str, list[Commit]] = {}
        self._lock = threading.Lock()

    def clone(self, branch: str) -> MemoryClone:
        with self._lock:
            history = self._branches.get(branch, [])
            head = history[-1] if history else None
        return MemoryClone(self, branch, head)

    def head(self, branch: str) -> Optional[Commit]:
        with self._lock:
            history = self._branches.get(branch, [])
            return history[-1] if history else None

    def log(self, branch: str) -> list[Commit]:
        """Return the branch history, oldest first."""
        with self._lock:
            return list(self._branches.get(branch, []))

    def _fast_forward(self, branch: str, base_id: Optional[str], commits: list[Commit]) -> None:
        with self._lock:
            history = self._branches.setdefault(branch, [])
            remote_head = history[-1].commit_id if history else None
            if remote_head != base_id:
                raise PushConflictError(
                    f"Push to {branch} rejected: remote head {remote_head} "
                    f"is not the clone base {base_id}"
                )
            history.extend(commits)


class MemoryClone(Clone):
    """Working tree of a MemoryStore branch."""

    def __init__(self, store: MemoryStore, branch: str, head: Optional[Commit]) -> None:
        self.branch = branch
        self._store = store
        self._base_id = head.commit_id if head else None
        self._head_files: dict[str, bytes] = dict(head.files) if head else {}
        self._files: dict[str, bytes] = dict(self._head_files)
        self._pending: list[Commit] = []

    @property
    def head_id(self) -> Optional[str]:
        if self._pending:
            return self._pending[-1].commit_id
        return self._base_id

    def read(self, path: str) -> Optional[bytes]:
        return self._files.get(path)

    def write(self, path: str, data: bytes) -> None:
        self._files[path] = bytes(data)

    def remove(self, path: str) -> None:
        self._files.pop(path, None)

    def list(self, prefix: str) -> list[str]:
        prefix = prefix.rstrip("/") + "/"
        return sorted(p for p in self._files if p.startswith(prefix))

    def is_dirty(self) -> bool:
        return self._files != self._head_files

    def commit(self, message: str) -> str:
        files = dict(self._files)
        commit = Commit(
            commit_id=_commit_id(self.head_id, files, message),
            parent_id=self.head_id,
            files=files,
            message=message,
        )
        self._pending.append(commit)
        self._head_files = files
        return commit.commit_id

    def push(self) -> None:
        if not self._pending:
            return
        self._store._fast_forward(self.branch, self._base_id, self._pending)
        logger.debug("Pushed %d commit(s) to %s", len(self._pending), self.branch)
        self._base_id = self._pending[-1].commit_id
        self._pending = []
