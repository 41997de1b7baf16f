"""Git-backed versioned store (GitPython).

Each clone is a fresh checkout of one branch in a temporary directory.
Records are written into the working tree and staged immediately.
A push that git rejects as non-fast-forward surfaces as
PushConflictError so the orchestrator can re-clone and retry.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from git import Actor, Git, GitCommandError, PushInfo, Repo

from govtree.errors import PreconditionError, PushConflictError
from govtree.identity import Credentials
from govtree.persistence.store import Clone, VersionedStore

logger = logging.getLogger(__name__)

_REJECTED_FLAGS = PushInfo.REJECTED | PushInfo.REMOTE_REJECTED | PushInfo.ERROR
_CONFLICT_MARKERS = ("non-fast-forward", "fetch first", "rejected", "stale info")


class GitStore(VersionedStore):
    """Versioned store over a git remote (URL or local path).

    Usage:
        store = GitStore("git@github.com:org/community.git", credentials=creds)
        clone = store.clone("main")
    """

    def __init__(
        self,
        url: str,
        credentials: Optional[Credentials] = None,
        workdir: Optional[Path] = None,
    ) -> None:
        self._url = url
        self._credentials = credentials
        self._workdir = workdir

    def _env(self) -> dict[str, str]:
        env: dict[str, str] = {}
        if self._credentials is not None and self._credentials.private_key_path:
            key = self._credentials.private_key_path
            env["GIT_SSH_COMMAND"] = f"ssh -i {key} -o IdentitiesOnly=yes"
        return env

    def _author(self) -> Actor:
        user = self._credentials.user if self._credentials else "govtree"
        return Actor(user or "govtree", f"{user or 'govtree'}@govtree.local")

    def _has_branch(self, branch: str) -> bool:
        g = Git()
        with g.custom_environment(**self._env()):
            out = g.ls_remote("--heads", self._url, branch)
        return bool(out.strip())

    def clone(self, branch: str) -> GitClone:
        path = Path(tempfile.mkdtemp(prefix="govtree-", dir=self._workdir))
        env = self._env()
        try:
            if self._has_branch(branch):
                repo = Repo.clone_from(self._url, path, branch=branch, env=env)
            else:
                repo = Repo.init(path)
                repo.create_remote("origin", self._url)
                repo.git.symbolic_ref("HEAD", f"refs/heads/{branch}")
        except GitCommandError:
            shutil.rmtree(path, ignore_errors=True)
            raise
        logger.debug("Cloned %s@%s into %s", self._url, branch, path)
        return GitClone(repo, branch, env, self._author())


class GitClone(Clone):
    """Working tree of a GitStore branch."""

    def __init__(self, repo: Repo, branch: str, env: dict[str, str], author: Actor) -> None:
        self.branch = branch
        self._repo = repo
        self._env = env
        self._author = author
        self._root = Path(repo.working_tree_dir)

    @property
    def repo(self) -> Repo:
        return self._repo

    def _abs(self, path: str) -> Path:
        return self._root / path

    def cleanup(self) -> None:
        self._repo.close()
        shutil.rmtree(self._root, ignore_errors=True)

    def read(self, path: str) -> Optional[bytes]:
        p = self._abs(path)
        if not p.is_file():
            return None
        return p.read_bytes()

    def write(self, path: str, data: bytes) -> None:
        p = self._abs(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        self._repo.index.add([str(p)])

    def remove(self, path: str) -> None:
        p = self._abs(path)
        if p.is_file():
            self._repo.index.remove([str(p)], working_tree=True)

    def list(self, prefix: str) -> list[str]:
        base = self._abs(prefix.rstrip("/"))
        if not base.is_dir():
            return []
        paths = []
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = [d for d in dirnames if d != ".git"]
            for name in filenames:
                full = Path(dirpath) / name
                paths.append(full.relative_to(self._root).as_posix())
        return sorted(paths)

    def is_dirty(self) -> bool:
        if not self._repo.head.is_valid():
            return len(self._repo.index.entries) > 0
        return self._repo.is_dirty(index=True, working_tree=True, untracked_files=True)

    def commit(self, message: str) -> str:
        commit = self._repo.index.commit(
            message, author=self._author, committer=self._author,
        )
        return commit.hexsha

    def push(self) -> None:
        refspec = f"refs/heads/{self.branch}:refs/heads/{self.branch}"
        origin = self._repo.remote("origin")
        try:
            with self._repo.git.custom_environment(**self._env):
                results = origin.push(refspec)
        except GitCommandError as e:
            if any(marker in str(e) for marker in _CONFLICT_MARKERS):
                raise PushConflictError(f"Push to {self.branch} rejected: {e}") from e
            raise
        for info in results:
            if info.flags & _REJECTED_FLAGS:
                raise PushConflictError(
                    f"Push to {self.branch} rejected: {info.summary.strip()}"
                )
        logger.debug("Pushed %s", self.branch)


def init_bare_remote(path: Path) -> None:
    """Create an empty bare repository to act as a local community remote."""
    if path.exists():
        raise PreconditionError(f"Remote path already exists: {path}")
    Repo.init(path, mkdir=True, bare=True).close()
    logger.info("Created bare remote %s", path)
