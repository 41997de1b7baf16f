"""Named lookup tables for score kernels and motion policies.

A Registry is populated once during start-up and then sealed. After
sealing it is read-only: registering raises, lookups never mutate.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, Iterator, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Registry(Generic[T]):
    """Maps a name to an implementation.

    Usage:
        kernels = Registry("kernel", KernelError)
        kernels.register("qv", QVKernel())
        kernels.seal()
        kernels.get("qv")
    """

    def __init__(self, kind: str, missing_error: Callable[[str], Exception]) -> None:
        self._kind = kind
        self._missing_error = missing_error
        self._entries: dict[str, T] = {}
        self._sealed = False

    def register(self, name: str, entry: T) -> None:
        if self._sealed:
            raise RuntimeError(f"{self._kind} registry is sealed; cannot register {name!r}")
        if not name:
            raise ValueError(f"{self._kind} name must be non-empty")
        if name in self._entries:
            raise ValueError(f"{self._kind} {name!r} is already registered")
        self._entries[name] = entry
        logger.debug("Registered %s %s", self._kind, name)

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, name: str) -> T:
        try:
            return self._entries[name]
        except KeyError:
            raise self._missing_error(f"Unknown {self._kind}: {name!r}") from None

    def names(self) -> list[str]:
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._entries)
