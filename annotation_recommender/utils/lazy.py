"""Memoizing thunk for deferred, at-most-once initialization."""

from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class Lazy(Generic[T]):
    """Computes a value on first access and caches it.

    Tasks are single-threaded internally, so the initialized flag is the only
    guard.
    """

    def __init__(self, factory: Callable[[], T]):
        self._factory = factory
        self._value: T | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def get(self) -> T:
        if not self._initialized:
            self._value = self._factory()
            self._initialized = True
        return self._value  # type: ignore[return-value]
