"""Engine state owned by one user and one recommender."""

import logging
from datetime import datetime
from typing import Any

from ..exceptions import ContextClosedError

logger = logging.getLogger(__name__)


class RecommenderContext:
    """Opaque trained-model state of a recommender for one user.

    A training run works on a copy of the published context. Once the run
    closes its copy the copy is read-only and may be published in place of
    the previous one, so a prediction run that still holds the old context
    never observes a half-trained state.
    """

    def __init__(self, user: str | None = None):
        self.user = user
        self._store: dict[str, Any] = {}
        self._messages: list[str] = []
        self._ready = False
        self._closed = False

    @classmethod
    def empty(cls, user: str | None = None) -> "RecommenderContext":
        return cls(user)

    def copy(self) -> "RecommenderContext":
        """Return an open copy that shares no container with this context.

        Values are copied shallowly, engines must replace stored objects
        instead of mutating them in place.
        """
        clone = RecommenderContext(self.user)
        clone._store = dict(self._store)
        clone._messages = list(self._messages)
        clone._ready = self._ready
        return clone

    def get(self, key: str, default: Any = None) -> Any:
        return self._store.get(key, default)

    def put(self, key: str, value: Any) -> None:
        self._check_open()
        self._store[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def mark_ready(self) -> None:
        self._check_open()
        self._ready = True

    @property
    def ready(self) -> bool:
        return self._ready

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def log(self, message: str) -> None:
        """Record a message for the user, e.g. why training produced nothing."""
        self._check_open()
        stamp = datetime.now().strftime("%H:%M:%S")
        self._messages.append(f"{stamp} {message}")
        logger.debug(f"[{self.user}] {message}")

    @property
    def messages(self) -> list[str]:
        return list(self._messages)

    def _check_open(self) -> None:
        if self._closed:
            raise ContextClosedError("Context has been closed and can no longer change")

    def __repr__(self) -> str:
        return (
            f"RecommenderContext(user={self.user!r}, ready={self._ready}, "
            f"closed={self._closed}, keys={sorted(self._store)})"
        )
