"""Deferred loading of file content.

Content of a stored file is a separate large object and is never part
of a metadata query. Records carry a ``LazyContent`` instead, tagged
with one of three states:

- ``ABSENT``: nothing was supplied (a new record, or metadata-only update)
- ``DEFERRED``: content is stored and may be loaded while the unit of
  work that produced the record is still open
- ``LOADED``: bytes are in memory

Loading a deferred record after its unit of work has closed raises
``ContentNotLoadedError``.
"""

import enum
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import final

from django.db import transaction

from server.apps.files.exceptions import ContentNotLoadedError

logger = logging.getLogger(__name__)


@final
class ContentScope:
    """Lifetime of a unit of work that may load deferred content."""

    def __init__(self) -> None:
        """Initialize open scope."""
        self._is_open = True

    @property
    def is_open(self) -> bool:
        """Whether deferred content can still be loaded."""
        return self._is_open

    def close(self) -> None:
        """Close the scope, deferred content becomes unreachable."""
        self._is_open = False


_active_scope: ContextVar[ContentScope | None] = ContextVar(
    'active_content_scope',
    default=None,
)


def current_scope() -> ContentScope | None:
    """Get the open scope of the current unit of work, if any."""
    scope = _active_scope.get()
    if scope is not None and scope.is_open:
        return scope
    return None


@contextmanager
def unit_of_work() -> Iterator[ContentScope]:
    """Run a block in one transaction with one content scope.

    Nested units of work join the outer scope and use a savepoint.

    Yields:
        The content scope records loaded in this block are bound to.
    """
    outer = current_scope()
    if outer is not None:
        with transaction.atomic():
            yield outer
        return

    scope = ContentScope()
    token = _active_scope.set(scope)
    try:
        with transaction.atomic():
            yield scope
    finally:
        scope.close()
        _active_scope.reset(token)


class ContentState(enum.Enum):
    """Where the content of a record currently is."""

    ABSENT = 'absent'
    DEFERRED = 'deferred'
    LOADED = 'loaded'


@final
class LazyContent:
    """Content of one file record, loaded at most once."""

    def __init__(
        self,
        state: ContentState,
        data: bytes | None = None,
        loader: Callable[[], bytes] | None = None,
        scope: ContentScope | None = None,
    ) -> None:
        """Initialize LazyContent, prefer the named constructors."""
        self._state = state
        self._data = data
        self._loader = loader
        self._scope = scope

    @classmethod
    def absent(cls) -> 'LazyContent':
        """Content that was never supplied."""
        return cls(ContentState.ABSENT)

    @classmethod
    def loaded(cls, data: bytes) -> 'LazyContent':
        """Content already in memory."""
        return cls(ContentState.LOADED, data=bytes(data))

    @classmethod
    def deferred(
        cls,
        loader: Callable[[], bytes],
        scope: ContentScope | None,
    ) -> 'LazyContent':
        """Stored content, loadable while ``scope`` is open.

        Args:
            loader: Reads the content from the content store.
            scope: Unit of work the record was fetched in.

        Returns:
            Deferred content.
        """
        return cls(ContentState.DEFERRED, loader=loader, scope=scope)

    @property
    def state(self) -> ContentState:
        """Current state."""
        return self._state

    @property
    def is_loaded(self) -> bool:
        """Whether bytes are in memory."""
        return self._state is ContentState.LOADED

    def get(self, file_id: int | None = None) -> bytes | None:
        """Get content, loading deferred content on first access.

        Args:
            file_id: Id of the owning record, used in error messages.

        Returns:
            Content bytes, or None if content was never supplied.

        Raises:
            ContentNotLoadedError: If content is deferred and its unit
                of work has already been closed.
        """
        if self._state is ContentState.LOADED:
            return self._data
        if self._state is ContentState.ABSENT:
            return None

        if self._scope is None or not self._scope.is_open:
            raise ContentNotLoadedError(file_id)

        logger.debug('Loading deferred content: file ID=%s', file_id)
        self._data = self._loader()  # type: ignore[misc]
        self._state = ContentState.LOADED
        self._loader = None
        return self._data
