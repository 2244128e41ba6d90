"""Result collection returned by Emitter.emit()."""

import asyncio
from collections.abc import Hashable, MutableSet
from collections.abc import Set as AbstractSet
from typing import Any, Iterator


class ResultSet(MutableSet):
    """Set of listener return values for one emit() call.

    The emitter keeps a reference to the set it returned: results of
    listeners that returned a future, coroutine or then-able are added once
    they settle, after emit() has already returned. ``pending`` counts those
    still outstanding and ``await settled()`` waits for all of them.

    Values keep insertion order. Hashable values are deduplicated by equality,
    unhashable ones by identity.
    """

    def __init__(self) -> None:
        self._items: list[Any] = []
        self._hashable: set[Any] = set()
        self._pending = 0
        self._waiters: list[asyncio.Future[None]] = []

    def __contains__(self, value: object) -> bool:
        if isinstance(value, Hashable):
            try:
                return value in self._hashable
            except TypeError:
                pass
        return any(item is value for item in self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __le__(self, other: Any) -> bool:
        # Set.__le__ tests `item in other`, which raises on unhashable items
        # when other is a builtin set. Such an item is simply not contained.
        if not isinstance(other, AbstractSet):
            return NotImplemented
        if len(self) > len(other):
            return False
        for item in self._items:
            try:
                if item not in other:
                    return False
            except TypeError:
                return False
        return True

    def __repr__(self) -> str:
        return f"ResultSet({self._items!r}, pending={self._pending})"

    def add(self, value: Any) -> None:
        if value in self:
            return
        self._items.append(value)
        try:
            self._hashable.add(value)
        except TypeError:
            pass

    def discard(self, value: Any) -> None:
        if value not in self:
            return
        try:
            self._hashable.remove(value)
        except (KeyError, TypeError):
            self._items = [item for item in self._items if item is not value]
        else:
            self._items = [
                item
                for item in self._items
                if not (isinstance(item, Hashable) and item == value)
            ]

    @property
    def pending(self) -> int:
        """Number of promise-like results that have not settled yet."""
        return self._pending

    async def settled(self) -> "ResultSet":
        """Wait until every pending result has settled, then return self."""
        if self._pending:
            waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            await waiter
        return self

    def _track(self) -> None:
        self._pending += 1

    def _untrack(self) -> None:
        self._pending -= 1
        if self._pending:
            return
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
