"""
Optimistic mutations over an in-memory list.

Each mutation stages its change locally, awaits the server commit, and rolls
back when the commit raises. The commit's exception is re-raised for the
caller to surface.
"""
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


class OptimisticList(Generic[T]):

    def __init__(self, items: Optional[Iterable[T]] = None, key: Callable[[T], str] = lambda item: str(item.id)):
        self.items: List[T] = list(items or [])
        self._key = key
        self._temp_counter = 0

    def next_temp_id(self) -> str:
        self._temp_counter += 1
        return f"temp-{self._temp_counter}"

    def snapshot(self) -> List[T]:
        return list(self.items)

    def replace_all(self, items: Iterable[T]) -> None:
        self.items = list(items)

    def get(self, item_id: str) -> Optional[T]:
        return next((item for item in self.items if self._key(item) == item_id), None)

    def _without(self, item_id: str) -> List[T]:
        return [item for item in self.items if self._key(item) != item_id]

    async def insert(self, staged: T, commit: Callable[[], Awaitable[T]]) -> T:
        """Show `staged` now; swap it for the confirmed item, or drop it if the commit fails."""
        staged_id = self._key(staged)
        self.items.append(staged)
        try:
            confirmed = await commit()
        except Exception:
            self.items = self._without(staged_id)
            raise
        self.items = self._without(staged_id) + [confirmed]
        return confirmed

    async def remove(self, item_id: str, commit: Callable[[], Awaitable[object]]) -> None:
        """Hide the item now; on failure restore the whole list as it was."""
        snapshot = self.snapshot()
        self.items = self._without(item_id)
        try:
            await commit()
        except Exception:
            self.items = snapshot
            raise

    async def patch(self, item_id: str, change: Callable[[T], T], commit: Callable[[], Awaitable[object]]) -> None:
        """Apply `change` now; on failure put back only that item, keeping any list installed meanwhile."""
        original = self.get(item_id)
        if original is None:
            await commit()
            return
        staged = change(original)
        self.items = [staged if item is original else item for item in self.items]
        try:
            await commit()
        except Exception:
            # a refetch during the commit may already have replaced the staged item
            self.items = [original if item is staged else item for item in self.items]
            raise
