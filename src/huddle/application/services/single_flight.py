"""Per-key deduplication of concurrent async computations."""

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Runs at most one computation per key at a time.

    Callers arriving while a computation for their key is in flight share
    its task instead of starting another. The entry is dropped as soon as
    the task finishes, so a later call starts fresh.

    Example:
        >>> flights: SingleFlight[str] = SingleFlight()
        >>> result = await flights.do("key", lambda: compute("key"))
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def start(
        self, key: str, factory: Callable[[], Coroutine[Any, Any, T]]
    ) -> tuple[asyncio.Task[T], bool]:
        """Get the in-flight task for ``key``, starting one if needed.

        Args:
            key: Deduplication key.
            factory: Builds the coroutine to run; only called when starting.

        Returns:
            The task and True if this call started it.
        """
        task = self._tasks.get(key)
        if task is not None:
            return task, False

        task = asyncio.create_task(factory())
        self._tasks[key] = task
        task.add_done_callback(lambda done: self._forget(key, done))
        return task, True

    async def do(self, key: str, factory: Callable[[], Coroutine[Any, Any, T]]) -> T:
        """Await the shared computation for ``key``.

        Cancelling the caller does not cancel the shared task.
        """
        task, _ = self.start(key, factory)
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[T]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        # Mark the exception retrieved when every waiter has gone away
        if not task.cancelled():
            task.exception()
