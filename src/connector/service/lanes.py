"""
Per-channel sequential dispatch lanes.

Each channel gets its own queue and worker task. Frames of one channel are
processed strictly in arrival order; different channels run independently,
so a slow handler on one stream does not delay the others.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class ChannelLanes:
    """Lazily created asyncio worker per channel key."""

    def __init__(self) -> None:
        self._queues: dict[int, asyncio.Queue[Any]] = {}
        self._workers: dict[int, asyncio.Task[None]] = {}

    def __len__(self) -> int:
        return len(self._workers)

    def submit(self, key: int, fn: Callable[[Any], None], item: Any) -> None:
        """
        Schedule ``fn(item)`` on the lane for ``key``.

        Must be called from the event loop thread. Never blocks.
        """
        queue = self._queues.get(key)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[key] = queue
            self._workers[key] = asyncio.create_task(
                self._run(key, queue), name=f"channel-lane-{key}"
            )
        queue.put_nowait((fn, item))

    def release(self, key: int) -> bool:
        """
        Stop and forget the lane for ``key``. Queued items are dropped.

        Returns:
            True if a lane existed

        """
        self._queues.pop(key, None)
        worker = self._workers.pop(key, None)
        if worker is None:
            return False
        worker.cancel()
        return True

    async def drain(self) -> None:
        """Wait until every queued item has been processed."""
        await asyncio.gather(*(queue.join() for queue in self._queues.values()))

    async def close(self) -> None:
        """Cancel every worker and forget all lanes. Queued items are dropped."""
        workers = list(self._workers.values())
        self._workers.clear()
        self._queues.clear()
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    @staticmethod
    async def _run(key: int, queue: asyncio.Queue[Any]) -> None:
        while True:
            fn, item = await queue.get()
            try:
                fn(item)
            except Exception:
                logger.exception(f"Lane {key} failed to process an item")
            finally:
                queue.task_done()
