"""
Immediate sweep trigger.

SweepKicker.kick() starts a sweep as a tracked background task on the
running event loop. It never blocks the caller and never raises into it.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

from citecast.core.logging import get_logger

logger = get_logger(__name__)


class SweepKicker:
    def __init__(self, sweep: Callable[[], Awaitable[Any]]):
        self._sweep = sweep
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def kick(self) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # The scheduled sweep picks the job up instead
            logger.info("sweep_kick_deferred", reason="no_running_loop")
            return None

        task = loop.create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self) -> None:
        try:
            result = await self._sweep()
            logger.info("background_sweep_finished", result=str(result))
        except Exception as e:
            logger.error("background_sweep_failed", error=str(e), exc_info=True)

    async def drain(self) -> None:
        """Wait for every in-flight background sweep."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
