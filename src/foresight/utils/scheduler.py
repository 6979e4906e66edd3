"""
Periodic background tasks on the bot's event loop.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from foresight.utils.logging import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """
    Runs ``action`` every ``interval`` seconds until stopped.

    The first run happens one interval after :meth:`start`. An exception
    from ``action`` is logged and the loop carries on.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        action: Callable[[], Awaitable[object]],
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._action = action
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info("Started %s (every %.0fs)", self.name, self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped %s", self.name)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._action()
            except Exception as e:
                logger.error("Error in %s: %s", self.name, e)
