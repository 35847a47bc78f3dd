"""
Periodic maintenance tasks run inside the API process.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

logger = logging.getLogger(__name__)


class BackgroundWorker:
    """Runs :meth:`_tick` every ``interval`` seconds on the event loop.

    Subclasses implement ``_tick``.  A failing tick is logged and the loop
    carries on; :meth:`stop` cancels the task and waits for it.
    """

    def __init__(self, *, interval: float, name: str) -> None:
        self._interval = interval
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.info("%s started, every %ss", self._name, self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("%s stopped", self._name)

    async def _tick(self) -> None:
        raise NotImplementedError

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._tick()
            except Exception:
                logger.exception("%s failed, retrying in %ss", self._name, self._interval)
