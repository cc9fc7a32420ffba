import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Repeating coroutine with an explicit start/stop handle.

    The callback runs on the event loop every *interval_seconds*.  A
    failing callback is logged and the loop keeps going; only ``stop()``
    ends it.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[None]],
        interval_seconds: float,
        *,
        name: str = "periodic-task",
        run_immediately: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._callback = callback
        self._interval = float(interval_seconds)
        self._name = name
        self._run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def start(self) -> None:
        """Schedule the loop. Calling ``start`` on a running task is a no-op."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name=self._name)
        logger.debug("%s started (interval=%ss)", self._name, self._interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("%s stopped", self._name)

    async def _run(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self._interval)
        while True:
            try:
                await self._callback()
            except Exception:
                logger.error("%s iteration failed", self._name, exc_info=True)
            await asyncio.sleep(self._interval)
