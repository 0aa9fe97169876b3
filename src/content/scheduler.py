"""
Debounced save scheduling.

Each key (``content:<item_id>``, ``version:<item_id>``) owns at most one
pending asyncio task. Scheduling again before the delay elapses cancels the
pending task and starts a fresh timer, so only the last request in a burst
runs. A task whose callback has already started is left to finish.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

SaveCallback = Callable[[], Awaitable[object]]


@dataclass
class _PendingSave:
    task: asyncio.Task
    started: bool = field(default=False)


class SaveScheduler:
    """Per-key debounce timers backed by cancellable asyncio tasks."""

    def __init__(self) -> None:
        self._pending: Dict[str, _PendingSave] = {}

    def schedule(self, key: str, delay: float, callback: SaveCallback) -> asyncio.Task:
        """
        Run ``callback`` after ``delay`` seconds unless rescheduled first.

        Must be called from a running event loop.
        """
        self.cancel(key)

        entry: Optional[_PendingSave] = None

        async def runner() -> None:
            await asyncio.sleep(max(delay, 0))
            entry.started = True
            try:
                await callback()
            except Exception as e:
                logger.error(f"Scheduled save {key} failed: {e}")

        task = asyncio.create_task(runner(), name=f"save-{key}")
        entry = _PendingSave(task=task)
        self._pending[key] = entry
        task.add_done_callback(lambda t: self._forget(key, entry))
        return task

    def _forget(self, key: str, entry: _PendingSave) -> None:
        if self._pending.get(key) is entry:
            del self._pending[key]

    def cancel(self, key: str) -> bool:
        """
        Cancel the pending task for a key.

        Returns:
            True if a timer was cancelled, False if none was waiting.
        """
        entry = self._pending.get(key)
        if entry is None or entry.started or entry.task.done():
            return False
        entry.task.cancel()
        del self._pending[key]
        logger.debug(f"Cancelled pending save {key}")
        return True

    def pending(self, key: str) -> bool:
        entry = self._pending.get(key)
        return entry is not None and not entry.task.done()

    @property
    def pending_keys(self) -> List[str]:
        return [key for key, entry in self._pending.items() if not entry.task.done()]

    async def cancel_all(self) -> None:
        """Cancel every task, including ones already running. Used on shutdown."""
        tasks = [entry.task for entry in self._pending.values()]
        self._pending.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} pending save(s)")
