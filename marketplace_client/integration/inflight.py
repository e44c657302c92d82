"""In-flight request tracker.

Collapses concurrent identical reads into a single transport call. A key is
present iff a call for that key is still running; the entry is removed in a
``finally`` block when the call settles, whatever the outcome.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class InFlightTracker:
    """Maps a request signature to the task currently serving it."""

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    async def get_or_create(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Await the in-flight call for *key*, starting one via *factory* if none.

        Every caller awaits a shielded view of the shared task, so cancelling
        one caller never cancels the call the others are waiting on.
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, factory))
            self._pending[key] = task
        else:
            logger.debug("Joining in-flight request %s", key)
        return await asyncio.shield(task)

    async def _run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await factory()
        finally:
            self._pending.pop(key, None)
