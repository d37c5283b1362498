"""Bounded-duration execution of reconciliation steps."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from dockyard.exceptions import OperationTimeout
from dockyard.models.config import TimeoutsConfig


logger = logging.getLogger(__name__)

T = TypeVar("T")


class Supervisor:
    """Runs engine work under a deadline.

    On expiry the awaited work is cancelled and ``OperationTimeout`` is
    raised. A caller-supplied build id is handed to ``cancel_build`` so the
    engine can abort a build that outlives the local task.
    """

    def __init__(
        self,
        timeouts: Optional[TimeoutsConfig] = None,
        cancel_build: Optional[Callable[[str], Awaitable[None]]] = None,
    ):
        self.timeouts = timeouts or TimeoutsConfig()
        self.cancel_build = cancel_build

    def timeout_for(self, operation: str) -> float:
        """Deadline in seconds for ``create``, ``update`` or ``delete``."""
        return getattr(self.timeouts, operation)

    async def run(
        self,
        operation: str,
        work: Awaitable[T],
        timeout: Optional[float] = None,
        build_id: Optional[str] = None,
    ) -> T:
        """Await ``work`` for at most the operation's deadline."""
        if timeout is None:
            timeout = self.timeout_for(operation)
        try:
            return await asyncio.wait_for(work, timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"{operation} timed out after {timeout:g}s")
            if build_id and self.cancel_build:
                await self._cancel(build_id)
            raise OperationTimeout(operation, timeout) from e

    async def _cancel(self, build_id: str):
        try:
            await self.cancel_build(build_id)
            logger.info(f"Requested cancellation of build {build_id}")
        except Exception as e:
            logger.warning(f"Failed to cancel build {build_id}: {e}")
