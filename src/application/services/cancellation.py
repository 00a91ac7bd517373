"""Cooperative cancellation signal for conversation turns."""

import asyncio
from typing import Optional


class CancellationToken:
    """External signal checked by the orchestrator at every suspension point.

    Cancelling is idempotent; the first reason given is kept.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "Cancelled by user") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()
