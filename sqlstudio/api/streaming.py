"""Per-request Server-Sent-Events channel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from sqlstudio.agent.events import AgentEvent, StreamClosedError

logger = logging.getLogger(__name__)


class SSEChannel:
    """
    Queue between the agent task (producer) and the HTTP response (consumer).

    The agent writes events with send(); StreamingResponse iterates frames().
    When the response stops iterating (client disconnect) the channel closes
    and further sends raise StreamClosedError.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: AgentEvent) -> None:
        if self._closed:
            raise StreamClosedError("Client disconnected")
        await self._queue.put(event.to_sse())

    def finish(self) -> None:
        """Mark the end of the event stream."""
        self._queue.put_nowait(None)

    def close(self) -> None:
        self._closed = True

    async def frames(self) -> AsyncIterator[str]:
        try:
            while True:
                frame = await self._queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            if not self._closed:
                self._closed = True
                logger.debug("SSE channel closed")
