"""
Outbound agent events and the emitter that writes them.

Every event is serialized as one Server-Sent-Events frame:

    data: {"type": "chunk", "content": "Here are"}\n\n

The emitter owns the heartbeat timer. Heartbeats are best-effort: a closed
stream stops them silently. Any other write to a closed stream raises
StreamClosedError so the agent loop stops doing work nobody will read.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager, suppress
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 5.0


class StreamClosedError(Exception):
    """The consumer of the event stream has gone away."""


class AgentEvent(BaseModel):
    """Base for all events; `type` discriminates on the wire."""

    type: str

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, mode="json")
        return {key: value for key, value in data.items() if value is not None}

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_payload(), ensure_ascii=False)}\n\n"


class ToolsEvent(AgentEvent):
    type: Literal["tools"] = "tools"
    tools: list[str] = Field(default_factory=list)


class ChunkEvent(AgentEvent):
    type: Literal["chunk"] = "chunk"
    content: str


class ToolCallEvent(AgentEvent):
    type: Literal["tool_call"] = "tool_call"
    tool_name: str = Field(..., alias="toolName")
    args: dict[str, Any] = Field(default_factory=dict)
    tool_use_id: str = Field(..., alias="toolUseId")


class ToolResponseEvent(AgentEvent):
    type: Literal["tool_response"] = "tool_response"
    tool_name: str = Field(..., alias="toolName")
    tool_use_id: str = Field(..., alias="toolUseId")
    success: bool
    response: str
    data: Any = None


class HeartbeatEvent(AgentEvent):
    type: Literal["heartbeat"] = "heartbeat"


class ErrorEvent(AgentEvent):
    type: Literal["error"] = "error"
    error: str


class DoneEvent(AgentEvent):
    type: Literal["done"] = "done"


EventSink = Callable[[AgentEvent], Awaitable[None]]


class EventEmitter:
    """
    Writes agent events to a sink in order.

    The sink is any coroutine function taking an event; for HTTP it is the
    per-request SSE channel, for the CLI it prints to the terminal.
    """

    def __init__(
        self,
        sink: EventSink,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
    ) -> None:
        self._sink = sink
        self.heartbeat_interval = heartbeat_interval
        self._closed = False
        self._lock = asyncio.Lock()
        self.emitted = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    async def emit(self, event: AgentEvent) -> None:
        """
        Write one event.

        Raises:
            StreamClosedError: The stream was closed or the write failed
        """
        if self._closed:
            raise StreamClosedError(f"Stream closed; dropped {event.type} event")
        async with self._lock:
            try:
                await self._sink(event)
            except StreamClosedError:
                self._closed = True
                raise
            except Exception as exc:
                self._closed = True
                raise StreamClosedError(f"Failed to write {event.type} event: {exc}") from exc
        self.emitted += 1

    async def _beat(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.emit(HeartbeatEvent())
            except StreamClosedError:
                logger.debug("Heartbeat write failed; stream closed")
                return

    @asynccontextmanager
    async def heartbeat(self) -> AsyncIterator[None]:
        """Send heartbeats while the block runs; always stopped on exit."""
        task = asyncio.create_task(self._beat())
        try:
            yield
        finally:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
