"""
Stream reconciliation.

Turns the delta stream of one provider call into a finished assistant
Turn. Text is forwarded as it arrives; tool invocations are buffered as
raw JSON fragments and parsed only when their block stops. The finished
Turn always lists text blocks before tool invocations and is never empty.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlstudio.llm.models import (
    BlockStart,
    BlockStop,
    ContentBlock,
    MessageStop,
    ProviderDelta,
    TextBlock,
    TextDelta,
    ToolArgumentDelta,
    ToolInvocationBlock,
    Turn,
)

logger = logging.getLogger(__name__)

TOOL_USE_STOP_REASON = "tool_use"

TextCallback = Callable[[str], Awaitable[None]]


@dataclass
class _PartialInvocation:
    id: str
    name: str
    buffer: list[str] = field(default_factory=list)


@dataclass
class _OpenText:
    parts: list[str] = field(default_factory=list)


@dataclass
class ReconciledTurn:
    turn: Turn
    stop_reason: str | None

    @property
    def tool_invocations(self) -> list[ToolInvocationBlock]:
        return self.turn.tool_invocations


def parse_arguments(raw: str, *, tool_name: str, invocation_id: str) -> dict[str, Any]:
    """Parse buffered argument JSON; malformed or non-object input becomes {}."""
    if not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning(
            f"Malformed tool arguments for {tool_name} ({invocation_id}): {exc}",
            extra={"tool": tool_name, "tool_use_id": invocation_id, "buffer_length": len(raw)},
        )
        return {}
    if not isinstance(value, dict):
        logger.warning(
            f"Tool arguments for {tool_name} ({invocation_id}) are not an object",
            extra={"tool": tool_name, "tool_use_id": invocation_id},
        )
        return {}
    return value


def order_blocks(blocks: list[ContentBlock]) -> list[ContentBlock]:
    """Text blocks first, then tool invocations, each in original relative order."""
    texts = [block for block in blocks if isinstance(block, TextBlock)]
    others = [block for block in blocks if not isinstance(block, TextBlock)]
    ordered = texts + others
    return ordered or [TextBlock(text="")]


class StreamReconciler:
    """
    Assembles one assistant Turn from provider deltas.

    Block slots are allocated when a block starts so the original relative
    order survives even when blocks close out of order.
    """

    def __init__(self, on_text: TextCallback | None = None) -> None:
        self._on_text = on_text
        self._slots: list[ContentBlock | None] = []
        self._open_tools: dict[str, tuple[int, _PartialInvocation]] = {}
        self._open_text: tuple[int, _OpenText] | None = None
        self._current_tool: str | None = None
        self._stop_reason: str | None = None
        self._stopped = False

    async def reconcile(self, deltas: AsyncIterable[ProviderDelta]) -> ReconciledTurn:
        try:
            async for delta in deltas:
                await self.feed(delta)
                if self._stopped:
                    break
        finally:
            aclose = getattr(deltas, "aclose", None)
            if aclose is not None:
                await aclose()
        return self.finish()

    async def feed(self, delta: ProviderDelta) -> None:
        if isinstance(delta, BlockStart):
            self._start(delta)
        elif isinstance(delta, TextDelta):
            await self._text(delta.text)
        elif isinstance(delta, ToolArgumentDelta):
            self._argument(delta)
        elif isinstance(delta, BlockStop):
            self._stop(delta.id)
        elif isinstance(delta, MessageStop):
            self._stop_reason = delta.reason
            self._stopped = True

    def finish(self) -> ReconciledTurn:
        """Close anything still open and build the ordered Turn."""
        if self._open_text is not None:
            self._close_text()
        for invocation_id in list(self._open_tools):
            self._close_tool(invocation_id)

        blocks = [
            block
            for block in self._slots
            if block is not None and not (isinstance(block, TextBlock) and not block.text)
        ]
        turn = Turn(role="assistant", content=order_blocks(blocks))

        if turn.tool_invocations and self._stop_reason != TOOL_USE_STOP_REASON:
            logger.warning(
                f"Stop reason {self._stop_reason!r} does not match "
                f"{len(turn.tool_invocations)} pending tool invocation(s); executing them anyway",
                extra={
                    "stop_reason": self._stop_reason,
                    "tool_use_ids": [block.id for block in turn.tool_invocations],
                },
            )
        return ReconciledTurn(turn=turn, stop_reason=self._stop_reason)

    def _start(self, delta: BlockStart) -> None:
        if delta.kind == "text":
            if self._open_text is not None:
                self._close_text()
            self._open_text = (self._allocate(), _OpenText())
            return

        invocation_id = delta.id or f"toolu_{len(self._slots)}"
        if invocation_id in self._open_tools:
            self._close_tool(invocation_id)
        partial = _PartialInvocation(id=invocation_id, name=delta.name or "")
        self._open_tools[invocation_id] = (self._allocate(), partial)
        self._current_tool = invocation_id

    async def _text(self, text: str) -> None:
        if not text:
            return
        if self._open_text is None:
            self._open_text = (self._allocate(), _OpenText())
        self._open_text[1].parts.append(text)
        if self._on_text is not None:
            await self._on_text(text)

    def _argument(self, delta: ToolArgumentDelta) -> None:
        invocation_id = delta.id or self._current_tool
        entry = self._open_tools.get(invocation_id) if invocation_id else None
        if entry is None:
            logger.warning(f"Dropping argument fragment for unknown invocation {invocation_id!r}")
            return
        entry[1].buffer.append(delta.fragment)

    def _stop(self, block_id: str | None) -> None:
        if block_id is not None:
            if block_id in self._open_tools:
                self._close_tool(block_id)
            return

        # Without an id the most recently opened block closes.
        tool_slot = (
            self._open_tools[self._current_tool][0]
            if self._current_tool in self._open_tools
            else -1
        )
        text_slot = self._open_text[0] if self._open_text is not None else -1
        if text_slot > tool_slot:
            self._close_text()
        elif tool_slot >= 0:
            self._close_tool(self._current_tool)

    def _allocate(self) -> int:
        self._slots.append(None)
        return len(self._slots) - 1

    def _close_text(self) -> None:
        slot, accumulator = self._open_text
        self._slots[slot] = TextBlock(text="".join(accumulator.parts))
        self._open_text = None

    def _close_tool(self, invocation_id: str) -> None:
        slot, partial = self._open_tools.pop(invocation_id)
        self._slots[slot] = ToolInvocationBlock(
            id=partial.id,
            name=partial.name,
            arguments=parse_arguments(
                "".join(partial.buffer), tool_name=partial.name, invocation_id=partial.id
            ),
        )
        if self._current_tool == invocation_id:
            self._current_tool = None
