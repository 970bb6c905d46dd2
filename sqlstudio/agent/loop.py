"""
Agent Loop Controller

Drives one request's conversation with the model:

    AWAITING_MODEL -> EXECUTING_TOOLS -> AWAITING_MODEL ... -> DONE | FAILED

Each model turn is reconciled into an assistant Turn. Tool invocations are
resolved one at a time, in the order the model listed them, and their
results go back as a single user Turn. Only a provider transport failure
ends the run as FAILED; tool failures and truncation are data for the
model, and hitting the iteration cap is a normal finish.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from sqlstudio.agent.events import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    EventEmitter,
    StreamClosedError,
    ToolCallEvent,
    ToolResponseEvent,
    ToolsEvent,
)
from sqlstudio.agent.reconciler import StreamReconciler
from sqlstudio.agent.results import summarize_payload, truncate_payload
from sqlstudio.llm.base import BaseLLMProvider, ProviderError
from sqlstudio.llm.models import (
    ProviderOptions,
    ToolInvocationBlock,
    ToolResultBlock,
    Turn,
)
from sqlstudio.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


class AgentState(StrEnum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AgentLoopState:
    conversation: list[Turn] = field(default_factory=list)
    iteration_count: int = 0
    terminated: bool = False
    status: AgentState = AgentState.AWAITING_MODEL
    error: str | None = None

    @property
    def final_text(self) -> str:
        return "".join(turn.text for turn in self.conversation if turn.role == "assistant")


@dataclass(frozen=True)
class ResultLimits:
    """Size bounds for tool results and UI previews."""

    max_bytes: int = 50_000
    max_tables: int = 10
    max_columns: int = 20
    max_rows: int = 100
    preview_rows: int = 10


class AgentLoopController:
    """
    One agent run: provider, bound tools and an event emitter.

    Usage:
        controller = AgentLoopController(provider, registry, emitter)
        state = await controller.run("How many users signed up today?")
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        registry: ToolRegistry,
        emitter: EventEmitter,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        limits: ResultLimits | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.provider = provider
        self.registry = registry
        self.emitter = emitter
        self.max_iterations = max_iterations
        self.limits = limits or ResultLimits()

    async def run(
        self,
        query: str,
        *,
        system: str | None = None,
        history: Sequence[Turn] = (),
        force_tool_use: bool = False,
        model: str | None = None,
    ) -> AgentLoopState:
        """
        Run the loop to completion, emitting events as it goes.

        Never raises for provider or tool failures; the returned state's
        status says how the run ended. A closed event stream stops the run
        early and leaves it FAILED without further writes.
        """
        state = AgentLoopState(conversation=[*history, Turn.user_text(query)])
        specs = [descriptor.to_spec() for descriptor in self.registry.descriptors()]

        try:
            await self.emitter.emit(ToolsEvent(tools=self.registry.names))
            async with self.emitter.heartbeat():
                while not state.terminated:
                    options = ProviderOptions(
                        system=system,
                        force_tool_use=force_tool_use
                        and state.iteration_count == 0
                        and len(self.registry) > 0,
                        model=model,
                    )
                    await self._step(state, specs, options)

            if state.status is AgentState.FAILED:
                await self.emitter.emit(ErrorEvent(error=state.error or "Agent run failed"))
            else:
                await self.emitter.emit(DoneEvent())
        except StreamClosedError as exc:
            logger.info(f"Client disconnected; stopping agent run: {exc}")
            state.terminated = True
            state.status = AgentState.FAILED
            state.error = state.error or "stream closed"
        return state

    async def _step(self, state: AgentLoopState, specs, options: ProviderOptions) -> None:
        state.status = AgentState.AWAITING_MODEL
        logger.info(
            f"Calling {self.provider.provider_name} (iteration {state.iteration_count + 1})",
            extra={
                "provider": self.provider.provider_name,
                "iteration": state.iteration_count,
                "turn_count": len(state.conversation),
                "tool_count": len(specs),
                "force_tool_use": options.force_tool_use,
            },
        )

        reconciler = StreamReconciler(on_text=self._emit_chunk)
        try:
            reconciled = await reconciler.reconcile(
                self.provider.send(state.conversation, specs, options)
            )
        except ProviderError as exc:
            logger.error(
                f"Provider failure: {exc}",
                extra={"provider": self.provider.provider_name, "iteration": state.iteration_count},
            )
            state.status = AgentState.FAILED
            state.error = str(exc) or exc.__class__.__name__
            state.terminated = True
            return

        state.conversation.append(reconciled.turn)
        invocations = reconciled.tool_invocations
        if not invocations:
            state.status = AgentState.DONE
            state.terminated = True
            return

        state.status = AgentState.EXECUTING_TOOLS
        results = [await self._execute(invocation) for invocation in invocations]
        state.conversation.append(Turn(role="user", content=results))
        state.iteration_count += 1

        if state.iteration_count >= self.max_iterations:
            logger.info(
                f"Reached iteration cap ({self.max_iterations}); finishing",
                extra={"iteration": state.iteration_count},
            )
            state.status = AgentState.DONE
            state.terminated = True

    async def _execute(self, invocation: ToolInvocationBlock) -> ToolResultBlock:
        await self.emitter.emit(
            ToolCallEvent(
                tool_name=invocation.name,
                args=invocation.arguments,
                tool_use_id=invocation.id,
            )
        )
        payload = await self.registry.resolve(invocation.name, invocation.arguments)

        summary = summarize_payload(payload, preview_rows=self.limits.preview_rows)
        await self.emitter.emit(
            ToolResponseEvent(
                tool_name=invocation.name,
                tool_use_id=invocation.id,
                success=summary.success,
                response=summary.response,
                data=summary.data,
            )
        )

        bounded = truncate_payload(
            payload,
            max_bytes=self.limits.max_bytes,
            max_tables=self.limits.max_tables,
            max_columns=self.limits.max_columns,
            max_rows=self.limits.max_rows,
        )
        return ToolResultBlock(invocation_id=invocation.id, payload=bounded)

    async def _emit_chunk(self, text: str) -> None:
        await self.emitter.emit(ChunkEvent(content=text))
