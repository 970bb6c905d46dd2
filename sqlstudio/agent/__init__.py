"""Agent tool-calling loop, stream reconciliation and event output."""

from sqlstudio.agent.events import (
    AgentEvent,
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    EventEmitter,
    HeartbeatEvent,
    StreamClosedError,
    ToolCallEvent,
    ToolResponseEvent,
    ToolsEvent,
)
from sqlstudio.agent.loop import AgentLoopController, AgentLoopState, AgentState, ResultLimits
from sqlstudio.agent.reconciler import ReconciledTurn, StreamReconciler
from sqlstudio.agent.results import summarize_payload, truncate_payload
from sqlstudio.agent.runner import stream_agent_response

__all__ = [
    "AgentEvent",
    "AgentLoopController",
    "AgentLoopState",
    "AgentState",
    "ChunkEvent",
    "DoneEvent",
    "ErrorEvent",
    "EventEmitter",
    "HeartbeatEvent",
    "ReconciledTurn",
    "ResultLimits",
    "StreamClosedError",
    "StreamReconciler",
    "ToolCallEvent",
    "ToolResponseEvent",
    "ToolsEvent",
    "stream_agent_response",
    "summarize_payload",
    "truncate_payload",
]
