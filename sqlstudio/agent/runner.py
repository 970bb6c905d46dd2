"""
Request-level entry point for agent runs.

Turns a StreamRequest into a configured AgentLoopController: provider from
the factory, tools bound to the request's connection, a system prompt with
schema context, and replayed history. Setup failures are reported as a
single error event; nothing here raises to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlstudio.agent.events import ErrorEvent, EventEmitter, EventSink, StreamClosedError
from sqlstudio.agent.loop import AgentLoopController, AgentLoopState, ResultLimits
from sqlstudio.agent.prompts import build_system_prompt
from sqlstudio.config import Settings
from sqlstudio.connectors.base import ConnectorError
from sqlstudio.database.registry import ConnectionRegistry, UnknownConnectionError
from sqlstudio.llm.factory import LLMProviderFactory, ProviderConfigurationError
from sqlstudio.llm.models import TextBlock, Turn
from sqlstudio.models.api import HistoryMessage, StreamRequest
from sqlstudio.prompts.loader import PromptLoader
from sqlstudio.tools.base import ToolContext
from sqlstudio.tools.registry import ToolCatalog, ToolRegistry

logger = logging.getLogger(__name__)


def history_to_turns(history: Sequence[HistoryMessage]) -> list[Turn]:
    """
    Convert replayed text history into conversation turns.

    Leading assistant messages are dropped and consecutive messages with the
    same role are merged, so roles alternate starting with user.
    """
    turns: list[Turn] = []
    for message in history:
        if not message.content.strip():
            continue
        if not turns and message.role == "assistant":
            continue
        if turns and turns[-1].role == message.role:
            merged = f"{turns[-1].text}\n\n{message.content}"
            turns[-1] = Turn(role=message.role, content=[TextBlock(text=merged)])
            continue
        turns.append(Turn(role=message.role, content=[TextBlock(text=message.content)]))
    return turns


def result_limits(settings: Settings) -> ResultLimits:
    agent = settings.agent
    return ResultLimits(
        max_bytes=agent.tool_result_max_bytes,
        max_tables=agent.truncate_max_tables,
        max_columns=agent.truncate_max_columns,
        max_rows=agent.truncate_max_rows,
        preview_rows=agent.preview_rows,
    )


async def _report(emitter: EventEmitter, message: str) -> None:
    try:
        await emitter.emit(ErrorEvent(error=message))
    except StreamClosedError:
        logger.info("Client disconnected before the error could be reported")


async def stream_agent_response(
    request: StreamRequest,
    sink: EventSink,
    *,
    settings: Settings,
    connections: ConnectionRegistry | None,
    prompt_loader: PromptLoader | None = None,
) -> AgentLoopState | None:
    """
    Run one agent request, writing events to sink.

    Returns the final loop state, or None when setup failed before the loop
    started.
    """
    emitter = EventEmitter(sink, heartbeat_interval=settings.agent.heartbeat_interval)

    try:
        provider = LLMProviderFactory.create_provider(
            request.provider,
            settings.llm,
            credentials=request.credentials,
            model=request.model,
        )
    except ProviderConfigurationError as exc:
        logger.warning(f"Provider setup failed: {exc}")
        await _report(emitter, str(exc))
        return None

    registry = ToolRegistry()
    database_type = None
    schema_name = request.schema_name
    connector = None
    if request.connection_id:
        if connections is None:
            await _report(emitter, "No database connections are configured")
            return None
        try:
            connection = connections.get(request.connection_id)
        except UnknownConnectionError as exc:
            await _report(emitter, str(exc))
            return None

        database_type = connection.database_type
        schema_name = schema_name or connection.default_schema
        ctx = ToolContext(
            connection_id=connection.connection_id,
            default_schema=schema_name,
            database=request.database,
            read_only_sql=settings.tools.read_only_sql,
            connections=connections,
        )
        registry = ToolCatalog.bind(ctx)
        try:
            connector = await connections.get_connector(connection.connection_id, request.database)
        except ConnectorError as exc:
            logger.warning(f"Could not connect for schema context: {exc}")

    try:
        system = await build_system_prompt(
            loader=prompt_loader or PromptLoader(),
            tool_names=registry.names,
            database_type=database_type,
            schema_name=schema_name,
            connector=connector,
            requested_tables=request.tables,
            max_tables=settings.agent.schema_context_max_tables,
        )
        controller = AgentLoopController(
            provider,
            registry,
            emitter,
            max_iterations=settings.agent.max_iterations,
            limits=result_limits(settings),
        )
        history = history_to_turns(request.history)
        query = request.query
        if history and history[-1].role == "user":
            query = f"{history.pop().text}\n\n{query}"
        return await controller.run(
            query,
            system=system,
            history=history,
            force_tool_use=settings.agent.force_tool_use,
            model=request.model,
        )
    except Exception as exc:
        logger.exception(f"Agent run failed unexpectedly: {exc}")
        if not emitter.closed:
            await _report(emitter, f"Internal error: {exc}")
        return None
