"""
Streaming assistant endpoint.

POST /api/v1/ai/query-stream runs the agent for one query and streams its
events as Server-Sent Events. The agent runs in a background task writing
into an SSEChannel; the response body drains the channel.
"""

import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from sqlstudio.agent.runner import stream_agent_response
from sqlstudio.api.streaming import SSEChannel
from sqlstudio.config import get_settings
from sqlstudio.models.api import StreamRequest

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Strong references so running agent tasks are not garbage collected.
_running_tasks: set[asyncio.Task] = set()


async def _run_agent(request: StreamRequest, channel: SSEChannel) -> None:
    from sqlstudio.api.main import app_state

    try:
        await stream_agent_response(
            request,
            channel.send,
            settings=get_settings(),
            connections=app_state.get("connections"),
        )
    finally:
        channel.finish()


@router.post("/ai/query-stream")
async def query_stream(request: StreamRequest) -> StreamingResponse:
    """
    Stream an agent answer.

    Frames look like `data: {"type": "chunk", "content": "..."}`; the last
    frame is `done` on success or `error` on failure.
    """
    logger.info(
        "Agent stream requested",
        extra={
            "connection_id": request.connection_id,
            "provider": request.provider,
            "model": request.model,
        },
    )
    channel = SSEChannel()
    task = asyncio.create_task(_run_agent(request, channel))
    _running_tasks.add(task)
    task.add_done_callback(_running_tasks.discard)

    return StreamingResponse(
        channel.frames(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
