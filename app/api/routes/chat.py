import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app.api.dependencies import enforce_rate_limit, get_orchestrator
from app.core.exceptions import SQLAgentError
from app.models.chat import ChatCompletionResponse, ChatRequest, ChatStreamEvent, ErrorResponse, StreamEventType
from app.orchestration import OrchestrationResult, Phase, ToolOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

DISCONNECT_POLL_SECONDS = 0.5

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def _to_sse(event: ChatStreamEvent) -> bytes:
    payload: Dict[str, Any] = event.model_dump(mode="json", exclude={"metadata"}, exclude_none=True)
    metadata = dict(event.metadata)
    result = metadata.pop("result", None)
    if isinstance(result, OrchestrationResult):
        metadata["result"] = result.to_dict()
    payload["metadata"] = metadata
    return f"data: {json.dumps(payload, default=str)}\n\n".encode("utf-8")


async def _watch_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    """Set the cancel flag once the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling orchestration")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post(
    "",
    responses={429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    dependencies=[Depends(enforce_rate_limit)],
)
async def stream_chat(
    body: ChatRequest,
    request: Request,
    orchestrator: ToolOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> StreamingResponse:
    """
    Answer the last message of a conversation, streaming progress as SSE.

    Events: text, tool_call_start, tool_call_result, error and a final
    finish event carrying the rendering decision. Rate limiting happens
    before the stream opens so a denial is a plain 429.
    """
    logger.info(f"Streaming chat request with {len(body.messages)} messages")

    async def generate_sse_stream() -> AsyncIterator[bytes]:
        cancel_event = asyncio.Event()
        watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
        try:
            async for event in orchestrator.run(body.messages, cancel_event):
                yield _to_sse(event)
        except SQLAgentError as e:
            # Headers are already sent; the failure travels as an event
            logger.error(f"Orchestration aborted: {e.code}: {e.message}")
            yield _to_sse(ChatStreamEvent(event_type=StreamEventType.ERROR, text=e.message, metadata=e.to_dict()))
        except Exception as e:
            logger.error(f"Unexpected error in chat stream: {e}", exc_info=True)
            error = {"error": "Server Error", "message": str(e)}
            yield _to_sse(ChatStreamEvent(event_type=StreamEventType.ERROR, text=str(e), metadata=error))
        finally:
            cancel_event.set()
            watcher.cancel()

    return StreamingResponse(generate_sse_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post(
    "/complete",
    response_model=ChatCompletionResponse,
    responses={429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    dependencies=[Depends(enforce_rate_limit)],
)
async def complete_chat(
    body: ChatRequest,
    orchestrator: ToolOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> ChatCompletionResponse:
    """
    Answer the last message of a conversation in one JSON response.

    Transport failures propagate to the exception handlers as a 500.
    """
    result = await orchestrator.complete(body.messages)

    if result.status == Phase.FAILED:
        raise SQLAgentError(result.error or "Orchestration failed", code="OrchestrationFailed")

    data = result.to_dict()
    return ChatCompletionResponse(
        status=data["status"],
        text=data["text"],
        shape=data["shape"],
        table=data["table"],
        incomplete=data["incomplete"],
        stop_reason=data["stop_reason"],
        steps=data["steps"],
        tool_calls=result.trace,
    )
