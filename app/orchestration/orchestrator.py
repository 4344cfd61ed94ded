"""
Tool Orchestrator - async driver of the orchestration state machine.

Calls the model, dispatches the tools it requests and feeds the outcomes
back to `step` until a terminal phase is reached. All decisions about the
next phase are made by `app.orchestration.state.step`.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from app.core.interfaces.llm import IToolCallingLLM, ModelReply, TextDelta
from app.core.tools.sql_agent.registry import SQLAgentToolbox
from app.models.chat import ChatStreamEvent, StreamEventType
from app.models.conversation import ConversationMessage, ToolCall
from app.orchestration.response_shape import ShapeDecision, classify_response
from app.orchestration.state import (
    Cancelled,
    ModelReplied,
    OrchestrationState,
    Phase,
    TimedOut,
    ToolsResolved,
    start,
    step,
)

logger = logging.getLogger(__name__)


@dataclass
class OrchestrationResult:
    """Outcome of one orchestration."""

    status: Phase
    text: str
    shape: ShapeDecision
    steps: int
    incomplete: bool
    stop_reason: Optional[str] = None
    error: Optional[str] = None
    trace: List[ToolCall] = field(default_factory=list)
    history: List[ConversationMessage] = field(default_factory=list)

    @classmethod
    def from_state(cls, state: OrchestrationState) -> "OrchestrationResult":
        return cls(
            status=state.phase,
            text=state.final_text,
            shape=classify_response(state.trace),
            steps=state.steps,
            incomplete=state.incomplete,
            stop_reason=state.stop_reason,
            error=state.error,
            trace=list(state.trace),
            history=list(state.history),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "text": self.text if self.shape.show_text else "",
            "shape": self.shape.shape.value,
            "table": self.shape.rows if not self.shape.show_text else None,
            "incomplete": self.incomplete,
            "stop_reason": self.stop_reason,
            "steps": self.steps,
            "error": self.error,
        }


class ToolOrchestrator:
    """
    Bounded model/tool loop for one request.

    Single Responsibility: Drive the state machine with real collaborators.
    Dependency Inversion: Depends on IToolCallingLLM and the toolbox.

    Bounds:
    - max_steps model/tool round trips
    - timeout_seconds of wall-clock time for the whole run
    - cancel_event stops new steps; in-flight tool calls are allowed to finish
    """

    def __init__(
        self,
        llm: IToolCallingLLM,
        toolbox: SQLAgentToolbox,
        system_prompt: str,
        max_steps: int = 15,
        timeout_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.llm = llm
        self.toolbox = toolbox
        self.system_prompt = system_prompt
        self.max_steps = max_steps
        self.timeout_seconds = timeout_seconds
        self._clock = clock

    async def run(
        self,
        history: List[ConversationMessage],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[ChatStreamEvent]:
        """
        Run the loop, streaming events as they happen.

        The last event is always FINISH, carrying the OrchestrationResult
        under metadata["result"].

        Raises:
            TransportError: If the model or the database cannot be reached
        """
        state = start(history, self.max_steps)
        deadline = self._clock() + self.timeout_seconds
        logger.info(
            f"Orchestration started: model={self.llm.provider.value}/{self.llm.model_name}, "
            f"{len(state.history)} messages, max_steps={self.max_steps}"
        )

        while not state.is_terminal:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Orchestration cancelled by caller at step {state.steps}")
                state = step(state, Cancelled())
                break

            if state.phase == Phase.AWAITING_MODEL:
                reply: Optional[ModelReply] = None
                streamed: List[str] = []
                try:
                    async for chunk in self._stream_model(state, deadline):
                        if isinstance(chunk, TextDelta):
                            streamed.append(chunk.text)
                            yield ChatStreamEvent(event_type=StreamEventType.TEXT, text=chunk.text)
                        else:
                            reply = chunk
                except asyncio.TimeoutError:
                    logger.warning(f"Orchestration timed out waiting for the model at step {state.steps}")
                    state = step(state, TimedOut(text="".join(streamed)))
                    break

                reply = reply or ModelReply()
                state = step(state, ModelReplied(text=reply.text, tool_calls=tuple(reply.tool_calls)))

                if state.phase == Phase.DISPATCHING_TOOL:
                    for call in state.pending_calls:
                        yield ChatStreamEvent(
                            event_type=StreamEventType.TOOL_CALL_START,
                            tool_call=call,
                            metadata={"step": state.steps},
                        )

            else:
                dispatched_step = state.steps
                resolved, timed_out = await self._dispatch_all(state.pending_calls, deadline)
                if timed_out:
                    logger.warning(f"Orchestration timed out during tool dispatch at step {state.steps}")
                    state = step(state, TimedOut(resolved=resolved))
                else:
                    state = step(state, ToolsResolved(calls=resolved))

                for call in state.history[-1].tool_calls:
                    yield ChatStreamEvent(
                        event_type=StreamEventType.TOOL_CALL_RESULT,
                        tool_call=call,
                        metadata={"step": dispatched_step},
                    )

        result = OrchestrationResult.from_state(state)
        logger.info(
            f"Orchestration finished: status={result.status.value}, steps={result.steps}, "
            f"stop_reason={result.stop_reason}, shape={result.shape.shape.value}"
        )

        if result.status == Phase.FAILED:
            yield ChatStreamEvent(
                event_type=StreamEventType.ERROR,
                text=result.error,
                metadata={"error": "OrchestrationFailed", "message": result.error},
            )

        yield ChatStreamEvent(event_type=StreamEventType.FINISH, metadata={"result": result})

    async def complete(
        self,
        history: List[ConversationMessage],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> OrchestrationResult:
        """Run the loop to the end and return only the result."""
        result: Optional[OrchestrationResult] = None
        async for event in self.run(history, cancel_event):
            if event.event_type == StreamEventType.FINISH:
                result = event.metadata["result"]
        if result is None:
            raise RuntimeError("Orchestration ended without a result")
        return result

    def _remaining(self, deadline: float) -> float:
        return deadline - self._clock()

    async def _stream_model(self, state: OrchestrationState, deadline: float) -> AsyncIterator[Any]:
        """Relay the model stream, bounding every chunk by the remaining time."""
        stream = self.llm.stream_reply(
            list(state.history),
            system_prompt=self.system_prompt,
            tools=self.toolbox.definitions,
        )
        iterator = stream.__aiter__()
        try:
            while True:
                remaining = self._remaining(deadline)
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                try:
                    chunk = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    return
                yield chunk
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _dispatch_all(
        self,
        pending: Tuple[ToolCall, ...],
        deadline: float,
    ) -> Tuple[Tuple[ToolCall, ...], bool]:
        """
        Dispatch every call of the step concurrently and wait for all of them.

        Returns the calls that reached a terminal outcome and whether the
        deadline cut the batch short. Transport errors propagate.
        """
        # The state machine owns the pending calls; tools resolve copies
        tasks = [asyncio.ensure_future(self.toolbox.dispatch(call.model_copy(deep=True))) for call in pending]

        remaining = self._remaining(deadline)
        if remaining <= 0:
            done, not_done = set(), set(tasks)
        else:
            done, not_done = await asyncio.wait(tasks, timeout=remaining)

        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)

        resolved: List[ToolCall] = []
        for task in tasks:
            if task in done:
                # Re-raises transport failures from the tool
                resolved.append(task.result())

        return tuple(resolved), bool(not_done)
