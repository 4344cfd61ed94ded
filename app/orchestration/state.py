"""
Orchestration state machine.

`step(state, event)` is a pure transition function: it never calls the model
or the database and never mutates its inputs, so every transition can be
exercised without a live collaborator. The async driver in
`app.orchestration.orchestrator` feeds it events.

    AWAITING_MODEL --ModelReplied(calls)--> DISPATCHING_TOOL
    AWAITING_MODEL --ModelReplied(no calls)--> DONE
    AWAITING_MODEL --ModelReplied(unknown tool)--> FAILED
    DISPATCHING_TOOL --ToolsResolved--> AWAITING_MODEL | STEP_BUDGET_EXCEEDED
    any non-terminal --TimedOut--> STEP_BUDGET_EXCEEDED (stop_reason="timeout")
    any non-terminal --Cancelled--> CANCELLED
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from app.core.interfaces.llm import RequestedToolCall
from app.core.tools.sql_agent.registry import ToolName
from app.models.conversation import ConversationMessage, ToolCall
from app.orchestration.sanitizer import sanitize_history


class Phase(str, Enum):
    """Orchestration phases."""

    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOL = "dispatching_tool"
    DONE = "done"
    STEP_BUDGET_EXCEEDED = "step_budget_exceeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_PHASES = frozenset({Phase.DONE, Phase.STEP_BUDGET_EXCEEDED, Phase.FAILED, Phase.CANCELLED})


class InvalidTransitionError(Exception):
    """An event was applied in a phase that does not accept it."""


# ============================================================================
# Events
# ============================================================================


@dataclass(frozen=True)
class ModelReplied:
    """The model finished one turn."""

    text: str = ""
    tool_calls: Tuple[RequestedToolCall, ...] = ()


@dataclass(frozen=True)
class ToolsResolved:
    """Every call of the current step reached a terminal outcome."""

    calls: Tuple[ToolCall, ...]


@dataclass(frozen=True)
class TimedOut:
    """
    The wall-clock ceiling was reached.

    `resolved` holds calls that finished in time; `text` is what the model
    streamed in the turn that was cut short.
    """

    resolved: Tuple[ToolCall, ...] = ()
    text: str = ""


@dataclass(frozen=True)
class Cancelled:
    """The caller aborted the request."""


Event = Union[ModelReplied, ToolsResolved, TimedOut, Cancelled]


# ============================================================================
# State
# ============================================================================


@dataclass(frozen=True)
class OrchestrationState:
    """Immutable snapshot of one orchestration."""

    phase: Phase
    history: Tuple[ConversationMessage, ...]
    max_steps: int
    steps: int = 0
    pending_calls: Tuple[ToolCall, ...] = ()
    trace: Tuple[ToolCall, ...] = ()
    partial_text: str = ""
    final_text: str = ""
    incomplete: bool = False
    stop_reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


def start(history: List[ConversationMessage], max_steps: int) -> OrchestrationState:
    """Initial state: sanitized history, waiting for the model."""
    if max_steps < 1:
        raise ValueError("max_steps must be at least 1")
    return OrchestrationState(
        phase=Phase.AWAITING_MODEL,
        history=tuple(sanitize_history(history)),
        max_steps=max_steps,
    )


def _known_by_default(name: str) -> bool:
    return name in ToolName._value2member_map_


def step(
    state: OrchestrationState,
    event: Event,
    is_known_tool: Callable[[str], bool] = _known_by_default,
) -> OrchestrationState:
    """
    Apply one event and return the next state.

    Raises:
        InvalidTransitionError: If the event is not accepted in the current phase
    """
    if state.is_terminal:
        # Late timeout/cancel signals racing a finished run are ignored
        if isinstance(event, (TimedOut, Cancelled)):
            return state
        raise InvalidTransitionError(f"No transitions out of terminal phase {state.phase.value}")

    if isinstance(event, Cancelled):
        return _cancel(state)
    if isinstance(event, TimedOut):
        return _time_out(state, event)

    if state.phase == Phase.AWAITING_MODEL and isinstance(event, ModelReplied):
        return _on_model_replied(state, event, is_known_tool)
    if state.phase == Phase.DISPATCHING_TOOL and isinstance(event, ToolsResolved):
        return _on_tools_resolved(state, event)

    raise InvalidTransitionError(f"{type(event).__name__} is not accepted in phase {state.phase.value}")


def _on_model_replied(
    state: OrchestrationState,
    event: ModelReplied,
    is_known_tool: Callable[[str], bool],
) -> OrchestrationState:
    partial_text = event.text or state.partial_text

    if not event.tool_calls:
        answer = ConversationMessage(role="assistant", content=event.text)
        return replace(
            state,
            phase=Phase.DONE,
            history=state.history + (answer,),
            partial_text=partial_text,
            final_text=event.text,
            stop_reason="completed",
        )

    unknown = [requested.name for requested in event.tool_calls if not is_known_tool(requested.name)]
    if unknown:
        return replace(
            state,
            phase=Phase.FAILED,
            partial_text=partial_text,
            final_text=partial_text,
            stop_reason="unknown_tool",
            error=f"Unknown tool requested by the model: {', '.join(unknown)}",
        )

    calls = tuple(
        ToolCall(id=requested.id, name=requested.name, arguments=dict(requested.arguments))
        for requested in event.tool_calls
    )
    request = ConversationMessage(role="assistant", content=event.text, tool_calls=list(calls))
    return replace(
        state,
        phase=Phase.DISPATCHING_TOOL,
        history=state.history + (request,),
        pending_calls=calls,
        partial_text=partial_text,
    )


def _on_tools_resolved(state: OrchestrationState, event: ToolsResolved) -> OrchestrationState:
    expected = {call.id for call in state.pending_calls}
    received = {call.id for call in event.calls}
    if expected != received:
        raise InvalidTransitionError(f"Resolved calls {sorted(received)} do not match pending {sorted(expected)}")
    if any(call.is_pending for call in event.calls):
        raise InvalidTransitionError("Partial batches are not accepted: every call must be resolved")

    resolved = _in_request_order(state.pending_calls, event.calls)
    history = _replace_last_request(state.history, resolved)
    steps = state.steps + 1

    if steps >= state.max_steps:
        return replace(
            state,
            phase=Phase.STEP_BUDGET_EXCEEDED,
            history=history,
            steps=steps,
            pending_calls=(),
            trace=state.trace + resolved,
            final_text=state.partial_text,
            incomplete=True,
            stop_reason="max_steps",
        )

    return replace(
        state,
        phase=Phase.AWAITING_MODEL,
        history=history,
        steps=steps,
        pending_calls=(),
        trace=state.trace + resolved,
    )


def _time_out(state: OrchestrationState, event: TimedOut) -> OrchestrationState:
    history = state.history
    trace = state.trace
    partial_text = event.text or state.partial_text

    if state.phase == Phase.DISPATCHING_TOOL:
        finished = {call.id: call for call in event.resolved if call.is_terminal}
        resolved = tuple(
            finished.get(call.id) or call.model_copy(deep=True).fail("timed out") for call in state.pending_calls
        )
        history = _replace_last_request(history, resolved)
        trace = trace + resolved

    return replace(
        state,
        phase=Phase.STEP_BUDGET_EXCEEDED,
        history=history,
        pending_calls=(),
        trace=trace,
        partial_text=partial_text,
        final_text=partial_text,
        incomplete=True,
        stop_reason="timeout",
    )


def _cancel(state: OrchestrationState) -> OrchestrationState:
    return replace(
        state,
        phase=Phase.CANCELLED,
        history=tuple(sanitize_history(list(state.history))),
        pending_calls=(),
        final_text=state.partial_text,
        incomplete=True,
        stop_reason="cancelled",
    )


def _in_request_order(pending: Tuple[ToolCall, ...], resolved: Tuple[ToolCall, ...]) -> Tuple[ToolCall, ...]:
    by_id = {call.id: call for call in resolved}
    return tuple(by_id[call.id] for call in pending)


def _replace_last_request(
    history: Tuple[ConversationMessage, ...],
    resolved: Tuple[ToolCall, ...],
) -> Tuple[ConversationMessage, ...]:
    """Swap the pending calls of the latest assistant request for their outcomes."""
    last = history[-1]
    return history[:-1] + (last.model_copy(update={"tool_calls": list(resolved)}),)
