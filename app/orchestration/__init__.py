"""
Orchestration Module

Bounded tool-calling loop for the SQL agent.

This module provides:
- state: Pure state machine (phases, events, step function)
- ToolOrchestrator: Async driver calling the model and the tools
- sanitize_history: Removes pending tool calls before resubmission
- classify_response: Decides between table and prose rendering
"""

from .orchestrator import OrchestrationResult, ToolOrchestrator
from .response_shape import ResponseShape, ShapeDecision, classify_response, qualifies_as_table
from .sanitizer import sanitize_history
from .state import (
    Cancelled,
    InvalidTransitionError,
    ModelReplied,
    OrchestrationState,
    Phase,
    TimedOut,
    ToolsResolved,
    start,
    step,
)

__all__ = [
    # Driver
    "OrchestrationResult",
    "ToolOrchestrator",
    # State machine
    "Cancelled",
    "InvalidTransitionError",
    "ModelReplied",
    "OrchestrationState",
    "Phase",
    "TimedOut",
    "ToolsResolved",
    "start",
    "step",
    # Helpers
    "ResponseShape",
    "ShapeDecision",
    "classify_response",
    "qualifies_as_table",
    "sanitize_history",
]
