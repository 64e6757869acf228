"""Data models for agent actions and their execution outcomes.

An action is one typed operation inside a plan. The planner creates it in
the ``pending`` state and the executor mutates it in place as it moves
through ``executing`` to ``completed`` or ``failed``.
"""

from typing import Any, Optional

from pydantic import Field

from etf_autoagent.models.base import ModelBase, now_ms
from etf_autoagent.models.enums import ActionPriority, ActionStatus, ActionType


class AgentAction(ModelBase):
    """A single typed operation proposed by the planner.

    Attributes:
        id: Synthetic identifier, ``action_{ms}_{index}``.
        type: The operation tag used for executor dispatch.
        description: Human-readable summary shown to the user.
        parameters: Free-form handler inputs, passed through unchecked.
        status: Current lifecycle state.
        result: Handler payload once completed.
        error: Failure message once failed.
        timestamp: Epoch milliseconds of the last status change.
        chain_id: Optional chain hint supplied by the planner.
        tx_hash: Transaction hash reported by the chain adapter.
        estimated_duration: Expected run time in milliseconds.
        priority: Relative urgency.
    """

    id: str = Field(..., description="Synthetic identifier, action_{ms}_{index}.")
    type: ActionType = Field(..., description="Operation tag used for dispatch.")
    description: str = Field(..., description="Human-readable summary.")
    parameters: dict[str, Any] = Field(
        default_factory=dict, description="Free-form handler inputs."
    )
    status: ActionStatus = Field(
        default=ActionStatus.PENDING, description="Current lifecycle state."
    )
    result: Optional[Any] = Field(
        default=None, description="Handler payload once completed."
    )
    error: Optional[str] = Field(
        default=None, description="Failure message once failed."
    )
    timestamp: int = Field(
        default_factory=now_ms,
        description="Epoch milliseconds of the last status change.",
    )
    chain_id: Optional[str] = Field(
        default=None, description="Optional chain hint."
    )
    tx_hash: Optional[str] = Field(
        default=None, description="Transaction hash from the chain adapter."
    )
    estimated_duration: Optional[int] = Field(
        default=None, description="Expected run time in milliseconds."
    )
    priority: Optional[ActionPriority] = Field(
        default=None, description="Relative urgency."
    )


class ExecutionResult(ModelBase):
    """Outcome of running one action handler.

    Attributes:
        success: Whether the handler considered the action done.
        tx_hash: Primary transaction hash, when a transaction was sent.
        result: Handler-specific payload.
        error: Failure message when ``success`` is False.
    """

    success: bool
    tx_hash: Optional[str] = None
    result: Optional[Any] = None
    error: Optional[str] = None
