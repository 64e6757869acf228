"""Data models for multi-step agent plans.

A plan groups the ordered actions generated for one user goal. It lives in
memory for the duration of a request and is never persisted.
"""

from pydantic import Field

from etf_autoagent.models.action import AgentAction
from etf_autoagent.models.base import ModelBase, now_ms
from etf_autoagent.models.enums import ActionStatus, PlanStatus


class AgentPlan(ModelBase):
    """An ordered list of actions generated for one goal.

    Attributes:
        id: Synthetic identifier, ``plan_{ms}``.
        goal: The user's free-text goal.
        actions: Actions in execution order.
        status: Current lifecycle state.
        created: Epoch milliseconds at creation.
        updated: Epoch milliseconds of the last status change.
    """

    id: str = Field(..., description="Synthetic identifier, plan_{ms}.")
    goal: str = Field(..., description="The user's free-text goal.")
    actions: list[AgentAction] = Field(
        default_factory=list, description="Actions in execution order."
    )
    status: PlanStatus = Field(
        default=PlanStatus.PLANNING, description="Current lifecycle state."
    )
    created: int = Field(default_factory=now_ms)
    updated: int = Field(default_factory=now_ms)

    def derive_status(self) -> PlanStatus:
        """Terminal status implied by the actions.

        Returns:
            COMPLETED when every action completed, FAILED otherwise.
        """
        if all(a.status == ActionStatus.COMPLETED for a in self.actions):
            return PlanStatus.COMPLETED
        return PlanStatus.FAILED

    def touch(self) -> None:
        self.updated = now_ms()

    @classmethod
    def new(cls, goal: str, actions: list[AgentAction]) -> "AgentPlan":
        ts = now_ms()
        return cls(
            id=f"plan_{ts}",
            goal=goal,
            actions=actions,
            status=PlanStatus.PLANNING,
            created=ts,
            updated=ts,
        )
