"""Abstract base class for goal planners.

A planner turns a user's free-text goal and a read-only portfolio context
into an ordered plan of typed actions. Implementations must never raise on
upstream failures; they degrade to keyword templates instead.
"""

from abc import ABC, abstractmethod
from typing import Optional

from etf_autoagent.models.context import AgentContext
from etf_autoagent.models.plan import AgentPlan


class PlannerAdapter(ABC):
    """Interface the API layer and CLI use to obtain plans."""

    @abstractmethod
    def create_plan(
        self, goal: str, context: Optional[AgentContext] = None
    ) -> AgentPlan:
        """Builds a plan for the goal.

        Args:
            goal: Free-text user goal.
            context: Wallet and portfolio snapshot. Defaults to an empty
                context.

        Returns:
            An AgentPlan in the 'planning' state with at least one action.
        """
        pass  # pragma: no cover
