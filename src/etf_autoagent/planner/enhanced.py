"""Structured-output planner with duration and priority estimates.

The model is asked to wrap a JSON plan in ``<plan>`` tags. Because
``</plan>`` is also a stop sequence the closing tag is usually absent from
the reply, so parsing accepts an unterminated block.
"""

import json
import re
from typing import Optional

from pydantic import BaseModel, Field

from etf_autoagent.models.action import AgentAction
from etf_autoagent.models.base import now_ms
from etf_autoagent.models.context import AgentContext
from etf_autoagent.models.enums import ActionPriority, ActionStatus
from etf_autoagent.models.plan import AgentPlan
from etf_autoagent.observability.logging import get_logger
from etf_autoagent.observability.metrics import PLANNER_FALLBACK_TOTAL
from etf_autoagent.planner import prompts
from etf_autoagent.planner.fallback import (
    create_enhanced_fallback_actions,
    make_action_id,
)
from etf_autoagent.planner.gemini_planner import DEFAULT_MODEL, GeminiPlanner

logger = get_logger(__name__)

DEFAULT_ACTION_DURATION = 30000
PLAN_BLOCK_RE = re.compile(r"<plan>(.*?)(?:</plan>|$)", re.DOTALL)

DEFAULT_SUGGESTIONS = [
    "Continue monitoring performance",
    "Optimize gas usage",
    "Implement better error handling",
]


class PlannerConfig(BaseModel):
    """Generation settings for the enhanced planner.

    Attributes:
        model: Gemini model identifier.
        temperature: Sampling temperature for plan generation.
        max_output_tokens: Upper bound on reply length.
        top_p: Nucleus sampling cutoff.
        top_k: Top-k sampling cutoff.
    """

    model: str = Field(default=DEFAULT_MODEL)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=8192, gt=0)
    top_p: float = Field(default=0.8, ge=0.0, le=1.0)
    top_k: int = Field(default=40, gt=0)


def parse_plan_block(text: str) -> Optional[list[AgentAction]]:
    """Parses the ``<plan>`` block of a reply.

    Returns:
        The actions, or None when the reply holds no ``<plan>`` block.

    Raises:
        ValueError: If the block is not valid JSON with an ``actions`` list
            of valid action objects.
    """
    match = PLAN_BLOCK_RE.search(text)
    if not match:
        return None

    data = json.loads(match.group(1).strip())
    raw_actions = data.get("actions") if isinstance(data, dict) else None
    if not isinstance(raw_actions, list):
        raise ValueError("Plan block has no actions list")

    ts = now_ms()
    actions = []
    for index, item in enumerate(raw_actions):
        if not isinstance(item, dict):
            raise ValueError(f"Plan item {index} is not an object")
        actions.append(
            AgentAction(
                id=make_action_id(index, ts),
                type=item.get("type") or "analysis",
                description=item.get("description") or f"Action {index + 1}",
                parameters=item.get("parameters") or {},
                timestamp=ts,
                estimated_duration=item.get("estimatedDuration")
                or DEFAULT_ACTION_DURATION,
                priority=item.get("priority") or ActionPriority.MEDIUM,
            )
        )
    return actions


def total_duration(actions: list[AgentAction]) -> int:
    """Sums estimated durations, counting unknown ones as 30 seconds."""
    return sum(a.estimated_duration or DEFAULT_ACTION_DURATION for a in actions)


class EnhancedGeminiPlanner(GeminiPlanner):
    """Gemini planner with structured plans and post-execution analysis."""

    def __init__(
        self, api_key: Optional[str] = None, config: Optional[PlannerConfig] = None
    ):
        self.config = config or PlannerConfig()
        super().__init__(api_key=api_key, model_name=self.config.model)

    def create_plan(
        self, goal: str, context: Optional[AgentContext] = None
    ) -> AgentPlan:
        return self.create_advanced_plan(goal, context)

    def _fallback_plan(
        self, goal: str, context: Optional[AgentContext], reason: str
    ) -> AgentPlan:
        PLANNER_FALLBACK_TOTAL.labels(reason=reason).inc()
        return AgentPlan.new(goal, create_enhanced_fallback_actions(goal, context))

    def create_advanced_plan(
        self, goal: str, context: Optional[AgentContext] = None
    ) -> AgentPlan:
        """Builds a plan whose actions carry duration and priority.

        Args:
            goal: Free-text user goal.
            context: Wallet and portfolio snapshot.

        Returns:
            An AgentPlan in the 'planning' state. Falls back to the enhanced
            templates on any failure.
        """
        if not self.initialized:
            return self._fallback_plan(goal, context, "no_api_key")

        try:
            text = self._generate(
                prompts.build_advanced_system_instruction(context),
                prompts.build_planning_prompt(goal, context),
                self.config.temperature,
                max_output_tokens=self.config.max_output_tokens,
                top_p=self.config.top_p,
                top_k=self.config.top_k,
                candidate_count=1,
                stop_sequences=["</plan>"],
            )
        except Exception as e:
            logger.error(
                "Error creating advanced plan",
                extra={"extra_fields": {"error": str(e)}},
            )
            return self._fallback_plan(goal, context, "model_error")

        try:
            actions = parse_plan_block(text)
        except Exception as e:
            logger.warning(
                "Could not parse structured plan",
                extra={"extra_fields": {"error": str(e)}},
            )
            return self._fallback_plan(goal, context, "parse_error")

        if not actions:
            return self._fallback_plan(goal, context, "empty")

        plan = AgentPlan.new(goal, actions)
        logger.info(
            "Advanced plan created",
            extra={
                "extra_fields": {
                    "plan_id": plan.id,
                    "actions": len(actions),
                    "estimated_duration": total_duration(actions),
                }
            },
        )
        return plan

    def analyze_action_performance(self, action: AgentAction) -> str:
        if not self.initialized:
            return "Performance analysis unavailable - Gemini agent not initialized"
        try:
            text = self._generate(
                prompts.PERFORMANCE_INSTRUCTION,
                prompts.build_performance_request(action),
                0.4,
            )
            return text or "Analysis completed"
        except Exception as e:
            logger.error(
                "Error analyzing action performance",
                extra={"extra_fields": {"error": str(e), "action_id": action.id}},
            )
            return "Performance analysis failed"

    def generate_optimization_suggestions(
        self, completed_plans: list[AgentPlan]
    ) -> list[str]:
        """Asks the model for improvements based on finished plans.

        Args:
            completed_plans: Plans that have reached a terminal status.

        Returns:
            Suggestion strings; canned ones when the model is unavailable or
            its reply holds no JSON array.
        """
        if not self.initialized or not completed_plans:
            return ["No optimization data available"]

        summary = []
        for plan in completed_plans:
            done = sum(1 for a in plan.actions if a.status == ActionStatus.COMPLETED)
            summary.append(
                {
                    "goal": plan.goal,
                    "actionsCount": len(plan.actions),
                    "successRate": done / len(plan.actions) if plan.actions else 0.0,
                    "totalDuration": plan.updated - plan.created,
                }
            )

        try:
            text = self._generate(
                prompts.OPTIMIZATION_INSTRUCTION,
                prompts.build_optimization_request(summary),
                0.3,
            )
            start, end = text.find("["), text.rfind("]")
            if start == -1 or end < start:
                return list(DEFAULT_SUGGESTIONS)
            return [str(s) for s in json.loads(text[start : end + 1])]
        except Exception as e:
            logger.error(
                "Error generating optimization suggestions",
                extra={"extra_fields": {"error": str(e)}},
            )
            return ["Optimization analysis failed"]
