"""Gemini-based implementation of the goal planner.

This module asks a Gemini model for a JSON array of actions and converts the
reply into an AgentPlan. Every failure on the way (no API key, transport or
model error, unparseable reply, empty reply) degrades to the keyword
templates in :mod:`etf_autoagent.planner.fallback`.
"""

import json
from typing import Any, Optional

import google.generativeai as genai

from etf_autoagent.models.action import AgentAction
from etf_autoagent.models.base import now_ms
from etf_autoagent.models.context import AgentContext
from etf_autoagent.models.plan import AgentPlan
from etf_autoagent.observability.logging import get_logger
from etf_autoagent.observability.metrics import (
    LLM_TOKEN_USAGE_TOTAL,
    PLANNER_FALLBACK_TOTAL,
)
from etf_autoagent.planner import prompts
from etf_autoagent.planner.adapter import PlannerAdapter
from etf_autoagent.planner.fallback import create_fallback_actions, make_action_id

logger = get_logger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"
PLAN_TEMPERATURE = 0.3


def parse_actions(text: str) -> list[AgentAction]:
    """Extracts actions from the first-to-last bracketed span of a reply.

    Args:
        text: Raw model output, possibly wrapped in prose or code fences.

    Returns:
        Parsed actions, empty when the reply holds no JSON array.

    Raises:
        ValueError: If the span is not a JSON array of objects, or an item
            fails model validation (e.g. an unknown action type).
    """
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end < start:
        return []

    raw = json.loads(text[start : end + 1])
    if not isinstance(raw, list):
        raise ValueError("Plan payload is not a JSON array")

    ts = now_ms()
    actions = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Plan item {index} is not an object")
        actions.append(
            AgentAction(
                id=make_action_id(index, ts),
                type=item.get("type") or "analysis",
                description=item.get("description")
                or item.get("name")
                or f"Action {index + 1}",
                parameters=item.get("parameters") or {},
                timestamp=ts,
            )
        )
    return actions


class GeminiPlanner(PlannerAdapter):
    """Planner backed by a single Gemini ``generate_content`` call."""

    def __init__(self, api_key: Optional[str] = None, model_name: str = DEFAULT_MODEL):
        """Initializes the planner.

        Args:
            api_key: Gemini API key. Without one every call takes the
                offline path.
            model_name: The identifier of the Gemini model to use.
        """
        self.model_name = model_name
        self.initialized = bool(api_key)
        if api_key:
            genai.configure(api_key=api_key)

    def _generate(
        self,
        system_instruction: str,
        contents: str,
        temperature: float,
        **generation_options: Any,
    ) -> str:
        model = genai.GenerativeModel(
            model_name=self.model_name,
            system_instruction=system_instruction,
        )
        response = model.generate_content(
            contents,
            generation_config={"temperature": temperature, **generation_options},
        )

        usage = getattr(response, "usage_metadata", None)
        tokens = getattr(usage, "total_token_count", None)
        if isinstance(tokens, int) and tokens > 0:
            LLM_TOKEN_USAGE_TOTAL.labels(model=self.model_name).inc(tokens)

        return response.text or ""

    def _fallback_plan(
        self, goal: str, context: Optional[AgentContext], reason: str
    ) -> AgentPlan:
        PLANNER_FALLBACK_TOTAL.labels(reason=reason).inc()
        return AgentPlan.new(goal, create_fallback_actions(goal, context))

    def create_plan(
        self, goal: str, context: Optional[AgentContext] = None
    ) -> AgentPlan:
        """Builds a plan from the model reply, or from templates on failure.

        Args:
            goal: Free-text user goal.
            context: Wallet and portfolio snapshot.

        Returns:
            An AgentPlan in the 'planning' state. Never raises on upstream
            failures.
        """
        if not self.initialized:
            return self._fallback_plan(goal, context, "no_api_key")

        try:
            text = self._generate(
                prompts.build_system_instruction(context),
                prompts.build_plan_request(goal),
                PLAN_TEMPERATURE,
            )
        except Exception as e:
            logger.error(
                "Error creating plan with Gemini",
                extra={"extra_fields": {"error": str(e)}},
            )
            return self._fallback_plan(goal, context, "model_error")

        try:
            actions = parse_actions(text)
        except Exception as e:
            logger.warning(
                "Could not parse actions from Gemini response",
                extra={"extra_fields": {"error": str(e)}},
            )
            return self._fallback_plan(goal, context, "parse_error")

        if not actions:
            return self._fallback_plan(goal, context, "empty")

        logger.info(
            "Plan created",
            extra={"extra_fields": {"goal": goal, "actions": len(actions)}},
        )
        return AgentPlan.new(goal, actions)

    def analyze_market_conditions(self, context: Optional[AgentContext] = None) -> str:
        if not self.initialized:
            return "Market analysis unavailable - Gemini agent not initialized"
        try:
            return self._generate(
                prompts.MARKET_ANALYST_INSTRUCTION,
                prompts.build_market_request(context),
                0.4,
            )
        except Exception as e:
            logger.error(
                "Error analyzing market conditions",
                extra={"extra_fields": {"error": str(e)}},
            )
            return "Unable to analyze market conditions at this time."

    def explain_action(self, action: AgentAction) -> str:
        if not self.initialized:
            return f"This action will {action.description}"
        try:
            return self._generate(
                prompts.EXPLAINER_INSTRUCTION,
                prompts.build_explain_request(action),
                0.5,
            )
        except Exception as e:
            logger.error(
                "Error explaining action",
                extra={"extra_fields": {"error": str(e), "action_id": action.id}},
            )
            return "No explanation available at this time."

    def generate_action_summary(self, actions: list[AgentAction]) -> str:
        if not self.initialized:
            descriptions = ", ".join(a.description for a in actions)
            return f"Executing {len(actions)} actions: {descriptions}"
        try:
            return self._generate(
                prompts.SUMMARY_INSTRUCTION,
                prompts.build_summary_request(actions),
                0.4,
            )
        except Exception as e:
            logger.error(
                "Error generating action summary",
                extra={"extra_fields": {"error": str(e)}},
            )
            return "Summary unavailable at this time."
