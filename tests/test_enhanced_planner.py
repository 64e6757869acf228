import json
from unittest.mock import MagicMock, patch

import pytest

from etf_autoagent.models.action import AgentAction
from etf_autoagent.models.enums import ActionPriority, ActionStatus, ActionType
from etf_autoagent.models.plan import AgentPlan
from etf_autoagent.planner.enhanced import (
    DEFAULT_SUGGESTIONS,
    EnhancedGeminiPlanner,
    PlannerConfig,
    parse_plan_block,
    total_duration,
)


@pytest.fixture
def mock_genai():
    with patch("etf_autoagent.planner.gemini_planner.genai") as mock:
        yield mock


def reply(mock_genai, text):
    response = MagicMock()
    response.text = text
    response.usage_metadata.total_token_count = 100
    mock_genai.GenerativeModel.return_value.generate_content.return_value = response


PLAN_JSON = {
    "actions": [
        {
            "type": "bridge",
            "description": "Bridge FLOW",
            "parameters": {"amount": "1"},
            "estimatedDuration": 180000,
            "priority": "high",
        },
        {"type": "deposit", "description": "Deposit"},
    ],
    "riskLevel": "low",
}


class TestParsePlanBlock:
    def test_closed_block(self):
        actions = parse_plan_block(f"Thinking...\n<plan>{json.dumps(PLAN_JSON)}</plan>")
        assert [a.type for a in actions] == [ActionType.BRIDGE, ActionType.DEPOSIT]
        assert actions[0].priority == ActionPriority.HIGH
        assert actions[1].estimated_duration == 30000
        assert actions[1].priority == ActionPriority.MEDIUM

    def test_unterminated_block(self):
        actions = parse_plan_block(f"<plan>\n{json.dumps(PLAN_JSON)}\n")
        assert len(actions) == 2

    def test_no_block(self):
        assert parse_plan_block('[{"type": "bridge"}]') is None

    def test_block_without_actions(self):
        with pytest.raises(ValueError):
            parse_plan_block('<plan>{"riskLevel": "low"}</plan>')


def test_total_duration_defaults_unknown():
    actions = [
        AgentAction(id="a", type="analysis", description="x", estimated_duration=1000),
        AgentAction(id="b", type="analysis", description="y"),
    ]
    assert total_duration(actions) == 31000


class TestEnhancedGeminiPlanner:
    def test_generation_options(self, mock_genai):
        reply(mock_genai, f"<plan>{json.dumps(PLAN_JSON)}")
        config = PlannerConfig(model="gemini-test", max_output_tokens=1024, top_k=10)
        plan = EnhancedGeminiPlanner(api_key="k", config=config).create_plan("bridge and deposit")

        assert len(plan.actions) == 2
        assert mock_genai.GenerativeModel.call_args.kwargs["model_name"] == "gemini-test"
        gen_config = mock_genai.GenerativeModel.return_value.generate_content.call_args.kwargs[
            "generation_config"
        ]
        assert gen_config["max_output_tokens"] == 1024
        assert gen_config["top_k"] == 10
        assert gen_config["top_p"] == 0.8
        assert gen_config["stop_sequences"] == ["</plan>"]
        assert gen_config["candidate_count"] == 1

    def test_planning_prompt_includes_goal_and_example(self, mock_genai):
        reply(mock_genai, f"<plan>{json.dumps(PLAN_JSON)}")
        EnhancedGeminiPlanner(api_key="k").create_plan("bridge 5 FLOW")
        contents = mock_genai.GenerativeModel.return_value.generate_content.call_args.args[0]
        assert "## Goal: bridge 5 FLOW" in contents
        assert "Example Bridge Plan" in contents

    def test_without_key_uses_enhanced_fallback(self, mock_genai):
        plan = EnhancedGeminiPlanner().create_plan("bridge")
        (action,) = plan.actions
        assert action.estimated_duration == 180000
        mock_genai.GenerativeModel.assert_not_called()

    @pytest.mark.parametrize("text", ["no tags", "<plan>{broken", "<plan>{\"actions\": []}</plan>"])
    def test_bad_replies_fall_back(self, mock_genai, text):
        reply(mock_genai, text)
        plan = EnhancedGeminiPlanner(api_key="k").create_plan("rebalance")
        assert [a.type for a in plan.actions] == [ActionType.REBALANCE]
        assert plan.actions[0].parameters["strategy"] == "risk_adjusted"

    def test_model_error_falls_back(self, mock_genai):
        mock_genai.GenerativeModel.side_effect = RuntimeError("boom")
        plan = EnhancedGeminiPlanner(api_key="k").create_plan("status")
        assert plan.actions[0].type == ActionType.ANALYSIS


class TestPostExecutionAnalysis:
    def completed_plan(self):
        action = AgentAction(id="a", type="deposit", description="d")
        action.status = ActionStatus.COMPLETED
        return AgentPlan.new("deposit", [action])

    def test_performance_offline(self, mock_genai):
        action = AgentAction(id="a", type="deposit", description="d")
        assert "not initialized" in EnhancedGeminiPlanner().analyze_action_performance(action)

    def test_performance_error(self, mock_genai):
        mock_genai.GenerativeModel.return_value.generate_content.side_effect = RuntimeError()
        action = AgentAction(id="a", type="deposit", description="d")
        planner = EnhancedGeminiPlanner(api_key="k")
        assert planner.analyze_action_performance(action) == "Performance analysis failed"

    def test_suggestions_without_data(self, mock_genai):
        assert EnhancedGeminiPlanner(api_key="k").generate_optimization_suggestions([]) == [
            "No optimization data available"
        ]
        assert EnhancedGeminiPlanner().generate_optimization_suggestions(
            [self.completed_plan()]
        ) == ["No optimization data available"]

    def test_suggestions_parsed(self, mock_genai):
        reply(mock_genai, 'Sure: ["Batch approvals", "Bridge off-peak"]')
        result = EnhancedGeminiPlanner(api_key="k").generate_optimization_suggestions(
            [self.completed_plan()]
        )
        assert result == ["Batch approvals", "Bridge off-peak"]
        contents = mock_genai.GenerativeModel.return_value.generate_content.call_args.args[0]
        assert '"successRate": 1.0' in contents

    def test_suggestions_defaults_without_array(self, mock_genai):
        reply(mock_genai, "Everything looks fine.")
        result = EnhancedGeminiPlanner(api_key="k").generate_optimization_suggestions(
            [self.completed_plan()]
        )
        assert result == DEFAULT_SUGGESTIONS

    def test_suggestions_error(self, mock_genai):
        reply(mock_genai, "[not json]")
        result = EnhancedGeminiPlanner(api_key="k").generate_optimization_suggestions(
            [self.completed_plan()]
        )
        assert result == ["Optimization analysis failed"]
