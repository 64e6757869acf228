import pytest
from pydantic import ValidationError

from etf_autoagent.models.action import AgentAction, ExecutionResult
from etf_autoagent.models.api import ApiResponse
from etf_autoagent.models.context import AgentContext
from etf_autoagent.models.enums import ActionStatus, ActionType, PlanStatus
from etf_autoagent.models.plan import AgentPlan
from etf_autoagent.models.verification import (
    AttestationSubmission,
    TweetVerificationRequest,
    VerificationRecord,
)


def make_action(i: int = 0, **kwargs) -> AgentAction:
    defaults = dict(id=f"action_1_{i}", type=ActionType.ANALYSIS, description="Look")
    defaults.update(kwargs)
    return AgentAction(**defaults)


class TestAgentAction:
    def test_defaults(self):
        action = make_action()
        assert action.status == "pending"
        assert action.parameters == {}
        assert action.timestamp > 0

    def test_accepts_camel_case_input(self):
        action = AgentAction.model_validate(
            {
                "id": "a",
                "type": "bridge",
                "description": "Bridge",
                "txHash": "0xabc",
                "estimatedDuration": 1000,
                "chainId": "747",
            }
        )
        assert action.tx_hash == "0xabc"
        assert action.estimated_duration == 1000
        assert action.chain_id == "747"

    def test_wire_format_is_camel_case(self):
        wire = make_action(tx_hash="0x1", estimated_duration=5).to_wire()
        assert wire["txHash"] == "0x1"
        assert wire["estimatedDuration"] == 5
        assert "tx_hash" not in wire
        assert "error" not in wire

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            make_action(type="teleport")

    def test_status_assignment_is_validated(self):
        action = make_action()
        with pytest.raises(ValidationError):
            action.status = "paused"

    def test_enum_values_stored_as_strings(self):
        action = make_action(type=ActionType.DEPOSIT)
        assert action.type == "deposit"
        assert ActionType(action.type) is ActionType.DEPOSIT


class TestAgentPlan:
    def test_new_plan_is_planning(self):
        plan = AgentPlan.new("goal", [make_action()])
        assert plan.id.startswith("plan_")
        assert plan.status == PlanStatus.PLANNING
        assert plan.created == plan.updated

    def test_derive_status_completed(self):
        plan = AgentPlan.new("g", [make_action(0), make_action(1)])
        for a in plan.actions:
            a.status = ActionStatus.COMPLETED
        assert plan.derive_status() == PlanStatus.COMPLETED

    def test_derive_status_failed_when_any_pending(self):
        plan = AgentPlan.new("g", [make_action(0), make_action(1)])
        plan.actions[0].status = ActionStatus.COMPLETED
        assert plan.derive_status() == PlanStatus.FAILED

    def test_empty_plan_completes(self):
        assert AgentPlan.new("g", []).derive_status() == PlanStatus.COMPLETED

    def test_round_trip_through_wire(self):
        plan = AgentPlan.new("g", [make_action(tx_hash="0x9")])
        again = AgentPlan.model_validate(plan.to_wire())
        assert again.actions[0].tx_hash == "0x9"
        assert again.goal == "g"


class TestAgentContext:
    def test_all_fields_optional(self):
        ctx = AgentContext()
        assert ctx.current_balance == {}
        assert ctx.etf_info is None

    @pytest.mark.parametrize("key", ["etfInfo", "itfInfo", "etf_info"])
    def test_etf_info_aliases(self, key):
        ctx = AgentContext.model_validate({key: {"name": "Fund"}})
        assert ctx.etf_info == {"name": "Fund"}

    def test_camel_case_fields(self):
        ctx = AgentContext.model_validate(
            {"userAddress": "0xabc", "currentBalance": {"USDC": "10"}}
        )
        assert ctx.user_address == "0xabc"
        assert ctx.current_balance["USDC"] == "10"


def test_execution_result_wire():
    wire = ExecutionResult(success=True, tx_hash="0x1").to_wire()
    assert wire == {"success": True, "txHash": "0x1"}


def test_api_response_envelopes():
    assert ApiResponse.ok({"a": 1}).model_dump(exclude_none=True) == {
        "success": True,
        "data": {"a": 1},
    }
    assert ApiResponse.fail("nope").model_dump(exclude_none=True) == {
        "success": False,
        "error": "nope",
    }


def test_attestation_submission_aliases():
    sub = AttestationSubmission(attestationId=42, txHash="0x1", blockNumber=7)
    assert sub.attestation_id == 42
    assert sub.model_dump(by_alias=True, exclude_none=True) == {
        "attestationId": 42,
        "txHash": "0x1",
        "status": "submitted",
        "blockNumber": 7,
    }


def test_verification_record_wire():
    record = VerificationRecord(
        wallet_address="0xabc",
        twitter_handle="alice",
        verification_method="bio",
        verified_at="2024-01-01T00:00:00+00:00",
        service_type="mock",
    )
    wire = record.to_wire()
    assert wire["walletAddress"] == "0xabc"
    assert wire["verificationMethod"] == "bio"
    assert wire["verified"] is True
    assert wire["serviceType"] == "mock"


def test_tweet_request_aliases():
    body = TweetVerificationRequest.model_validate(
        {"walletAddress": "0x1", "twitterHandle": "a", "tweetId": "5"}
    )
    assert (body.wallet_address, body.twitter_handle, body.tweet_id) == ("0x1", "a", "5")
