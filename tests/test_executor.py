from unittest.mock import MagicMock

import pytest

from etf_autoagent.execution.contracts import ASSET_ADDRESSES, CONTRACT_ADDRESSES
from etf_autoagent.execution.executor import ActionExecutor, ExecutorConfig
from etf_autoagent.execution.simulated import SimulatedChainAdapter
from etf_autoagent.models.action import AgentAction
from etf_autoagent.models.enums import ActionStatus, ActionType, PlanStatus
from etf_autoagent.models.plan import AgentPlan


def action(type_, i=0, **params):
    return AgentAction(id=f"action_1_{i}", type=type_, description=str(type_), parameters=params)


@pytest.fixture
def chain():
    return SimulatedChainAdapter()


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def executor(chain, sleep):
    return ActionExecutor(chain, "user", "wallet", config=ExecutorConfig(), sleep=sleep)


def contract_calls(chain):
    return [args["interaction"] for op, args in chain.calls if op == "execute_contract_interaction"]


class TestDeposit:
    def test_approve_then_deposit(self, executor, chain):
        a = action(ActionType.DEPOSIT, token="USDC", amount="2.5")
        result = executor.execute_action(a)

        assert result.success
        assert a.status == ActionStatus.COMPLETED
        approve, deposit = contract_calls(chain)
        assert approve.method_name == "approve"
        assert approve.contract_address == ASSET_ADDRESSES["USDC"]
        assert approve.params == [CONTRACT_ADDRESSES["etfVault"], str(25 * 10**17)]
        assert deposit.method_name == "deposit"
        assert deposit.params == [ASSET_ADDRESSES["USDC"], str(25 * 10**17)]
        assert a.tx_hash == result.tx_hash
        assert a.result["approveHash"] != a.result["depositHash"]

    def test_token_case_insensitive(self, executor):
        assert executor.execute_action(action(ActionType.DEPOSIT, token="usdc", amount="1")).success

    def test_missing_token_defaults_to_usdc(self, executor, chain):
        a = action(ActionType.DEPOSIT, amount="1")
        result = executor.execute_action(a)
        assert result.success
        assert a.result["token"] == "USDC"
        approve, deposit = contract_calls(chain)
        assert approve.contract_address == ASSET_ADDRESSES["USDC"]
        assert deposit.params == [ASSET_ADDRESSES["USDC"], str(10**18)]

    def test_rejects_other_tokens(self, executor, chain):
        a = action(ActionType.DEPOSIT, token="WFLOW", amount="1")
        result = executor.execute_action(a)
        assert not result.success
        assert a.error == "Only USDC deposits are supported"
        assert a.status == ActionStatus.FAILED
        assert chain.calls == []

    def test_approve_failure_skips_deposit(self, sleep):
        chain = SimulatedChainAdapter(fail_methods=["approve"])
        ex = ActionExecutor(chain, "user", "wallet", sleep=sleep)
        a = action(ActionType.DEPOSIT, token="USDC", amount="1")
        assert not ex.execute_action(a).success
        assert a.error == "Failed to approve token"
        assert len(contract_calls(chain)) == 1

    def test_invalid_amount_fails_action(self, executor):
        a = action(ActionType.DEPOSIT, token="USDC", amount="-4")
        result = executor.execute_action(a)
        assert not result.success
        assert "Invalid amount" in a.error


class TestWithdraw:
    def test_withdraw_usdc(self, executor, chain):
        a = action(ActionType.WITHDRAW, shares="5", tokenOut="USDC")
        assert executor.execute_action(a).success
        (call,) = contract_calls(chain)
        assert call.method_name == "withdraw"
        assert call.params == [str(5 * 10**18), ASSET_ADDRESSES["USDC"], "0"]

    def test_rejects_other_tokens(self, executor):
        a = action(ActionType.WITHDRAW, shares="5", tokenOut="WETH")
        executor.execute_action(a)
        assert a.error == "Only USDC withdrawals are supported"

    def test_missing_token_out_defaults_to_usdc(self, executor, chain):
        a = action(ActionType.WITHDRAW, shares="2")
        assert executor.execute_action(a).success
        assert a.result["tokenOut"] == "USDC"
        (call,) = contract_calls(chain)
        assert call.params == [str(2 * 10**18), ASSET_ADDRESSES["USDC"], "0"]


class TestBridge:
    def test_defaults(self, executor, chain):
        a = action(ActionType.BRIDGE)
        assert executor.execute_action(a).success
        op, args = chain.calls[0]
        params = args["params"]
        assert op == "execute_bridge"
        assert (params.from_chain, params.to_chain) == ("747", "8453")
        assert (params.from_token, params.to_token, params.amount) == ("FLOW", "USDC", "1.0")

    def test_to_asset_fallback(self, executor, chain):
        executor.execute_action(action(ActionType.BRIDGE, toAsset="WETH", amount="3"))
        params = chain.calls[0][1]["params"]
        assert params.to_token == "WETH"
        assert params.amount == "3"


class TestOtherActions:
    def test_contract_interaction_pass_through(self, executor, chain):
        a = action(
            ActionType.CONTRACT_INTERACTION,
            contractAddress=ASSET_ADDRESSES["USDC"],
            abi=["function approve(address spender, uint256 amount)"],
            methodName="approve",
            params=[CONTRACT_ADDRESSES["etfVault"], "1"],
        )
        assert executor.execute_action(a).success
        assert a.result["method"] == "approve"

    def test_rebalance_simulated(self, executor, sleep):
        a = action(ActionType.REBALANCE, strategy="optimize_returns")
        assert executor.execute_action(a).success
        assert a.result["newAllocation"] == {"WFLOW": 60, "USDC": 40}
        sleep.assert_called_once_with(2.0)

    def test_analysis_echoes_query(self, executor, sleep):
        a = action(ActionType.ANALYSIS, query="risk")
        executor.execute_action(a)
        assert a.result["analysis"] == "Analysis completed for: risk"
        sleep.assert_called_once_with(1.5)

    def test_every_type_has_a_handler(self, chain):
        ActionExecutor(chain, "u", "w")


class TestCallbacks:
    def test_progress_and_complete(self, chain, sleep):
        progress, complete = MagicMock(), MagicMock()
        ex = ActionExecutor(chain, "u", "w", on_progress=progress, on_complete=complete, sleep=sleep)
        a = action(ActionType.ANALYSIS)
        ex.execute_action(a)
        progress.assert_called_once_with(a)
        complete.assert_called_once_with(a)

    def test_error_callback_on_exception(self, sleep):
        chain = MagicMock()
        chain.execute_bridge.side_effect = RuntimeError("rpc down")
        on_error = MagicMock()
        ex = ActionExecutor(chain, "u", "w", on_error=on_error, sleep=sleep)
        a = action(ActionType.BRIDGE)
        result = ex.execute_action(a)

        assert not result.success
        assert a.status == ActionStatus.FAILED
        assert a.error == "rpc down"
        failed_action, exc = on_error.call_args.args
        assert failed_action is a
        assert isinstance(exc, RuntimeError)


class TestExecutePlan:
    def test_all_succeed(self, executor, sleep):
        plan = AgentPlan.new(
            "g",
            [
                action(ActionType.DEPOSIT, 0, token="USDC", amount="1"),
                action(ActionType.WITHDRAW, 1, shares="1", tokenOut="USDC"),
            ],
        )
        result = executor.execute_plan(plan)
        assert result is plan
        assert plan.status == PlanStatus.COMPLETED
        assert all(a.status == ActionStatus.COMPLETED for a in plan.actions)
        # pause between the two actions only
        sleep.assert_called_once_with(1.0)

    def test_stops_at_first_failure(self, executor):
        plan = AgentPlan.new(
            "g",
            [
                action(ActionType.DEPOSIT, 0, token="WFLOW"),
                action(ActionType.WITHDRAW, 1, shares="1", tokenOut="USDC"),
            ],
        )
        executor.execute_plan(plan)
        assert plan.status == PlanStatus.FAILED
        assert plan.actions[0].status == ActionStatus.FAILED
        assert plan.actions[1].status == ActionStatus.PENDING

    def test_empty_plan_completes(self, executor):
        assert executor.execute_plan(AgentPlan.new("g", [])).status == PlanStatus.COMPLETED

    def test_no_delay_when_disabled(self, chain, sleep):
        ex = ActionExecutor(
            chain, "u", "w", config=ExecutorConfig(action_delay_seconds=0), sleep=sleep
        )
        plan = AgentPlan.new(
            "g",
            [
                action(ActionType.BRIDGE, 0),
                action(ActionType.BRIDGE, 1),
            ],
        )
        ex.execute_plan(plan)
        sleep.assert_not_called()
