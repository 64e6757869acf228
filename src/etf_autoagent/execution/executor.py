"""Sequential executor for agent plans.

Each action type maps to one handler. A handler returns an ExecutionResult;
the executor copies it onto the action, fires callbacks and, for plans,
stops at the first unsuccessful action so later actions stay pending.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from etf_autoagent.execution.chain import ChainAdapter
from etf_autoagent.execution.contracts import (
    ASSET_ADDRESSES,
    BASE_CHAIN_ID,
    CONTRACT_ADDRESSES,
    ERC20_APPROVE_ABI,
    FLOW_EVM_CHAIN_ID,
    FLOW_EVM_TESTNET_CHAIN_ID,
    VAULT_DEPOSIT_ABI,
    VAULT_WITHDRAW_ABI,
    parse_amount,
)
from etf_autoagent.models.action import AgentAction, ExecutionResult
from etf_autoagent.models.base import now_ms
from etf_autoagent.models.chain import BridgeParams, ContractInteraction
from etf_autoagent.models.enums import ActionStatus, ActionType, PlanStatus
from etf_autoagent.models.plan import AgentPlan
from etf_autoagent.observability.logging import get_logger
from etf_autoagent.observability.metrics import ACTIONS_EXECUTED_TOTAL

logger = get_logger(__name__)

ActionCallback = Callable[[AgentAction], None]
ErrorCallback = Callable[[AgentAction, Exception], None]
Handler = Callable[[AgentAction], ExecutionResult]


class ExecutorConfig(BaseModel):
    """Timing and chain settings for the executor.

    Attributes:
        chain_id: Chain the vault contracts live on.
        action_delay_seconds: Pause between consecutive plan actions.
        rebalance_latency_seconds: Simulated rebalance duration.
        analysis_latency_seconds: Simulated analysis duration.
    """

    chain_id: str = FLOW_EVM_TESTNET_CHAIN_ID
    action_delay_seconds: float = Field(default=1.0, ge=0)
    rebalance_latency_seconds: float = Field(default=2.0, ge=0)
    analysis_latency_seconds: float = Field(default=1.5, ge=0)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ActionExecutor:
    """Runs actions against a ChainAdapter on behalf of one wallet."""

    def __init__(
        self,
        chain: ChainAdapter,
        user_id: str,
        wallet_id: str,
        config: Optional[ExecutorConfig] = None,
        on_progress: Optional[ActionCallback] = None,
        on_complete: Optional[ActionCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.chain = chain
        self.user_id = user_id
        self.wallet_id = wallet_id
        self.config = config or ExecutorConfig()
        self.on_progress = on_progress
        self.on_complete = on_complete
        self.on_error = on_error
        self._sleep = sleep

        self._handlers: dict[ActionType, Handler] = {
            ActionType.BRIDGE: self._execute_bridge,
            ActionType.DEPOSIT: self._execute_deposit,
            ActionType.WITHDRAW: self._execute_withdraw,
            ActionType.CONTRACT_INTERACTION: self._execute_contract_interaction,
            ActionType.REBALANCE: self._execute_rebalance,
            ActionType.ANALYSIS: self._execute_analysis,
        }
        missing = set(ActionType) - set(self._handlers)
        if missing:
            raise TypeError(f"No handler for action types: {sorted(missing)}")

    def _set_status(self, action: AgentAction, status: ActionStatus) -> None:
        action.status = status
        action.timestamp = now_ms()
        if status == ActionStatus.EXECUTING and self.on_progress:
            self.on_progress(action)
        elif status == ActionStatus.COMPLETED and self.on_complete:
            self.on_complete(action)

    def execute_action(self, action: AgentAction) -> ExecutionResult:
        """Runs one action and records the outcome on it.

        Args:
            action: The action to run; mutated in place.

        Returns:
            The handler result. Handler exceptions are caught, passed to
            ``on_error`` and reported as ``success=False``.
        """
        try:
            self._set_status(action, ActionStatus.EXECUTING)
            try:
                handler = self._handlers[ActionType(action.type)]
            except ValueError:
                raise ValueError(f"Unknown action type: {action.type}") from None
            result = handler(action)

            if result.success:
                action.result = result.result
                action.tx_hash = result.tx_hash
                self._set_status(action, ActionStatus.COMPLETED)
            else:
                action.error = result.error
                self._set_status(action, ActionStatus.FAILED)
        except Exception as e:
            action.error = str(e) or type(e).__name__
            self._set_status(action, ActionStatus.FAILED)
            logger.error(
                "Action raised",
                extra={"extra_fields": {"action_id": action.id, "error": action.error}},
            )
            if self.on_error:
                self.on_error(action, e)
            result = ExecutionResult(success=False, error=action.error)

        ACTIONS_EXECUTED_TOTAL.labels(
            action_type=str(action.type), status=str(action.status)
        ).inc()
        return result

    def execute_plan(self, plan: AgentPlan) -> AgentPlan:
        """Runs the plan's actions in order, stopping at the first failure.

        Args:
            plan: The plan to run; mutated in place.

        Returns:
            The same plan with a terminal status.
        """
        plan.status = PlanStatus.EXECUTING
        plan.touch()
        logger.info(
            "Executing plan",
            extra={"extra_fields": {"plan_id": plan.id, "actions": len(plan.actions)}},
        )

        for index, action in enumerate(plan.actions):
            result = self.execute_action(action)
            if not result.success:
                break
            if index < len(plan.actions) - 1 and self.config.action_delay_seconds:
                self._sleep(self.config.action_delay_seconds)

        plan.status = plan.derive_status()
        plan.touch()
        logger.info(
            "Plan finished",
            extra={"extra_fields": {"plan_id": plan.id, "status": plan.status}},
        )
        return plan

    def _contract_call(
        self, address: str, abi: list[Any], method: str, params: list[Any], value: Optional[str] = None
    ):
        return self.chain.execute_contract_interaction(
            self.user_id,
            self.wallet_id,
            self.config.chain_id,
            ContractInteraction(
                contract_address=address,
                abi=abi,
                method_name=method,
                params=params,
                value=value,
            ),
        )

    def _execute_bridge(self, action: AgentAction) -> ExecutionResult:
        p = action.parameters
        params = BridgeParams(
            from_chain=str(p.get("fromChain") or FLOW_EVM_CHAIN_ID),
            to_chain=str(p.get("toChain") or BASE_CHAIN_ID),
            from_token=p.get("asset") or "FLOW",
            to_token=p.get("toToken") or p.get("toAsset") or "USDC",
            amount=str(p.get("amount") or "1.0"),
            recipient="",
        )
        receipt = self.chain.execute_bridge(self.user_id, self.wallet_id, params)
        return ExecutionResult(
            success=receipt.success,
            tx_hash=receipt.tx_hash,
            error=receipt.error,
            result={"bridgeParams": params.to_wire(), "timestamp": receipt.timestamp},
        )

    def _execute_deposit(self, action: AgentAction) -> ExecutionResult:
        token = action.parameters.get("token") or "USDC"
        amount = str(action.parameters.get("amount") or "1.0")
        if str(token).lower() != "usdc":
            return ExecutionResult(success=False, error="Only USDC deposits are supported")

        token_address = ASSET_ADDRESSES["USDC"]
        amount_wei = str(parse_amount(amount))
        vault = CONTRACT_ADDRESSES["etfVault"]

        approve = self._contract_call(
            token_address, [ERC20_APPROVE_ABI], "approve", [vault, amount_wei]
        )
        if not approve.success:
            return ExecutionResult(success=False, error="Failed to approve token")

        deposit = self._contract_call(
            vault, [VAULT_DEPOSIT_ABI], "deposit", [token_address, amount_wei]
        )
        return ExecutionResult(
            success=deposit.success,
            tx_hash=deposit.tx_hash,
            error=deposit.error,
            result={
                "token": token,
                "amount": amount,
                "approveHash": approve.tx_hash,
                "depositHash": deposit.tx_hash,
            },
        )

    def _execute_withdraw(self, action: AgentAction) -> ExecutionResult:
        shares = str(action.parameters.get("shares") or "1.0")
        token_out = action.parameters.get("tokenOut") or "USDC"
        if str(token_out).lower() != "usdc":
            return ExecutionResult(success=False, error="Only USDC withdrawals are supported")

        token_address = ASSET_ADDRESSES["USDC"]
        receipt = self._contract_call(
            CONTRACT_ADDRESSES["etfVault"],
            [VAULT_WITHDRAW_ABI],
            "withdraw",
            [str(parse_amount(shares)), token_address, "0"],
        )
        return ExecutionResult(
            success=receipt.success,
            tx_hash=receipt.tx_hash,
            error=receipt.error,
            result={"shares": shares, "tokenOut": token_out, "hash": receipt.tx_hash},
        )

    def _execute_contract_interaction(self, action: AgentAction) -> ExecutionResult:
        p = action.parameters
        receipt = self._contract_call(
            p.get("contractAddress"),
            p.get("abi") or [],
            p.get("methodName"),
            p.get("params") or [],
            p.get("value"),
        )
        return ExecutionResult(
            success=receipt.success,
            tx_hash=receipt.tx_hash,
            error=receipt.error,
            result={
                "contract": p.get("contractAddress"),
                "method": p.get("methodName"),
                "params": p.get("params"),
                "hash": receipt.tx_hash,
            },
        )

    def _execute_rebalance(self, action: AgentAction) -> ExecutionResult:
        self._sleep(self.config.rebalance_latency_seconds)
        return ExecutionResult(
            success=True,
            result={
                "strategy": action.parameters.get("strategy"),
                "oldAllocation": {"WFLOW": 70, "USDC": 30},
                "newAllocation": {"WFLOW": 60, "USDC": 40},
                "rebalancedAt": _now_iso(),
            },
        )

    def _execute_analysis(self, action: AgentAction) -> ExecutionResult:
        self._sleep(self.config.analysis_latency_seconds)
        query = action.parameters.get("query") or "portfolio"
        return ExecutionResult(
            success=True,
            result={
                "analysis": f"Analysis completed for: {query}",
                "recommendations": [
                    "Portfolio is well-balanced",
                    "Consider rebalancing if market conditions change",
                    "Monitor gas fees for optimal transaction timing",
                ],
                "marketConditions": "Stable",
                "riskLevel": "Medium",
                "analyzedAt": _now_iso(),
            },
        )
