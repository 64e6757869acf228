"""Keyword-matched action templates used when model planning is unavailable.

Groups are tested in a fixed order and each matching group contributes one
action, so "bridge then deposit" yields a bridge action followed by a
deposit action regardless of where the words occur in the goal.
"""

from typing import Any, Optional

from etf_autoagent.models.action import AgentAction
from etf_autoagent.models.base import now_ms
from etf_autoagent.models.context import AgentContext
from etf_autoagent.models.enums import ActionPriority, ActionType


# (keywords, type, description, parameters)
BASIC_TEMPLATES: list[tuple[tuple[str, ...], ActionType, str, dict[str, Any]]] = [
    (
        ("bridge",),
        ActionType.BRIDGE,
        "Bridge assets between chains",
        {"fromChain": "747", "toChain": "8453", "amount": "1.0", "asset": "FLOW"},
    ),
    (
        ("deposit", "invest"),
        ActionType.DEPOSIT,
        "Deposit assets into ETF vault",
        {"token": "USDC", "amount": "10.0"},
    ),
    (
        ("rebalance", "optimize"),
        ActionType.REBALANCE,
        "Rebalance ETF portfolio allocation",
        {"strategy": "optimize_returns"},
    ),
    (
        ("withdraw",),
        ActionType.WITHDRAW,
        "Withdraw shares from ETF vault",
        {"shares": "5.0", "tokenOut": "USDC"},
    ),
    (
        ("analyze", "check", "status"),
        ActionType.ANALYSIS,
        "Analyze current portfolio and market conditions",
        {"includeMarketData": True, "generateRecommendations": True},
    ),
]

# (keywords, type, description, parameters, estimated_duration, priority)
ENHANCED_TEMPLATES: list[
    tuple[tuple[str, ...], ActionType, str, dict[str, Any], int, ActionPriority]
] = [
    (
        ("bridge",),
        ActionType.BRIDGE,
        "Bridge assets between chains using Relay protocol",
        {
            "fromChain": "747",
            "toChain": "8453",
            "amount": "1.0",
            "asset": "FLOW",
            "toAsset": "USDC",
        },
        180000,
        ActionPriority.HIGH,
    ),
    (
        ("deposit", "invest"),
        ActionType.DEPOSIT,
        "Deposit assets into ETF vault",
        {"token": "USDC", "amount": "10.0"},
        60000,
        ActionPriority.MEDIUM,
    ),
    (
        ("withdraw",),
        ActionType.WITHDRAW,
        "Withdraw shares from ETF vault",
        {"shares": "5.0", "tokenOut": "USDC"},
        45000,
        ActionPriority.MEDIUM,
    ),
    (
        ("rebalance", "optimize"),
        ActionType.REBALANCE,
        "Optimize portfolio allocation",
        {"strategy": "risk_adjusted", "maxSlippage": "0.5"},
        120000,
        ActionPriority.LOW,
    ),
    (
        ("analyze", "check", "status"),
        ActionType.ANALYSIS,
        "Analyze current portfolio and provide recommendations",
        {"includeMarketData": True, "riskAssessment": True, "recommendations": True},
        15000,
        ActionPriority.LOW,
    ),
]

DEFAULT_ANALYSIS_DESCRIPTION = "Analyze request and provide recommendations"
DEFAULT_ANALYSIS_DURATION = 15000


def make_action_id(index: int, ts: Optional[int] = None) -> str:
    return f"action_{ts if ts is not None else now_ms()}_{index}"


def _matches(goal_lower: str, keywords: tuple[str, ...]) -> bool:
    return any(k in goal_lower for k in keywords)


def create_fallback_actions(
    goal: str, context: Optional[AgentContext] = None
) -> list[AgentAction]:
    """Builds actions from keyword templates.

    Args:
        goal: Free-text user goal, matched case-insensitively.
        context: Unused today; accepted so callers can pass it uniformly.

    Returns:
        One action per matched keyword group, in template order, or a single
        analysis action carrying the goal as ``query`` when nothing matched.
    """
    goal_lower = goal.lower()
    ts = now_ms()
    actions: list[AgentAction] = []

    for keywords, action_type, description, parameters in BASIC_TEMPLATES:
        if _matches(goal_lower, keywords):
            actions.append(
                AgentAction(
                    id=make_action_id(len(actions), ts),
                    type=action_type,
                    description=description,
                    parameters=dict(parameters),
                    timestamp=ts,
                )
            )

    if not actions:
        actions.append(
            AgentAction(
                id=make_action_id(0, ts),
                type=ActionType.ANALYSIS,
                description=DEFAULT_ANALYSIS_DESCRIPTION,
                parameters={"query": goal},
                timestamp=ts,
            )
        )
    return actions


def create_enhanced_fallback_actions(
    goal: str, context: Optional[AgentContext] = None
) -> list[AgentAction]:
    """Like :func:`create_fallback_actions` but with duration and priority."""
    goal_lower = goal.lower()
    ts = now_ms()
    actions: list[AgentAction] = []

    for (
        keywords,
        action_type,
        description,
        parameters,
        duration,
        priority,
    ) in ENHANCED_TEMPLATES:
        if _matches(goal_lower, keywords):
            actions.append(
                AgentAction(
                    id=make_action_id(len(actions), ts),
                    type=action_type,
                    description=description,
                    parameters=dict(parameters),
                    timestamp=ts,
                    estimated_duration=duration,
                    priority=priority,
                )
            )

    if not actions:
        actions.append(
            AgentAction(
                id=make_action_id(0, ts),
                type=ActionType.ANALYSIS,
                description=DEFAULT_ANALYSIS_DESCRIPTION,
                parameters={"query": goal},
                timestamp=ts,
                estimated_duration=DEFAULT_ANALYSIS_DURATION,
                priority=ActionPriority.LOW,
            )
        )
    return actions
