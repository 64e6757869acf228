"""Prompt builders for the Gemini planners."""

import json
from typing import Optional

from etf_autoagent.models.action import AgentAction
from etf_autoagent.models.context import AgentContext


def _context_values(context: Optional[AgentContext]) -> tuple[str, str, dict, dict]:
    context = context or AgentContext()
    return (
        context.user_address or "Not connected",
        context.chain_id or "Unknown",
        context.current_balance or {},
        context.etf_info or {},
    )


def build_system_instruction(context: Optional[AgentContext]) -> str:
    """Constructs the system instruction for basic plan generation.

    Args:
        context: Wallet and portfolio snapshot.

    Returns:
        The instruction string with the capability list and context lines.
    """
    address, chain_id, balances, etf_info = _context_values(context)
    return f"""You are an autonomous blockchain agent that helps users manage their ETF portfolios and execute DeFi operations.

Your capabilities include:
- Bridging assets between chains (Flow EVM ↔ Base USDC)
- Interacting with ETF vault contracts
- Depositing and withdrawing from ETFs
- Rebalancing portfolios
- Analyzing market conditions

Current context:
- User Address: {address}
- Chain ID: {chain_id}
- Balances: {json.dumps(balances)}
- ETF Info: {json.dumps(etf_info)}

Create a detailed execution plan with specific steps. Each step should include:
- type: The action type (bridge, contract_interaction, deposit, withdraw, rebalance, analysis)
- description: What the action does
- parameters: Required parameters for execution

Return a JSON array of actions."""


def build_plan_request(goal: str) -> str:
    return (
        f"Goal: {goal}\n\n"
        "Please create a step-by-step execution plan to achieve this goal. "
        "Consider the current context and create practical, executable actions."
    )


MARKET_ANALYST_INSTRUCTION = """You are a DeFi market analyst. Analyze the provided context and give insights about:
1. Current market conditions
2. ETF performance
3. Recommended actions
4. Risk assessment

Keep responses concise and actionable."""

EXPLAINER_INSTRUCTION = """You are a helpful assistant that explains blockchain and DeFi operations in simple terms.
Explain what the action does, why it's useful, and any risks involved."""

SUMMARY_INSTRUCTION = """Create a concise summary of the actions being executed.
Explain the overall goal and expected outcome."""

PERFORMANCE_INSTRUCTION = (
    "You are a blockchain performance analyst. "
    "Provide concise, actionable insights."
)

OPTIMIZATION_INSTRUCTION = (
    "You are an AI optimization expert. "
    "Focus on practical, implementable improvements."
)


def build_market_request(context: Optional[AgentContext]) -> str:
    payload = (context or AgentContext()).to_wire()
    return (
        "Analyze the current market conditions and ETF status:\n\n"
        f"Context: {json.dumps(payload, indent=2)}\n\n"
        "Please provide a brief analysis and any recommendations."
    )


def build_explain_request(action: AgentAction) -> str:
    return (
        "Explain this blockchain action in simple terms:\n\n"
        f"Action Type: {action.type}\n"
        f"Description: {action.description}\n"
        f"Parameters: {json.dumps(action.parameters, indent=2, default=str)}\n\n"
        "Please explain what this does and why someone might want to do it."
    )


def build_summary_request(actions: list[AgentAction]) -> str:
    lines = "\n".join(
        f"{i + 1}. {a.type}: {a.description}" for i, a in enumerate(actions)
    )
    return (
        "Summarize this sequence of actions:\n\n"
        f"{lines}\n\n"
        "Provide a brief summary of what these actions accomplish together."
    )


def build_advanced_system_instruction(context: Optional[AgentContext]) -> str:
    """Constructs the system instruction for structured ``<plan>`` output."""
    address, chain_id, balances, etf_info = _context_values(context)
    return f"""You are an advanced autonomous blockchain agent specialized in DeFi operations and ETF management.

## Your Capabilities:
- Cross-chain bridge operations (Flow EVM ↔ Base, other chains)
- Smart contract interactions on multiple chains
- ETF vault management (deposits, withdrawals, rebalancing)
- Portfolio analysis and optimization
- Risk assessment and mitigation
- Gas optimization and transaction timing

## Current Context:
- User Address: {address}
- Primary Chain: {chain_id}
- Available Balances: {json.dumps(balances, indent=2)}
- ETF Information: {json.dumps(etf_info, indent=2)}

## Planning Guidelines:
1. Always prioritize safety and security
2. Consider gas costs and optimize transaction order
3. Implement proper error handling and fallbacks
4. Provide clear descriptions for each action
5. Estimate realistic execution times
6. Consider dependencies between actions

## Response Format:
You must respond with a structured plan in JSON format within <plan></plan> tags:

<plan>
{{
  "reasoning": "Brief explanation of your approach",
  "actions": [
    {{
      "type": "bridge|deposit|withdraw|contract_interaction|rebalance|analysis",
      "description": "Clear description of what this action does",
      "parameters": {{"key": "value"}},
      "estimatedDuration": 30000,
      "priority": "high|medium|low",
      "prerequisites": ["list of dependencies"],
      "risks": ["potential issues to consider"]
    }}
  ],
  "totalEstimatedTime": 120000,
  "riskLevel": "low|medium|high",
  "successProbability": 0.95
}}
</plan>

Be precise, practical, and always consider real-world constraints."""


def analyze_context(context: Optional[AgentContext]) -> str:
    """Summarizes the context as short status lines for the planning prompt."""
    context = context or AgentContext()
    lines = []
    if context.user_address:
        addr = context.user_address
        lines.append(f"Wallet connected: {addr[:6]}...{addr[-4:]}")
    else:
        lines.append("No wallet connected")

    if context.current_balance:
        balances = ", ".join(
            f"{token}: {amount}" for token, amount in context.current_balance.items()
        )
        lines.append(f"Available balances: {balances}")

    if context.etf_info:
        lines.append(f"ETF Status: {json.dumps(context.etf_info)}")

    return "\n".join(lines)


_EXAMPLES = {
    "bridge": """Example Bridge Plan:
1. Verify source balance and destination address
2. Get optimal bridge quote with slippage protection
3. Execute bridge transaction with monitoring
4. Wait for cross-chain confirmation
5. Verify destination balance updated""",
    "deposit": """Example Investment Plan:
1. Check token balance and allowance
2. Approve token spending if needed
3. Execute deposit to ETF vault
4. Monitor transaction confirmation
5. Verify shares received and update portfolio""",
    "rebalance": """Example Rebalancing Plan:
1. Analyze current portfolio allocation
2. Calculate optimal target allocation
3. Determine required trades
4. Execute rebalancing transactions
5. Verify new allocation matches target""",
    "generic": """Generic Example:
1. Validate preconditions and requirements
2. Prepare necessary parameters
3. Execute main operation
4. Monitor progress and handle errors
5. Verify final state and cleanup""",
}


def relevant_example(goal: str) -> str:
    goal_lower = goal.lower()
    if "bridge" in goal_lower:
        return _EXAMPLES["bridge"]
    if "deposit" in goal_lower or "invest" in goal_lower:
        return _EXAMPLES["deposit"]
    if "rebalance" in goal_lower:
        return _EXAMPLES["rebalance"]
    return _EXAMPLES["generic"]


def build_planning_prompt(goal: str, context: Optional[AgentContext]) -> str:
    return f"""# Task: Create Execution Plan

## Goal: {goal}

## Context Analysis:
{analyze_context(context)}

## Similar Examples:
{relevant_example(goal)}

## Requirements:
1. Break down the goal into specific, executable actions
2. Consider the user's current situation and constraints
3. Optimize for efficiency and safety
4. Provide realistic time estimates
5. Include proper risk assessment

Please create a detailed execution plan that accomplishes this goal safely and efficiently."""


def build_performance_request(action: AgentAction) -> str:
    lines = [
        "Analyze the performance of this blockchain action:",
        "",
        f"Action: {action.type}",
        f"Description: {action.description}",
        f"Status: {action.status}",
        f"Duration: {action.estimated_duration}ms",
        f"Parameters: {json.dumps(action.parameters, indent=2, default=str)}",
    ]
    if action.result is not None:
        lines.append(f"Result: {json.dumps(action.result, indent=2, default=str)}")
    if action.error:
        lines.append(f"Error: {action.error}")
    lines += [
        "",
        "Provide insights on:",
        "1. Performance vs expectations",
        "2. Potential optimizations",
        "3. Risk factors encountered",
        "4. Recommendations for similar actions",
    ]
    return "\n".join(lines)


def build_optimization_request(plan_summary: list[dict]) -> str:
    return (
        "Analyze these completed execution plans and suggest optimizations:\n\n"
        f"Plans Summary: {json.dumps(plan_summary, indent=2)}\n\n"
        "Provide 3-5 specific optimization suggestions for:\n"
        "1. Execution efficiency\n"
        "2. Cost reduction\n"
        "3. Risk mitigation\n"
        "4. User experience improvement\n\n"
        "Return as a JSON array of strings."
    )
