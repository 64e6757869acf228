from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest


LLM_TOKEN_USAGE_TOTAL = Counter(
    "etf_agent_llm_token_usage_total",
    "Total tokens consumed by planner generation calls.",
    ["model"],
)

PLANNER_FALLBACK_TOTAL = Counter(
    "etf_agent_planner_fallback_total",
    "Plans produced from keyword templates instead of model output.",
    ["reason"],
)

ACTIONS_EXECUTED_TOTAL = Counter(
    "etf_agent_actions_executed_total",
    "Agent actions executed, by type and terminal status.",
    ["action_type", "status"],
)

VERIFICATIONS_TOTAL = Counter(
    "etf_agent_verifications_total",
    "Wallet verification attempts, by method and outcome.",
    ["method", "outcome"],
)

METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST


def get_metrics_content() -> str:
    """Renders the default registry in the Prometheus text format."""
    return generate_latest().decode("utf-8")
