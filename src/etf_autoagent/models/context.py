from typing import Any, Optional

from pydantic import AliasChoices, Field

from etf_autoagent.models.base import ModelBase


class AgentContext(ModelBase):
    """
    Read-only snapshot of the user's wallet and portfolio passed to the
    planner. Every field is optional; absent values render as defaults in
    the prompt.
    """

    user_address: Optional[str] = Field(
        default=None, description="Connected wallet address."
    )
    chain_id: Optional[str] = Field(
        default=None, description="Primary chain id of the user."
    )
    current_balance: dict[str, str] = Field(
        default_factory=dict, description="Token symbol to balance string."
    )
    etf_info: Optional[dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("etfInfo", "itfInfo", "etf_info"),
        description="Vault/fund details.",
    )
    recent_transactions: list[Any] = Field(
        default_factory=list, description="Recent transaction records."
    )
