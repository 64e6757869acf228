"""Data models exchanged with chain adapters.

These records describe what the executor asks a custodial server wallet to
do and what the wallet reports back.
"""

from typing import Any, Optional

from pydantic import Field

from etf_autoagent.models.base import ModelBase


class BridgeParams(ModelBase):
    """Inputs for a cross-chain bridge transfer.

    Attributes:
        from_chain: Source chain id (e.g. '747' for Flow EVM).
        to_chain: Destination chain id (e.g. '8453' for Base).
        from_token: Symbol sent on the source chain.
        to_token: Symbol received on the destination chain.
        amount: Decimal amount as a string.
        recipient: Destination address; empty lets the wallet fill it in.
    """

    from_chain: str
    to_chain: str
    from_token: str
    to_token: str
    amount: str
    recipient: str = ""
    slippage_tolerance: Optional[float] = None


class ContractInteraction(ModelBase):
    """A contract method call to be signed by the server wallet.

    Attributes:
        contract_address: Target contract.
        abi: Human-readable signatures or JSON ABI fragments.
        method_name: Function to call.
        params: Positional arguments.
        value: Native value in wei, as a decimal string.
    """

    contract_address: str
    abi: list[Any] = Field(default_factory=list)
    method_name: str
    params: list[Any] = Field(default_factory=list)
    value: Optional[str] = None


class TransactionReceipt(ModelBase):
    """What the chain adapter reports after submitting a transaction."""

    success: bool
    tx_hash: Optional[str] = None
    timestamp: Optional[str] = None
    error: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)


class ServerWallet(ModelBase):
    """A custodial wallet operated on the user's behalf."""

    id: str
    address: str
    chain_type: str = "ethereum"
    user_id: Optional[str] = None


class BridgeQuote(ModelBase):
    """Estimated outcome of a bridge transfer."""

    input_amount: str
    output_amount: str
    fees: dict[str, str]
    estimated_time: str
    route: list[str]
