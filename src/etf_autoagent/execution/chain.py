"""Abstract base class for custodial server-wallet adapters.

The executor never talks to a chain directly. It asks a ChainAdapter to
look up the operator wallet, send contract calls and bridge transfers, and
reports whatever receipt comes back.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from etf_autoagent.models.chain import (
    BridgeParams,
    BridgeQuote,
    ContractInteraction,
    ServerWallet,
    TransactionReceipt,
)

BRIDGE_FEE_RATE = Decimal("0.001")
BRIDGE_GAS_FEE = "0.005"


class ChainAdapterError(RuntimeError):
    """Raised when the wallet provider cannot be reached or rejects a request."""


def quote_relay_bridge(params: BridgeParams) -> BridgeQuote:
    """Estimates a Relay bridge transfer with a flat 0.1% fee."""
    amount = Decimal(params.amount)
    return BridgeQuote(
        input_amount=params.amount,
        output_amount=f"{amount * (1 - BRIDGE_FEE_RATE):.6f}",
        fees={"bridgeFee": f"{amount * BRIDGE_FEE_RATE:.6f}", "gasFees": BRIDGE_GAS_FEE},
        estimated_time="2-5 minutes",
        route=[f"Chain {params.from_chain}", "Relay Protocol", f"Chain {params.to_chain}"],
    )


class ChainAdapter(ABC):
    """Port between the action executor and a server-wallet provider."""

    @abstractmethod
    def get_server_wallet(self, user_id: str, wallet_id: str) -> ServerWallet:
        """Looks up the wallet operated for the user.

        Raises:
            ChainAdapterError: If the wallet does not exist or the provider
                is unreachable.
        """
        pass  # pragma: no cover

    @abstractmethod
    def execute_bridge(
        self, user_id: str, wallet_id: str, params: BridgeParams
    ) -> TransactionReceipt:
        pass  # pragma: no cover

    @abstractmethod
    def execute_contract_interaction(
        self,
        user_id: str,
        wallet_id: str,
        chain_id: str,
        interaction: ContractInteraction,
    ) -> TransactionReceipt:
        """Encodes and sends a contract call from the server wallet.

        Returns:
            A receipt; provider or encoding failures are reported with
            ``success=False`` rather than raised.
        """
        pass  # pragma: no cover

    @abstractmethod
    def get_wallet_balance(
        self,
        user_id: str,
        wallet_id: str,
        token_address: Optional[str] = None,
        chain_id: Optional[str] = None,
    ) -> str:
        pass  # pragma: no cover

    @abstractmethod
    def sign_message(self, user_id: str, wallet_id: str, message: str) -> str:
        pass  # pragma: no cover

    def get_bridge_quote(self, params: BridgeParams) -> BridgeQuote:
        return quote_relay_bridge(params)
