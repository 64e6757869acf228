"""Deterministic in-process chain adapter.

Every call succeeds unless its method name is listed in ``fail_methods``.
Transaction hashes are derived from a call counter and the call arguments,
so a fresh adapter replays the same hashes for the same sequence of calls.
"""

import hashlib
import json
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from etf_autoagent.execution.abi import AbiEncodingError, encode_function_call
from etf_autoagent.execution.chain import BRIDGE_FEE_RATE, ChainAdapter, quote_relay_bridge
from etf_autoagent.execution.contracts import BASE_CHAIN_ID, FLOW_EVM_CHAIN_ID
from etf_autoagent.models.chain import (
    BridgeParams,
    ContractInteraction,
    ServerWallet,
    TransactionReceipt,
)
from etf_autoagent.observability.logging import get_logger

logger = get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SimulatedChainAdapter(ChainAdapter):
    """Chain adapter that records calls and fabricates receipts.

    Attributes:
        calls: ``(operation, arguments)`` pairs in call order.
        fail_methods: Contract method names whose interactions fail.
    """

    def __init__(self, fail_methods: Optional[Iterable[str]] = None):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_methods = set(fail_methods or ())
        self._counter = 0

    def _record(self, operation: str, **arguments: Any) -> None:
        self.calls.append((operation, arguments))

    def _next_hash(self, payload: dict[str, Any]) -> str:
        self._counter += 1
        seed = f"{self._counter}:{json.dumps(payload, sort_keys=True, default=str)}"
        return "0x" + hashlib.sha256(seed.encode()).hexdigest()

    def get_server_wallet(self, user_id: str, wallet_id: str) -> ServerWallet:
        self._record("get_server_wallet", user_id=user_id, wallet_id=wallet_id)
        address = "0x" + hashlib.sha256(wallet_id.encode()).hexdigest()[-40:]
        return ServerWallet(id=wallet_id, address=address, user_id=user_id)

    def execute_bridge(
        self, user_id: str, wallet_id: str, params: BridgeParams
    ) -> TransactionReceipt:
        self._record("execute_bridge", user_id=user_id, wallet_id=wallet_id, params=params)
        tx_hash = self._next_hash(params.to_wire())
        quote = quote_relay_bridge(params)
        logger.info(
            "Simulated bridge",
            extra={"extra_fields": {"wallet_id": wallet_id, "tx_hash": tx_hash}},
        )
        return TransactionReceipt(
            success=True,
            tx_hash=tx_hash,
            timestamp=_now_iso(),
            details={
                "inputAmount": quote.input_amount,
                "outputAmount": quote.output_amount,
                "fees": quote.fees,
            },
        )

    def execute_contract_interaction(
        self,
        user_id: str,
        wallet_id: str,
        chain_id: str,
        interaction: ContractInteraction,
    ) -> TransactionReceipt:
        self._record(
            "execute_contract_interaction",
            user_id=user_id,
            wallet_id=wallet_id,
            chain_id=chain_id,
            interaction=interaction,
        )
        if interaction.method_name in self.fail_methods:
            return TransactionReceipt(
                success=False,
                timestamp=_now_iso(),
                error=f"Simulated failure for {interaction.method_name}",
            )

        details: dict[str, Any] = {
            "contract": interaction.contract_address,
            "method": interaction.method_name,
        }
        if interaction.abi:
            try:
                details["data"] = encode_function_call(
                    interaction.abi, interaction.method_name, interaction.params
                )
            except AbiEncodingError as e:
                return TransactionReceipt(
                    success=False, timestamp=_now_iso(), error=str(e)
                )

        tx_hash = self._next_hash({"chain_id": chain_id, **interaction.to_wire()})
        return TransactionReceipt(
            success=True, tx_hash=tx_hash, timestamp=_now_iso(), details=details
        )

    def get_wallet_balance(
        self,
        user_id: str,
        wallet_id: str,
        token_address: Optional[str] = None,
        chain_id: Optional[str] = None,
    ) -> str:
        self._record(
            "get_wallet_balance",
            user_id=user_id,
            wallet_id=wallet_id,
            token_address=token_address,
            chain_id=chain_id,
        )
        return "0"

    def sign_message(self, user_id: str, wallet_id: str, message: str) -> str:
        self._record("sign_message", user_id=user_id, wallet_id=wallet_id, message=message)
        digest = hashlib.sha256(f"{wallet_id}:{message}".encode()).hexdigest()
        return "0x" + digest + digest + "1b"


FLOW_USD_PRICE = 0.85


def simulate_flow_to_base_bridge(
    chain: ChainAdapter, user_id: str, wallet_id: str, flow_amount: str
) -> dict[str, Any]:
    """Simulates a FLOW -> Base USDC bridge for ``wallet_id``.

    The output amount uses a fixed FLOW price and a 0.1% bridge fee.

    Raises:
        ValueError: If ``flow_amount`` is not a finite positive number.
    """
    amount = float(flow_amount)
    if not math.isfinite(amount) or amount <= 0:
        raise ValueError("flowAmount must be a positive number")

    wallet = chain.get_server_wallet(user_id, wallet_id)
    seed = f"{wallet_id}:{flow_amount}"
    source = "0x" + hashlib.sha256(f"source:{seed}".encode()).hexdigest()
    destination = "0x" + hashlib.sha256(f"destination:{seed}".encode()).hexdigest()
    return {
        "success": True,
        "inputAmount": flow_amount,
        "outputAmount": f"{amount * FLOW_USD_PRICE * (1 - float(BRIDGE_FEE_RATE)):.6f}",
        "transactions": [
            {"chain": "Flow EVM", "hash": source, "status": "confirmed"},
            {"chain": "Base", "hash": destination, "status": "confirmed"},
        ],
        "recipient": wallet.address,
        "txHashes": {"source": [source], "destination": [destination]},
        "timestamp": _now_iso(),
        "bridgeDetails": {
            "fromChain": FLOW_EVM_CHAIN_ID,
            "toChain": BASE_CHAIN_ID,
            "fromToken": "FLOW",
            "toToken": "USDC",
            "exchangeRate": FLOW_USD_PRICE,
            "fees": {
                "bridgeFee": f"{amount * float(BRIDGE_FEE_RATE):.6f}",
                "gasFees": "0.002",
            },
        },
    }
