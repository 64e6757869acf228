"""Chain adapter over the Privy server-wallet REST API.

Contract calls are ABI-encoded locally and sent with ``eth_sendTransaction``
through the wallet RPC endpoint. Bridge transfers are delegated to an
external Relay bridge server that holds the routing logic.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import requests

from etf_autoagent.execution.abi import AbiEncodingError, encode_function_call
from etf_autoagent.execution.chain import ChainAdapter, ChainAdapterError
from etf_autoagent.models.chain import (
    BridgeParams,
    ContractInteraction,
    ServerWallet,
    TransactionReceipt,
)
from etf_autoagent.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PRIVY_API_URL = "https://api.privy.io/v1"
DEFAULT_BRIDGE_SERVER_URL = "http://localhost:3012"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PrivyChainAdapter(ChainAdapter):
    """Server-wallet adapter backed by Privy.

    Attributes:
        app_id: Privy application id, also sent as the ``privy-app-id`` header.
        api_url: Base URL of the Privy REST API.
        bridge_server_url: Base URL of the Relay bridge server.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        auth_key: Optional[str] = None,
        api_url: str = DEFAULT_PRIVY_API_URL,
        bridge_server_url: str = DEFAULT_BRIDGE_SERVER_URL,
        timeout: float = 30,
    ):
        if not app_id or not app_secret:
            raise ValueError("Privy app id and secret are required")
        self.app_id = app_id
        self._app_secret = app_secret
        self._auth_key = auth_key
        self.api_url = api_url.rstrip("/")
        self.bridge_server_url = bridge_server_url.rstrip("/")
        self.timeout = timeout

    @property
    def _headers(self) -> dict[str, str]:
        return {"privy-app-id": self.app_id, "Content-Type": "application/json"}

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = requests.request(
                method,
                f"{self.api_url}{path}",
                auth=(self.app_id, self._app_secret),
                headers=self._headers,
                timeout=self.timeout,
                **kwargs,
            )
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise ChainAdapterError(f"Privy request {method} {path} failed: {e}") from e

    def _rpc(self, wallet_id: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", f"/wallets/{wallet_id}/rpc", json=body).get(
            "data", {}
        )

    def get_server_wallet(self, user_id: str, wallet_id: str) -> ServerWallet:
        data = self._request("GET", f"/wallets/{wallet_id}")
        if not data.get("address"):
            raise ChainAdapterError(f"Wallet {wallet_id} has no address")
        return ServerWallet(
            id=data.get("id", wallet_id),
            address=data["address"],
            chain_type=data.get("chain_type", "ethereum"),
            user_id=user_id,
        )

    def execute_contract_interaction(
        self,
        user_id: str,
        wallet_id: str,
        chain_id: str,
        interaction: ContractInteraction,
    ) -> TransactionReceipt:
        try:
            self.get_server_wallet(user_id, wallet_id)
            call_data = encode_function_call(
                interaction.abi, interaction.method_name, interaction.params
            )
            result = self._rpc(
                wallet_id,
                {
                    "method": "eth_sendTransaction",
                    "caip2": f"eip155:{chain_id}",
                    "params": {
                        "transaction": {
                            "to": interaction.contract_address,
                            "data": call_data,
                            "value": hex(int(str(interaction.value or "0"), 0)),
                        }
                    },
                },
            )
        except (ChainAdapterError, AbiEncodingError, ValueError) as e:
            logger.error(
                "Contract interaction failed",
                extra={
                    "extra_fields": {
                        "wallet_id": wallet_id,
                        "method": interaction.method_name,
                        "error": str(e),
                    }
                },
            )
            return TransactionReceipt(success=False, timestamp=_now_iso(), error=str(e))

        tx_hash = result.get("hash")
        logger.info(
            "Contract interaction executed",
            extra={
                "extra_fields": {
                    "wallet_id": wallet_id,
                    "chain_id": chain_id,
                    "contract": interaction.contract_address,
                    "method": interaction.method_name,
                    "tx_hash": tx_hash,
                }
            },
        )
        return TransactionReceipt(
            success=bool(tx_hash),
            tx_hash=tx_hash,
            timestamp=_now_iso(),
            error=None if tx_hash else "Privy returned no transaction hash",
            details={
                "contract": interaction.contract_address,
                "method": interaction.method_name,
                "params": interaction.params,
            },
        )

    def execute_bridge(
        self, user_id: str, wallet_id: str, params: BridgeParams
    ) -> TransactionReceipt:
        try:
            self.get_server_wallet(user_id, wallet_id)
            resp = requests.post(
                f"{self.bridge_server_url}/bridge",
                json={
                    "userId": user_id,
                    "walletId": wallet_id,
                    "flowAmount": params.amount,
                    "privyConfig": {
                        "appId": self.app_id,
                        "appSecret": self._app_secret,
                        "authPrivateKey": self._auth_key,
                    },
                },
                timeout=self.timeout,
            )
            resp.raise_for_status()
            result = resp.json()
        except (ChainAdapterError, requests.RequestException) as e:
            return TransactionReceipt(success=False, timestamp=_now_iso(), error=str(e))

        if not result.get("success"):
            return TransactionReceipt(
                success=False,
                timestamp=_now_iso(),
                error=result.get("error") or "Bridge operation failed",
            )

        tx_hashes = result.get("txHashes") or {}
        source = (tx_hashes.get("source") or [None])[0]
        destination = (tx_hashes.get("destination") or [None])[0]
        quote = self.get_bridge_quote(params)
        return TransactionReceipt(
            success=True,
            tx_hash=source or destination,
            timestamp=_now_iso(),
            details={
                "inputAmount": result.get("inputAmount"),
                "outputAmount": result.get("outputAmount"),
                "sourceTxHash": source,
                "destinationTxHash": destination,
                "fees": quote.fees,
            },
        )

    def get_wallet_balance(
        self,
        user_id: str,
        wallet_id: str,
        token_address: Optional[str] = None,
        chain_id: Optional[str] = None,
    ) -> str:
        query = {"asset": token_address or "eth"}
        if chain_id:
            query["chain"] = chain_id
        data = self._request("GET", f"/wallets/{wallet_id}/balance", params=query)
        balances = data.get("balances") or []
        if not balances:
            return "0"
        return str(balances[0].get("raw_value", "0"))

    def sign_message(self, user_id: str, wallet_id: str, message: str) -> str:
        result = self._rpc(
            wallet_id,
            {
                "method": "personal_sign",
                "params": {"message": message, "encoding": "utf-8"},
            },
        )
        signature = result.get("signature")
        if not signature:
            raise ChainAdapterError("Privy returned no signature")
        return signature
