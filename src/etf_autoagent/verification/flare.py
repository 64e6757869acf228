"""Flare Data Connector attestation for verified Twitter profiles.

The real service prepares a Web2Json request through the verifier API,
submits it to FdcHub on Coston2, waits for the voting round to finalize on
the Relay contract and fetches the Merkle proof from the DA layer. The mock
service fabricates deterministic results with the same shape.
"""

import hashlib
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import requests
from web3 import Web3

from etf_autoagent.models.verification import AttestationRequestData, AttestationSubmission
from etf_autoagent.observability.logging import get_logger

logger = get_logger(__name__)

WEB2JSON_ATTESTATION_TYPE = "0x576562324a736f6e000000000000000000000000000000000000000000000000"
PUBLIC_WEB2_SOURCE_ID = "0x5075626c69635765623200000000000000000000000000000000000000000000"
COSTON2_CONTRACT_REGISTRY = "0xaD67FE66660Fb8dFE9d6b1b4240d8650e30F6019"
FDC_PROTOCOL_ID = 200

CONSENSUS_MAX_ATTEMPTS = 30
CONSENSUS_POLL_SECONDS = 10.0

PROFILE_JQ = (
    '{username: (.data.username // ""), name: (.data.name // ""), '
    'description: (.data.description // ""), verified: (.data.verified // false), '
    "followers_count: (.data.public_metrics.followers_count // 0), "
    "following_count: (.data.public_metrics.following_count // 0), "
    'location: (.data.location // "")}'
)

PROFILE_ABI_SIGNATURE = {
    "components": [
        {"internalType": "string", "name": "username", "type": "string"},
        {"internalType": "string", "name": "name", "type": "string"},
        {"internalType": "string", "name": "description", "type": "string"},
        {"internalType": "bool", "name": "verified", "type": "bool"},
        {"internalType": "uint256", "name": "followers_count", "type": "uint256"},
        {"internalType": "uint256", "name": "following_count", "type": "uint256"},
        {"internalType": "string", "name": "location", "type": "string"},
    ],
    "name": "TwitterProfile",
    "type": "tuple",
}


def _view(name: str, inputs: list[tuple[str, str]], output: str) -> dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": output}],
    }


REGISTRY_ABI = [_view("getContractAddressByName", [("_name", "string")], "address")]
FEE_CONFIG_ABI = [_view("getRequestFee", [("_data", "bytes")], "uint256")]
SYSTEMS_MANAGER_ABI = [
    _view("firstVotingRoundStartTs", [], "uint64"),
    _view("votingEpochDurationSeconds", [], "uint64"),
]
RELAY_ABI = [_view("isFinalized", [("_protocolId", "uint256"), ("_votingRoundId", "uint256")], "bool")]
FDC_HUB_ABI = [
    {
        "name": "requestAttestation",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [{"name": "_data", "type": "bytes"}],
        "outputs": [],
    }
]


class AttestationError(RuntimeError):
    """Raised when any stage of the attestation pipeline fails."""


def build_verifier_request(twitter_handle: str, bearer_token: str) -> dict[str, Any]:
    """Web2Json request attesting the public profile of ``twitter_handle``."""
    return {
        "attestationType": WEB2JSON_ATTESTATION_TYPE,
        "sourceId": PUBLIC_WEB2_SOURCE_ID,
        "requestBody": {
            "url": f"https://api.twitter.com/2/users/by/username/{twitter_handle}",
            "httpMethod": "GET",
            "headers": json.dumps({"Authorization": f"Bearer {bearer_token}"}),
            "queryParams": "{}",
            "body": "{}",
            "postProcessJq": PROFILE_JQ,
            "abiSignature": json.dumps(PROFILE_ABI_SIGNATURE),
        },
    }


class AttestationService(ABC):
    """The four stages of a Flare attestation."""

    @abstractmethod
    def prepare_attestation_request(self, data: AttestationRequestData) -> str:
        """Returns the ABI-encoded request for the profile in ``data``."""
        pass  # pragma: no cover

    @abstractmethod
    def submit_attestation(self, data: AttestationRequestData) -> AttestationSubmission:
        pass  # pragma: no cover

    @abstractmethod
    def wait_for_consensus(self, round_id: Any) -> dict[str, Any]:
        pass  # pragma: no cover

    @abstractmethod
    def get_merkle_proof(self, round_id: Any, abi_encoded_request: str) -> dict[str, Any]:
        pass  # pragma: no cover

    def attest(self, data: AttestationRequestData) -> dict[str, Any]:
        """Runs every stage and merges their payloads.

        Returns:
            Submission, consensus and proof fields in one dict; later
            stages override earlier keys.
        """
        submission = self.submit_attestation(data)
        consensus = self.wait_for_consensus(submission.attestation_id)
        proof = self.get_merkle_proof(
            submission.attestation_id, self.prepare_attestation_request(data)
        )
        return {**submission.model_dump(by_alias=True, exclude_none=True), **consensus, **proof}


class MockFlareService(AttestationService):
    """Deterministic attestation results, no network access."""

    def __init__(self, bearer_token: str = "mock_token"):
        self._bearer_token = bearer_token
        self._counter = 0

    def _digest(self, *parts: Any) -> str:
        self._counter += 1
        seed = json.dumps([self._counter, *parts], sort_keys=True, default=str)
        return hashlib.sha256(seed.encode()).hexdigest()

    def prepare_attestation_request(self, data: AttestationRequestData) -> str:
        return json.dumps(build_verifier_request(data.twitter_handle, self._bearer_token))

    def submit_attestation(self, data: AttestationRequestData) -> AttestationSubmission:
        digest = self._digest(data.to_wire())
        return AttestationSubmission(
            attestation_id=f"flr_mock_{digest[:8]}",
            tx_hash="0x" + digest,
            status="submitted",
        )

    def wait_for_consensus(self, round_id: Any) -> dict[str, Any]:
        return {
            "attestationId": round_id,
            "consensusReached": True,
            "validators": 8 + int(self._digest(round_id)[:2], 16) % 5,
            "timestamp": int(time.time() * 1000),
        }

    def get_merkle_proof(self, round_id: Any, abi_encoded_request: str) -> dict[str, Any]:
        proof = self._digest(round_id, abi_encoded_request)
        root = self._digest(proof)
        return {
            "attestationId": round_id,
            "merkleProof": "0x" + proof + root,
            "attestationHash": "0x" + self._digest(abi_encoded_request),
            "merkleRoot": "0x" + root,
            "leafIndex": int(proof[:4], 16) % 1000,
        }


class FlareService(AttestationService):
    """Attestation against Coston2 through the FDC contracts.

    Attributes:
        w3: Web3 connection to the Coston2 RPC endpoint.
        account: Local signer paying the attestation fee.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        verifier_url: str,
        verifier_api_key: str,
        da_layer_url: str,
        bearer_token: str,
        w3: Optional[Web3] = None,
        sleep: Callable[[float], None] = time.sleep,
        poll_seconds: float = CONSENSUS_POLL_SECONDS,
        max_attempts: int = CONSENSUS_MAX_ATTEMPTS,
        timeout: float = 30,
    ):
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))
        self.account = self.w3.eth.account.from_key(private_key)
        self.verifier_url = verifier_url
        self._verifier_api_key = verifier_api_key
        self.da_layer_url = da_layer_url
        self._bearer_token = bearer_token
        self._sleep = sleep
        self.poll_seconds = poll_seconds
        self.max_attempts = max_attempts
        self.timeout = timeout

    def _contract(self, name: str, abi: list[dict[str, Any]]):
        registry = self.w3.eth.contract(
            address=Web3.to_checksum_address(COSTON2_CONTRACT_REGISTRY), abi=REGISTRY_ABI
        )
        try:
            address = registry.functions.getContractAddressByName(name).call()
        except Exception as e:
            raise AttestationError(f"Failed to get {name} address: {e}") from e
        return self.w3.eth.contract(address=address, abi=abi)

    def prepare_attestation_request(self, data: AttestationRequestData) -> str:
        body = build_verifier_request(data.twitter_handle, self._bearer_token)
        try:
            resp = requests.post(
                f"{self.verifier_url}Web2Json/prepareRequest",
                json=body,
                headers={"accept": "application/json", "X-API-KEY": self._verifier_api_key},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            result = resp.json()
        except requests.RequestException as e:
            raise AttestationError(f"Failed to prepare attestation request: {e}") from e

        if result.get("status") != "VALID":
            raise AttestationError(
                f"Failed to prepare attestation request: verifier returned status {result.get('status')}"
            )
        if not result.get("abiEncodedRequest"):
            raise AttestationError(
                "Failed to prepare attestation request: no ABI encoded request returned"
            )
        return result["abiEncodedRequest"]

    def _round_id(self, block_number: int) -> int:
        block = self.w3.eth.get_block(block_number)
        manager = self._contract("FlareSystemsManager", SYSTEMS_MANAGER_ABI)
        first_start = manager.functions.firstVotingRoundStartTs().call()
        epoch_seconds = manager.functions.votingEpochDurationSeconds().call()
        return (int(block["timestamp"]) - int(first_start)) // int(epoch_seconds)

    def submit_attestation(self, data: AttestationRequestData) -> AttestationSubmission:
        request_bytes = self.prepare_attestation_request(data)
        try:
            fee = (
                self._contract("FdcRequestFeeConfigurations", FEE_CONFIG_ABI)
                .functions.getRequestFee(request_bytes)
                .call()
            )
            tx = (
                self._contract("FdcHub", FDC_HUB_ABI)
                .functions.requestAttestation(request_bytes)
                .build_transaction(
                    {
                        "from": self.account.address,
                        "value": fee,
                        "nonce": self.w3.eth.get_transaction_count(self.account.address),
                    }
                )
            )
            signed = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=120)
            if receipt["status"] != 1:
                raise AttestationError("requestAttestation reverted")
            round_id = self._round_id(receipt["blockNumber"])
        except AttestationError:
            raise
        except Exception as e:
            raise AttestationError(f"Failed to submit attestation: {e}") from e

        logger.info(
            "Attestation submitted",
            extra={"extra_fields": {"round_id": round_id, "block": receipt["blockNumber"]}},
        )
        return AttestationSubmission(
            attestation_id=round_id,
            tx_hash=Web3.to_hex(tx_hash),
            status="submitted",
            block_number=receipt["blockNumber"],
        )

    def wait_for_consensus(self, round_id: Any) -> dict[str, Any]:
        relay = self._contract("Relay", RELAY_ABI)
        for attempt in range(self.max_attempts):
            try:
                finalized = relay.functions.isFinalized(FDC_PROTOCOL_ID, int(round_id)).call()
            except Exception as e:
                raise AttestationError(f"Failed to wait for consensus: {e}") from e
            if finalized:
                return {
                    "roundId": round_id,
                    "consensusReached": True,
                    "timestamp": int(time.time() * 1000),
                }
            logger.info(
                "Waiting for consensus",
                extra={"extra_fields": {"round_id": round_id, "attempt": attempt + 1}},
            )
            self._sleep(self.poll_seconds)
        raise AttestationError(
            "Failed to wait for consensus: consensus timeout after "
            f"{self.max_attempts} attempts"
        )

    def get_merkle_proof(self, round_id: Any, abi_encoded_request: str) -> dict[str, Any]:
        try:
            resp = requests.post(
                f"{self.da_layer_url}api/v1/fdc/proof-by-request-round-raw",
                json={"votingRoundId": round_id, "requestBytes": abi_encoded_request},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            proof = resp.json()
        except requests.RequestException as e:
            raise AttestationError(f"Failed to get Merkle proof: {e}") from e
        return {
            "roundId": round_id,
            "merkleProof": proof.get("proof"),
            "responseHex": proof.get("response_hex"),
        }
