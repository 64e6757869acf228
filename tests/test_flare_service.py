import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from etf_autoagent.models.enums import VerificationMethod
from etf_autoagent.models.verification import AttestationRequestData
from etf_autoagent.verification.flare import (
    PUBLIC_WEB2_SOURCE_ID,
    WEB2JSON_ATTESTATION_TYPE,
    AttestationError,
    FlareService,
    MockFlareService,
    build_verifier_request,
)

POST = "etf_autoagent.verification.flare.requests.post"


def request_data(**overrides):
    values = {
        "wallet_address": "0x742d35cc6634c0532925a3b8138fb7c75b4fc75e",
        "twitter_handle": "alice",
        "verification_method": VerificationMethod.TWEET,
        "tweet_id": "123",
    }
    values.update(overrides)
    return AttestationRequestData(**values)


def response(payload, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    return resp


def test_build_verifier_request():
    body = build_verifier_request("alice", "secret")
    assert body["attestationType"] == WEB2JSON_ATTESTATION_TYPE
    assert body["sourceId"] == PUBLIC_WEB2_SOURCE_ID
    request_body = body["requestBody"]
    assert request_body["url"].endswith("/users/by/username/alice")
    assert json.loads(request_body["headers"]) == {"Authorization": "Bearer secret"}
    assert json.loads(request_body["abiSignature"])["name"] == "TwitterProfile"


class TestMockFlareService:
    def test_attest_merges_stages(self):
        result = MockFlareService().attest(request_data())
        assert result["attestationId"].startswith("flr_mock_")
        assert result["txHash"].startswith("0x")
        assert result["status"] == "submitted"
        assert result["consensusReached"] is True
        assert 8 <= result["validators"] <= 12
        assert result["merkleRoot"].startswith("0x")
        assert result["merkleProof"].startswith("0x")
        assert 0 <= result["leafIndex"] < 1000

    def test_attestation_ids_differ_between_calls(self):
        service = MockFlareService()
        first = service.attest(request_data())
        second = service.attest(request_data())
        assert first["attestationId"] != second["attestationId"]

    def test_prepare_uses_handle(self):
        prepared = json.loads(MockFlareService("tok").prepare_attestation_request(request_data()))
        assert prepared["requestBody"]["url"].endswith("/alice")


@pytest.fixture
def w3():
    return MagicMock()


@pytest.fixture
def flare(w3):
    return FlareService(
        rpc_url="https://rpc.example/",
        private_key="0x" + "11" * 32,
        verifier_url="https://verifier.example/",
        verifier_api_key="vkey",
        da_layer_url="https://da.example/",
        bearer_token="bearer",
        w3=w3,
        sleep=MagicMock(),
        max_attempts=3,
    )


class TestFlareService:
    def test_prepare_request(self, flare):
        with patch(POST, return_value=response({"status": "VALID", "abiEncodedRequest": "0xabc"})) as post:
            assert flare.prepare_attestation_request(request_data()) == "0xabc"
        assert post.call_args.args[0] == "https://verifier.example/Web2Json/prepareRequest"
        assert post.call_args.kwargs["headers"]["X-API-KEY"] == "vkey"

    def test_prepare_invalid_status(self, flare):
        with patch(POST, return_value=response({"status": "INVALID"})):
            with pytest.raises(AttestationError, match="Failed to prepare attestation request"):
                flare.prepare_attestation_request(request_data())

    def test_prepare_missing_encoded_request(self, flare):
        with patch(POST, return_value=response({"status": "VALID"})):
            with pytest.raises(AttestationError, match="no ABI encoded request"):
                flare.prepare_attestation_request(request_data())

    def test_prepare_http_error(self, flare):
        with patch(POST, return_value=response({}, status=500)):
            with pytest.raises(AttestationError, match="Failed to prepare attestation request"):
                flare.prepare_attestation_request(request_data())

    def test_wait_for_consensus_polls(self, flare, w3):
        is_finalized = w3.eth.contract.return_value.functions.isFinalized
        is_finalized.return_value.call.side_effect = [False, False, True]
        result = flare.wait_for_consensus(42)
        assert result["roundId"] == 42
        assert result["consensusReached"] is True
        assert flare._sleep.call_count == 2
        is_finalized.assert_called_with(200, 42)

    def test_wait_for_consensus_timeout(self, flare, w3):
        w3.eth.contract.return_value.functions.isFinalized.return_value.call.return_value = False
        with pytest.raises(AttestationError, match="consensus timeout after 3 attempts"):
            flare.wait_for_consensus(42)

    def test_wait_for_consensus_call_error(self, flare, w3):
        w3.eth.contract.return_value.functions.isFinalized.return_value.call.side_effect = (
            RuntimeError("rpc down")
        )
        with pytest.raises(AttestationError, match="Failed to wait for consensus: rpc down"):
            flare.wait_for_consensus(1)

    def test_get_merkle_proof(self, flare):
        payload = {"proof": ["0x01"], "response_hex": "0xdead"}
        with patch(POST, return_value=response(payload)) as post:
            result = flare.get_merkle_proof(7, "0xabc")
        assert result == {"roundId": 7, "merkleProof": ["0x01"], "responseHex": "0xdead"}
        assert post.call_args.args[0] == "https://da.example/api/v1/fdc/proof-by-request-round-raw"
        assert post.call_args.kwargs["json"] == {"votingRoundId": 7, "requestBytes": "0xabc"}

    def test_get_merkle_proof_error(self, flare):
        with patch(POST, side_effect=requests.ConnectionError("refused")):
            with pytest.raises(AttestationError, match="Failed to get Merkle proof"):
                flare.get_merkle_proof(7, "0xabc")
