import base64
import hashlib
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from authlib.integrations.base_client import OAuthError as AuthlibOAuthError

from etf_autoagent.verification.oauth import (
    AUTHORIZE_URL,
    TOKEN_URL,
    USERS_ME_URL,
    OAuthError,
    TwitterOAuthClient,
    build_authorization_url,
    callback_url,
    generate_code_verifier,
    generate_personalization_id,
    generate_state,
)

SESSION = "etf_autoagent.verification.oauth.OAuth2Session"


def s256(verifier):
    digest = hashlib.sha256(verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def test_code_verifier_shape():
    verifier = generate_code_verifier()
    assert len(verifier) == 64
    assert verifier.isalnum()
    assert generate_code_verifier() != verifier


def test_random_identifiers():
    state = generate_state()
    assert len(state) == 64
    int(state, 16)
    assert len(generate_personalization_id()) == 32
    assert generate_state() != state


def test_callback_url_strips_trailing_slash():
    assert callback_url("https://app.example/") == (
        "https://app.example/api/verify-twitter/oauth/callback"
    )


def test_authorization_url():
    verifier = generate_code_verifier()
    url = build_authorization_url("cid", "https://app/cb", "st", verifier, "pid")
    parsed = urlparse(url)
    assert url.startswith(AUTHORIZE_URL)
    query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
    assert query["response_type"] == "code"
    assert query["client_id"] == "cid"
    assert query["redirect_uri"] == "https://app/cb"
    assert query["state"] == "st"
    assert query["code_challenge"] == s256(verifier)
    assert query["code_challenge_method"] == "S256"
    assert query["scope"] == "tweet.read users.read offline.access"
    assert query["personalization_id"] == "pid"
    assert query["force_login"] == "true"
    assert query["lang"] == "en"
    assert verifier not in url


def response(status=200, payload=None):
    resp = MagicMock()
    resp.ok = status < 400
    resp.status_code = status
    resp.json.return_value = payload or {}
    return resp


class TestTwitterOAuthClient:
    def test_exchange_code(self):
        client = TwitterOAuthClient("cid", "secret")
        with patch(f"{SESSION}.fetch_token", autospec=True) as fetch_token:
            fetch_token.return_value = {"access_token": "tok", "token_type": "bearer"}
            assert client.exchange_code("code", "https://app/cb", "verifier") == "tok"
        session = fetch_token.call_args.args[0]
        assert fetch_token.call_args.args[1] == TOKEN_URL
        assert fetch_token.call_args.kwargs["code"] == "code"
        assert fetch_token.call_args.kwargs["code_verifier"] == "verifier"
        assert session.client_id == "cid"
        assert session.client_secret == "secret"
        assert session.redirect_uri == "https://app/cb"
        assert session.token_endpoint_auth_method == "client_secret_basic"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"side_effect": AuthlibOAuthError("invalid_grant")},
            {"return_value": {}},
            {"side_effect": requests.Timeout("slow")},
        ],
    )
    def test_exchange_code_failures(self, kwargs):
        client = TwitterOAuthClient("cid", "secret")
        with patch(f"{SESSION}.fetch_token", **kwargs):
            with pytest.raises(OAuthError, match="Failed to exchange code for access token"):
                client.exchange_code("code", "https://app/cb", "verifier")

    def test_fetch_me(self):
        client = TwitterOAuthClient("cid", "secret")
        with patch(f"{SESSION}.get", autospec=True) as get:
            get.return_value = response(payload={"data": {"username": "alice"}})
            assert client.fetch_me("tok") == {"username": "alice"}
        session = get.call_args.args[0]
        assert get.call_args.args[1] == USERS_ME_URL
        assert session.token["access_token"] == "tok"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"return_value": response(status=401)},
            {"side_effect": requests.ConnectionError("down")},
        ],
    )
    def test_fetch_me_failure(self, kwargs):
        client = TwitterOAuthClient("cid", "secret")
        with patch(f"{SESSION}.get", **kwargs):
            with pytest.raises(OAuthError, match="Failed to fetch user profile"):
                client.fetch_me("tok")
