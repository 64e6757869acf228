"""Twitter OAuth 2.0 authorization-code flow with PKCE (S256).

Built on authlib's requests integration: ``OAuth2Session`` derives the S256
challenge from the stored verifier when the authorize URL is created and
sends the verifier back with client_secret_basic auth on the code exchange.
"""

import secrets
from typing import Any, Optional

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.common.security import generate_token
from authlib.integrations.requests_client import OAuth2Session

AUTHORIZE_URL = "https://twitter.com/i/oauth2/authorize"
TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
USERS_ME_URL = (
    "https://api.twitter.com/2/users/me"
    "?user.fields=description,verified,public_metrics,location,created_at"
)
OAUTH_SCOPE = "tweet.read users.read offline.access"
CALLBACK_PATH = "/api/verify-twitter/oauth/callback"
CODE_VERIFIER_LENGTH = 64


class OAuthError(RuntimeError):
    """Raised when the token exchange or profile fetch fails."""


def generate_code_verifier() -> str:
    return generate_token(CODE_VERIFIER_LENGTH)


def generate_state() -> str:
    return secrets.token_hex(32)


def generate_personalization_id() -> str:
    return secrets.token_hex(16)


def callback_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}{CALLBACK_PATH}"


def _session(client_id: str, client_secret: Optional[str] = None, **kwargs) -> OAuth2Session:
    return OAuth2Session(
        client_id,
        client_secret,
        scope=OAUTH_SCOPE,
        code_challenge_method="S256",
        token_endpoint_auth_method="client_secret_basic",
        **kwargs,
    )


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    state: str,
    code_verifier: str,
    personalization_id: str,
) -> str:
    """Builds the consent URL the user is redirected to.

    Args:
        client_id: Twitter app client id.
        redirect_uri: Absolute callback URL registered with Twitter.
        state: Opaque key of the pending authorization.
        code_verifier: PKCE verifier; only its S256 challenge is sent.
        personalization_id: Twitter personalization id for this attempt.

    Returns:
        The authorize URL with all query parameters.
    """
    session = _session(client_id, redirect_uri=redirect_uri)
    url, _ = session.create_authorization_url(
        AUTHORIZE_URL,
        state=state,
        code_verifier=code_verifier,
        personalization_id=personalization_id,
        force_login="true",
        lang="en",
    )
    return url


class TwitterOAuthClient:
    """Exchanges authorization codes and reads the authorizing user."""

    def __init__(self, client_id: str, client_secret: str, timeout: float = 10):
        self.client_id = client_id
        self._client_secret = client_secret
        self.timeout = timeout

    def exchange_code(self, code: str, redirect_uri: str, code_verifier: str) -> str:
        """Trades an authorization code for an access token.

        Raises:
            OAuthError: If Twitter rejects the exchange.
        """
        session = _session(self.client_id, self._client_secret, redirect_uri=redirect_uri)
        try:
            token = session.fetch_token(
                TOKEN_URL,
                code=code,
                code_verifier=code_verifier,
                timeout=self.timeout,
            )
        except (AuthlibBaseError, requests.RequestException, ValueError) as e:
            raise OAuthError("Failed to exchange code for access token") from e
        access_token = token.get("access_token") if token else None
        if not access_token:
            raise OAuthError("Failed to exchange code for access token")
        return access_token

    def fetch_me(self, access_token: str) -> dict[str, Any]:
        session = _session(
            self.client_id, token={"access_token": access_token, "token_type": "Bearer"}
        )
        try:
            resp = session.get(USERS_ME_URL, timeout=self.timeout)
        except (AuthlibBaseError, requests.RequestException) as e:
            raise OAuthError("Failed to fetch user profile") from e
        if not resp.ok:
            raise OAuthError("Failed to fetch user profile")
        return resp.json().get("data") or {}
