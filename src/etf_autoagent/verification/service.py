"""Orchestration of the three wallet/Twitter verification flows.

Each flow validates its inputs, proves control of the Twitter account
(tweet content, OAuth authorization or a bio code), attests the facts on
Flare and stores a VerificationRecord keyed by the lower-cased wallet.
Client mistakes raise VerificationError with a 4xx status; upstream
failures are wrapped into a 500 with the flow's prefix.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from urllib.parse import quote

import requests

from etf_autoagent.config import Settings
from etf_autoagent.models.enums import ServiceMode, VerificationMethod
from etf_autoagent.models.verification import (
    AttestationRequestData,
    BioChallenge,
    PendingOAuth,
    VerificationRecord,
)
from etf_autoagent.observability.logging import get_logger
from etf_autoagent.observability.metrics import VERIFICATIONS_TOTAL
from etf_autoagent.verification import oauth
from etf_autoagent.verification.flare import AttestationService, FlareService, MockFlareService
from etf_autoagent.verification.store import KeyValueStore, VerificationStores
from etf_autoagent.verification.twitter import (
    MockTwitterService,
    TwitterApiService,
    TwitterService,
)
from etf_autoagent.verification.validators import (
    extract_tweet_id,
    generate_verification_code,
    normalize_twitter_handle,
    normalize_wallet_address,
    validate_twitter_handle,
    validate_wallet_address,
)

logger = get_logger(__name__)

DEFAULT_CHALLENGE_TTL_SECONDS = 600
REQUIRED_HASHTAGS = ("#flareverified", "#aietf")


class VerificationError(Exception):
    """A verification request that cannot be honoured.

    Attributes:
        status_code: HTTP status to report.
        message: Client-facing error text.
    """

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def find_pending_code(bio_challenges: KeyValueStore, handle: str) -> Optional[str]:
    """Returns the code of a live bio challenge for ``handle``, if any."""
    suffix = f"_{handle.lower()}"
    for key, challenge in bio_challenges.items():
        if key.endswith(suffix):
            return challenge.get("verificationCode")
    return None


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class VerificationService:
    """Runs the tweet, OAuth and bio verification flows."""

    def __init__(
        self,
        stores: VerificationStores,
        twitter: TwitterService,
        flare: AttestationService,
        mode: ServiceMode = ServiceMode.MOCK,
        oauth_client: Optional[oauth.TwitterOAuthClient] = None,
        base_url: str = "http://localhost:3000",
        challenge_ttl_seconds: int = DEFAULT_CHALLENGE_TTL_SECONDS,
        grace_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        self.stores = stores
        self.twitter = twitter
        self.flare = flare
        self.mode = ServiceMode(mode)
        self.oauth_client = oauth_client
        self.base_url = base_url
        self.challenge_ttl_seconds = challenge_ttl_seconds
        self.grace_seconds = grace_seconds
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _require_identity(
        self, wallet_address: Optional[str], twitter_handle: Optional[str]
    ) -> tuple[str, str]:
        if not wallet_address or not twitter_handle:
            raise VerificationError(
                400, "Missing required fields: walletAddress, twitterHandle"
            )
        return self._validate_identity(wallet_address, twitter_handle)

    def _validate_identity(self, wallet_address: str, twitter_handle: str) -> tuple[str, str]:
        if not validate_wallet_address(wallet_address):
            raise VerificationError(400, "Invalid wallet address format")
        if not validate_twitter_handle(twitter_handle):
            raise VerificationError(400, "Invalid Twitter handle format")
        return normalize_wallet_address(wallet_address), normalize_twitter_handle(twitter_handle)

    def _ensure_not_verified(self, wallet: str) -> None:
        if self.stores.verifications.contains(wallet):
            raise VerificationError(409, "Wallet address already verified")

    def _store(self, record: VerificationRecord) -> dict[str, Any]:
        payload = record.to_wire()
        self.stores.verifications.set(record.wallet_address, payload)
        VERIFICATIONS_TOTAL.labels(method=record.verification_method, outcome="verified").inc()
        logger.info(
            "Wallet verified",
            extra={
                "extra_fields": {
                    "wallet": record.wallet_address,
                    "handle": record.twitter_handle,
                    "method": record.verification_method,
                }
            },
        )
        return payload

    def get_status(self, wallet_address: str) -> dict[str, Any]:
        if not validate_wallet_address(wallet_address):
            raise VerificationError(400, "Invalid wallet address format")
        record = self.stores.verifications.get(normalize_wallet_address(wallet_address))
        if record is None:
            return {
                "verified": False,
                "message": "No verification found for this wallet address",
            }
        return {**record, "verified": True}

    def verify_tweet(
        self,
        wallet_address: Optional[str],
        twitter_handle: Optional[str],
        raw_tweet_id: Optional[str],
    ) -> dict[str, Any]:
        """Verifies ownership through a public tweet.

        The tweet must contain the wallet address and both the #FlareVerified
        and #AIETF hashtags, compared case-insensitively.

        Raises:
            VerificationError: 400 for invalid input or tweet content, 409
                when already verified, 500 on upstream failure.
        """
        if not wallet_address or not twitter_handle or not raw_tweet_id:
            raise VerificationError(
                400, "Missing required fields: walletAddress, twitterHandle, tweetId"
            )
        wallet, handle = self._validate_identity(wallet_address, twitter_handle)
        tweet_id = extract_tweet_id(raw_tweet_id)
        if not tweet_id:
            raise VerificationError(400, "Invalid tweet ID or URL format")
        self._ensure_not_verified(wallet)

        try:
            tweet = self.twitter.get_tweet_data(tweet_id)
            text = tweet.text.lower()
            if wallet not in text:
                raise VerificationError(
                    400, "Tweet does not contain the specified wallet address"
                )
            if not all(tag in text for tag in REQUIRED_HASHTAGS):
                raise VerificationError(
                    400, "Tweet must contain both #FlareVerified and #AIETF hashtags"
                )

            attestation = self.flare.attest(
                AttestationRequestData(
                    wallet_address=wallet,
                    twitter_handle=handle,
                    verification_method=VerificationMethod.TWEET,
                    tweet_id=tweet_id,
                    timestamp=self._now_ms(),
                )
            )
        except VerificationError:
            VERIFICATIONS_TOTAL.labels(method="tweet", outcome="rejected").inc()
            raise
        except Exception as e:
            VERIFICATIONS_TOTAL.labels(method="tweet", outcome="error").inc()
            logger.error(
                "Tweet verification failed",
                extra={"extra_fields": {"wallet": wallet, "error": str(e)}},
            )
            raise VerificationError(500, f"Verification failed: {e}") from e

        record = VerificationRecord(
            wallet_address=wallet,
            twitter_handle=handle,
            verification_method=VerificationMethod.TWEET,
            tweet_id=tweet_id,
            tweet_data=tweet.model_dump(),
            flare_attestation=attestation,
            verified_at=_utc_iso(),
            service_type=self.mode.value,
        )
        return {
            "success": True,
            "message": "Twitter account successfully verified via tweet using "
            f"{self.mode.value} services",
            "verification": self._store(record),
        }

    def initiate_oauth(
        self, wallet_address: Optional[str], twitter_handle: Optional[str]
    ) -> dict[str, Any]:
        wallet, handle = self._require_identity(wallet_address, twitter_handle)
        self._ensure_not_verified(wallet)
        if self.oauth_client is None:
            raise VerificationError(500, "Twitter OAuth is not properly configured")

        verifier = oauth.generate_code_verifier()
        state = oauth.generate_state()
        personalization_id = oauth.generate_personalization_id()
        now = self._now_ms()
        pending = PendingOAuth(
            wallet_address=wallet,
            twitter_handle=handle,
            code_verifier=verifier,
            timestamp=now,
            expires_at=now + self.challenge_ttl_seconds * 1000,
            personalization_id=personalization_id,
        )
        self.stores.pending_oauth.set(
            state, pending.to_wire(), ttl_seconds=self.challenge_ttl_seconds
        )

        url = oauth.build_authorization_url(
            self.oauth_client.client_id,
            oauth.callback_url(self.base_url),
            state,
            verifier,
            personalization_id,
        )
        return {
            "success": True,
            "authorizationUrl": url,
            "expiresIn": self.challenge_ttl_seconds,
            "message": "Please authorize the application to verify your Twitter account",
        }

    def complete_oauth(
        self, code: Optional[str], state: Optional[str], error: Optional[str] = None
    ) -> str:
        """Finishes an OAuth verification.

        Returns:
            The front-end path to redirect to, carrying either
            ``verification=success&wallet=...`` or
            ``verification=error&message=...``.
        """
        if error:
            return _error_redirect("Twitter authorization failed")
        if not code or not state:
            return _error_redirect("Missing authorization parameters")

        raw = self.stores.pending_oauth.get(state)
        if raw is None:
            return _error_redirect("Invalid or expired authorization state")
        self.stores.pending_oauth.delete(state)
        pending = PendingOAuth.model_validate(raw)

        try:
            if self.oauth_client is None:
                raise oauth.OAuthError("Twitter OAuth is not properly configured")
            token = self.oauth_client.exchange_code(
                code, oauth.callback_url(self.base_url), pending.code_verifier
            )
            profile = self.oauth_client.fetch_me(token)
            attestation = self.flare.attest(
                AttestationRequestData(
                    wallet_address=pending.wallet_address,
                    twitter_handle=pending.twitter_handle,
                    verification_method=VerificationMethod.OAUTH,
                    user_profile=profile,
                    timestamp=self._now_ms(),
                )
            )
        except Exception as e:
            VERIFICATIONS_TOTAL.labels(method="oauth", outcome="error").inc()
            logger.error(
                "OAuth callback failed",
                extra={"extra_fields": {"wallet": pending.wallet_address, "error": str(e)}},
            )
            return _error_redirect(str(e))

        self._store(
            VerificationRecord(
                wallet_address=pending.wallet_address,
                twitter_handle=pending.twitter_handle,
                verification_method=VerificationMethod.OAUTH,
                user_profile=profile,
                flare_attestation=attestation,
                verified_at=_utc_iso(),
                service_type=self.mode.value,
            )
        )
        return f"/?verification=success&wallet={pending.wallet_address}"

    def _challenge_key(self, wallet: str, handle: str) -> str:
        return f"{wallet}_{handle}"

    def initiate_bio(
        self, wallet_address: Optional[str], twitter_handle: Optional[str]
    ) -> dict[str, Any]:
        wallet, handle = self._require_identity(wallet_address, twitter_handle)
        self._ensure_not_verified(wallet)

        now = self._now_ms()
        challenge = BioChallenge(
            wallet_address=wallet,
            twitter_handle=handle,
            verification_code=generate_verification_code(),
            created_at=now,
            expires_at=now + self.challenge_ttl_seconds * 1000,
        )
        self.stores.bio_challenges.set(
            self._challenge_key(wallet, handle),
            challenge.to_wire(),
            ttl_seconds=self.challenge_ttl_seconds + self.grace_seconds,
        )
        return {
            "success": True,
            "verificationCode": challenge.verification_code,
            "expiresIn": self.challenge_ttl_seconds,
            "message": "Add this verification code to your Twitter bio and then "
            "complete verification",
        }

    def complete_bio(
        self, wallet_address: Optional[str], twitter_handle: Optional[str]
    ) -> dict[str, Any]:
        """Checks the profile bio for the pending code and verifies on a match.

        Raises:
            VerificationError: 400 when no challenge is pending, it expired,
                or the bio lacks the code; 409 when already verified; 500 on
                upstream failure.
        """
        wallet, handle = self._require_identity(wallet_address, twitter_handle)
        self._ensure_not_verified(wallet)

        key = self._challenge_key(wallet, handle)
        raw = self.stores.bio_challenges.get(key)
        if raw is None:
            raise VerificationError(
                400,
                "No pending bio verification found. Please initiate bio verification first.",
            )
        challenge = BioChallenge.model_validate(raw)

        now = self._now_ms()
        if now > challenge.expires_at:
            self.stores.bio_challenges.delete(key)
            raise VerificationError(
                400, "Verification code has expired. Please initiate bio verification again."
            )

        challenge.attempts += 1
        remaining = (challenge.expires_at - now) / 1000
        self.stores.bio_challenges.set(
            key, challenge.to_wire(), ttl_seconds=remaining + self.grace_seconds
        )

        try:
            profile = self.twitter.get_user_profile(handle)
            bio = (profile.description or "").strip()
            expected = challenge.verification_code.strip()
            compact = "".join(ch for ch in expected if ch.isalnum()).lower()
            if not bio or not (expected.lower() in bio.lower() or compact in bio.lower()):
                raise VerificationError(
                    400,
                    f'Verification code "{challenge.verification_code}" not found in '
                    f'Twitter bio. Current bio: "{bio}". Please add the code to your '
                    "bio and try again.",
                )

            self.stores.bio_challenges.delete(key)
            profile_payload = profile.model_dump()
            attestation = self.flare.attest(
                AttestationRequestData(
                    wallet_address=wallet,
                    twitter_handle=handle,
                    verification_method=VerificationMethod.BIO,
                    verification_code=challenge.verification_code,
                    user_profile=profile_payload,
                    timestamp=self._now_ms(),
                )
            )
        except VerificationError:
            VERIFICATIONS_TOTAL.labels(method="bio", outcome="rejected").inc()
            raise
        except Exception as e:
            VERIFICATIONS_TOTAL.labels(method="bio", outcome="error").inc()
            logger.error(
                "Bio verification failed",
                extra={"extra_fields": {"wallet": wallet, "error": str(e)}},
            )
            raise VerificationError(500, f"Bio verification failed: {e}") from e

        record = VerificationRecord(
            wallet_address=wallet,
            twitter_handle=handle,
            verification_method=VerificationMethod.BIO,
            verification_code=challenge.verification_code,
            user_profile=profile_payload,
            flare_attestation=attestation,
            verified_at=_utc_iso(),
            service_type=self.mode.value,
        )
        return {
            "success": True,
            "message": "Twitter account successfully verified via bio",
            "verification": self._store(record),
        }


def _error_redirect(message: str) -> str:
    return f"/?verification=error&message={quote(message, safe='')}"


def health_report(settings: Settings) -> dict[str, Any]:
    mode = settings.service_mode.value
    return {
        "status": "healthy",
        "timestamp": _utc_iso(),
        "version": "1.0.0",
        "environment": settings.environment,
        "services": {"flare": mode, "twitter": mode},
        "config": {
            "flareUrl": settings.flare_fdc_url or "not_configured",
            "hasFlareKey": settings.has_flare_config,
            "hasTwitterKey": settings.has_twitter_config,
        },
    }


def probe_services(settings: Settings) -> dict[str, Any]:
    """Checks reachability of the real Flare and Twitter endpoints.

    Returns:
        ``flare``/``twitter`` set to healthy, unhealthy, error or unknown,
        or ``mock`` for both in mock mode.
    """
    results: dict[str, Any] = {"flare": "unknown", "twitter": "unknown", "timestamp": _utc_iso()}
    if settings.service_mode == ServiceMode.MOCK:
        results["flare"] = results["twitter"] = "mock"
        return results

    if settings.flare_fdc_url:
        try:
            resp = requests.get(f"{settings.flare_fdc_url}/health", timeout=5)
            results["flare"] = "healthy" if resp.ok else "unhealthy"
        except requests.RequestException as e:
            results["flare"] = "error"
            results["flareError"] = str(e)

    if settings.twitter_bearer_token:
        try:
            ok = TwitterApiService(settings.twitter_bearer_token).ping()
            results["twitter"] = "healthy" if ok else "unhealthy"
        except requests.RequestException as e:
            results["twitter"] = "error"
            results["twitterError"] = str(e)
    return results


def build_verification_service(
    settings: Settings, stores: Optional[VerificationStores] = None
) -> VerificationService:
    """Wires stores and real or mock collaborators from settings.

    Raises:
        ConfigurationError: When real services are forced but not configured.
    """
    settings.validate_real_services()
    if stores is None:
        stores = (
            VerificationStores.from_database_url(settings.database_url)
            if settings.database_url
            else VerificationStores.in_memory()
        )

    def lookup(handle: str) -> Optional[str]:
        return find_pending_code(stores.bio_challenges, handle)

    mode = settings.service_mode
    twitter: TwitterService
    flare: AttestationService
    if mode == ServiceMode.REAL:
        twitter = TwitterApiService(settings.twitter_bearer_token, pending_code_lookup=lookup)
        flare = FlareService(
            rpc_url=f"{settings.coston2_rpc_url}{settings.flare_rpc_api_key}",
            private_key=settings.private_key,
            verifier_url=settings.web2json_verifier_url,
            verifier_api_key=settings.verifier_api_key,
            da_layer_url=settings.coston2_da_layer_url or "",
            bearer_token=settings.twitter_bearer_token,
        )
    else:
        twitter = MockTwitterService(pending_code_lookup=lookup)
        flare = MockFlareService(settings.twitter_bearer_token or "mock_token")

    oauth_client = (
        oauth.TwitterOAuthClient(settings.twitter_client_id, settings.twitter_client_secret)
        if settings.has_oauth_config
        else None
    )
    logger.info(
        "Verification services configured",
        extra={"extra_fields": {"mode": mode.value, "oauth": oauth_client is not None}},
    )
    return VerificationService(
        stores=stores,
        twitter=twitter,
        flare=flare,
        mode=mode,
        oauth_client=oauth_client,
        base_url=settings.base_url,
        challenge_ttl_seconds=settings.verification_ttl_seconds,
        grace_seconds=settings.expired_record_grace_seconds,
    )
