"""Twitter lookups used by the verification flows.

``TwitterApiService`` calls the v2 REST API with a bearer token, caching
responses for five minutes and spacing requests at least one second apart.
``MockTwitterService`` answers from canned data for demos and tests.
"""

import re
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import requests

from etf_autoagent.models.verification import TweetData, TwitterProfile, TwitterUser
from etf_autoagent.observability.logging import get_logger

logger = get_logger(__name__)

TWITTER_API_URL = "https://api.twitter.com/2"
CACHE_TTL_SECONDS = 300
MIN_REQUEST_INTERVAL_SECONDS = 1.0

PendingCodeLookup = Callable[[str], Optional[str]]

_USERNAME_IN_URL_RE = re.compile(r"users/by/username/([^?/]+)")


class TwitterApiError(RuntimeError):
    """Raised when Twitter rejects a request or returns no data."""


class TwitterService(ABC):
    """Read-only Twitter lookups."""

    @abstractmethod
    def get_tweet_data(self, tweet_id: str) -> TweetData:
        pass  # pragma: no cover

    @abstractmethod
    def get_user_profile(self, handle: str) -> TwitterProfile:
        pass  # pragma: no cover


def rate_limited_profile(username: str, pending_code: Optional[str]) -> dict[str, Any]:
    """Stand-in ``users/by/username`` payload served when Twitter returns 429.

    Embeds any pending bio code so bio verification can still complete while
    the API is throttled.
    """
    description = (
        f"Mock bio with verification code: {pending_code}"
        if pending_code
        else "Mock user data due to rate limit"
    )
    return {
        "data": {
            "username": username,
            "name": "Test User",
            "description": description,
            "verified": False,
            "public_metrics": {"followers_count": 100, "following_count": 50},
            "location": "Test Location",
        }
    }


class TwitterApiService(TwitterService):
    """Twitter v2 API client with a response cache and request spacing."""

    def __init__(
        self,
        bearer_token: str,
        pending_code_lookup: Optional[PendingCodeLookup] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 10,
    ):
        self._bearer_token = bearer_token
        self._pending_code_lookup = pending_code_lookup
        self._clock = clock
        self._sleep = sleep
        self.timeout = timeout
        self._cache: dict[str, tuple[float, dict[str, Any]]] = {}
        self._last_request = 0.0

    def _get(self, url: str) -> dict[str, Any]:
        cached = self._cache.get(url)
        if cached and self._clock() - cached[0] < CACHE_TTL_SECONDS:
            return cached[1]

        elapsed = self._clock() - self._last_request
        if elapsed < MIN_REQUEST_INTERVAL_SECONDS:
            self._sleep(MIN_REQUEST_INTERVAL_SECONDS - elapsed)
        self._last_request = self._clock()

        resp = requests.get(
            url,
            headers={"Authorization": f"Bearer {self._bearer_token}"},
            timeout=self.timeout,
        )

        if resp.status_code == 429:
            match = _USERNAME_IN_URL_RE.search(url)
            if not match:
                raise TwitterApiError("Twitter API rate limit exceeded")
            username = match.group(1)
            logger.warning(
                "Twitter API rate limit hit, serving stand-in profile",
                extra={"extra_fields": {"username": username}},
            )
            code = self._pending_code_lookup(username) if self._pending_code_lookup else None
            return rate_limited_profile(username, code)

        if not resp.ok:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            detail = body.get("detail") or body.get("title") or resp.reason
            raise TwitterApiError(f"Twitter API error: {detail}")

        data = resp.json()
        self._cache[url] = (self._clock(), data)
        return data

    def get_tweet_data(self, tweet_id: str) -> TweetData:
        data = self._get(
            f"{TWITTER_API_URL}/tweets/{tweet_id}"
            "?tweet.fields=author_id,created_at,text,public_metrics"
            "&expansions=author_id&user.fields=username,verified,public_metrics"
        )
        tweet = data.get("data")
        if not tweet:
            raise TwitterApiError("Tweet not found or is private")

        users = (data.get("includes") or {}).get("users") or [{}]
        author = users[0]
        metrics = tweet.get("public_metrics") or {}
        return TweetData(
            id=tweet["id"],
            text=tweet.get("text", ""),
            user=TwitterUser(
                screen_name=author.get("username") or "unknown",
                name=author.get("name") or "Unknown User",
                verified=bool(author.get("verified")),
                followers_count=(author.get("public_metrics") or {}).get("followers_count", 0),
            ),
            created_at=tweet.get("created_at"),
            retweet_count=metrics.get("retweet_count", 0),
            favorite_count=metrics.get("like_count", 0),
        )

    def get_user_profile(self, handle: str) -> TwitterProfile:
        data = self._get(
            f"{TWITTER_API_URL}/users/by/username/{handle}"
            "?user.fields=description,verified,public_metrics,location,created_at"
        )
        user = data.get("data")
        if not user:
            raise TwitterApiError("User not found")
        return profile_from_api(user)

    def ping(self) -> bool:
        resp = requests.get(
            f"{TWITTER_API_URL}/users/by/username/twitter",
            headers={"Authorization": f"Bearer {self._bearer_token}"},
            timeout=5,
        )
        return resp.ok


def profile_from_api(user: dict[str, Any]) -> TwitterProfile:
    metrics = user.get("public_metrics") or {}
    return TwitterProfile(
        screen_name=user.get("username", ""),
        name=user.get("name", ""),
        description=user.get("description") or "",
        verified=bool(user.get("verified")),
        followers_count=metrics.get("followers_count", 0),
        following_count=metrics.get("following_count", 0),
        location=user.get("location") or "",
    )


SAMPLE_TWEETS = [
    {
        "text": "Verifying my wallet 0x742d35Cc6634C0532925a3b8138FB7C75B4Fc75e "
        "for AI ETF platform #FlareVerified #AIETF",
        "user": {
            "screen_name": "cryptouser123",
            "name": "Crypto User",
            "verified": False,
            "followers_count": 1250,
        },
        "retweet_count": 0,
        "favorite_count": 2,
    },
    {
        "text": "Setting up my AI ETF portfolio with wallet verification: "
        "0x8ba1f109551bD432803012645Aac136c4321c12d #FlareVerified #AIETF",
        "user": {
            "screen_name": "aietf_investor",
            "name": "AI ETF Investor",
            "verified": True,
            "followers_count": 5420,
        },
        "retweet_count": 3,
        "favorite_count": 15,
    },
]


class MockTwitterService(TwitterService):
    """Canned Twitter data.

    Tweets registered with :meth:`register_tweet` are returned as-is; any
    other id maps onto one of ``SAMPLE_TWEETS`` by ``int(tweet_id) % 2``.
    Profiles carry the handle's pending bio code when there is one.
    """

    def __init__(self, pending_code_lookup: Optional[PendingCodeLookup] = None):
        self._pending_code_lookup = pending_code_lookup
        self._tweets: dict[str, TweetData] = {}

    def register_tweet(self, tweet: TweetData) -> None:
        self._tweets[tweet.id] = tweet

    def get_tweet_data(self, tweet_id: str) -> TweetData:
        if tweet_id in self._tweets:
            return self._tweets[tweet_id]
        sample = SAMPLE_TWEETS[int(tweet_id) % len(SAMPLE_TWEETS)]
        return TweetData(
            id=tweet_id,
            text=sample["text"],
            user=TwitterUser(**sample["user"]),
            created_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            retweet_count=sample["retweet_count"],
            favorite_count=sample["favorite_count"],
        )

    def get_user_profile(self, handle: str) -> TwitterProfile:
        code = self._pending_code_lookup(handle.lower()) if self._pending_code_lookup else None
        description = (
            f"Mock bio with verification code: {code}"
            if code
            else "Mock user profile for testing."
        )
        return TwitterProfile(
            screen_name=handle,
            name="Mock User",
            description=description,
            followers_count=100,
            following_count=50,
            location="Test Location",
        )
