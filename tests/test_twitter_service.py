from unittest.mock import MagicMock, patch

import pytest

from etf_autoagent.models.verification import TweetData, TwitterUser
from etf_autoagent.verification.twitter import (
    SAMPLE_TWEETS,
    MockTwitterService,
    TwitterApiError,
    TwitterApiService,
    rate_limited_profile,
)

GET = "etf_autoagent.verification.twitter.requests.get"


def response(status=200, payload=None, reason="OK"):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.reason = reason
    resp.json.return_value = payload if payload is not None else {}
    return resp


TWEET_PAYLOAD = {
    "data": {
        "id": "123",
        "text": "hello #FlareVerified",
        "created_at": "2024-01-01T00:00:00Z",
        "public_metrics": {"retweet_count": 4, "like_count": 9},
    },
    "includes": {
        "users": [
            {
                "username": "alice",
                "name": "Alice",
                "verified": True,
                "public_metrics": {"followers_count": 77},
            }
        ]
    },
}

PROFILE_PAYLOAD = {
    "data": {
        "username": "alice",
        "name": "Alice",
        "description": "code ABCD1234",
        "public_metrics": {"followers_count": 10, "following_count": 3},
        "location": "Earth",
    }
}


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def service(clock, sleep):
    return TwitterApiService("token", clock=clock, sleep=sleep)


class TestTwitterApiService:
    def test_get_tweet_data(self, service):
        with patch(GET, return_value=response(payload=TWEET_PAYLOAD)) as get:
            tweet = service.get_tweet_data("123")

        assert tweet.id == "123"
        assert tweet.user.screen_name == "alice"
        assert tweet.user.verified is True
        assert tweet.user.followers_count == 77
        assert tweet.retweet_count == 4
        assert tweet.favorite_count == 9
        url = get.call_args.args[0]
        assert "/tweets/123" in url
        assert get.call_args.kwargs["headers"] == {"Authorization": "Bearer token"}

    def test_missing_tweet(self, service):
        with patch(GET, return_value=response(payload={"errors": []})):
            with pytest.raises(TwitterApiError, match="Tweet not found or is private"):
                service.get_tweet_data("123")

    def test_get_user_profile(self, service):
        with patch(GET, return_value=response(payload=PROFILE_PAYLOAD)):
            profile = service.get_user_profile("alice")
        assert profile.screen_name == "alice"
        assert profile.description == "code ABCD1234"
        assert profile.followers_count == 10
        assert profile.following_count == 3
        assert profile.location == "Earth"

    def test_missing_user(self, service):
        with patch(GET, return_value=response(payload={})):
            with pytest.raises(TwitterApiError, match="User not found"):
                service.get_user_profile("ghost")

    def test_api_error_detail(self, service):
        resp = response(status=401, payload={"detail": "Unauthorized"}, reason="Unauthorized")
        with patch(GET, return_value=resp):
            with pytest.raises(TwitterApiError, match="Twitter API error: Unauthorized"):
                service.get_user_profile("alice")

    def test_rate_limited_tweet_raises(self, service):
        with patch(GET, return_value=response(status=429)):
            with pytest.raises(TwitterApiError, match="rate limit exceeded"):
                service.get_tweet_data("123")

    def test_rate_limited_profile_uses_pending_code(self, clock, sleep):
        lookup = MagicMock(return_value="ABCD1234")
        service = TwitterApiService("token", pending_code_lookup=lookup, clock=clock, sleep=sleep)
        with patch(GET, return_value=response(status=429)):
            profile = service.get_user_profile("alice")
        lookup.assert_called_once_with("alice")
        assert "ABCD1234" in profile.description

    def test_cache_hits_within_ttl(self, service, clock):
        with patch(GET, return_value=response(payload=PROFILE_PAYLOAD)) as get:
            service.get_user_profile("alice")
            clock.now += 299
            service.get_user_profile("alice")
            assert get.call_count == 1
            clock.now += 2
            service.get_user_profile("alice")
            assert get.call_count == 2

    def test_requests_are_spaced(self, service, clock, sleep):
        with patch(GET, return_value=response(payload=PROFILE_PAYLOAD)):
            service.get_user_profile("alice")
            clock.now += 0.25
            service.get_user_profile("bob")
        sleep.assert_called_once_with(0.75)


def test_rate_limited_profile_without_code():
    payload = rate_limited_profile("alice", None)
    assert payload["data"]["username"] == "alice"
    assert payload["data"]["description"] == "Mock user data due to rate limit"


class TestMockTwitterService:
    def test_sample_tweets_by_parity(self):
        service = MockTwitterService()
        assert service.get_tweet_data("10").text == SAMPLE_TWEETS[0]["text"]
        odd = service.get_tweet_data("11")
        assert odd.text == SAMPLE_TWEETS[1]["text"]
        assert odd.id == "11"
        assert odd.user.screen_name == "aietf_investor"

    def test_registered_tweet(self):
        service = MockTwitterService()
        tweet = TweetData(id="5", text="custom", user=TwitterUser(screen_name="bob"))
        service.register_tweet(tweet)
        assert service.get_tweet_data("5") is tweet

    def test_profile_with_pending_code(self):
        service = MockTwitterService(lambda handle: "XYZ98765" if handle == "alice" else None)
        assert service.get_user_profile("Alice").description.endswith("XYZ98765")
        assert service.get_user_profile("bob").description == "Mock user profile for testing."
