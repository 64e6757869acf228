"""Data models for the wallet/Twitter verification server.

Twitter payloads keep the snake_case field names of the Twitter v1-style
profile shape the front-end already consumes; the request bodies and
stored records use camelCase on the wire.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from etf_autoagent.models.base import ModelBase, now_ms
from etf_autoagent.models.enums import VerificationMethod


class TwitterUser(BaseModel):
    """Author block embedded in a tweet."""

    screen_name: str = "unknown"
    name: str = "Unknown User"
    verified: bool = False
    followers_count: int = 0


class TweetData(BaseModel):
    """A tweet normalized from the Twitter API."""

    id: str
    text: str
    user: TwitterUser = Field(default_factory=TwitterUser)
    created_at: Optional[str] = None
    retweet_count: int = 0
    favorite_count: int = 0


class TwitterProfile(BaseModel):
    """A user profile normalized from the Twitter API."""

    screen_name: str
    name: str = ""
    description: str = ""
    verified: bool = False
    followers_count: int = 0
    following_count: int = 0
    location: str = ""


class AttestationSubmission(BaseModel):
    """Result of submitting an attestation request."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    attestation_id: Any = Field(..., alias="attestationId")
    tx_hash: str = Field(..., alias="txHash")
    status: str = "submitted"
    block_number: Optional[int] = Field(default=None, alias="blockNumber")


class AttestationRequestData(ModelBase):
    """Facts submitted for attestation."""

    wallet_address: str
    twitter_handle: str
    verification_method: VerificationMethod
    tweet_id: Optional[str] = None
    verification_code: Optional[str] = None
    user_profile: Optional[dict[str, Any]] = None
    timestamp: int = Field(default_factory=now_ms)


class VerificationRecord(ModelBase):
    """A completed wallet/handle verification.

    Attributes:
        wallet_address: Lower-cased wallet address, the store key.
        twitter_handle: Lower-cased handle without '@'.
        verification_method: How ownership was proven.
        flare_attestation: Merged submission, consensus and proof payloads.
        verified_at: ISO-8601 completion time.
        service_type: 'mock' or 'real'.
    """

    wallet_address: str
    twitter_handle: str
    verification_method: VerificationMethod
    tweet_id: Optional[str] = None
    tweet_data: Optional[dict[str, Any]] = None
    verification_code: Optional[str] = None
    user_profile: Optional[dict[str, Any]] = None
    flare_attestation: dict[str, Any] = Field(default_factory=dict)
    verified: bool = True
    verified_at: str
    service_type: str


class BioChallenge(ModelBase):
    """A pending bio-code verification."""

    wallet_address: str
    twitter_handle: str
    verification_code: str
    created_at: int
    expires_at: int
    attempts: int = 0


class PendingOAuth(ModelBase):
    """A pending OAuth authorization, keyed by its ``state``."""

    wallet_address: str
    twitter_handle: str
    code_verifier: str
    timestamp: int
    expires_at: int
    personalization_id: str


class WalletHandleRequest(BaseModel):
    """Body of the OAuth and bio endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    twitter_handle: Optional[str] = Field(default=None, alias="twitterHandle")


class TweetVerificationRequest(WalletHandleRequest):
    """Body of the tweet verification endpoint."""

    tweet_id: Optional[str] = Field(default=None, alias="tweetId")
