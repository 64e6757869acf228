"""Input validation and normalization for wallet/Twitter verification."""

import re
import secrets
import string
from typing import Optional

WALLET_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")
TWITTER_HANDLE_RE = re.compile(r"[a-zA-Z0-9_]{1,15}")
TWEET_ID_RE = re.compile(r"\d+")
TWEET_URL_RE = re.compile(r"(?:twitter\.com|x\.com)/[^/]+/status/(\d+)")

VERIFICATION_CODE_LENGTH = 8
_CODE_ALPHABET = string.ascii_uppercase + string.digits


def validate_wallet_address(address: str) -> bool:
    return bool(WALLET_ADDRESS_RE.fullmatch(address))


def validate_twitter_handle(handle: str) -> bool:
    """Checks a handle after stripping the first '@'."""
    return bool(TWITTER_HANDLE_RE.fullmatch(handle.replace("@", "", 1)))


def validate_tweet_id(tweet_id: str) -> bool:
    return bool(TWEET_ID_RE.fullmatch(tweet_id))


def normalize_wallet_address(address: str) -> str:
    return address.lower()


def normalize_twitter_handle(handle: str) -> str:
    return handle.replace("@", "", 1).lower()


def extract_tweet_id(value: str) -> Optional[str]:
    """Returns the tweet id from a bare id or a twitter.com/x.com status URL.

    Args:
        value: User input.

    Returns:
        The numeric id, or None when the input is neither form.
    """
    if validate_tweet_id(value):
        return value
    match = TWEET_URL_RE.search(value)
    return match.group(1) if match else None


def generate_verification_code() -> str:
    """Eight random uppercase alphanumerics for a bio challenge."""
    return "".join(
        secrets.choice(_CODE_ALPHABET) for _ in range(VERIFICATION_CODE_LENGTH)
    )
