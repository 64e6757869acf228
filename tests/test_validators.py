import pytest

from etf_autoagent.verification.validators import (
    extract_tweet_id,
    generate_verification_code,
    normalize_twitter_handle,
    normalize_wallet_address,
    validate_tweet_id,
    validate_twitter_handle,
    validate_wallet_address,
)

WALLET = "0x742d35Cc6634C0532925a3b8138FB7C75B4Fc75e"


@pytest.mark.parametrize(
    "address,ok",
    [
        (WALLET, True),
        (WALLET.lower(), True),
        (WALLET[:-1], False),
        ("742d35Cc6634C0532925a3b8138FB7C75B4Fc75e00", False),
        ("0x742d35Cc6634C0532925a3b8138FB7C75B4Fc75g", False),
        (WALLET + "\n", False),
        ("", False),
    ],
)
def test_wallet_address(address, ok):
    assert validate_wallet_address(address) is ok


@pytest.mark.parametrize(
    "handle,ok",
    [
        ("alice", True),
        ("@alice_99", True),
        ("a" * 15, True),
        ("a" * 16, False),
        ("bad-handle", False),
        ("@@alice", False),
        ("alice\n", False),
        ("", False),
    ],
)
def test_twitter_handle(handle, ok):
    assert validate_twitter_handle(handle) is ok


def test_normalization():
    assert normalize_wallet_address(WALLET) == WALLET.lower()
    assert normalize_twitter_handle("@Alice") == "alice"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("1234567890", "1234567890"),
        ("https://twitter.com/alice/status/111", "111"),
        ("https://x.com/alice/status/222?s=20", "222"),
        ("https://example.com/alice/status/333", None),
        ("abc", None),
        ("123\n", None),
    ],
)
def test_extract_tweet_id(value, expected):
    assert extract_tweet_id(value) == expected


def test_verification_code_shape():
    codes = {generate_verification_code() for _ in range(20)}
    for code in codes:
        assert len(code) == 8
        assert code.isalnum() and code == code.upper()
    assert len(codes) > 1


def test_tweet_id_rejects_trailing_newline():
    assert validate_tweet_id("123") is True
    assert validate_tweet_id("123\n") is False
