"""Deployed contract addresses, chain ids and amount helpers for Flow EVM."""

from decimal import Decimal, InvalidOperation
from typing import Union

FLOW_EVM_CHAIN_ID = "747"
FLOW_EVM_TESTNET_CHAIN_ID = "545"
BASE_CHAIN_ID = "8453"

CONTRACT_ADDRESSES = {
    "etfVault": "0xb41Eebc041d8eFDB38dB7e5a6f1b1CC295702C2b",
    "agentWallet": "0xb067fB16AFcABf8A8974a35CbCee243B8FDF0EA1",
}

ASSET_ADDRESSES = {
    "WFLOW": "0x9a7623494c986b443a26f79bf3e715bb1763f610",
    "USDC": "0x4608acb5aef179f2d89d2643368e6cd16a0761c0",
    "WETH": "0xf5935f7557f82ea203228947bb574a64393a72ed",
    "ankrFLOW": "0xda54ac65cf7d1d51bfefc2f7c1c881b86010b168",
    "TRUMP": "0xb664eab8e811b3a4af872d01b75ccbdc4d28fd2d",
}

ERC20_APPROVE_ABI = "function approve(address spender, uint256 amount) returns (bool)"
VAULT_DEPOSIT_ABI = "function deposit(address token, uint256 amount) returns (uint256)"
VAULT_WITHDRAW_ABI = (
    "function withdraw(uint256 shares, address tokenOut, uint256 minAmountOut) "
    "returns (uint256)"
)

DEFAULT_DECIMALS = 18


def parse_amount(amount: Union[str, int, float, Decimal], decimals: int = DEFAULT_DECIMALS) -> int:
    """Converts a decimal token amount into integer base units.

    Args:
        amount: Decimal amount such as ``"1.5"``.
        decimals: Token decimals.

    Returns:
        The amount scaled by ``10**decimals``.

    Raises:
        ValueError: If the amount is not a number, is negative, or has more
            fractional digits than ``decimals``.
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount!r}")

    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Too many decimal places in {amount!r} for {decimals} decimals")
    return int(scaled)


def format_amount(value: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Inverse of :func:`parse_amount`, without trailing zeros."""
    return format(Decimal(value).scaleb(-decimals).normalize(), "f")
