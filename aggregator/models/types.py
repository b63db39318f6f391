"""Shared type definitions for route models.

These types are used across the internal route models and the HTTP schema.
"""

import decimal
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BeforeValidator, Field

from aggregator.math.decimal_utils import DECIMAL_HIGH_PREC_CONTEXT

# Maximum uint256 value
UINT256_MAX = 2**256 - 1


def validate_uint256(value: Any) -> str:
    """Validate that a value is a valid uint256 decimal string.

    Args:
        value: Value to validate (string or int)

    Returns:
        Valid uint256 as decimal string

    Raises:
        ValueError: If value is not a valid non-negative integer within uint256 range
    """
    # bool is an int subclass; True is not an amount
    if isinstance(value, bool):
        raise ValueError("Uint256 must be string or int, got bool")

    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Uint256 cannot be negative: {value}")
        if value > UINT256_MAX:
            raise ValueError(f"Uint256 overflow: {value} > 2^256-1")
        return str(value)

    if not isinstance(value, str):
        raise ValueError(f"Uint256 must be string or int, got {type(value).__name__}")

    try:
        int_value = int(value)
    except ValueError as err:
        raise ValueError(f"Uint256 must be a decimal integer string: '{value}'") from err

    if int_value < 0:
        raise ValueError(f"Uint256 cannot be negative: {value}")

    if int_value > UINT256_MAX:
        raise ValueError(f"Uint256 overflow: {value} > 2^256-1")

    return value


# Ethereum address (40 hex chars after 0x prefix)
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]

# 256-bit unsigned integer as decimal string (validated)
Uint256 = Annotated[
    str,
    BeforeValidator(validate_uint256),
    Field(description="256-bit unsigned integer as decimal string"),
]


def normalize_address(address: str, *, validate: bool = False) -> str:
    """Normalize an Ethereum address to lowercase.

    Args:
        address: An Ethereum address (with or without 0x prefix)
        validate: If True, raises ValueError for invalid addresses.

    Returns:
        Lowercase address with 0x prefix

    Raises:
        ValueError: If validate=True and address is not a valid Ethereum address
    """
    addr = address.lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr

    if validate and not is_valid_address(addr):
        raise ValueError(f"Invalid address: {address}")

    return addr


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid Ethereum address."""
    if not isinstance(address, str):
        return False
    if not address.startswith("0x"):
        return False
    if len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def parse_units(raw: str, decimals: int) -> int:
    """Convert a human-entered amount ("1.25") to base units.

    Args:
        raw: Decimal string as typed by a user
        decimals: Token decimals

    Returns:
        Amount in base units

    Raises:
        ValueError: If the string is not a plain decimal number, is negative,
            or carries more fractional digits than the token supports
    """
    try:
        value = Decimal(raw.strip())
    except (InvalidOperation, AttributeError) as err:
        raise ValueError(f"Not a decimal amount: {raw!r}") from err

    if not value.is_finite():
        raise ValueError(f"Not a finite amount: {raw!r}")
    if value < 0:
        raise ValueError(f"Amount cannot be negative: {raw!r}")

    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {raw!r} has more than {decimals} fractional digits")
    return int(scaled)


def format_units(amount: int, decimals: int) -> str:
    """Render a base-unit amount as a decimal string without trailing zeros."""
    whole, frac = divmod(amount, 10**decimals)
    if decimals == 0 or frac == 0:
        return str(whole)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{frac_str}"
