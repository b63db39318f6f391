"""Protocol constants for the route aggregator.

Centralizes well-known addresses and routing parameters.
"""

from aggregator.models.types import is_valid_address

# Native ETH is addressed by the zero address; it has no decimals() accessor
NATIVE_ETH = "0x0000000000000000000000000000000000000000"
NATIVE_DECIMALS = 18

# Multi-token (ERC6909) ids are always 18 decimals
MULTI_TOKEN_DECIMALS = 18

# Paths never exceed one intermediate token
MAX_HOPS = 2

# Uniswap V3 fee tiers quoted for every pair (hundredths of a bip)
DEFAULT_V3_FEE_TIERS = (500, 3000, 10000)

# Constant-product fees in basis points
UNISWAP_V2_FEE_BPS = 30
ZAMM_FEE_BPS = 100


def _validate_token_address(name: str, address: str) -> str:
    """Validate and return a token address.

    Raises:
        ValueError: If the address is invalid
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid {name} address: {address} (must be 0x + 40 hex chars)")
    return address


# Well-known token addresses on mainnet (lowercase for consistency)
# All addresses are validated at import time to catch typos early
WETH = _validate_token_address("WETH", "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2")
USDC = _validate_token_address("USDC", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")
USDT = _validate_token_address("USDT", "0xdac17f958d2ee523a2206206994597c13d831ec7")
DAI = _validate_token_address("DAI", "0x6b175474e89094c44da98b954eedeac495271d0f")

# Intermediates tried when the caller does not provide any
DEFAULT_INTERMEDIATES = (WETH,)

# Mainnet contracts
UNISWAP_V2_FACTORY = "0x5c69bee701ef814a2b6a3edd4b1652cb9cc5aa6f"
UNISWAP_V3_QUOTER_V2 = "0x61ffe014ba17989e743c5f6cb21bf9697530b21e"

MAINNET_CHAIN_ID = 1
