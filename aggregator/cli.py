"""Command-line route quotes.

Usage:
    aggregator-quote --sell 0x0000000000000000000000000000000000000000 \
        --buy 0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48 --amount 3100 --exact-out

The amount is typed in display units of the fixed side (the sell token, or
the buy token with --exact-out) and converted with that token's decimals.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys

from aggregator.config import RouterConfig
from aggregator.constants import MAINNET_CHAIN_ID
from aggregator.errors import CallerInputError
from aggregator.logging_config import configure_logging
from aggregator.models.api import QuoteResponse
from aggregator.models.route import RouteRequest, RouteResult, SwapMode
from aggregator.models.token import Token
from aggregator.models.types import parse_units
from aggregator.routing.router import RouteAggregator, build_web3_aggregator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Quote swap routes across on-chain venues",
    )
    parser.add_argument("--sell", required=True, help="Sell token address")
    parser.add_argument("--buy", required=True, help="Buy token address")
    parser.add_argument("--amount", required=True, help="Amount in display units, e.g. 1.25")
    parser.add_argument(
        "--exact-out",
        action="store_true",
        help="Fix the buy amount instead of the sell amount",
    )
    parser.add_argument(
        "--rpc-url",
        default=os.environ.get("AGGREGATOR_RPC_URL"),
        help="JSON-RPC endpoint (default: $AGGREGATOR_RPC_URL)",
    )
    parser.add_argument("--chain-id", type=int, default=MAINNET_CHAIN_ID)
    parser.add_argument(
        "--aggregator-quoter",
        default=os.environ.get("AGGREGATOR_QUOTER_ADDRESS"),
        help="Aggregator quoter contract address (optional)",
    )
    parser.add_argument("--max-hops", type=int, default=None)
    parser.add_argument(
        "--via",
        action="append",
        default=None,
        help="Intermediate token address (repeatable; default WETH)",
    )
    parser.add_argument("--json", action="store_true", help="Print the full response as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return parser


def format_result(result: RouteResult) -> str:
    """Render routes as a plain-text table, best first."""
    if not result.routes:
        lines = ["No route found."]
    else:
        lines = [f"{'#':>3}  {'amount in':>28}  {'amount out':>28}  route"]
        for route in result.routes:
            hops = " -> ".join(
                f"{hop.venue}" + ("" if hop.pool is None else f"/{hop.pool}")
                for hop in route.quote.executed_hops
            )
            lines.append(
                f"{route.rank:>3}  {route.amount_in_display:>28}  "
                f"{route.amount_out_display:>28}  {hops}"
            )
    for rejected in result.diagnostics.rejected:
        lines.append(f"  rejected {rejected.path.describe()}: {rejected.reason.value}")
    if result.diagnostics.timed_out:
        lines.append("  (query deadline reached; results may be partial)")
    return "\n".join(lines)


async def quote(aggregator: RouteAggregator, args: argparse.Namespace) -> RouteResult:
    """Resolve the fixed side's decimals, parse the amount and route."""
    mode = SwapMode.EXACT_OUT if args.exact_out else SwapMode.EXACT_IN
    sell_token = Token(chain_id=args.chain_id, address=args.sell)
    buy_token = Token(chain_id=args.chain_id, address=args.buy)
    fixed = buy_token if mode == SwapMode.EXACT_OUT else sell_token

    resolution = await aggregator.decimal_resolver.resolve([fixed])
    if not resolution.is_resolved(fixed):
        raise CallerInputError(f"Cannot resolve decimals for {fixed.address}")

    try:
        amount = parse_units(args.amount, resolution[fixed])
    except ValueError as e:
        raise CallerInputError(str(e)) from e

    intermediates = None
    if args.via:
        intermediates = tuple(Token(chain_id=args.chain_id, address=a) for a in args.via)

    request = RouteRequest(
        sell_token=sell_token,
        buy_token=buy_token,
        amount=amount,
        mode=mode,
        max_hops=args.max_hops,
        allowed_intermediates=intermediates,
    )
    return await aggregator.get_routes(request)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)

    if not args.rpc_url:
        print("Error: --rpc-url or AGGREGATOR_RPC_URL is required", file=sys.stderr)
        return 1

    try:
        config = RouterConfig.from_env()
        aggregator = build_web3_aggregator(
            args.rpc_url,
            chain_id=args.chain_id,
            aggregator_quoter=args.aggregator_quoter,
            config=config,
        )
        result = asyncio.run(quote(aggregator, args))
    except (CallerInputError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(QuoteResponse.from_result(result).model_dump(by_alias=True), indent=2))
    else:
        print(format_result(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
