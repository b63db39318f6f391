"""Constant-product (x * y = k) pool math.

Covers Uniswap V2 style pools (30 bps) and ZAMM style pools (100 bps).
The fee is taken on the input amount.
"""

from __future__ import annotations

from aggregator.models.types import UINT256_MAX

FEE_DENOMINATOR = 10000


class ConstantProduct:
    """Constant-product math with a configurable fee in basis points.

    Formula: amount_out = (in * (10000 - fee) * res_out) / (res_in * 10000 + in * (10000 - fee))
    """

    def get_amount_out(
        self,
        amount_in: int,
        reserve_in: int,
        reserve_out: int,
        fee_bps: int = 30,
    ) -> int:
        """Calculate output amount for an exact input.

        Args:
            amount_in: Input token amount
            reserve_in: Reserve of input token in pool
            reserve_out: Reserve of output token in pool
            fee_bps: Pool fee in basis points (30 = 0.3%)

        Returns:
            Output token amount (rounded down)
        """
        if amount_in <= 0:
            return 0
        if reserve_in <= 0 or reserve_out <= 0:
            return 0

        fee_multiplier = FEE_DENOMINATOR - fee_bps
        amount_in_with_fee = amount_in * fee_multiplier
        numerator = amount_in_with_fee * reserve_out
        denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee

        return numerator // denominator

    def get_amount_in(
        self,
        amount_out: int,
        reserve_in: int,
        reserve_out: int,
        fee_bps: int = 30,
    ) -> int:
        """Calculate required input for an exact output.

        Formula: amount_in = (res_in * out * 10000) / ((res_out - out) * (10000 - fee)) + 1

        Returns:
            Required input amount (rounded up), or UINT256_MAX when the pool
            cannot deliver amount_out
        """
        if amount_out <= 0:
            return 0
        if reserve_in <= 0 or reserve_out <= 0:
            return 0
        if amount_out >= reserve_out:
            # Can't extract more than the reserve
            return UINT256_MAX

        numerator = reserve_in * amount_out * FEE_DENOMINATOR
        denominator = (reserve_out - amount_out) * (FEE_DENOMINATOR - fee_bps)

        return numerator // denominator + 1


# Singleton instance
constant_product = ConstantProduct()
