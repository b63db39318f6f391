"""Pool math used by on-chain venue adapters."""

from aggregator.amm.constant_product import ConstantProduct, constant_product

__all__ = ["ConstantProduct", "constant_product"]
