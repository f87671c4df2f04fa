"""Price oracles and USD conversion for token amounts."""

from staking_pool_metrics.pricing.conversion import UsdConverter
from staking_pool_metrics.pricing.defillama import DeFiLlamaPriceOracle
from staking_pool_metrics.pricing.oracle import PriceOracle, StaticPriceOracle

__all__ = [
    "DeFiLlamaPriceOracle",
    "PriceOracle",
    "StaticPriceOracle",
    "UsdConverter",
]
