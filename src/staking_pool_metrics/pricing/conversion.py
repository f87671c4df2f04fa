"""USD conversion of raw token amounts."""

from decimal import Decimal, localcontext

from staking_pool_metrics.core.exceptions import MissingPriceError
from staking_pool_metrics.core.models import ProtocolConfig
from staking_pool_metrics.pricing.oracle import PriceOracle

DEFAULT_DECIMALS = 18

# Significant digits for USD arithmetic (IEEE 754 decimal128).
DECIMAL_PRECISION = 34


class UsdConverter:
    """
    Converts token amounts to USD using a price oracle.

    Integer amounts are raw on-chain values and are scaled down by the token's
    decimals. Decimal amounts are taken to be already scaled. Results carry
    ``DECIMAL_PRECISION`` significant digits.

    Parameters
    ----------
    oracle : PriceOracle
        Source of token prices
    config : ProtocolConfig
        Provides token decimals

    """

    def __init__(self, oracle: PriceOracle, config: ProtocolConfig) -> None:
        self.oracle = oracle
        self.config = config

    def price(self, token_id: str, block_number: int) -> Decimal:
        """
        Fetch a required token price.

        Parameters
        ----------
        token_id : str
            Token identifier
        block_number : int
            Block height of the lookup

        Returns
        -------
        Decimal
            USD price

        Raises
        ------
        MissingPriceError
            If the oracle has no price for the token at that block

        """
        price = self.oracle.price_usd(token_id, block_number)
        if price is None:
            raise MissingPriceError(token_id, block_number)
        return price

    def normalize(self, amount: int | Decimal, token_id: str) -> Decimal:
        """Scale a raw integer amount by the token's decimals."""
        if isinstance(amount, Decimal):
            return amount

        token = self.config.token(token_id)
        decimals = token.decimals if token else DEFAULT_DECIMALS
        with localcontext(prec=DECIMAL_PRECISION):
            return Decimal(amount) / Decimal(10**decimals)

    def to_usd(self, amount: int | Decimal, token_id: str, block_number: int) -> Decimal:
        """
        Convert a token amount to USD at the oracle's last known price.

        Parameters
        ----------
        amount : int | Decimal
            Raw integer amount or already-scaled decimal amount
        token_id : str
            Token identifier
        block_number : int
            Block height of the price lookup

        Returns
        -------
        Decimal
            USD value

        Raises
        ------
        MissingPriceError
            If the oracle has no price for the token at that block

        """
        with localcontext(prec=DECIMAL_PRECISION):
            return self.normalize(amount, token_id) * self.price(token_id, block_number)
