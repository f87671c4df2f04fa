"""Price oracle interface and an in-memory implementation."""

from bisect import bisect_right, insort
from decimal import Decimal
from typing import Protocol


class PriceOracle(Protocol):
    """Source of token USD prices at a given block height."""

    def price_usd(self, token_id: str, block_number: int) -> Decimal | None:
        """
        Return the last known USD price of a token at a block.

        Parameters
        ----------
        token_id : str
            Token identifier
        block_number : int
            Block height of the lookup

        Returns
        -------
        Decimal | None
            USD price, or None if the token has never been priced at or before that block

        """
        ...


class StaticPriceOracle:
    """
    Oracle backed by explicitly recorded prices.

    A lookup returns the price recorded at the latest block at or before the
    requested block, matching the "last known price" semantics of a token
    record that is refreshed as blocks are processed.

    Parameters
    ----------
    prices : dict[str, Decimal] | None
        Optional prices valid from block 0, keyed by token id

    """

    def __init__(self, prices: dict[str, Decimal] | None = None) -> None:
        self._blocks: dict[str, list[int]] = {}
        self._prices: dict[tuple[str, int], Decimal] = {}
        for token_id, price in (prices or {}).items():
            self.set_price(token_id, 0, price)

    def set_price(self, token_id: str, block_number: int, price: Decimal) -> None:
        """
        Record a token price effective from ``block_number``.

        Parameters
        ----------
        token_id : str
            Token identifier
        block_number : int
            First block the price applies to
        price : Decimal
            USD price

        """
        key = token_id.lower()
        blocks = self._blocks.setdefault(key, [])
        if (key, block_number) not in self._prices:
            insort(blocks, block_number)
        self._prices[key, block_number] = Decimal(price)

    def price_usd(self, token_id: str, block_number: int) -> Decimal | None:
        """Return the latest recorded price at or before ``block_number``."""
        key = token_id.lower()
        blocks = self._blocks.get(key)
        if not blocks:
            return None

        idx = bisect_right(blocks, block_number)
        if idx == 0:
            return None
        return self._prices[key, blocks[idx - 1]]
