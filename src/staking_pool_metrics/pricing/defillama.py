"""DeFiLlama-backed price oracle pricing each block at its timestamp."""

import logging
from collections.abc import Mapping
from decimal import Decimal

import httpx

from staking_pool_metrics.pricing.retry import RetryConfig, call_with_retry

logger = logging.getLogger(__name__)


class DeFiLlamaPriceOracle:
    """
    Fetches historical token prices from the DeFiLlama coins API.

    A lookup at a block is resolved through the block's timestamp, so a replay
    of old events is priced at the time each event happened. Block timestamps
    must be registered with ``set_block_timestamp`` (or passed in) before the
    block is priced.

    Each token is fetched at most once per block. When a fetch fails, the
    block's timestamp is unknown, or the API has no price for the token, the
    last price seen for that token is returned instead, so a token only
    reports no price if it has never been priced.

    Parameters
    ----------
    chain : str
        DeFiLlama chain name used in coin ids
    base_url : str
        DeFiLlama coins API base URL
    client : httpx.Client | None
        HTTP client to use; a new client is created if None
    retry_config : RetryConfig | None
        Retry behavior for HTTP errors
    block_timestamps : Mapping[int, int] | None
        Known block timestamps by block number

    """

    def __init__(
        self,
        chain: str = "ethereum",
        base_url: str = "https://coins.llama.fi",
        client: httpx.Client | None = None,
        retry_config: RetryConfig | None = None,
        block_timestamps: Mapping[int, int] | None = None,
    ) -> None:
        self.chain = chain.lower()
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=30.0)
        self.retry_config = retry_config or RetryConfig(
            max_retries=2,
            base_delay=0.5,
            retry_on=(httpx.HTTPError,),
        )
        self.block_timestamps: dict[int, int] = dict(block_timestamps or {})
        self._last_block: dict[str, int] = {}
        self._last_price: dict[str, Decimal] = {}

    def set_block_timestamp(self, block_number: int, timestamp: int) -> None:
        """Register the timestamp used to price a block."""
        self.block_timestamps[block_number] = timestamp

    def price_usd(self, token_id: str, block_number: int) -> Decimal | None:
        """
        Return the USD price of a token at a block, or its last known price.

        Parameters
        ----------
        token_id : str
            Token contract address
        block_number : int
            Block height of the lookup

        Returns
        -------
        Decimal | None
            USD price, or None if the token has never been priced

        """
        key = token_id.lower()
        if self._last_block.get(key) == block_number:
            return self._last_price.get(key)

        timestamp = self.block_timestamps.get(block_number)
        if timestamp is None:
            logger.warning("No timestamp registered for block %d; using last known price of %s", block_number, key)
            price = None
        else:
            price = self._fetch_price(key, timestamp)

        self._last_block[key] = block_number
        if price is not None:
            self._last_price[key] = price
        return self._last_price.get(key)

    def _fetch_price(self, token_id: str, timestamp: int) -> Decimal | None:
        """
        Fetch the price of a single token at a timestamp.

        Parameters
        ----------
        token_id : str
            Token contract address
        timestamp : int
            Unix timestamp in seconds

        Returns
        -------
        Decimal | None
            USD price, or None if unavailable

        """
        coin_id = self._format_coin_id(token_id)
        url = f"{self.base_url}/prices/historical/{timestamp}/{coin_id}"

        try:
            data = call_with_retry(self._get_json, self.retry_config, url)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("DeFiLlama price fetch for %s failed: %s", coin_id, e)
            return None

        price_info = data.get("coins", {}).get(coin_id)
        if not price_info or "price" not in price_info:
            logger.debug("DeFiLlama has no price for %s", coin_id)
            return None

        return Decimal(str(price_info["price"]))

    def _get_json(self, url: str) -> dict:
        response = self.client.get(url)
        response.raise_for_status()
        return response.json()

    def _format_coin_id(self, token_id: str) -> str:
        """Format a DeFiLlama coin identifier (e.g., ``ethereum:0x...``)."""
        return f"{self.chain}:{token_id}"

    def close(self) -> None:
        """Close HTTP client."""
        self.client.close()

    def __enter__(self) -> "DeFiLlamaPriceOracle":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
