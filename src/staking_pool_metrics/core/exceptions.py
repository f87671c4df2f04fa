"""Exceptions raised by the metrics engine and its collaborators."""


class MetricsError(Exception):
    """Base class for all metrics engine errors."""


class MissingPriceError(MetricsError):
    """Raised when the price oracle has no USD price for a token at a block."""

    def __init__(self, token_id: str, block_number: int) -> None:
        self.token_id = token_id
        self.block_number = block_number
        super().__init__(f"No USD price for token {token_id} at block {block_number}")


class MalformedAggregateError(MetricsError):
    """Raised when a loaded aggregate violates one of its invariants."""


class StoreError(MetricsError):
    """Raised when the record store cannot load or persist a record."""
