"""Protocol and token configuration."""

from staking_pool_metrics.data.loader import (
    DEFAULT_CONFIG_PATH,
    get_protocol_id,
    get_token_config,
    load_protocol_config,
    load_raw_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "get_protocol_id",
    "get_token_config",
    "load_protocol_config",
    "load_raw_config",
]
