"""Protocol and token configuration loader."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from staking_pool_metrics.core.models import ProtocolConfig, Token

DEFAULT_CONFIG_PATH = Path(__file__).parent / "protocol.yaml"

TOKEN_ROLES = ("base", "reward", "output")


def load_raw_config(path: str | Path | None = None) -> dict[str, Any]:
    """
    Load protocol configuration YAML.

    Parameters
    ----------
    path : str | Path | None
        Configuration file; the packaged ``protocol.yaml`` if None

    Returns
    -------
    dict[str, Any]
        Raw configuration with ``protocol`` and ``tokens`` sections

    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_protocol_config(path: str | Path | None = None) -> ProtocolConfig:
    """
    Load and validate the protocol configuration.

    Parameters
    ----------
    path : str | Path | None
        Configuration file; the packaged ``protocol.yaml`` if None

    Returns
    -------
    ProtocolConfig
        Validated configuration

    Raises
    ------
    ValueError
        If a section is missing or a field is invalid

    """
    raw = load_raw_config(path)
    protocol = raw.get("protocol")
    tokens = raw.get("tokens") or {}

    if not protocol:
        msg = "Configuration is missing the 'protocol' section"
        raise ValueError(msg)

    missing = [role for role in TOKEN_ROLES if role not in tokens]
    if missing:
        msg = f"Configuration is missing token roles: {', '.join(missing)}"
        raise ValueError(msg)

    try:
        return ProtocolConfig(
            **protocol,
            base_token=tokens["base"],
            reward_token=tokens["reward"],
            output_token=tokens["output"],
        )
    except ValidationError as e:
        msg = f"Invalid protocol configuration: {e}"
        raise ValueError(msg) from e


def get_token_config(role: str, path: str | Path | None = None) -> Token:
    """
    Get the configured token for a role.

    Parameters
    ----------
    role : str
        One of 'base', 'reward', 'output'
    path : str | Path | None
        Configuration file; the packaged ``protocol.yaml`` if None

    Returns
    -------
    Token
        Token configuration

    Raises
    ------
    KeyError
        If the role is unknown

    """
    if role not in TOKEN_ROLES:
        msg = f"Unknown token role {role!r}; expected one of {', '.join(TOKEN_ROLES)}"
        raise KeyError(msg)

    config = load_protocol_config(path)
    return getattr(config, f"{role}_token")


def get_protocol_id(path: str | Path | None = None) -> str:
    """Get the canonical protocol identifier."""
    return load_protocol_config(path).id
