"""
meekit configuration

Supports testnet and mainnet with separate configurations. Everything is read
from environment variables at import time; validation code never reads these
globals directly but receives an ExecutionContext built from them.
"""

from __future__ import annotations

import logging
import os
from enum import Enum

from eth_utils import is_address, to_checksum_address

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


# Scheme names accepted in MEEKIT_SCHEME_FRAMING
FRAMED_SCHEME_NAMES = ("simple", "on_chain", "erc20_permit")
DEFAULT_FRAMING_WIDTH = 1

# ERC-4337 v0.7 EntryPoint
DEFAULT_ENTRY_POINT = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"


def parse_framing_overrides(raw: str) -> dict[str, int]:
    """Parse ``"simple=1,on_chain=5"`` into a per-scheme framing width map.

    Raises:
        ConfigurationError: On unknown scheme names, malformed pairs or
            negative widths.
    """
    overrides: dict[str, int] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, value = item.partition("=")
        name = name.strip().lower()
        if not sep or name not in FRAMED_SCHEME_NAMES:
            raise ConfigurationError(
                f"Invalid MEEKIT_SCHEME_FRAMING entry {item!r}; "
                f"expected <scheme>=<width> with scheme in {', '.join(FRAMED_SCHEME_NAMES)}"
            )
        try:
            width = int(value.strip())
        except ValueError as exc:
            raise ConfigurationError(f"Framing width for {name} must be an integer") from exc
        if width < 0:
            raise ConfigurationError(f"Framing width for {name} must be >= 0")
        overrides[name] = width
    return overrides


def _get_entry_point(network: str) -> str:
    value = os.getenv("MEEKIT_ENTRY_POINT", "").strip() or DEFAULT_ENTRY_POINT
    if not is_address(value):
        if network.lower() == "mainnet":
            raise ConfigurationError(f"CRITICAL: MEEKIT_ENTRY_POINT is not a valid address: {value!r}")
        logger.warning(
            "Invalid MEEKIT_ENTRY_POINT, falling back to default entry point",
            extra={"event": "config.entry_point_invalid", "value": value[:12]},
        )
        value = DEFAULT_ENTRY_POINT
    return to_checksum_address(value)


# Get network type from environment variable
NETWORK = os.getenv("MEEKIT_NETWORK", "testnet")  # Default to testnet for safety

ENTRY_POINT_ADDRESS = _get_entry_point(NETWORK)
SCHEME_FRAMING_OVERRIDES = parse_framing_overrides(os.getenv("MEEKIT_SCHEME_FRAMING", ""))
LOG_LEVEL = os.getenv("MEEKIT_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("MEEKIT_LOG_FILE", "").strip() or None
ENVIRONMENT = os.getenv("MEEKIT_ENVIRONMENT", "production")


class TestnetConfig:
    """Testnet configuration (Sepolia)"""

    NETWORK_TYPE = NetworkType.TESTNET
    CHAIN_ID = int(os.getenv("MEEKIT_CHAIN_ID", "11155111"))
    ENTRY_POINT_ADDRESS = ENTRY_POINT_ADDRESS
    SCHEME_FRAMING_OVERRIDES = SCHEME_FRAMING_OVERRIDES


class MainnetConfig:
    """Mainnet configuration"""

    NETWORK_TYPE = NetworkType.MAINNET
    CHAIN_ID = int(os.getenv("MEEKIT_CHAIN_ID", "1"))
    ENTRY_POINT_ADDRESS = ENTRY_POINT_ADDRESS
    SCHEME_FRAMING_OVERRIDES = SCHEME_FRAMING_OVERRIDES


# Select config based on network
if NETWORK.lower() == "mainnet":
    Config = MainnetConfig
else:
    Config = TestnetConfig


def framing_width_for(scheme_name: str) -> int:
    return Config.SCHEME_FRAMING_OVERRIDES.get(scheme_name, DEFAULT_FRAMING_WIDTH)


# Export config
__all__ = [
    "Config",
    "NetworkType",
    "ConfigurationError",
    "TestnetConfig",
    "MainnetConfig",
    "ENTRY_POINT_ADDRESS",
    "DEFAULT_FRAMING_WIDTH",
    "FRAMED_SCHEME_NAMES",
    "framing_width_for",
    "parse_framing_overrides",
]
