"""
Common utilities and helper functions for the flash arbitrage toolkit.

This module provides centralized helpers for logging, JSON serialization,
basis-point validation and profit formatting.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from web3 import Web3

from .amounts import format_units

BPS_DENOMINATOR = 10_000


# JSON utilities
def safe_json_dump(data: Any, **kwargs) -> str:
    """
    Safely serialize data to JSON with sensible defaults.

    Args:
        data: Data to serialize
        **kwargs: Additional arguments to json.dumps

    Returns:
        JSON string
    """
    defaults = {"ensure_ascii": False, "indent": 2, "default": _json_default_handler}
    defaults.update(kwargs)
    return json.dumps(data, **defaults)


def _json_default_handler(obj: Any) -> Any:
    """Default JSON serialization handler for custom types."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif hasattr(obj, "to_dict"):
        return obj.to_dict()
    else:
        return str(obj)


# Basis point utilities
def is_valid_basis_points(value: Any) -> bool:
    """Check if value is an integer number of basis points (0-10000)."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value <= BPS_DENOMINATOR
    )


def ratio_to_bps(numerator: int, denominator: int) -> Decimal:
    """Express numerator/denominator in basis points, zero-safe."""
    if denominator == 0:
        return Decimal("0")
    return Decimal(numerator) * Decimal(BPS_DENOMINATOR) / Decimal(denominator)


# Address utilities
def is_valid_address(value: Any) -> bool:
    """
    Check for a 20-byte hex address.

    Single-case hex is accepted as is; mixed case must be a valid EIP-55
    checksum.
    """
    if not isinstance(value, str) or not Web3.is_address(value):
        return False
    body = value[2:] if value[:2] in ("0x", "0X") else value
    if body == body.lower() or body == body.upper():
        return True
    return Web3.is_checksum_address(value)


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Handlers are only attached when neither the logger nor the root logger has
    one, so ``logging_config.setup()`` stays in control for entry points.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages

    Returns:
        Configured logger (or LoggerAdapter when extra is given)
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        format_str = (
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
        )
        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )
        handler.setFormatter(logging.Formatter(format_str, datefmt="%H:%M:%S"))
        logger.addHandler(handler)

    if extra:
        return logging.LoggerAdapter(logger, {"extra_" + k: v for k, v in extra.items()})

    return logger


def format_profit(value: int, decimals: int, symbol: str = "") -> str:
    """Format a signed base-unit profit with an explicit sign.

    Examples:
        >>> format_profit(1_500_000, 6, "USDC")
        '+1.5 USDC'
        >>> format_profit(-250_000, 6, "USDC")
        '-0.25 USDC'
        >>> format_profit(0, 18)
        '+0'
    """
    sign = "-" if value < 0 else "+"
    text = f"{sign}{format_units(abs(value), decimals)}"
    return f"{text} {symbol}" if symbol else text
