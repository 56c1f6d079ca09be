"""
RPC call helpers: rate-limit retries and structured revert decoding.
"""

import logging
import time
from typing import Any, Callable, Optional, TypeVar, Union

from eth_abi import decode
from web3.exceptions import ContractLogicError

from flash_arbitrage.exceptions import ExternalCallError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ERROR_SELECTOR = "0x08c379a0"  # Error(string)
PANIC_SELECTOR = "0x4e487b71"  # Panic(uint256)

PANIC_CODES = {
    0x00: "generic panic",
    0x01: "assertion failed",
    0x11: "arithmetic overflow or underflow",
    0x12: "division or modulo by zero",
    0x21: "invalid enum value",
    0x22: "invalid storage byte array",
    0x31: "pop on empty array",
    0x32: "array index out of bounds",
    0x41: "out of memory",
    0x51: "call to uninitialized function",
}


def _to_hex(data: Union[str, bytes, bytearray, None]) -> Optional[str]:
    if data is None:
        return None
    if isinstance(data, (bytes, bytearray)):
        return "0x" + bytes(data).hex()
    if isinstance(data, str) and data.startswith("0x"):
        return data.lower()
    return None


def decode_revert_data(data: Union[str, bytes, bytearray, None]) -> Optional[str]:
    """
    Decode raw revert data into a readable reason.

    ``Error(string)`` yields the string, ``Panic(uint256)`` yields
    ``"Panic(0x11): arithmetic overflow or underflow"``; any other payload,
    such as a custom error, is returned as raw hex. Empty data yields None.
    """
    hex_data = _to_hex(data)
    if not hex_data or hex_data == "0x":
        return None

    payload = bytes.fromhex(hex_data[10:])
    try:
        if hex_data.startswith(ERROR_SELECTOR):
            (reason,) = decode(["string"], payload)
            return reason
        if hex_data.startswith(PANIC_SELECTOR):
            (code,) = decode(["uint256"], payload)
            return f"Panic(0x{code:02x}): {PANIC_CODES.get(code, 'unknown panic code')}"
    except Exception as e:
        logger.debug(f"Could not decode revert payload {hex_data}: {e}")
    return hex_data


def revert_reason(error: Exception) -> Optional[str]:
    """Best available revert reason carried by a web3 exception."""
    if isinstance(error, ContractLogicError):
        decoded = decode_revert_data(getattr(error, "data", None))
        if decoded:
            return decoded
        message = getattr(error, "message", None) or str(error)
        prefix = "execution reverted: "
        if message.startswith(prefix):
            return message[len(prefix):]
        return message
    return None


def is_rate_limit(error: Exception) -> bool:
    message = str(error)
    return (
        "429" in message
        or "Too Many Requests" in message
        or "-32005" in message  # BSC/Ethereum rate limit code
        or "limit exceeded" in message.lower()
    )


def call_with_retry(
    fn: Callable[[], T],
    description: str,
    max_retries: int = 3,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """
    Run an RPC call, backing off on rate-limit errors.

    Args:
        fn: Zero-argument callable performing the call
        description: What is being fetched, for error messages
        max_retries: Maximum number of attempts
        sleep: Sleep function (injectable for tests)

    Returns:
        Whatever ``fn`` returns

    Raises:
        ExternalCallError: On a revert, a non-rate-limit failure, or when
            retries are exhausted
    """
    last_error: Optional[Exception] = None
    for attempt in range(max_retries):
        try:
            return fn()
        except ContractLogicError as e:
            reason = revert_reason(e)
            raise ExternalCallError(
                f"{description} reverted: {reason}", revert_reason=reason
            ) from e
        except Exception as e:
            last_error = e
            if is_rate_limit(e) and attempt < max_retries - 1:
                # Exponential backoff: 1s, 2s, 4s
                wait_time = 2**attempt
                logger.debug(f"Rate limited on {description}, retrying in {wait_time}s")
                sleep(wait_time)
                continue
            raise ExternalCallError(f"Failed to fetch {description}: {e}") from e

    raise ExternalCallError(
        f"Failed to fetch {description} after {max_retries} retries: {last_error}"
    ) from last_error
