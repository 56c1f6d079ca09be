"""
Fail-fast verification of a network's address set against the chain.
"""

import logging
from typing import Any, Dict, List

from web3 import Web3

from flash_arbitrage.exceptions import ConfigurationError
from flash_arbitrage.registry import NetworkAddressSet

from .abi import ERC20_ABI

logger = logging.getLogger(__name__)


def _failure(name: str, address: str, problem: str) -> Dict[str, Any]:
    return {"name": name, "address": address, "problem": problem}


def verify_address_set(web3: Web3, address_set: NetworkAddressSet) -> Dict[str, Any]:
    """
    Check every configured address before anything uses it.

    Checks that the RPC serves the expected chain, that every token and
    contract address has deployed code, and that every token answers
    ``symbol()`` and ``decimals()`` with decimals matching the registry.

    Args:
        web3: Web3 instance connected to the network
        address_set: Registry entry to verify

    Returns:
        Summary dict with the on-chain symbols of each token

    Raises:
        ConfigurationError: With ``details["failures"]`` listing every failing
            entry, if any check fails
    """
    network = address_set.network
    try:
        chain_id = web3.eth.chain_id
    except Exception as e:
        raise ConfigurationError(f"{network}: cannot read chain id: {e}") from e
    if chain_id != address_set.chain_id:
        raise ConfigurationError(
            f"{network}: RPC serves chain {chain_id}, registry expects "
            f"{address_set.chain_id}",
            details={"expected": address_set.chain_id, "actual": chain_id},
        )

    failures: List[Dict[str, Any]] = []
    entries = list(address_set.tokens.items()) + list(address_set.contracts.items())
    for name, address in entries:
        try:
            code = web3.eth.get_code(address)
        except Exception as e:
            failures.append(_failure(name, address, f"get_code failed: {e}"))
            continue
        if not code:
            failures.append(_failure(name, address, "no contract code"))

    symbols: Dict[str, str] = {}
    failed = {f["address"] for f in failures}
    for symbol, address in address_set.tokens.items():
        if address in failed:
            continue
        token = web3.eth.contract(address=Web3.to_checksum_address(address), abi=ERC20_ABI)
        try:
            onchain_symbol = token.functions.symbol().call()
            onchain_decimals = token.functions.decimals().call()
        except Exception as e:
            failures.append(_failure(symbol, address, f"not an ERC-20 token: {e}"))
            continue
        expected = address_set.decimals[address]
        if onchain_decimals != expected:
            failures.append(
                _failure(
                    symbol,
                    address,
                    f"decimals() is {onchain_decimals}, registry says {expected}",
                )
            )
        if onchain_symbol != symbol:
            logger.warning(
                f"{network}: {symbol} at {address} reports symbol '{onchain_symbol}'"
            )
        symbols[symbol] = onchain_symbol

    if failures:
        for f in failures:
            logger.error(f"{network}: {f['name']} ({f['address']}): {f['problem']}")
        raise ConfigurationError(
            f"{network}: {len(failures)} address check(s) failed",
            details={"failures": failures},
        )

    logger.info(
        f"Verified {len(address_set.tokens)} tokens and "
        f"{len(address_set.contracts)} contracts on {network} (chain {chain_id})"
    )
    return {"network": network, "chain_id": chain_id, "symbols": symbols}
