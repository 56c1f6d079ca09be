"""
Uniswap V2 style adapter for constant-product AMM pools.

Reads token addresses and reserves from a pair; the swap math itself lives
in ``flash_arbitrage.amm_math``.
"""

from web3 import Web3

from flash_arbitrage.estimator import PoolReserves
from flash_arbitrage.exceptions import ValidationError

from ..abi import UNISWAP_V2_PAIR_ABI
from ..rpc import call_with_retry


def fetch_reserves(web3: Web3, pair_addr: str, max_retries: int = 3) -> PoolReserves:
    """
    Fetch token addresses and reserves from a Uniswap V2 style pair.

    Args:
        web3: Web3 instance connected to the chain
        pair_addr: Checksummed address of the pair contract
        max_retries: Maximum number of retry attempts on rate limits

    Returns:
        PoolReserves with integer reserves

    Raises:
        ExternalCallError: If RPC calls fail after all retries
        ValidationError: If pair address is invalid
    """
    if not Web3.is_checksum_address(pair_addr):
        raise ValidationError(f"Invalid pair address: {pair_addr}")

    pair = web3.eth.contract(address=pair_addr, abi=UNISWAP_V2_PAIR_ABI)

    def _read():
        token0 = pair.functions.token0().call()
        token1 = pair.functions.token1().call()
        reserves = pair.functions.getReserves().call()
        return token0, token1, reserves

    token0, token1, reserves = call_with_retry(
        _read, f"pool {pair_addr}", max_retries=max_retries
    )
    return PoolReserves(
        token0=Web3.to_checksum_address(token0),
        token1=Web3.to_checksum_address(token1),
        reserve0=int(reserves[0]),
        reserve1=int(reserves[1]),
    )
