"""
Uniswap V3 style adapter for concentrated-liquidity pools.

V3 output has no closed form here: quotes come from the QuoterV2 contract
through ``eth_call``. The pool's fee tier is always read from the pool
itself rather than taken from configuration.
"""

from typing import Callable

from web3 import Web3

from flash_arbitrage.amm_math import validate_fee_tier
from flash_arbitrage.exceptions import ExternalCallError, ValidationError
from flash_arbitrage.route import LegKind, SwapLeg

from ..abi import UNISWAP_V3_POOL_ABI, UNISWAP_V3_QUOTER_V2_ABI
from ..rpc import call_with_retry


def fetch_fee_tier(web3: Web3, pool_addr: str, max_retries: int = 3) -> int:
    """
    Read ``fee()`` from a V3 pool.

    Returns:
        Fee tier in hundredths of a bip (3000 = 0.3%)

    Raises:
        ExternalCallError: If the call fails or returns an out-of-range tier
    """
    if not Web3.is_checksum_address(pool_addr):
        raise ValidationError(f"Invalid pool address: {pool_addr}")
    pool = web3.eth.contract(address=pool_addr, abi=UNISWAP_V3_POOL_ABI)
    fee = call_with_retry(
        pool.functions.fee().call, f"fee tier of {pool_addr}", max_retries
    )
    try:
        validate_fee_tier(int(fee))
    except ValidationError as e:
        raise ExternalCallError(f"Pool {pool_addr} reported bad fee {fee}") from e
    return int(fee)


def quote_exact_input_single(
    web3: Web3,
    quoter_addr: str,
    token_in: str,
    token_out: str,
    fee: int,
    amount_in: int,
    max_retries: int = 3,
) -> int:
    """
    Get a quote for an exact input single-pool swap on Uniswap V3.

    Args:
        web3: Web3 instance
        quoter_addr: Address of the QuoterV2 contract
        token_in: Token sold
        token_out: Token bought
        fee: Pool fee tier
        amount_in: Input amount in base units

    Returns:
        Expected output amount in base units

    Raises:
        ExternalCallError: If the quoter reverts or the RPC call fails
    """
    if amount_in == 0:
        return 0
    quoter = web3.eth.contract(address=quoter_addr, abi=UNISWAP_V3_QUOTER_V2_ABI)
    params = (token_in, token_out, int(amount_in), int(fee), 0)
    result = call_with_retry(
        quoter.functions.quoteExactInputSingle(params).call,
        f"V3 quote {token_in}->{token_out} fee {fee}",
        max_retries,
    )
    return int(result[0])


def make_quoter(web3: Web3, quoter_addr: str) -> Callable[[SwapLeg, int], int]:
    """Adapt the QuoterV2 contract to the estimator's ``(leg, amount) -> out``."""

    def _quote(leg: SwapLeg, amount_in: int) -> int:
        if leg.kind is not LegKind.CONCENTRATED_LIQUIDITY:
            raise ValidationError(f"Leg {leg.describe()} is not a V3 leg")
        return quote_exact_input_single(
            web3, quoter_addr, leg.token_in, leg.token_out, leg.fee_tier, amount_in
        )

    return _quote
