"""
Aave V3 flash-loan pool reader.
"""

from web3 import Web3

from flash_arbitrage.exceptions import ExternalCallError, ValidationError
from flash_arbitrage.utils import is_valid_basis_points

from ..abi import AAVE_POOL_ABI
from ..rpc import call_with_retry


def fetch_flash_loan_premium(web3: Web3, pool_addr: str, max_retries: int = 3) -> int:
    """
    Read ``FLASHLOAN_PREMIUM_TOTAL()`` in basis points (9 = 0.09%, 5 = 0.05%).

    Raises:
        ExternalCallError: If the call fails or the value is out of range
    """
    if not Web3.is_checksum_address(pool_addr):
        raise ValidationError(f"Invalid Aave pool address: {pool_addr}")
    pool = web3.eth.contract(address=pool_addr, abi=AAVE_POOL_ABI)
    premium = int(
        call_with_retry(
            pool.functions.FLASHLOAN_PREMIUM_TOTAL().call,
            f"flash-loan premium of {pool_addr}",
            max_retries,
        )
    )
    if not is_valid_basis_points(premium):
        raise ExternalCallError(f"Aave pool {pool_addr} reported premium {premium}")
    return premium
