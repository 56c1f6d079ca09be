"""
Integer AMM and fee arithmetic.

This module is the ONLY place where swap outputs and fees are computed.
Every function takes and returns integer base units and rounds the way the
on-chain contracts do, so an estimate never drifts from what a transaction
would realize against the same state.

Conventions:
- Constant-product fees are a numerator/denominator pair (997/1000 = 0.3%)
- Protocol fees and flash-loan premiums are integer basis points
- Concentrated-liquidity fee tiers are hundredths of a bip (3000 = 0.3%)
"""

from .exceptions import ValidationError
from .utils import BPS_DENOMINATOR, is_valid_basis_points

DEFAULT_FEE_NUMERATOR = 997
DEFAULT_FEE_DENOMINATOR = 1000

# Concentrated-liquidity fee tiers are expressed in 1e-6 units
FEE_TIER_DENOMINATOR = 1_000_000

# Common V3 fee tiers
V3_FEE_TIERS = {
    "LOWEST": 100,  # 0.01%
    "LOW": 500,  # 0.05%
    "MEDIUM": 3000,  # 0.30%
    "HIGH": 10000,  # 1.00%
}

# Aave PercentageMath.percentMul rounds half up
_HALF_BPS = BPS_DENOMINATOR // 2


def _require_int(name: str, value) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative: {value}")


def validate_fee_fraction(fee_num: int, fee_denom: int) -> None:
    """Check 0 <= fee_num <= fee_denom and fee_denom > 0."""
    _require_int("fee_num", fee_num)
    _require_int("fee_denom", fee_denom)
    if fee_denom == 0:
        raise ValidationError("fee_denom must be positive")
    if fee_num > fee_denom:
        raise ValidationError(
            f"fee_num {fee_num} exceeds fee_denom {fee_denom}; fee would be negative"
        )


def fee_fraction_from_bps(fee_bps: int) -> tuple:
    """Convert a pool fee in bps to the (num, denom) pair used by get_amount_out.

    30 bps -> (9970, 10000), which is exactly equivalent to 997/1000.
    """
    if not is_valid_basis_points(fee_bps):
        raise ValidationError(f"fee_bps must be an int in [0, 10000]: {fee_bps!r}")
    return BPS_DENOMINATOR - fee_bps, BPS_DENOMINATOR


def get_amount_out(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_num: int = DEFAULT_FEE_NUMERATOR,
    fee_denom: int = DEFAULT_FEE_DENOMINATOR,
) -> int:
    """
    Output of a constant-product (Uniswap V2 style) swap.

    Formula:
        amountOut = floor(amountIn * feeNum * reserveOut /
                          (reserveIn * feeDenom + amountIn * feeNum))

    A degenerate pool (zero denominator or an empty reserve) yields 0 rather
    than dividing by zero; callers treat a zero output as "no trade".

    Args:
        amount_in: Input amount in base units of the input token
        reserve_in: Pool reserve of the input token
        reserve_out: Pool reserve of the output token
        fee_num: Fee numerator (997 for a 0.3% pool)
        fee_denom: Fee denominator (1000 for a 0.3% pool)

    Returns:
        Output amount in base units of the output token

    Raises:
        ValidationError: On negative or non-integer inputs, or fee_num > fee_denom
    """
    _require_int("amount_in", amount_in)
    _require_int("reserve_in", reserve_in)
    _require_int("reserve_out", reserve_out)
    validate_fee_fraction(fee_num, fee_denom)

    if amount_in == 0 or reserve_out == 0:
        return 0

    amount_in_with_fee = amount_in * fee_num
    denominator = reserve_in * fee_denom + amount_in_with_fee
    if denominator == 0 or reserve_in == 0:
        return 0

    return (amount_in_with_fee * reserve_out) // denominator


def get_amount_in(
    amount_out: int,
    reserve_in: int,
    reserve_out: int,
    fee_num: int = DEFAULT_FEE_NUMERATOR,
    fee_denom: int = DEFAULT_FEE_DENOMINATOR,
) -> int:
    """
    Minimum input that buys ``amount_out`` from a constant-product pool.

    Formula (UniswapV2Library.getAmountIn, rounded up by one):
        amountIn = floor(reserveIn * amountOut * feeDenom /
                         ((reserveOut - amountOut) * feeNum)) + 1

    Raises:
        ValidationError: If the pool cannot supply ``amount_out`` or charges
            a 100% fee
    """
    _require_int("amount_out", amount_out)
    _require_int("reserve_in", reserve_in)
    _require_int("reserve_out", reserve_out)
    validate_fee_fraction(fee_num, fee_denom)

    if amount_out == 0:
        return 0
    if reserve_in == 0 or amount_out >= reserve_out:
        raise ValidationError(
            f"Insufficient liquidity: want {amount_out}, reserve_out {reserve_out}"
        )
    if fee_num == 0:
        raise ValidationError("Pool takes the whole input as fee")

    numerator = reserve_in * amount_out * fee_denom
    denominator = (reserve_out - amount_out) * fee_num
    return numerator // denominator + 1


def apply_bps_fee(amount: int, fee_bps: int) -> int:
    """Amount left after a flat bps fee, rounded down (pod bond/debond style)."""
    _require_int("amount", amount)
    if not is_valid_basis_points(fee_bps):
        raise ValidationError(f"fee_bps must be an int in [0, 10000]: {fee_bps!r}")
    return amount * (BPS_DENOMINATOR - fee_bps) // BPS_DENOMINATOR


def flash_loan_premium(amount: int, premium_bps: int) -> int:
    """Flash-loan premium on ``amount``, rounded half up like Aave's percentMul."""
    _require_int("amount", amount)
    if not is_valid_basis_points(premium_bps):
        raise ValidationError(
            f"premium_bps must be an int in [0, 10000]: {premium_bps!r}"
        )
    return (amount * premium_bps + _HALF_BPS) // BPS_DENOMINATOR


def validate_fee_tier(fee_tier: int) -> None:
    """Check a concentrated-liquidity fee tier is within (0, 1e6)."""
    _require_int("fee_tier", fee_tier)
    if fee_tier >= FEE_TIER_DENOMINATOR:
        raise ValidationError(f"fee_tier out of range: {fee_tier}")


def fee_tier_to_bps(fee_tier: int) -> int:
    """3000 -> 30 bps. Tiers below one bip round down to 0."""
    validate_fee_tier(fee_tier)
    return fee_tier // 100
