"""
Route data types for flash-loan arbitrage estimation.

A route is a flash loan wrapped around an ordered list of legs. Each leg
converts one token into another through a constant-product pool, a
concentrated-liquidity pool, or a protocol wrap/unwrap that charges a flat fee.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from web3 import Web3

from .amm_math import (
    DEFAULT_FEE_DENOMINATOR,
    DEFAULT_FEE_NUMERATOR,
    validate_fee_fraction,
    validate_fee_tier,
)
from .exceptions import ValidationError
from .utils import is_valid_address, is_valid_basis_points


class LegKind(str, Enum):
    """Pricing model of a single leg."""

    CONSTANT_PRODUCT = "constant_product"
    CONCENTRATED_LIQUIDITY = "concentrated_liquidity"
    PROTOCOL_FEE = "protocol_fee"


PROTOCOL_ACTIONS = ("bond", "debond", "wrap", "unwrap", "deposit", "redeem")


def _same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


@dataclass(frozen=True)
class SwapLeg:
    """
    One hop of a route.

    Attributes:
        kind: Pricing model for this hop
        token_in: Address of the token consumed
        token_out: Address of the token produced
        decimals_in: Decimals of token_in
        decimals_out: Decimals of token_out
        pool: Pair, pool, pod or vault address the hop goes through
        fee_num: Constant-product fee numerator (997 for 0.3%)
        fee_denom: Constant-product fee denominator (1000 for 0.3%)
        fee_tier: Concentrated-liquidity fee tier in hundredths of a bip
        fee_bps: Protocol wrap/unwrap fee in basis points
        action: Protocol action label (bond, debond, ...)
        label: Human-readable name for logs (e.g. "USDC->WETH")
    """

    kind: LegKind
    token_in: str
    token_out: str
    decimals_in: int
    decimals_out: int
    pool: str
    fee_num: int = DEFAULT_FEE_NUMERATOR
    fee_denom: int = DEFAULT_FEE_DENOMINATOR
    fee_tier: Optional[int] = None
    fee_bps: int = 0
    action: Optional[str] = None
    label: str = ""

    def validate(self) -> None:
        """Raise ValidationError if the leg is internally inconsistent."""
        if not isinstance(self.kind, LegKind):
            raise ValidationError(f"Unknown leg kind: {self.kind!r}")
        for name in ("decimals_in", "decimals_out"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError(f"{name} must be a non-negative int: {value!r}")
        if _same_address(self.token_in, self.token_out):
            raise ValidationError(f"Leg {self.describe()} swaps a token for itself")

        if self.kind is LegKind.CONSTANT_PRODUCT:
            validate_fee_fraction(self.fee_num, self.fee_denom)
        elif self.kind is LegKind.CONCENTRATED_LIQUIDITY:
            if self.fee_tier is None:
                raise ValidationError(
                    f"Leg {self.describe()} has no fee tier; read it from the pool"
                )
            validate_fee_tier(self.fee_tier)
        else:
            if not is_valid_basis_points(self.fee_bps):
                raise ValidationError(
                    f"Leg {self.describe()} fee_bps out of range: {self.fee_bps!r}"
                )
            if self.action is not None and self.action not in PROTOCOL_ACTIONS:
                raise ValidationError(f"Unknown protocol action: {self.action!r}")
            if self.decimals_in != self.decimals_out:
                raise ValidationError(
                    f"Protocol leg {self.describe()} changes decimals "
                    f"{self.decimals_in} -> {self.decimals_out}"
                )

    def describe(self) -> str:
        return self.label or f"{self.token_in[:8]}->{self.token_out[:8]}"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "kind": self.kind.value,
            "label": self.label,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "decimals_in": self.decimals_in,
            "decimals_out": self.decimals_out,
            "pool": self.pool,
        }
        if self.kind is LegKind.CONSTANT_PRODUCT:
            data.update(fee_num=self.fee_num, fee_denom=self.fee_denom)
        elif self.kind is LegKind.CONCENTRATED_LIQUIDITY:
            data["fee_tier"] = self.fee_tier
        else:
            data.update(fee_bps=self.fee_bps, action=self.action)
        return data


@dataclass(frozen=True)
class FlashLoanTerms:
    """
    The loan that funds a route.

    Attributes:
        asset: Address of the borrowed token
        amount: Borrowed amount in base units
        decimals: Decimals of the borrowed token
        premium_bps: Provider fee charged once at repayment
        provider: Flash-loan pool address
    """

    asset: str
    amount: int
    decimals: int
    premium_bps: int
    provider: str = ""

    def validate(self) -> None:
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise ValidationError(f"Loan amount must be an int: {self.amount!r}")
        if self.amount < 0:
            raise ValidationError(f"Loan amount must be non-negative: {self.amount}")
        if not is_valid_basis_points(self.premium_bps):
            raise ValidationError(
                f"premium_bps must be an int in [0, 10000]: {self.premium_bps!r}"
            )


@dataclass(frozen=True)
class ArbitrageRoute:
    """
    A flash loan plus the ordered legs that should turn it into more of the
    same asset.

    Attributes:
        name: Route identifier used in logs and plans
        legs: Ordered hops; the output of one is the input of the next
        flash_loan: Borrowed asset, amount and premium
        min_profit: Minimum net profit in loan-asset base units
    """

    name: str
    legs: Tuple[SwapLeg, ...]
    flash_loan: FlashLoanTerms
    min_profit: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def validate(self) -> None:
        """
        Check the route is a closed, consistently scaled chain of legs.

        Raises:
            ValidationError: On any structural or numeric inconsistency
        """
        if not self.legs:
            raise ValidationError(f"Route {self.name} has no legs")
        if not isinstance(self.min_profit, int) or self.min_profit < 0:
            raise ValidationError(
                f"Route {self.name} min_profit must be a non-negative int"
            )
        self.flash_loan.validate()

        loan = self.flash_loan
        first, last = self.legs[0], self.legs[-1]
        if not _same_address(first.token_in, loan.asset):
            raise ValidationError(
                f"Route {self.name} starts with {first.describe()} "
                f"but borrows {loan.asset}"
            )
        if first.decimals_in != loan.decimals:
            raise ValidationError(
                f"Route {self.name} loan has {loan.decimals} decimals, "
                f"first leg expects {first.decimals_in}",
                details={"leg": 0},
            )

        for index, leg in enumerate(self.legs):
            leg.validate()
            if index == 0:
                continue
            prev = self.legs[index - 1]
            if not _same_address(prev.token_out, leg.token_in):
                raise ValidationError(
                    f"Route {self.name} is broken between legs {index - 1} and "
                    f"{index}: {prev.describe()} then {leg.describe()}",
                    details={"leg": index},
                )
            if prev.decimals_out != leg.decimals_in:
                raise ValidationError(
                    f"Route {self.name} decimals mismatch at leg {index}: "
                    f"{prev.decimals_out} vs {leg.decimals_in}",
                    details={"leg": index},
                )

        if not _same_address(last.token_out, loan.asset):
            raise ValidationError(
                f"Route {self.name} ends in {last.token_out}, cannot repay "
                f"a loan of {loan.asset}"
            )
        if last.decimals_out != loan.decimals:
            raise ValidationError(
                f"Route {self.name} returns {last.decimals_out} decimals, "
                f"loan has {loan.decimals}"
            )

    def path(self) -> str:
        """Leg labels joined for logging: "USDC->WETH | WETH->PEAS"."""
        return " | ".join(leg.describe() for leg in self.legs)

    def with_amount(self, amount: int) -> "ArbitrageRoute":
        """Copy of this route borrowing a different amount."""
        loan = self.flash_loan
        return ArbitrageRoute(
            name=self.name,
            legs=self.legs,
            flash_loan=FlashLoanTerms(
                asset=loan.asset,
                amount=amount,
                decimals=loan.decimals,
                premium_bps=loan.premium_bps,
                provider=loan.provider,
            ),
            min_profit=self.min_profit,
            metadata=self.metadata,
        )

    def to_dict(self) -> Dict[str, Any]:
        loan = self.flash_loan
        return {
            "name": self.name,
            "flash_loan": {
                "asset": loan.asset,
                "amount": loan.amount,
                "decimals": loan.decimals,
                "premium_bps": loan.premium_bps,
                "provider": loan.provider,
            },
            "min_profit": self.min_profit,
            "legs": [leg.to_dict() for leg in self.legs],
        }


def checksum(address: str) -> str:
    """Checksum an address, raising ValidationError for malformed input."""
    if not is_valid_address(address):
        raise ValidationError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)
