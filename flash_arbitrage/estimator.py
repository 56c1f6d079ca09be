"""
Profitability estimator for flash-loan arbitrage routes.

Folds a route left to right against a fixed market snapshot: the output of
each leg is the input of the next, then the borrowed amount plus the
flash-loan premium is subtracted from the final output. The estimator is pure:
it never touches the network, and two calls with the same route and snapshot
return equal results.

A losing or impossible route is a normal outcome reported as
``NOT_PROFITABLE`` with a reason, never an exception. Exceptions are kept for
malformed input (``ValidationError``) and for failures raised by the
snapshot's quoter (``ExternalCallError``).
"""

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .amm_math import apply_bps_fee, flash_loan_premium, get_amount_out
from .exceptions import ValidationError
from .route import ArbitrageRoute, LegKind, SwapLeg
from .utils import format_profit, ratio_to_bps

logger = logging.getLogger(__name__)

Quoter = Callable[[SwapLeg, int], int]


class ProfitStatus(str, Enum):
    PROFITABLE = "PROFITABLE"
    NOT_PROFITABLE = "NOT_PROFITABLE"


class NotProfitableReason(str, Enum):
    """Why a route was judged not profitable."""

    ZERO_AMOUNT = "zero_amount"
    DEGENERATE_POOL = "degenerate_pool"
    ZERO_OUTPUT = "zero_output"
    BELOW_REPAYMENT = "below_repayment"
    BELOW_MIN_PROFIT = "below_min_profit"


@dataclass(frozen=True)
class PoolReserves:
    """
    Reserves of a constant-product pair as returned by ``getReserves()``.

    Attributes:
        token0: Address of the pair's token0
        token1: Address of the pair's token1
        reserve0: Reserve of token0 in base units
        reserve1: Reserve of token1 in base units
    """

    token0: str
    token1: str
    reserve0: int
    reserve1: int

    def oriented(self, token_in: str) -> Tuple[int, int]:
        """Return (reserve_in, reserve_out) for a swap that sells ``token_in``."""
        key = token_in.lower()
        if key == self.token0.lower():
            return self.reserve0, self.reserve1
        if key == self.token1.lower():
            return self.reserve1, self.reserve0
        raise ValidationError(
            f"Token {token_in} is not in pair {self.token0}/{self.token1}"
        )


@dataclass(frozen=True)
class MarketSnapshot:
    """
    On-chain state an estimate is computed against.

    Attributes:
        reserves: Constant-product reserves keyed by pair address
        quoter: Callable ``(leg, amount_in) -> amount_out`` used for
            concentrated-liquidity legs
        block_number: Block the state was read at (informational)
    """

    reserves: Mapping[str, PoolReserves] = field(default_factory=dict)
    quoter: Optional[Quoter] = field(default=None, compare=False)
    block_number: Optional[int] = None

    def reserves_for(self, pool: str) -> PoolReserves:
        if pool in self.reserves:
            return self.reserves[pool]
        key = pool.lower()
        for address, reserves in self.reserves.items():
            if address.lower() == key:
                return reserves
        raise ValidationError(f"No reserves in snapshot for pool {pool}")


@dataclass(frozen=True)
class ProfitabilityResult:
    """
    Outcome of estimating one route.

    ``estimated_profit`` is signed: ``estimated_output - repayment``. A route
    that loses money carries a negative profit and ``NOT_PROFITABLE``. When the
    fold short-circuits (degenerate pool, zero output) ``estimated_output`` is 0
    and the profit is minus the full repayment. A zero borrow reports zero
    everywhere.
    """

    route_name: str
    status: ProfitStatus
    amount_in: int
    decimals: int
    estimated_output: int
    premium: int
    repayment: int
    estimated_profit: int
    leg_amounts: Tuple[int, ...] = ()
    reason: Optional[NotProfitableReason] = None
    block_number: Optional[int] = None

    @property
    def is_profitable(self) -> bool:
        return self.status is ProfitStatus.PROFITABLE

    @property
    def profit_bps(self) -> Decimal:
        """Net profit relative to the borrowed amount, in basis points."""
        return ratio_to_bps(self.estimated_profit, self.amount_in)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "route": self.route_name,
            "status": self.status.value,
            "reason": self.reason.value if self.reason else None,
            "amount_in": self.amount_in,
            "decimals": self.decimals,
            "leg_amounts": list(self.leg_amounts),
            "estimated_output": self.estimated_output,
            "premium": self.premium,
            "repayment": self.repayment,
            "estimated_profit": self.estimated_profit,
            "profit_bps": str(self.profit_bps.quantize(Decimal("0.01"))),
            "block_number": self.block_number,
        }

    def format_log(self, symbol: str = "") -> str:
        """One-line summary for the monitor log."""
        profit = format_profit(self.estimated_profit, self.decimals, symbol)
        line = (
            f"{self.route_name}: {self.status.value} profit={profit} "
            f"({self.profit_bps:.2f} bps) out={self.estimated_output} "
            f"repay={self.repayment}"
        )
        if self.reason:
            line += f" reason={self.reason.value}"
        return line


def _leg_output(leg: SwapLeg, amount_in: int, snapshot: MarketSnapshot) -> Optional[int]:
    """
    Output of a single leg, or None when the pool is degenerate.
    """
    if leg.kind is LegKind.CONSTANT_PRODUCT:
        reserve_in, reserve_out = snapshot.reserves_for(leg.pool).oriented(
            leg.token_in
        )
        if reserve_in == 0 or reserve_out == 0:
            return None
        if reserve_in * leg.fee_denom + amount_in * leg.fee_num == 0:
            return None
        return get_amount_out(
            amount_in, reserve_in, reserve_out, leg.fee_num, leg.fee_denom
        )

    if leg.kind is LegKind.CONCENTRATED_LIQUIDITY:
        if snapshot.quoter is None:
            raise ValidationError(
                f"Leg {leg.describe()} needs a quoter but the snapshot has none"
            )
        quoted = snapshot.quoter(leg, amount_in)
        if not isinstance(quoted, int) or isinstance(quoted, bool) or quoted < 0:
            raise ValidationError(
                f"Quoter returned an invalid amount for {leg.describe()}: {quoted!r}"
            )
        return quoted

    return apply_bps_fee(amount_in, leg.fee_bps)


def estimate_route(
    route: ArbitrageRoute, snapshot: MarketSnapshot
) -> ProfitabilityResult:
    """
    Estimate the net profit of borrowing, running every leg, and repaying.

    Args:
        route: Route to estimate; validated before any arithmetic
        snapshot: Reserves and quoter for the legs

    Returns:
        ProfitabilityResult with a signed estimated profit

    Raises:
        ValidationError: If the route or snapshot is malformed
        ExternalCallError: If the quoter fails
    """
    route.validate()

    loan = route.flash_loan
    amount = loan.amount

    def _result(status, output, legs, reason=None):
        premium = flash_loan_premium(amount, loan.premium_bps) if amount else 0
        repayment = amount + premium
        profit = output - repayment if amount else 0
        return ProfitabilityResult(
            route_name=route.name,
            status=status,
            amount_in=amount,
            decimals=loan.decimals,
            estimated_output=output,
            premium=premium,
            repayment=repayment,
            estimated_profit=profit,
            leg_amounts=tuple(legs),
            reason=reason,
            block_number=snapshot.block_number,
        )

    if amount == 0:
        return _result(
            ProfitStatus.NOT_PROFITABLE, 0, (), NotProfitableReason.ZERO_AMOUNT
        )

    current = amount
    leg_amounts = []
    for leg in route.legs:
        output = _leg_output(leg, current, snapshot)
        if output is None:
            logger.debug(f"{route.name}: degenerate pool at {leg.describe()}")
            return _result(
                ProfitStatus.NOT_PROFITABLE,
                0,
                leg_amounts,
                NotProfitableReason.DEGENERATE_POOL,
            )
        leg_amounts.append(output)
        if output == 0:
            logger.debug(f"{route.name}: zero output at {leg.describe()}")
            return _result(
                ProfitStatus.NOT_PROFITABLE,
                0,
                leg_amounts,
                NotProfitableReason.ZERO_OUTPUT,
            )
        current = output

    result = _result(ProfitStatus.PROFITABLE, current, leg_amounts)
    if result.estimated_profit <= 0:
        return _replace_status(result, NotProfitableReason.BELOW_REPAYMENT)
    if result.estimated_profit < route.min_profit:
        return _replace_status(result, NotProfitableReason.BELOW_MIN_PROFIT)
    return result


def _replace_status(
    result: ProfitabilityResult, reason: NotProfitableReason
) -> ProfitabilityResult:
    return replace(result, status=ProfitStatus.NOT_PROFITABLE, reason=reason)


def estimate_amounts(
    route: ArbitrageRoute, snapshot: MarketSnapshot, amounts
) -> Tuple[ProfitabilityResult, ...]:
    """Estimate the same route at several borrow sizes, against one snapshot."""
    return tuple(estimate_route(route.with_amount(a), snapshot) for a in amounts)


def best_result(results) -> Optional[ProfitabilityResult]:
    """Highest-profit result among the profitable ones, or None."""
    profitable = [r for r in results if r.is_profitable]
    if not profitable:
        return None
    return max(profitable, key=lambda r: r.estimated_profit)
