"""
Boundary between estimation and transaction submission.

The estimator hands a profitable route to the submitter as a plain,
serializable ``ExecutionPlan``. The submitter hands back an
``ExecutionOutcome`` carrying the receipt data, from which the realized profit
is verified after the fact. Nothing here signs or sends anything.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .estimator import ProfitabilityResult
from .exceptions import ValidationError
from .route import ArbitrageRoute
from .utils import BPS_DENOMINATOR, is_valid_basis_points, safe_json_dump

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def min_amount_out(expected: int, slippage_bps: int) -> int:
    """Lowest acceptable output for ``expected`` under a slippage tolerance."""
    if not is_valid_basis_points(slippage_bps):
        raise ValidationError(f"slippage_bps must be in [0, 10000]: {slippage_bps!r}")
    return expected * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


@dataclass(frozen=True)
class LegInstruction:
    """
    One leg as the submission layer sees it.

    Attributes:
        index: Position in the route
        kind: Leg pricing model
        pool: Pair, pool, pod or vault address
        token_in: Token consumed
        token_out: Token produced
        amount_in: Expected input in base units
        expected_out: Estimated output in base units
        min_amount_out: Output floor after slippage tolerance
        fee: Fee parameter of the leg (tier, bps or num/denom)
        action: Protocol action for wrap/unwrap legs
    """

    index: int
    kind: str
    pool: str
    token_in: str
    token_out: str
    amount_in: int
    expected_out: int
    min_amount_out: int
    fee: Dict[str, int] = field(default_factory=dict)
    action: Optional[str] = None


@dataclass(frozen=True)
class ExecutionPlan:
    """Serializable description of a route ready for submission."""

    route_name: str
    network: str
    executor: str
    loan_asset: str
    loan_amount: int
    loan_decimals: int
    premium: int
    expected_output: int
    expected_profit: int
    min_profit: int
    slippage_bps: int
    legs: Tuple[LegInstruction, ...]
    block_number: Optional[int] = None

    @property
    def repayment(self) -> int:
        return self.loan_amount + self.premium

    @property
    def min_final_output(self) -> int:
        return self.legs[-1].min_amount_out if self.legs else 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["legs"] = [asdict(leg) for leg in self.legs]
        data["repayment"] = self.repayment
        return data

    def to_json(self, **kwargs) -> str:
        return safe_json_dump(self.to_dict(), **kwargs)


@dataclass
class ExecutionOutcome:
    """
    What came back from the submission layer.

    Attributes:
        success: Receipt status was 1
        tx_hash: Hex transaction hash, if one was sent
        block_number: Block the transaction was mined in
        gas_used: Gas consumed
        logs: Receipt logs (dicts with ``address``, ``topics``, ``data``)
        revert_reason: Decoded revert reason for a failed transaction
        balance_before: Recipient's loan-asset balance before sending
        balance_after: Recipient's loan-asset balance after confirmation
    """

    success: bool
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)
    revert_reason: Optional[str] = None
    balance_before: Optional[int] = None
    balance_after: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _leg_fee(leg) -> Dict[str, int]:
    data = leg.to_dict()
    return {
        k: data[k] for k in ("fee_num", "fee_denom", "fee_tier", "fee_bps") if k in data
    }


def build_execution_plan(
    route: ArbitrageRoute,
    result: ProfitabilityResult,
    executor: str,
    slippage_bps: int = 50,
    network: str = "",
) -> ExecutionPlan:
    """
    Turn a profitable estimate into a plan the submitter can consume.

    Args:
        route: Route that was estimated
        result: Its estimate; must be profitable and belong to ``route``
        executor: Address of the deployed arbitrage contract
        slippage_bps: Tolerance applied to each leg's expected output
        network: Network name, carried for logs and audit

    Returns:
        ExecutionPlan with per-leg minimum outputs

    Raises:
        ValidationError: If the result is not profitable or does not match
    """
    if not result.is_profitable:
        raise ValidationError(
            f"Refusing to plan unprofitable route {route.name}",
            details={"reason": result.reason.value if result.reason else None},
        )
    if result.route_name != route.name or result.amount_in != route.flash_loan.amount:
        raise ValidationError(
            f"Estimate {result.route_name} does not match route {route.name}"
        )
    if len(result.leg_amounts) != len(route.legs):
        raise ValidationError(
            f"Estimate has {len(result.leg_amounts)} legs, route has {len(route.legs)}"
        )

    legs = []
    amount_in = result.amount_in
    for index, (leg, expected) in enumerate(zip(route.legs, result.leg_amounts)):
        legs.append(
            LegInstruction(
                index=index,
                kind=leg.kind.value,
                pool=leg.pool,
                token_in=leg.token_in,
                token_out=leg.token_out,
                amount_in=amount_in,
                expected_out=expected,
                min_amount_out=min_amount_out(expected, slippage_bps),
                fee=_leg_fee(leg),
                action=leg.action,
            )
        )
        amount_in = expected

    return ExecutionPlan(
        route_name=route.name,
        network=network,
        executor=executor,
        loan_asset=route.flash_loan.asset,
        loan_amount=route.flash_loan.amount,
        loan_decimals=route.flash_loan.decimals,
        premium=result.premium,
        expected_output=result.estimated_output,
        expected_profit=result.estimated_profit,
        min_profit=route.min_profit,
        slippage_bps=slippage_bps,
        legs=tuple(legs),
        block_number=result.block_number,
    )


def _hex(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text if text.startswith("0x") else "0x" + text


def _topic_address(topic) -> str:
    return "0x" + _hex(topic)[-40:]


def decode_transfers(logs, asset: str) -> List[Tuple[str, str, int]]:
    """
    ERC-20 ``Transfer`` events of ``asset`` as (from, to, value) tuples.

    Addresses are returned lowercased.
    """
    transfers = []
    for log in logs:
        address = str(log.get("address", ""))
        topics = log.get("topics") or []
        if address.lower() != asset.lower() or len(topics) != 3:
            continue
        if _hex(topics[0]).lower() != TRANSFER_TOPIC:
            continue
        data = _hex(log.get("data", "0x"))
        value = int(data, 16) if len(data) > 2 else 0
        transfers.append(
            (_topic_address(topics[1]).lower(), _topic_address(topics[2]).lower(), value)
        )
    return transfers


def realized_profit(
    outcome: ExecutionOutcome, asset: str, recipient: str
) -> Optional[int]:
    """
    Profit actually kept by ``recipient`` in ``asset``.

    Uses the balance delta recorded around the transaction when both
    snapshots exist. Otherwise nets the loan-asset ``Transfer`` events in the
    receipt: value paid to the recipient minus value it paid out, so the
    borrowed principal and its repayment cancel. Returns None when neither
    source is available, and 0 for a failed transaction.
    """
    if not outcome.success:
        return 0
    if outcome.balance_before is not None and outcome.balance_after is not None:
        return outcome.balance_after - outcome.balance_before

    target = recipient.lower()
    net = 0
    touched = False
    for sender, to, value in decode_transfers(outcome.logs, asset):
        if to == target:
            net += value
            touched = True
        if sender == target:
            net -= value
            touched = True
    return net if touched else None
