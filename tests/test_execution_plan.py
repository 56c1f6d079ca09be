"""
Tests for the estimation / submission boundary: execution plans and
post-hoc realized-profit verification.
"""

import json

import pytest

from flash_arbitrage.estimator import MarketSnapshot, PoolReserves, estimate_route
from flash_arbitrage.exceptions import ValidationError
from flash_arbitrage.execution import (
    TRANSFER_TOPIC,
    ExecutionOutcome,
    build_execution_plan,
    decode_transfers,
    min_amount_out,
    realized_profit,
)
from flash_arbitrage.route import ArbitrageRoute, FlashLoanTerms, LegKind, SwapLeg

E6 = 10**6
E18 = 10**18

USDC = "0x1111111111111111111111111111111111111111"
WETH = "0x2222222222222222222222222222222222222222"
PEAS = "0x3333333333333333333333333333333333333333"
PPEAS = "0x4444444444444444444444444444444444444444"
POOL_1 = "0x5555555555555555555555555555555555555555"
POOL_2 = "0x6666666666666666666666666666666666666666"
POOL_4 = "0x7777777777777777777777777777777777777777"
EXECUTOR = "0x9999999999999999999999999999999999999999"
AAVE_POOL = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"


def make_route(amount=1000 * E6):
    legs = (
        SwapLeg(LegKind.CONSTANT_PRODUCT, USDC, WETH, 6, 18, POOL_1),
        SwapLeg(
            LegKind.CONSTANT_PRODUCT, WETH, PEAS, 18, 18, POOL_2, fee_num=99, fee_denom=100
        ),
        SwapLeg(
            LegKind.PROTOCOL_FEE, PEAS, PPEAS, 18, 18, PPEAS, fee_bps=20, action="bond"
        ),
        SwapLeg(LegKind.CONSTANT_PRODUCT, PPEAS, USDC, 18, 6, POOL_4),
    )
    return ArbitrageRoute(
        name="usdc-peas-loop",
        legs=legs,
        flash_loan=FlashLoanTerms(USDC, amount, 6, 9, AAVE_POOL),
        min_profit=E6,
    )


def make_snapshot(exit_usdc_reserve=110_000 * E6):
    return MarketSnapshot(
        reserves={
            POOL_1: PoolReserves(USDC, WETH, 2_000_000 * E6, 1000 * E18),
            POOL_2: PoolReserves(WETH, PEAS, 100 * E18, 100_000 * E18),
            POOL_4: PoolReserves(PPEAS, USDC, 50_000 * E18, exit_usdc_reserve),
        },
        block_number=123,
    )


def transfer_log(token, sender, recipient, value):
    return {
        "address": token,
        "topics": [
            TRANSFER_TOPIC,
            "0x" + "00" * 12 + sender[2:].lower(),
            "0x" + "00" * 12 + recipient[2:].lower(),
        ],
        "data": "0x" + value.to_bytes(32, "big").hex(),
    }


class TestMinAmountOut:
    def test_half_percent(self):
        assert min_amount_out(1064078693, 50) == 1058758299

    def test_zero_tolerance(self):
        assert min_amount_out(1000, 0) == 1000

    def test_invalid_tolerance(self):
        with pytest.raises(ValidationError):
            min_amount_out(1000, 10001)
        with pytest.raises(ValidationError):
            min_amount_out(1000, 0.5)


class TestBuildExecutionPlan:
    """Profitable estimates become serializable plans."""

    def test_plan_from_profitable_estimate(self):
        route = make_route()
        result = estimate_route(route, make_snapshot())
        plan = build_execution_plan(
            route, result, executor=EXECUTOR, slippage_bps=50, network="base"
        )

        assert plan.route_name == "usdc-peas-loop"
        assert plan.network == "base"
        assert plan.executor == EXECUTOR
        assert plan.loan_asset == USDC
        assert plan.loan_amount == 1000 * E6
        assert plan.premium == 900_000
        assert plan.repayment == 1000900000
        assert plan.expected_output == 1064078693
        assert plan.expected_profit == 63178693
        assert plan.min_profit == E6
        assert plan.block_number == 123

        assert [leg.amount_in for leg in plan.legs] == [
            1000 * E6,
            498251621566649025,
            490847904284882448032,
            489866208476312683135,
        ]
        assert [leg.min_amount_out for leg in plan.legs] == [
            495760363458815779,
            488393664763458035791,
            487416877433931119719,
            1058758299,
        ]
        assert plan.min_final_output == 1058758299

    def test_leg_fee_parameters(self):
        route = make_route()
        plan = build_execution_plan(route, estimate_route(route, make_snapshot()), EXECUTOR)
        assert plan.legs[0].fee == {"fee_num": 997, "fee_denom": 1000}
        assert plan.legs[1].fee == {"fee_num": 99, "fee_denom": 100}
        assert plan.legs[2].fee == {"fee_bps": 20}
        assert plan.legs[2].action == "bond"
        assert plan.legs[2].kind == "protocol_fee"

    def test_plan_serializes(self):
        route = make_route()
        plan = build_execution_plan(route, estimate_route(route, make_snapshot()), EXECUTOR)
        data = json.loads(plan.to_json())
        assert data["repayment"] == 1000900000
        assert data["legs"][3]["expected_out"] == 1064078693
        assert data["legs"][1]["amount_in"] == 498251621566649025

    def test_refuses_unprofitable(self):
        route = make_route()
        result = estimate_route(route, make_snapshot(exit_usdc_reserve=95_000 * E6))
        with pytest.raises(ValidationError) as exc_info:
            build_execution_plan(route, result, EXECUTOR)
        assert exc_info.value.details == {"reason": "below_repayment"}

    def test_refuses_mismatched_estimate(self):
        route = make_route()
        result = estimate_route(route, make_snapshot())
        with pytest.raises(ValidationError):
            build_execution_plan(route.with_amount(2000 * E6), result, EXECUTOR)


class TestRealizedProfit:
    """Post-hoc verification from receipt logs."""

    def test_decode_transfers(self):
        logs = [
            transfer_log(USDC, AAVE_POOL, EXECUTOR, 1000 * E6),
            transfer_log(WETH, EXECUTOR, POOL_1, 5),
            {"address": USDC, "topics": [TRANSFER_TOPIC], "data": "0x"},
        ]
        assert decode_transfers(logs, USDC) == [
            (AAVE_POOL.lower(), EXECUTOR.lower(), 1000 * E6)
        ]

    def test_decode_transfers_from_bytes(self):
        log = transfer_log(USDC, EXECUTOR, AAVE_POOL, 7)
        log["topics"] = [bytes.fromhex(t[2:]) for t in log["topics"]]
        log["data"] = bytes.fromhex(log["data"][2:])
        assert decode_transfers([log], USDC) == [
            (EXECUTOR.lower(), AAVE_POOL.lower(), 7)
        ]

    def test_sums_transfers_to_recipient(self):
        owner = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
        outcome = ExecutionOutcome(
            success=True,
            logs=[
                transfer_log(USDC, AAVE_POOL, EXECUTOR, 1000 * E6),
                transfer_log(USDC, EXECUTOR, AAVE_POOL, 1000900000),
                transfer_log(USDC, EXECUTOR, owner, 60_000_000),
            ],
        )
        assert realized_profit(outcome, USDC, owner) == 60_000_000

    def test_nets_principal_and_repayment_for_executor(self):
        outcome = ExecutionOutcome(
            success=True,
            logs=[
                transfer_log(USDC, AAVE_POOL, EXECUTOR, 1000 * E6),
                transfer_log(USDC, EXECUTOR, POOL_1, 1000 * E6),
                transfer_log(USDC, POOL_4, EXECUTOR, 1063178693),
                transfer_log(USDC, EXECUTOR, AAVE_POOL, 1000900000),
            ],
        )
        assert realized_profit(outcome, USDC, EXECUTOR) == 62278693

    def test_balance_delta_preferred_over_logs(self):
        outcome = ExecutionOutcome(
            success=True,
            logs=[
                transfer_log(USDC, AAVE_POOL, EXECUTOR, 1000 * E6),
                transfer_log(USDC, POOL_4, EXECUTOR, 1063178693),
                transfer_log(USDC, EXECUTOR, AAVE_POOL, 1000900000),
            ],
            balance_before=5 * E6,
            balance_after=5 * E6 + 62278693,
        )
        assert realized_profit(outcome, USDC, EXECUTOR) == 62278693

    def test_unrelated_transfers_are_unknown(self):
        outcome = ExecutionOutcome(
            success=True, logs=[transfer_log(USDC, AAVE_POOL, POOL_1, 1000 * E6)]
        )
        assert realized_profit(outcome, USDC, EXECUTOR) is None

    def test_falls_back_to_balance_delta(self):
        outcome = ExecutionOutcome(
            success=True, logs=[], balance_before=5 * E6, balance_after=68178693
        )
        assert realized_profit(outcome, USDC, EXECUTOR) == 63178693

    def test_unknown_without_logs_or_balances(self):
        assert realized_profit(ExecutionOutcome(success=True), USDC, EXECUTOR) is None

    def test_failed_transaction_realizes_nothing(self):
        outcome = ExecutionOutcome(
            success=False,
            revert_reason="Insufficient profit",
            balance_before=10,
            balance_after=10,
        )
        assert realized_profit(outcome, USDC, EXECUTOR) == 0

    def test_outcome_to_dict(self):
        outcome = ExecutionOutcome(success=True, tx_hash="0xabc", gas_used=21000)
        data = outcome.to_dict()
        assert data["tx_hash"] == "0xabc"
        assert data["logs"] == []
