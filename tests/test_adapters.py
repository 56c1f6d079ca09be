"""
Tests for the chain readers in onchain/adapters with a mocked web3.
"""

from unittest.mock import MagicMock

import pytest
from web3.exceptions import ContractLogicError

from flash_arbitrage.exceptions import ExternalCallError, ValidationError
from flash_arbitrage.route import LegKind, SwapLeg
from onchain.adapters import (
    fetch_fee_tier,
    fetch_flash_loan_premium,
    fetch_reserves,
    make_quoter,
    quote_exact_input_single,
)

USDC = "0x1111111111111111111111111111111111111111"
WETH = "0x2222222222222222222222222222222222222222"
PAIR = "0x5555555555555555555555555555555555555555"
QUOTER = "0x6666666666666666666666666666666666666666"


def web3_with(contract):
    web3 = MagicMock()
    web3.eth.contract.return_value = contract
    return web3


def pair_contract(reserve0, reserve1, token0=USDC, token1=WETH):
    pair = MagicMock()
    pair.functions.token0.return_value.call.return_value = token0.lower()
    pair.functions.token1.return_value.call.return_value = token1.lower()
    pair.functions.getReserves.return_value.call.return_value = [
        reserve0,
        reserve1,
        1_700_000_000,
    ]
    return pair


class TestV2Reader:
    """Test Uniswap V2 pair reads."""

    def test_fetch_reserves(self):
        reserves = fetch_reserves(web3_with(pair_contract(2 * 10**12, 10**21)), PAIR)
        assert reserves.token0 == USDC
        assert reserves.token1 == WETH
        assert reserves.reserve0 == 2 * 10**12
        assert reserves.reserve1 == 10**21
        assert reserves.oriented(WETH) == (10**21, 2 * 10**12)

    def test_invalid_pair_address(self):
        with pytest.raises(ValidationError):
            fetch_reserves(MagicMock(), "0x123")

    def test_rpc_failure_wrapped(self):
        pair = pair_contract(1, 1)
        pair.functions.getReserves.return_value.call.side_effect = ConnectionError(
            "connection reset"
        )
        with pytest.raises(ExternalCallError):
            fetch_reserves(web3_with(pair), PAIR, max_retries=1)


class TestV3Reader:
    """Test fee tier reads and quoter calls."""

    def test_fetch_fee_tier(self):
        pool = MagicMock()
        pool.functions.fee.return_value.call.return_value = 10000
        assert fetch_fee_tier(web3_with(pool), PAIR) == 10000

    def test_out_of_range_fee_tier(self):
        pool = MagicMock()
        pool.functions.fee.return_value.call.return_value = 1_000_000
        with pytest.raises(ExternalCallError):
            fetch_fee_tier(web3_with(pool), PAIR)

    def test_quote_exact_input_single(self):
        quoter = MagicMock()
        quoter.functions.quoteExactInputSingle.return_value.call.return_value = [
            498251621566649025,
            0,
            1,
            90_000,
        ]
        amount_out = quote_exact_input_single(
            web3_with(quoter), QUOTER, USDC, WETH, 500, 1000 * 10**6
        )
        assert amount_out == 498251621566649025
        quoter.functions.quoteExactInputSingle.assert_called_once_with(
            (USDC, WETH, 1000 * 10**6, 500, 0)
        )

    def test_quote_zero_amount_skips_call(self):
        web3 = MagicMock()
        assert quote_exact_input_single(web3, QUOTER, USDC, WETH, 500, 0) == 0
        web3.eth.contract.assert_not_called()

    def test_quoter_revert(self):
        quoter = MagicMock()
        quoter.functions.quoteExactInputSingle.return_value.call.side_effect = (
            ContractLogicError("execution reverted: SPL")
        )
        with pytest.raises(ExternalCallError) as exc_info:
            quote_exact_input_single(web3_with(quoter), QUOTER, USDC, WETH, 500, 10)
        assert exc_info.value.revert_reason == "SPL"

    def test_make_quoter(self):
        quoter_contract = MagicMock()
        quoter_contract.functions.quoteExactInputSingle.return_value.call.return_value = [
            42,
            0,
            0,
            0,
        ]
        quote = make_quoter(web3_with(quoter_contract), QUOTER)
        leg = SwapLeg(
            kind=LegKind.CONCENTRATED_LIQUIDITY,
            token_in=USDC,
            token_out=WETH,
            decimals_in=6,
            decimals_out=18,
            pool=PAIR,
            fee_tier=3000,
        )
        assert quote(leg, 100) == 42
        quoter_contract.functions.quoteExactInputSingle.assert_called_once_with(
            (USDC, WETH, 100, 3000, 0)
        )

    def test_make_quoter_rejects_v2_leg(self):
        quote = make_quoter(MagicMock(), QUOTER)
        leg = SwapLeg(LegKind.CONSTANT_PRODUCT, USDC, WETH, 6, 18, PAIR)
        with pytest.raises(ValidationError):
            quote(leg, 100)


class TestAaveReader:
    def test_fetch_premium(self):
        pool = MagicMock()
        pool.functions.FLASHLOAN_PREMIUM_TOTAL.return_value.call.return_value = 5
        assert fetch_flash_loan_premium(web3_with(pool), PAIR) == 5

    def test_premium_out_of_range(self):
        pool = MagicMock()
        pool.functions.FLASHLOAN_PREMIUM_TOTAL.return_value.call.return_value = 20_000
        with pytest.raises(ExternalCallError):
            fetch_flash_loan_premium(web3_with(pool), PAIR)
