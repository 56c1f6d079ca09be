"""
Tests for onchain/executor.py with a mocked web3 and signer.

Covers pre-flight reverts, the single-writer nonce discipline, the gas-price
ceiling and the replay of failed transactions.
"""

import unittest
from unittest.mock import MagicMock

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from flash_arbitrage.exceptions import ExternalCallError
from flash_arbitrage.execution import TRANSFER_TOPIC, ExecutionPlan, LegInstruction
from onchain.abi import ARBITRAGE_EXECUTOR_ABI
from onchain.executor import TransactionSubmitter

USDC = "0x1111111111111111111111111111111111111111"
EXECUTOR = "0x9999999999999999999999999999999999999999"
SIGNER = "0x8888888888888888888888888888888888888888"
TX_HASH = "0x" + "ab" * 32


def make_plan():
    return ExecutionPlan(
        route_name="usdc-peas-loop",
        network="base",
        executor=EXECUTOR,
        loan_asset=USDC,
        loan_amount=1000 * 10**6,
        loan_decimals=6,
        premium=900_000,
        expected_output=1064078693,
        expected_profit=63178693,
        min_profit=10**6,
        slippage_bps=50,
        legs=(
            LegInstruction(
                index=0,
                kind="constant_product",
                pool="0x5555555555555555555555555555555555555555",
                token_in=USDC,
                token_out=USDC,
                amount_in=1000 * 10**6,
                expected_out=1064078693,
                min_amount_out=1058758299,
            ),
        ),
    )


class TestTransactionSubmitter(unittest.TestCase):
    """Test submission against a mocked chain."""

    def setUp(self):
        self.executor_contract = MagicMock()
        self.request = self.executor_contract.functions.requestFlashLoan.return_value
        self.request.build_transaction.return_value = {"to": EXECUTOR}

        self.token_contract = MagicMock()
        self.token_contract.functions.balanceOf.return_value.call.side_effect = [
            5_000_000,
            68_178_693,
        ]

        self.web3 = MagicMock()
        self.web3.eth.contract.side_effect = lambda address, abi: (
            self.executor_contract
            if abi is ARBITRAGE_EXECUTOR_ABI
            else self.token_contract
        )
        self.nonces = {"pending": 7, "latest": 7}
        self.web3.eth.get_transaction_count.side_effect = (
            lambda address, block: self.nonces[block]
        )
        self.web3.eth.gas_price = Web3.to_wei(1, "gwei")
        self.web3.eth.chain_id = 8453
        self.web3.eth.send_raw_transaction.return_value = b"\xab" * 32
        self.web3.to_hex.return_value = TX_HASH
        self.web3.eth.wait_for_transaction_receipt.return_value = {
            "status": 1,
            "blockNumber": 200,
            "gasUsed": 450_000,
            "logs": [],
        }

        self.account = MagicMock()
        self.account.address = SIGNER
        self.account.sign_transaction.return_value.raw_transaction = b"\x01\x02"

        self.submitter = TransactionSubmitter(
            self.web3, self.account, gas_limit=1_500_000, max_gas_price_gwei=5
        )

    def test_successful_submission(self):
        outcome = self.submitter.submit(make_plan())

        self.assertTrue(outcome.success)
        self.assertEqual(outcome.tx_hash, TX_HASH)
        self.assertEqual(outcome.block_number, 200)
        self.assertEqual(outcome.gas_used, 450_000)
        self.assertEqual(outcome.balance_before, 5_000_000)
        self.assertEqual(outcome.balance_after, 68_178_693)
        self.assertIsNone(outcome.revert_reason)
        self.assertIsNone(self.submitter.in_flight)

        self.executor_contract.functions.requestFlashLoan.assert_called_with(
            USDC, 1000 * 10**6
        )
        tx_params = self.request.build_transaction.call_args[0][0]
        self.assertEqual(tx_params["from"], SIGNER)
        self.assertEqual(tx_params["nonce"], 7)
        self.assertEqual(tx_params["gas"], 1_500_000)
        self.assertEqual(tx_params["gasPrice"], Web3.to_wei(1, "gwei"))
        self.assertEqual(tx_params["chainId"], 8453)
        self.web3.eth.send_raw_transaction.assert_called_once_with(b"\x01\x02")

    def test_receipt_logs_are_kept(self):
        log = {
            "address": USDC,
            "topics": [TRANSFER_TOPIC, "0x" + "00" * 32, "0x" + "00" * 32],
            "data": "0x" + "00" * 32,
            "blockHash": "0x" + "11" * 32,
        }
        self.web3.eth.wait_for_transaction_receipt.return_value = {
            "status": 1,
            "blockNumber": 200,
            "gasUsed": 1,
            "logs": [log],
        }
        outcome = self.submitter.submit(make_plan())
        self.assertEqual(
            outcome.logs,
            [{"address": USDC, "topics": log["topics"], "data": log["data"]}],
        )

    def test_refuses_when_account_has_pending_transactions(self):
        self.nonces["pending"] = 8
        with self.assertRaises(ExternalCallError):
            self.submitter.submit(make_plan())
        self.web3.eth.send_raw_transaction.assert_not_called()
        self.request.call.assert_not_called()

    def test_refuses_while_previous_submission_in_flight(self):
        self.submitter._in_flight = TX_HASH
        self.nonces["pending"] = 8
        with self.assertRaises(ExternalCallError) as ctx:
            self.submitter.submit(make_plan())
        self.assertEqual(ctx.exception.tx_hash, TX_HASH)
        self.web3.eth.send_raw_transaction.assert_not_called()

    def test_in_flight_released_once_nonce_catches_up(self):
        self.submitter._in_flight = TX_HASH
        outcome = self.submitter.submit(make_plan())
        self.assertTrue(outcome.success)
        self.assertIsNone(self.submitter.in_flight)

    def test_preflight_revert_carries_reason(self):
        self.request.call.side_effect = ContractLogicError(
            "execution reverted: Insufficient profit"
        )
        with self.assertRaises(ExternalCallError) as ctx:
            self.submitter.submit(make_plan())
        self.assertEqual(ctx.exception.revert_reason, "Insufficient profit")
        self.web3.eth.send_raw_transaction.assert_not_called()

    def test_preflight_uses_signer_as_sender(self):
        self.submitter.preflight(make_plan())
        self.request.call.assert_called_once_with({"from": SIGNER})

    def test_gas_price_ceiling(self):
        self.web3.eth.gas_price = Web3.to_wei(6, "gwei")
        with self.assertRaises(ExternalCallError):
            self.submitter.submit(make_plan())
        self.web3.eth.send_raw_transaction.assert_not_called()

    def test_reverted_transaction_replays_for_reason(self):
        def call(params, block_identifier=None):
            if block_identifier == 200:
                raise ContractLogicError("execution reverted: Too little received")
            return None

        self.request.call.side_effect = call
        self.web3.eth.wait_for_transaction_receipt.return_value = {
            "status": 0,
            "blockNumber": 200,
            "gasUsed": 300_000,
            "logs": [],
        }
        self.token_contract.functions.balanceOf.return_value.call.side_effect = [
            5_000_000,
            5_000_000,
        ]

        with self.assertLogs("onchain.executor", level="ERROR"):
            outcome = self.submitter.submit(make_plan())

        self.assertFalse(outcome.success)
        self.assertEqual(outcome.revert_reason, "Too little received")
        self.assertEqual(outcome.tx_hash, TX_HASH)
        self.assertIsNone(self.submitter.in_flight)

    def test_receipt_timeout(self):
        self.web3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted(
            "not mined"
        )
        with self.assertRaises(ExternalCallError) as ctx:
            self.submitter.submit(make_plan())
        self.assertEqual(ctx.exception.tx_hash, TX_HASH)
        self.assertEqual(self.submitter.in_flight, TX_HASH)

        self.nonces["pending"] = 8
        with self.assertRaises(ExternalCallError) as ctx:
            self.submitter.submit(make_plan())
        self.web3.eth.send_raw_transaction.assert_called_once()
        self.assertEqual(ctx.exception.tx_hash, TX_HASH)

    def test_receipt_rpc_failure_is_wrapped(self):
        self.web3.eth.wait_for_transaction_receipt.side_effect = ConnectionError(
            "connection reset"
        )
        with self.assertRaises(ExternalCallError) as ctx:
            self.submitter.submit(make_plan())
        self.assertEqual(ctx.exception.tx_hash, TX_HASH)
        self.assertEqual(self.submitter.in_flight, TX_HASH)

    def test_balance_read_failure_after_receipt_keeps_outcome(self):
        self.token_contract.functions.balanceOf.return_value.call.side_effect = [
            5_000_000,
            ConnectionError("connection reset"),
        ]
        with self.assertLogs("onchain.executor", level="WARNING"):
            outcome = self.submitter.submit(make_plan())
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.tx_hash, TX_HASH)
        self.assertEqual(outcome.balance_before, 5_000_000)
        self.assertIsNone(outcome.balance_after)

    def test_balance_read_failure_before_send(self):
        self.token_contract.functions.balanceOf.return_value.call.side_effect = (
            ConnectionError("connection reset")
        )
        with self.assertRaises(ExternalCallError):
            self.submitter.submit(make_plan())
        self.web3.eth.send_raw_transaction.assert_not_called()

    def test_nonce_read_failure_is_wrapped(self):
        self.web3.eth.get_transaction_count.side_effect = ConnectionError("refused")
        with self.assertRaises(ExternalCallError):
            self.submitter.submit(make_plan())
        self.web3.eth.send_raw_transaction.assert_not_called()

    def test_send_failure(self):
        self.web3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")
        with self.assertRaises(ExternalCallError):
            self.submitter.submit(make_plan())
        self.assertIsNone(self.submitter.in_flight)

    def test_has_pending(self):
        self.assertFalse(self.submitter.has_pending())
        self.nonces["pending"] = 9
        self.assertTrue(self.submitter.has_pending())

    def test_balance_of_explicit_recipient(self):
        owner = "0x7777777777777777777777777777777777777777"
        submitter = TransactionSubmitter(self.web3, self.account, recipient=owner)
        submitter.submit(make_plan())
        self.token_contract.functions.balanceOf.assert_called_with(owner)


if __name__ == "__main__":
    unittest.main()
