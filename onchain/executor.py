"""
Transaction submission for flash-loan arbitrage plans.

Handles:
- Pre-flight simulation via eth_call with decoded revert reasons
- Transaction building and signing
- Single-writer nonce discipline: one in-flight transaction per account
- Receipt collection and balance snapshots for post-hoc profit checks
"""

import time
from typing import Any, Dict, List, Optional

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from flash_arbitrage.exceptions import ExternalCallError
from flash_arbitrage.execution import ExecutionOutcome, ExecutionPlan
from flash_arbitrage.utils import get_logger

from .abi import ARBITRAGE_EXECUTOR_ABI, ERC20_ABI
from .rpc import call_with_retry, revert_reason

logger = get_logger(__name__)


def _log_to_dict(log: Any) -> Dict[str, Any]:
    return {
        "address": log["address"],
        "topics": list(log["topics"]),
        "data": log["data"],
    }


class TransactionSubmitter:
    """
    Sends execution plans to the deployed arbitrage contract.

    The signer's nonce sequence is treated as a single-writer resource: a plan
    is refused while the account has unconfirmed transactions. A submission
    whose receipt never arrived stays recorded in ``in_flight`` and is named
    in the refusal until the account's nonces show it settled.
    """

    def __init__(
        self,
        web3: Web3,
        account: LocalAccount,
        gas_limit: int = 2_000_000,
        max_gas_price_gwei: float = 5.0,
        receipt_timeout: float = 120,
        recipient: Optional[str] = None,
    ):
        """
        Initialize submitter.

        Args:
            web3: Web3 instance
            account: Local signing account
            gas_limit: Gas limit for each transaction
            max_gas_price_gwei: Refuse to send when the network asks for more
            receipt_timeout: Seconds to wait for a receipt
            recipient: Address whose loan-asset balance measures profit
                (defaults to the executor contract of each plan)
        """
        self.web3 = web3
        self.account = account
        self.gas_limit = gas_limit
        self.max_gas_price_gwei = max_gas_price_gwei
        self.receipt_timeout = receipt_timeout
        self.recipient = recipient
        self._in_flight: Optional[str] = None

    @property
    def in_flight(self) -> Optional[str]:
        """Hash of a sent transaction whose receipt has not been seen, if any."""
        return self._in_flight

    def _request(self, plan: ExecutionPlan):
        contract = self.web3.eth.contract(
            address=Web3.to_checksum_address(plan.executor), abi=ARBITRAGE_EXECUTOR_ABI
        )
        return contract.functions.requestFlashLoan(
            Web3.to_checksum_address(plan.loan_asset), plan.loan_amount
        )

    def preflight(self, plan: ExecutionPlan) -> None:
        """
        Simulate the flash-loan request with eth_call.

        Raises:
            ExternalCallError: With the decoded revert reason if it would revert
        """
        try:
            self._request(plan).call({"from": self.account.address})
        except ContractLogicError as e:
            reason = revert_reason(e)
            raise ExternalCallError(
                f"Pre-flight of {plan.route_name} reverted: {reason}",
                revert_reason=reason,
            ) from e
        except Exception as e:
            raise ExternalCallError(f"Pre-flight of {plan.route_name} failed: {e}") from e

    def has_pending(self) -> bool:
        """True when the account has sent transactions that are not yet mined."""
        address = self.account.address
        pending = call_with_retry(
            lambda: self.web3.eth.get_transaction_count(address, "pending"),
            f"pending nonce of {address}",
        )
        latest = call_with_retry(
            lambda: self.web3.eth.get_transaction_count(address, "latest"),
            f"nonce of {address}",
        )
        return pending > latest

    def _check_single_writer(self, plan: ExecutionPlan) -> None:
        """
        Refuse while this account has an unconfirmed transaction.

        A hash stays in flight after its receipt wait fails; it is released
        once the account's pending and latest nonces agree again.
        """
        pending = self.has_pending()
        if self._in_flight:
            if pending:
                raise ExternalCallError(
                    f"Transaction {self._in_flight} still in flight; "
                    f"refusing {plan.route_name}",
                    tx_hash=self._in_flight,
                )
            logger.info(f"Transaction {self._in_flight} is no longer pending")
            self._in_flight = None
        if pending:
            raise ExternalCallError(
                f"Account {self.account.address} has pending transactions; "
                f"refusing {plan.route_name}"
            )

    def _gas_price(self) -> int:
        current = call_with_retry(lambda: self.web3.eth.gas_price, "gas price")
        ceiling = Web3.to_wei(self.max_gas_price_gwei, "gwei")
        if current > ceiling:
            raise ExternalCallError(
                f"Gas price {Web3.from_wei(current, 'gwei')} gwei exceeds "
                f"ceiling {self.max_gas_price_gwei} gwei"
            )
        return current

    def _balance(self, plan: ExecutionPlan) -> int:
        token = self.web3.eth.contract(
            address=Web3.to_checksum_address(plan.loan_asset), abi=ERC20_ABI
        )
        holder = Web3.to_checksum_address(self.recipient or plan.executor)
        return call_with_retry(
            token.functions.balanceOf(holder).call, f"balance of {holder}"
        )

    def _replay_reason(self, plan: ExecutionPlan, block_number: int) -> Optional[str]:
        """Recover the revert reason of a mined, failed transaction."""
        try:
            self._request(plan).call(
                {"from": self.account.address}, block_identifier=block_number
            )
        except ContractLogicError as e:
            return revert_reason(e)
        except Exception as e:
            logger.warning(f"Could not replay failed transaction: {e}")
            return None
        return None

    def _build(self, plan: ExecutionPlan) -> Dict[str, Any]:
        address = self.account.address
        nonce = call_with_retry(
            lambda: self.web3.eth.get_transaction_count(address, "latest"),
            f"nonce of {address}",
        )
        gas_price = self._gas_price()
        chain_id = call_with_retry(lambda: self.web3.eth.chain_id, "chain id")
        try:
            return self._request(plan).build_transaction(
                {
                    "from": address,
                    "nonce": nonce,
                    "gas": self.gas_limit,
                    "gasPrice": gas_price,
                    "chainId": chain_id,
                }
            )
        except Exception as e:
            raise ExternalCallError(
                f"Failed to build transaction for {plan.route_name}: {e}"
            ) from e

    def submit(self, plan: ExecutionPlan) -> ExecutionOutcome:
        """
        Sign, send and await one plan.

        Args:
            plan: Profitable plan from ``build_execution_plan``

        Returns:
            ExecutionOutcome; ``success`` is False for a mined but reverted
            transaction. ``balance_after`` is None when the post-receipt
            balance read fails.

        Raises:
            ExternalCallError: If a previous transaction is still unconfirmed,
                the account has pending transactions, pre-flight reverts, gas
                is too expensive, an RPC call fails before sending, or no
                receipt arrives
        """
        self._check_single_writer(plan)
        self.preflight(plan)
        balance_before = self._balance(plan)
        signed = self.account.sign_transaction(self._build(plan))

        start = time.time()
        try:
            sent = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise ExternalCallError(f"Failed to send {plan.route_name}: {e}") from e
        tx_hash = self.web3.to_hex(sent)
        self._in_flight = tx_hash
        logger.info(f"Sent {plan.route_name}: {tx_hash}")

        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(
                sent, timeout=self.receipt_timeout
            )
        except TimeExhausted as e:
            raise ExternalCallError(
                f"Transaction {tx_hash} not confirmed after {self.receipt_timeout}s",
                tx_hash=tx_hash,
            ) from e
        except Exception as e:
            raise ExternalCallError(
                f"Failed to get receipt for {tx_hash}: {e}", tx_hash=tx_hash
            ) from e
        self._in_flight = None

        elapsed_ms = (time.time() - start) * 1000
        block_number = receipt["blockNumber"]
        logs: List[Dict[str, Any]] = [_log_to_dict(log) for log in receipt["logs"]]
        try:
            balance_after: Optional[int] = self._balance(plan)
        except ExternalCallError as e:
            logger.warning(f"Balance after {tx_hash} unavailable: {e}")
            balance_after = None

        outcome = ExecutionOutcome(
            success=receipt["status"] == 1,
            tx_hash=tx_hash,
            block_number=block_number,
            gas_used=receipt["gasUsed"],
            logs=logs,
            balance_before=balance_before,
            balance_after=balance_after,
        )
        if not outcome.success:
            outcome.revert_reason = self._replay_reason(plan, block_number)
            logger.error(
                f"{plan.route_name} reverted in block {block_number}: "
                f"{outcome.revert_reason or 'no reason'} ({tx_hash})"
            )
        else:
            logger.info(
                f"{plan.route_name} mined in block {block_number}, "
                f"gas {outcome.gas_used}, {elapsed_ms:.0f}ms"
            )
        return outcome
