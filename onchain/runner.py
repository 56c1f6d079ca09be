"""
Arbitrage monitor loop.

Each cycle resolves every configured route against fresh chain state,
estimates it, logs the outcome, and (when execution is enabled) submits at
most one profitable route. Cycles run strictly one after another.
"""

import asyncio
import signal
from typing import Dict, List, Optional, Tuple

from web3 import Web3

from flash_arbitrage.estimator import ProfitabilityResult, estimate_route
from flash_arbitrage.exceptions import (
    ConfigurationError,
    ExternalCallError,
    ValidationError,
)
from flash_arbitrage.execution import build_execution_plan, realized_profit
from flash_arbitrage.registry import NetworkAddressSet
from flash_arbitrage.route import ArbitrageRoute
from flash_arbitrage.utils import format_profit, get_logger

from .adapters.v3 import make_quoter
from .config import MonitorConfig, RouteConfig
from .executor import TransactionSubmitter
from .market import read_snapshot, resolve_route

logger = get_logger(__name__)


class ArbitrageMonitor:
    """
    Sequential polling monitor for flash-loan arbitrage routes.

    Not profitable is logged at INFO, a route skipped for invalid input at
    WARNING, and RPC or transaction failures at ERROR.
    """

    def __init__(
        self,
        config: MonitorConfig,
        web3: Web3,
        address_set: NetworkAddressSet,
        submitter: Optional[TransactionSubmitter] = None,
    ):
        """
        Initialize monitor with config.

        Args:
            config: Validated MonitorConfig instance
            web3: Web3 instance connected to ``config.network``
            address_set: Registry entry for ``config.network``
            submitter: Transaction submitter; required when config.execute is set
        """
        self.config = config
        self.web3 = web3
        self.address_set = address_set
        self.submitter = submitter

        if config.execute and submitter is None:
            raise ValueError("execute is enabled but no submitter was given")

        self.quoter = (
            make_quoter(web3, address_set.resolve(config.quoter))
            if config.quoter
            else None
        )
        self.executor_address: Optional[str] = (
            address_set.resolve(config.executor_contract)
            if config.executor_contract
            else None
        )

        self._check_names()

        self.cycle_num = 0
        self.stats: Dict[str, int] = {
            "checked": 0,
            "profitable": 0,
            "not_profitable": 0,
            "skipped": 0,
            "errors": 0,
            "executed": 0,
        }

    def _check_names(self) -> None:
        """Resolve every configured name up front so typos fail at startup."""
        for route_cfg in self.config.routes:
            self.address_set.decimals_of(route_cfg.asset)
            self.address_set.resolve(route_cfg.provider)
            for leg in route_cfg.legs:
                self.address_set.resolve(leg.pool)
                self.address_set.decimals_of(leg.token_in)
                self.address_set.decimals_of(leg.token_out)

    def _evaluate(
        self, route_cfg: RouteConfig
    ) -> Tuple[ArbitrageRoute, ProfitabilityResult]:
        route = resolve_route(self.web3, self.address_set, route_cfg)
        snapshot = read_snapshot(self.web3, route, self.quoter)
        return route, estimate_route(route, snapshot)

    def check_route(self, route_cfg: RouteConfig) -> ProfitabilityResult:
        """
        Resolve, read and estimate one route.

        Raises:
            ValidationError: If the route is malformed
            ExternalCallError: If a chain read fails
        """
        return self._evaluate(route_cfg)[1]

    def _symbol(self, route: ArbitrageRoute) -> str:
        return self.address_set.symbol_of(route.flash_loan.asset)

    def _execute(self, route: ArbitrageRoute, result: ProfitabilityResult) -> None:
        plan = build_execution_plan(
            route,
            result,
            executor=self.executor_address,
            slippage_bps=self.config.slippage_bps,
            network=self.config.network,
        )
        logger.info(f"Executing {route.name}: {plan.to_json(indent=None)}")
        try:
            outcome = self.submitter.submit(plan)
        except ExternalCallError as e:
            self.stats["errors"] += 1
            reason = f" (revert: {e.revert_reason})" if e.revert_reason else ""
            logger.error(f"Execution of {route.name} failed: {e}{reason}")
            return

        self.stats["executed"] += 1
        if not outcome.success:
            self.stats["errors"] += 1
            return

        recipient = self.submitter.recipient or plan.executor
        realized = realized_profit(outcome, plan.loan_asset, recipient)
        symbol = self._symbol(route)
        if realized is None:
            logger.info(
                f"{route.name} executed ({outcome.tx_hash}); realized profit unknown"
            )
        else:
            logger.info(
                f"{route.name} executed ({outcome.tx_hash}): realized "
                f"{format_profit(realized, plan.loan_decimals, symbol)} vs expected "
                f"{format_profit(plan.expected_profit, plan.loan_decimals, symbol)}"
            )

    def run_cycle(self) -> List[ProfitabilityResult]:
        """
        Check every configured route once; execute at most one.

        Returns:
            Results of the routes that could be estimated
        """
        results: List[ProfitabilityResult] = []
        executed = False

        for route_cfg in self.config.routes:
            self.stats["checked"] += 1
            try:
                route, result = self._evaluate(route_cfg)
            except ValidationError as e:
                self.stats["skipped"] += 1
                logger.warning(f"Skipping route {route_cfg.name}: {e}")
                continue
            except ExternalCallError as e:
                self.stats["errors"] += 1
                reason = f" (revert: {e.revert_reason})" if e.revert_reason else ""
                logger.error(f"Route {route_cfg.name}: chain read failed: {e}{reason}")
                continue

            results.append(result)
            symbol = self._symbol(route)
            if not result.is_profitable:
                self.stats["not_profitable"] += 1
                logger.info(result.format_log(symbol))
                continue

            self.stats["profitable"] += 1
            logger.info(f"OPPORTUNITY {result.format_log(symbol)}")
            if self.config.execute and not executed:
                executed = True
                self._execute(route, result)

        return results

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Main loop: check, maybe execute, sleep.

        Blocking web3 calls run in the default executor and are awaited, so a
        cycle always finishes before the next starts or the loop exits.
        Runs until ``stop_event`` is set, or once if config.once=True.
        """
        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()

        while not stop_event.is_set():
            self.cycle_num += 1
            try:
                await loop.run_in_executor(None, self.run_cycle)
            except (asyncio.CancelledError, ConfigurationError):
                raise
            except Exception as e:
                logger.error(f"Cycle {self.cycle_num} failed: {e}", exc_info=True)
                if self.config.once:
                    raise

            if self.config.once:
                break

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.config.poll_sec)
            except asyncio.TimeoutError:
                pass

        logger.info(
            f"Monitor stopped after {self.cycle_num} cycle(s): "
            + ", ".join(f"{k}={v}" for k, v in self.stats.items())
        )


def install_signal_handlers(stop_event: asyncio.Event) -> None:
    """SIGINT and SIGTERM set ``stop_event``; the in-flight cycle finishes first."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)
