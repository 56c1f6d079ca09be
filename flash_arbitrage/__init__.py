"""
Flash-Loan Arbitrage Toolkit.

Integer-exact profitability estimation for flash-loan arbitrage routes across
constant-product pools, concentrated-liquidity pools and pod wrap/unwrap
legs, plus the plain data types handed to a transaction-submission layer.
"""

from flash_arbitrage.version import __version__

PROJECT_NAME = "flash-arbitrage"
VERSION = __version__

# Export main components for easier imports
from flash_arbitrage.amounts import AssetAmount, format_units, parse_units
from flash_arbitrage.estimator import (
    MarketSnapshot,
    NotProfitableReason,
    PoolReserves,
    ProfitabilityResult,
    ProfitStatus,
    estimate_route,
)
from flash_arbitrage.exceptions import (
    ConfigurationError,
    ExternalCallError,
    FlashArbitrageError,
    ValidationError,
)
from flash_arbitrage.execution import (
    ExecutionOutcome,
    ExecutionPlan,
    LegInstruction,
    build_execution_plan,
    realized_profit,
)
from flash_arbitrage.registry import AddressRegistry, NetworkAddressSet, load_registry
from flash_arbitrage.route import ArbitrageRoute, FlashLoanTerms, LegKind, SwapLeg

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "AssetAmount",
    "format_units",
    "parse_units",
    "MarketSnapshot",
    "NotProfitableReason",
    "PoolReserves",
    "ProfitabilityResult",
    "ProfitStatus",
    "estimate_route",
    "ConfigurationError",
    "ExternalCallError",
    "FlashArbitrageError",
    "ValidationError",
    "ExecutionOutcome",
    "ExecutionPlan",
    "LegInstruction",
    "build_execution_plan",
    "realized_profit",
    "AddressRegistry",
    "NetworkAddressSet",
    "load_registry",
    "ArbitrageRoute",
    "FlashLoanTerms",
    "LegKind",
    "SwapLeg",
]
