#!/usr/bin/env python3
"""
Flash-loan arbitrage monitor CLI.

Verifies the network's address registry, then checks the configured routes
every poll interval and, when execution is enabled, submits profitable ones.

Usage:
    python3 run_monitor.py
    python3 run_monitor.py --debug
    python3 run_monitor.py --config configs/monitor_base.yaml --once
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv
from eth_account import Account
from web3 import Web3

import logging_config
from flash_arbitrage.exceptions import ConfigurationError
from flash_arbitrage.registry import load_registry
from onchain.config import load_config
from onchain.executor import TransactionSubmitter
from onchain.runner import ArbitrageMonitor, install_signal_handlers
from onchain.verify import verify_address_set

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Flash-loan arbitrage monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config
  python3 run_monitor.py

  # Single cycle (for testing/CI)
  python3 run_monitor.py --config configs/monitor_base.yaml --once

  # Verbose logging while investigating a route
  python3 run_monitor.py --debug --once
        """,
    )

    parser.add_argument(
        "--config",
        default="configs/monitor_base.yaml",
        help="Path to config YAML file (default: configs/monitor_base.yaml)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit (overrides config setting)",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging, including web3 requests",
    )
    verbosity.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )

    return parser.parse_args()


def configure_logging(args: argparse.Namespace) -> None:
    """Pick the logging setup matching the verbosity flags."""
    if args.debug:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()


def build_monitor(config) -> ArbitrageMonitor:
    """Connect, verify the registry and wire up the monitor."""
    registry = load_registry(config.registry)
    address_set = registry[config.network]

    web3 = Web3(Web3.HTTPProvider(config.get_rpc_url()))
    if not web3.is_connected():
        raise ConfigurationError(f"Failed to connect to RPC for {config.network}")

    verify_address_set(web3, address_set)

    submitter = None
    if config.execute:
        account = Account.from_key(config.get_private_key())
        logger.info(f"Loaded account: {account.address}")
        submitter = TransactionSubmitter(
            web3,
            account,
            gas_limit=config.gas_limit,
            max_gas_price_gwei=config.max_gas_price_gwei,
            receipt_timeout=config.receipt_timeout_sec,
        )
    else:
        logger.info("Execution disabled: estimating only")

    return ArbitrageMonitor(config, web3, address_set, submitter)


async def _run(monitor: ArbitrageMonitor) -> None:
    stop_event = asyncio.Event()
    install_signal_handlers(stop_event)
    await monitor.run(stop_event)


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for configuration error, 2 for runtime failure)
    """
    args = parse_args()
    load_dotenv()
    configure_logging(args)

    try:
        config = load_config(args.config)
        if args.once:
            config.once = True
        monitor = build_monitor(config)
    except ConfigurationError as e:
        logger.error(f"Config error: {e}")
        return 1

    try:
        asyncio.run(_run(monitor))
    except ConfigurationError as e:
        logger.error(f"Config error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Monitor failed: {e}", exc_info=True)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
