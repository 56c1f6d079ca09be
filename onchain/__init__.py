"""
On-chain layer: contract interfaces, chain readers, transaction submission
and the monitor loop built on web3.
"""

from .config import MonitorConfig, load_config
from .executor import TransactionSubmitter
from .market import read_snapshot, resolve_route
from .runner import ArbitrageMonitor
from .verify import verify_address_set

__all__ = [
    "MonitorConfig",
    "load_config",
    "TransactionSubmitter",
    "read_snapshot",
    "resolve_route",
    "ArbitrageMonitor",
    "verify_address_set",
]
