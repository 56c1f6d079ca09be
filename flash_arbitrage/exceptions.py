"""
Exception hierarchy for the flash-loan arbitrage toolkit.

Provides specific exception types for the three failure categories so callers
can tell a bad setup from a bad input from a failed chain interaction.
An unprofitable estimate is not an exception; see ``ProfitabilityResult``.
"""

from typing import Any, Dict, Optional


class FlashArbitrageError(Exception):
    """Base exception for all flash arbitrage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(FlashArbitrageError):
    """Raised when addresses, networks or config files are wrong or unverifiable."""

    pass


class ValidationError(FlashArbitrageError):
    """Raised when numeric or structural input to the estimator is malformed."""

    pass


class ExternalCallError(FlashArbitrageError):
    """Raised when an RPC call or a submitted transaction fails."""

    def __init__(
        self,
        message: str,
        revert_reason: Optional[str] = None,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.revert_reason = revert_reason
        self.tx_hash = tx_hash
