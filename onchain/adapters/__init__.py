"""
Chain readers that turn live contract state into plain estimator inputs.
"""

from .aave import fetch_flash_loan_premium
from .v2 import fetch_reserves
from .v3 import fetch_fee_tier, make_quoter, quote_exact_input_single

__all__ = [
    "fetch_flash_loan_premium",
    "fetch_reserves",
    "fetch_fee_tier",
    "make_quoter",
    "quote_exact_input_single",
]
