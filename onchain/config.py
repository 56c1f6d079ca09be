"""
Configuration loading and validation for the arbitrage monitor.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from flash_arbitrage.amounts import parse_units
from flash_arbitrage.exceptions import ConfigurationError, ValidationError
from flash_arbitrage.utils import is_valid_basis_points

# Config leg kinds and the pricing model they map to
LEG_KINDS = ("v2", "v3", "pod")


@dataclass(frozen=True)
class LegConfig:
    """
    One leg as written in the config file.

    Token and pool fields are registry names or literal addresses. ``fee_bps``
    is required for v2 and pod legs; v3 legs take their fee tier from chain.
    """

    kind: str
    pool: str
    token_in: str
    token_out: str
    fee_bps: Optional[int] = None
    action: Optional[str] = None


@dataclass(frozen=True)
class RouteConfig:
    """
    A route as written in the config file.

    ``amount`` and ``min_profit`` stay decimal strings until the loan asset's
    decimals are known from the registry.
    """

    name: str
    asset: str
    amount: str
    provider: str
    legs: List[LegConfig] = field(default_factory=list)
    min_profit: str = "0"

    def amount_units(self, decimals: int) -> int:
        return self._units(self.amount, "amount", decimals)

    def min_profit_units(self, decimals: int) -> int:
        return self._units(self.min_profit, "min_profit", decimals)

    def _units(self, text: str, what: str, decimals: int) -> int:
        try:
            return parse_units(text, decimals)
        except ValidationError as e:
            raise ConfigurationError(f"Route '{self.name}' {what}: {e}") from e


class MonitorConfig:
    """
    Parsed and validated configuration for the arbitrage monitor.

    Attributes:
        network: Registry network to run against
        registry: Path to the address registry YAML
        rpc_url_env: Environment variable holding the RPC URL
        private_key_env: Environment variable holding the signing key
        poll_sec: Seconds between cycles
        once: If True, run a single cycle and exit
        execute: If True, submit profitable routes; otherwise only estimate
        slippage_bps: Per-leg output tolerance for execution plans
        gas_limit: Gas limit for submitted transactions
        max_gas_price_gwei: Refuse to send above this gas price
        receipt_timeout_sec: Seconds to wait for a receipt
        executor_contract: Registry name of the deployed arbitrage contract
        quoter: Registry name of the V3 QuoterV2 contract (needed for v3 legs)
        routes: Routes to check every cycle
    """

    def __init__(self, config_dict: Dict[str, Any], base_dir: str = "."):
        """
        Parse and validate config from dictionary.

        Args:
            config_dict: Loaded YAML config
            base_dir: Directory relative registry paths are resolved against

        Raises:
            ConfigurationError: If required fields missing or invalid
        """
        self.network: str = self._get_required(config_dict, "network", str)
        registry = self._get_required(config_dict, "registry", str)
        self.registry: str = (
            registry if os.path.isabs(registry) else os.path.join(base_dir, registry)
        )

        self.rpc_url_env: str = config_dict.get("rpc_url_env", "RPC_URL")
        self.private_key_env: str = config_dict.get("private_key_env", "PRIVATE_KEY")

        # Loop settings
        self.poll_sec: float = self._positive(config_dict, "poll_sec", 15)
        self.once: bool = bool(config_dict.get("once", False))

        # Execution settings
        self.execute: bool = bool(config_dict.get("execute", False))
        self.slippage_bps: int = config_dict.get("slippage_bps", 50)
        if not is_valid_basis_points(self.slippage_bps):
            raise ConfigurationError(
                f"slippage_bps must be an int in [0, 10000]: {self.slippage_bps!r}"
            )
        self.gas_limit: int = int(self._positive(config_dict, "gas_limit", 2_000_000))
        self.max_gas_price_gwei: float = float(
            self._positive(config_dict, "max_gas_price_gwei", 5)
        )
        self.receipt_timeout_sec: float = self._positive(
            config_dict, "receipt_timeout_sec", 120
        )
        self.executor_contract: Optional[str] = config_dict.get("executor_contract")
        if self.execute and not self.executor_contract:
            raise ConfigurationError("execute is enabled but executor_contract is missing")
        self.quoter: Optional[str] = config_dict.get("quoter")

        self.routes: List[RouteConfig] = self._parse_routes(
            config_dict.get("routes", [])
        )
        if not self.routes:
            raise ConfigurationError("At least one route must be configured")
        if self.quoter is None and any(
            leg.kind == "v3" for route in self.routes for leg in route.legs
        ):
            raise ConfigurationError("v3 legs are configured but quoter is missing")

    @staticmethod
    def _get_required(d: Dict, key: str, expected_type: type) -> Any:
        """Get required config field with type validation."""
        if key not in d:
            raise ConfigurationError(f"Missing required config field: {key}")
        val = d[key]
        if not isinstance(val, expected_type):
            raise ConfigurationError(
                f"Config field '{key}' must be {expected_type.__name__}, got {type(val).__name__}"
            )
        return val

    @staticmethod
    def _positive(d: Dict, key: str, default: float) -> float:
        val = d.get(key, default)
        if isinstance(val, bool) or not isinstance(val, (int, float)) or val <= 0:
            raise ConfigurationError(f"Config field '{key}' must be a positive number")
        return val

    @staticmethod
    def _parse_legs(route_name: str, legs_raw: Any) -> List[LegConfig]:
        if not isinstance(legs_raw, list) or not legs_raw:
            raise ConfigurationError(f"Route '{route_name}' needs a non-empty legs list")

        legs = []
        for j, leg in enumerate(legs_raw):
            if not isinstance(leg, dict):
                raise ConfigurationError(f"Route '{route_name}' leg {j} must be a dict")

            kind = leg.get("kind")
            if kind not in LEG_KINDS:
                raise ConfigurationError(
                    f"Route '{route_name}' leg {j} has invalid kind '{kind}' "
                    f"(must be one of {', '.join(LEG_KINDS)})"
                )
            if not all(leg.get(k) for k in ("pool", "token_in", "token_out")):
                raise ConfigurationError(
                    f"Route '{route_name}' leg {j} missing required fields "
                    f"(pool, token_in, token_out)"
                )

            fee_bps = leg.get("fee_bps")
            if kind == "v3":
                if fee_bps is not None:
                    raise ConfigurationError(
                        f"Route '{route_name}' leg {j}: v3 fee tiers are read from "
                        f"the pool, remove fee_bps"
                    )
            elif not is_valid_basis_points(fee_bps):
                raise ConfigurationError(
                    f"Route '{route_name}' leg {j} needs fee_bps in [0, 10000]"
                )

            legs.append(
                LegConfig(
                    kind=kind,
                    pool=str(leg["pool"]),
                    token_in=str(leg["token_in"]),
                    token_out=str(leg["token_out"]),
                    fee_bps=fee_bps,
                    action=leg.get("action"),
                )
            )
        return legs

    @classmethod
    def _parse_routes(cls, routes_raw: Any) -> List[RouteConfig]:
        """Parse and validate routes config."""
        if not isinstance(routes_raw, list):
            raise ConfigurationError("routes must be a list")

        routes = []
        names = set()
        for i, route in enumerate(routes_raw):
            if not isinstance(route, dict):
                raise ConfigurationError(f"Route config {i} must be a dict")

            name = route.get("name")
            if not name:
                raise ConfigurationError(f"Route config {i} missing 'name'")
            if name in names:
                raise ConfigurationError(f"Duplicate route name '{name}'")
            names.add(name)

            loan = route.get("flash_loan")
            if not isinstance(loan, dict) or not all(
                loan.get(k) for k in ("asset", "amount", "provider")
            ):
                raise ConfigurationError(
                    f"Route '{name}' flash_loan needs asset, amount and provider"
                )
            if isinstance(loan["amount"], float) or isinstance(
                route.get("min_profit"), float
            ):
                raise ConfigurationError(
                    f"Route '{name}' amounts must be strings or integers, not floats"
                )

            routes.append(
                RouteConfig(
                    name=name,
                    asset=str(loan["asset"]),
                    amount=str(loan["amount"]),
                    provider=str(loan["provider"]),
                    legs=cls._parse_legs(name, route.get("legs")),
                    min_profit=str(route.get("min_profit", "0")),
                )
            )
        return routes

    def get_rpc_url(self) -> str:
        url = os.getenv(self.rpc_url_env)
        if not url:
            raise ConfigurationError(
                f"RPC URL environment variable {self.rpc_url_env} not set"
            )
        return url

    def get_private_key(self) -> str:
        key = os.getenv(self.private_key_env)
        if not key:
            raise ConfigurationError(
                f"Private key environment variable {self.private_key_env} not set"
            )
        return key


def load_config(config_path: str) -> MonitorConfig:
    """
    Load and validate config from YAML file.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated MonitorConfig instance

    Raises:
        ConfigurationError: If config invalid or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config file must contain a YAML dictionary")

    return MonitorConfig(config_dict, base_dir=os.path.dirname(os.path.abspath(config_path)))
