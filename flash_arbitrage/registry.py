"""
Per-network address registry.

Addresses, token decimals and network ids live in one YAML file loaded at
startup. Each network becomes an immutable ``NetworkAddressSet`` that is
passed explicitly to whatever needs it.

File layout::

    networks:
      base:
        chain_id: 8453
        tokens:
          USDC: {address: "0x8335...", decimals: 6}
        contracts:
          aave_pool: "0xA238..."
"""

import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping

import yaml
from web3 import Web3

from .exceptions import ConfigurationError
from .utils import is_valid_address


def _checksum(network: str, name: str, address: Any) -> str:
    if not is_valid_address(address):
        raise ConfigurationError(
            f"{network}: '{name}' has an invalid address: {address!r}",
            details={"network": network, "name": name},
        )
    return Web3.to_checksum_address(address)


@dataclass(frozen=True)
class NetworkAddressSet:
    """
    Immutable address book for one network.

    Attributes:
        network: Network name (e.g. "base")
        chain_id: Expected EIP-155 chain id
        tokens: Symbol -> checksummed token address
        contracts: Name -> checksummed contract address (pools, pods, vaults)
        decimals: Checksummed token address -> decimals
    """

    network: str
    chain_id: int
    tokens: Mapping[str, str]
    contracts: Mapping[str, str]
    decimals: Mapping[str, int]

    def token(self, symbol: str) -> str:
        try:
            return self.tokens[symbol]
        except KeyError:
            raise ConfigurationError(
                f"Unknown token '{symbol}' on {self.network}"
            ) from None

    def contract(self, name: str) -> str:
        try:
            return self.contracts[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown contract '{name}' on {self.network}"
            ) from None

    def resolve(self, name_or_address: str) -> str:
        """Token symbol, contract name, or a literal address."""
        if name_or_address in self.tokens:
            return self.tokens[name_or_address]
        if name_or_address in self.contracts:
            return self.contracts[name_or_address]
        if is_valid_address(name_or_address):
            return Web3.to_checksum_address(name_or_address)
        raise ConfigurationError(
            f"'{name_or_address}' is neither a known name on {self.network} "
            f"nor an address"
        )

    def decimals_of(self, token: str) -> int:
        """Decimals for a token symbol or address."""
        address = self.resolve(token)
        try:
            return self.decimals[address]
        except KeyError:
            raise ConfigurationError(
                f"No decimals configured for {token} on {self.network}"
            ) from None

    def symbol_of(self, address: str) -> str:
        key = address.lower()
        for symbol, token_address in self.tokens.items():
            if token_address.lower() == key:
                return symbol
        return address


class AddressRegistry(Mapping):
    """Read-only mapping of network name to ``NetworkAddressSet``."""

    def __init__(self, networks: Dict[str, NetworkAddressSet]):
        self._networks = MappingProxyType(dict(networks))

    def __getitem__(self, network: str) -> NetworkAddressSet:
        try:
            return self._networks[network]
        except KeyError:
            known = ", ".join(sorted(self._networks)) or "none"
            raise ConfigurationError(
                f"Unknown network '{network}' (configured: {known})"
            ) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._networks)

    def __len__(self) -> int:
        return len(self._networks)


def parse_network(network: str, raw: Dict[str, Any]) -> NetworkAddressSet:
    """Validate one network block and freeze it."""
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Network '{network}' must be a mapping")

    chain_id = raw.get("chain_id")
    if not isinstance(chain_id, int) or isinstance(chain_id, bool) or chain_id <= 0:
        raise ConfigurationError(f"Network '{network}' needs a positive chain_id")

    tokens: Dict[str, str] = {}
    decimals: Dict[str, int] = {}
    seen: Dict[str, str] = {}
    for symbol, info in (raw.get("tokens") or {}).items():
        if not isinstance(info, dict):
            raise ConfigurationError(f"{network}: token '{symbol}' must be a mapping")
        if "address" not in info:
            raise ConfigurationError(f"{network}: token '{symbol}' missing 'address'")
        if "decimals" not in info:
            raise ConfigurationError(f"{network}: token '{symbol}' missing 'decimals'")
        address = _checksum(network, symbol, info["address"])
        if address in seen:
            raise ConfigurationError(
                f"{network}: '{symbol}' and '{seen[address]}' share address {address}"
            )
        dec = info["decimals"]
        if not isinstance(dec, int) or isinstance(dec, bool) or not 0 <= dec <= 77:
            raise ConfigurationError(
                f"{network}: token '{symbol}' has invalid decimals {dec!r}"
            )
        seen[address] = symbol
        tokens[symbol] = address
        decimals[address] = dec

    contracts: Dict[str, str] = {}
    for name, address in (raw.get("contracts") or {}).items():
        if name in tokens:
            raise ConfigurationError(
                f"{network}: '{name}' is defined as both a token and a contract"
            )
        contracts[name] = _checksum(network, name, address)

    return NetworkAddressSet(
        network=network,
        chain_id=chain_id,
        tokens=MappingProxyType(tokens),
        contracts=MappingProxyType(contracts),
        decimals=MappingProxyType(decimals),
    )


def registry_from_dict(data: Dict[str, Any]) -> AddressRegistry:
    if not isinstance(data, dict) or not isinstance(data.get("networks"), dict):
        raise ConfigurationError("Registry must contain a 'networks' mapping")
    return AddressRegistry(
        {name: parse_network(name, raw) for name, raw in data["networks"].items()}
    )


def load_registry(path: str) -> AddressRegistry:
    """
    Load and validate the address registry from YAML.

    Args:
        path: Path to the registry file

    Returns:
        Immutable AddressRegistry

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    if not os.path.exists(path):
        raise ConfigurationError(f"Registry file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse registry YAML: {e}") from e

    return registry_from_dict(data)
