"""
Snapshot builder: resolve configured routes and read the state they price
against.

Fee tiers of concentrated-liquidity pools and the flash-loan premium are read
from chain every time a route is resolved; only constant-product and pod fees
come from configuration.
"""

import logging
from typing import Callable, Dict, Optional

from web3 import Web3

from flash_arbitrage.amm_math import fee_fraction_from_bps
from flash_arbitrage.estimator import MarketSnapshot, PoolReserves
from flash_arbitrage.registry import NetworkAddressSet
from flash_arbitrage.route import ArbitrageRoute, FlashLoanTerms, LegKind, SwapLeg

from .adapters.aave import fetch_flash_loan_premium
from .adapters.v2 import fetch_reserves
from .adapters.v3 import fetch_fee_tier
from .config import LegConfig, RouteConfig
from .rpc import call_with_retry

logger = logging.getLogger(__name__)


def _resolve_leg(
    web3: Web3, address_set: NetworkAddressSet, leg_cfg: LegConfig
) -> SwapLeg:
    token_in = address_set.resolve(leg_cfg.token_in)
    token_out = address_set.resolve(leg_cfg.token_out)
    pool = address_set.resolve(leg_cfg.pool)
    common = dict(
        token_in=token_in,
        token_out=token_out,
        decimals_in=address_set.decimals_of(token_in),
        decimals_out=address_set.decimals_of(token_out),
        pool=pool,
        label=f"{address_set.symbol_of(token_in)}->{address_set.symbol_of(token_out)}",
    )

    if leg_cfg.kind == "v2":
        fee_num, fee_denom = fee_fraction_from_bps(leg_cfg.fee_bps)
        return SwapLeg(
            kind=LegKind.CONSTANT_PRODUCT, fee_num=fee_num, fee_denom=fee_denom, **common
        )
    if leg_cfg.kind == "v3":
        return SwapLeg(
            kind=LegKind.CONCENTRATED_LIQUIDITY,
            fee_tier=fetch_fee_tier(web3, pool),
            **common,
        )
    return SwapLeg(
        kind=LegKind.PROTOCOL_FEE,
        fee_bps=leg_cfg.fee_bps,
        action=leg_cfg.action,
        **common,
    )


def resolve_route(
    web3: Web3, address_set: NetworkAddressSet, route_cfg: RouteConfig
) -> ArbitrageRoute:
    """
    Build a validated ``ArbitrageRoute`` from its config entry.

    Args:
        web3: Web3 instance for the fee-tier and premium reads
        address_set: Registry entry for the configured network
        route_cfg: Route as written in the config

    Returns:
        Validated ArbitrageRoute

    Raises:
        ConfigurationError: If a name is not in the registry or an amount is malformed
        ValidationError: If the resolved legs do not form a closed route
        ExternalCallError: If a chain read fails
    """
    asset = address_set.resolve(route_cfg.asset)
    decimals = address_set.decimals_of(asset)
    provider = address_set.resolve(route_cfg.provider)

    legs = tuple(_resolve_leg(web3, address_set, leg) for leg in route_cfg.legs)
    route = ArbitrageRoute(
        name=route_cfg.name,
        legs=legs,
        flash_loan=FlashLoanTerms(
            asset=asset,
            amount=route_cfg.amount_units(decimals),
            decimals=decimals,
            premium_bps=fetch_flash_loan_premium(web3, provider),
            provider=provider,
        ),
        min_profit=route_cfg.min_profit_units(decimals),
        metadata={"network": address_set.network, "symbol": route_cfg.asset},
    )
    route.validate()
    return route


def read_snapshot(
    web3: Web3,
    route: ArbitrageRoute,
    quoter: Optional[Callable[[SwapLeg, int], int]] = None,
) -> MarketSnapshot:
    """
    Read reserves for every constant-product leg of ``route``.

    Pools shared by several legs are read once. The quoter is passed through
    for concentrated-liquidity legs.
    """
    block_number = call_with_retry(lambda: web3.eth.block_number, "block number")
    reserves: Dict[str, PoolReserves] = {}
    for leg in route.legs:
        if leg.kind is LegKind.CONSTANT_PRODUCT and leg.pool not in reserves:
            reserves[leg.pool] = fetch_reserves(web3, leg.pool)
            logger.debug(
                f"{leg.describe()} reserves @ {block_number}: "
                f"{reserves[leg.pool].reserve0} / {reserves[leg.pool].reserve1}"
            )
    return MarketSnapshot(reserves=reserves, quoter=quoter, block_number=block_number)
