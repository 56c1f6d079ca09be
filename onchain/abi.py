"""
Contract interfaces shared across the on-chain layer.

Each ABI is the minimal fragment the toolkit calls. They are registered in
``INTERFACES`` with a name and a version so a change to a fragment is visible
in one place instead of being re-declared at each call site.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from flash_arbitrage.exceptions import ConfigurationError


def _view(name: str, inputs: List[Dict], outputs: List[Dict]) -> Dict[str, Any]:
    return {
        "inputs": inputs,
        "name": name,
        "outputs": outputs,
        "stateMutability": "view",
        "type": "function",
    }


def _arg(name: str, type_: str) -> Dict[str, str]:
    return {"name": name, "type": type_}


# ERC20 (minimal)
ERC20_ABI = [
    _view("name", [], [_arg("", "string")]),
    _view("symbol", [], [_arg("", "string")]),
    _view("decimals", [], [_arg("", "uint8")]),
    _view("totalSupply", [], [_arg("", "uint256")]),
    _view("balanceOf", [_arg("owner", "address")], [_arg("balance", "uint256")]),
    _view(
        "allowance",
        [_arg("owner", "address"), _arg("spender", "address")],
        [_arg("", "uint256")],
    ),
    {
        "inputs": [_arg("spender", "address"), _arg("value", "uint256")],
        "name": "approve",
        "outputs": [_arg("", "bool")],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
]

# Uniswap V2 Pair ABI (minimal)
UNISWAP_V2_PAIR_ABI = [
    _view(
        "getReserves",
        [],
        [
            _arg("reserve0", "uint112"),
            _arg("reserve1", "uint112"),
            _arg("blockTimestampLast", "uint32"),
        ],
    ),
    _view("token0", [], [_arg("", "address")]),
    _view("token1", [], [_arg("", "address")]),
]

# Uniswap V3 Pool ABI (minimal)
UNISWAP_V3_POOL_ABI = [
    _view("token0", [], [_arg("", "address")]),
    _view("token1", [], [_arg("", "address")]),
    _view("fee", [], [_arg("", "uint24")]),
    _view("liquidity", [], [_arg("", "uint128")]),
    _view(
        "slot0",
        [],
        [
            _arg("sqrtPriceX96", "uint160"),
            _arg("tick", "int24"),
            _arg("observationIndex", "uint16"),
            _arg("observationCardinality", "uint16"),
            _arg("observationCardinalityNext", "uint16"),
            _arg("feeProtocol", "uint8"),
            _arg("unlocked", "bool"),
        ],
    ),
]

# Uniswap QuoterV2; non-view on chain, always invoked through eth_call
UNISWAP_V3_QUOTER_V2_ABI = [
    {
        "inputs": [
            {
                "components": [
                    _arg("tokenIn", "address"),
                    _arg("tokenOut", "address"),
                    _arg("amountIn", "uint256"),
                    _arg("fee", "uint24"),
                    _arg("sqrtPriceLimitX96", "uint160"),
                ],
                "name": "params",
                "type": "tuple",
            }
        ],
        "name": "quoteExactInputSingle",
        "outputs": [
            _arg("amountOut", "uint256"),
            _arg("sqrtPriceX96After", "uint160"),
            _arg("initializedTicksCrossed", "uint32"),
            _arg("gasEstimate", "uint256"),
        ],
        "stateMutability": "nonpayable",
        "type": "function",
    }
]

# Aave V3 Pool (flash-loan subset)
AAVE_POOL_ABI = [
    _view("FLASHLOAN_PREMIUM_TOTAL", [], [_arg("", "uint128")]),
    {
        "inputs": [
            _arg("receiverAddress", "address"),
            _arg("asset", "address"),
            _arg("amount", "uint256"),
            _arg("params", "bytes"),
            _arg("referralCode", "uint16"),
        ],
        "name": "flashLoanSimple",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# Peapods index fund ("pod")
POD_ABI = ERC20_ABI + [
    {
        "inputs": [
            _arg("token", "address"),
            _arg("amount", "uint256"),
            _arg("amountMintMin", "uint256"),
        ],
        "name": "bond",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            _arg("amount", "uint256"),
            _arg("token", "address[]"),
            _arg("percentage", "uint8[]"),
        ],
        "name": "debond",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    _view(
        "getAllAssets",
        [],
        [
            {
                "components": [
                    _arg("token", "address"),
                    _arg("weighting", "uint256"),
                    _arg("basePriceUSDX96", "uint256"),
                    _arg("c1", "address"),
                    _arg("q1", "uint256"),
                ],
                "name": "",
                "type": "tuple[]",
            }
        ],
    ),
    _view("isAsset", [_arg("token", "address")], [_arg("", "bool")]),
]

# ERC-4626 vault
ERC4626_ABI = ERC20_ABI + [
    _view("asset", [], [_arg("", "address")]),
    _view("totalAssets", [], [_arg("", "uint256")]),
    _view("convertToShares", [_arg("assets", "uint256")], [_arg("", "uint256")]),
    _view("convertToAssets", [_arg("shares", "uint256")], [_arg("", "uint256")]),
    _view("previewDeposit", [_arg("assets", "uint256")], [_arg("", "uint256")]),
    _view("previewRedeem", [_arg("shares", "uint256")], [_arg("", "uint256")]),
    {
        "inputs": [
            _arg("shares", "uint256"),
            _arg("receiver", "address"),
            _arg("owner", "address"),
        ],
        "name": "redeem",
        "outputs": [_arg("assets", "uint256")],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# Deployed flash-loan arbitrage executor
ARBITRAGE_EXECUTOR_ABI = [
    {
        "inputs": [_arg("asset", "address"), _arg("amount", "uint256")],
        "name": "requestFlashLoan",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    _view("owner", [], [_arg("", "address")]),
]


@dataclass(frozen=True)
class ContractInterface:
    """A named, versioned ABI fragment."""

    name: str
    version: int
    abi: List[Dict[str, Any]]

    def functions(self) -> List[str]:
        return [e["name"] for e in self.abi if e.get("type") == "function"]


INTERFACES: Dict[str, ContractInterface] = {
    i.name: i
    for i in (
        ContractInterface("erc20", 1, ERC20_ABI),
        ContractInterface("uniswap_v2_pair", 1, UNISWAP_V2_PAIR_ABI),
        ContractInterface("uniswap_v3_pool", 1, UNISWAP_V3_POOL_ABI),
        ContractInterface("uniswap_v3_quoter_v2", 2, UNISWAP_V3_QUOTER_V2_ABI),
        ContractInterface("aave_v3_pool", 3, AAVE_POOL_ABI),
        ContractInterface("pod", 1, POD_ABI),
        ContractInterface("erc4626", 1, ERC4626_ABI),
        ContractInterface("arbitrage_executor", 1, ARBITRAGE_EXECUTOR_ABI),
    )
}


def get_interface(name: str) -> ContractInterface:
    try:
        return INTERFACES[name]
    except KeyError:
        raise ConfigurationError(f"Unknown contract interface: {name}") from None
