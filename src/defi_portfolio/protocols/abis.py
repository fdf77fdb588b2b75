"""Minimal contract ABIs for the view functions the adapters call."""


def _view(name: str, inputs: list[tuple[str, str]], outputs: list[tuple[str, str]]) -> dict:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


ERC20_ABI = [
    _view("balanceOf", [("account", "address")], [("", "uint256")]),
    _view("decimals", [], [("", "uint8")]),
    _view("symbol", [], [("", "string")]),
]

ERC4626_ABI = [
    *ERC20_ABI,
    _view("convertToAssets", [("shares", "uint256")], [("", "uint256")]),
]

AAVE_V3_POOL_ABI = [
    _view(
        "getUserAccountData",
        [("user", "address")],
        [
            ("totalCollateralBase", "uint256"),
            ("totalDebtBase", "uint256"),
            ("availableBorrowsBase", "uint256"),
            ("currentLiquidationThreshold", "uint256"),
            ("ltv", "uint256"),
            ("healthFactor", "uint256"),
        ],
    ),
]

AAVE_V3_DATA_PROVIDER_ABI = [
    {
        "name": "getAllReservesTokens",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {
                "name": "",
                "type": "tuple[]",
                "components": [
                    {"name": "symbol", "type": "string"},
                    {"name": "tokenAddress", "type": "address"},
                ],
            }
        ],
    },
    _view(
        "getUserReserveData",
        [("asset", "address"), ("user", "address")],
        [
            ("currentATokenBalance", "uint256"),
            ("currentStableDebt", "uint256"),
            ("currentVariableDebt", "uint256"),
            ("principalStableDebt", "uint256"),
            ("scaledVariableDebt", "uint256"),
            ("stableBorrowRate", "uint256"),
            ("liquidityRate", "uint256"),
            ("stableRateLastUpdated", "uint40"),
            ("usageAsCollateralEnabled", "bool"),
        ],
    ),
    _view(
        "getReserveData",
        [("asset", "address")],
        [
            ("unbacked", "uint256"),
            ("accruedToTreasuryScaled", "uint256"),
            ("totalAToken", "uint256"),
            ("totalStableDebt", "uint256"),
            ("totalVariableDebt", "uint256"),
            ("liquidityRate", "uint256"),
            ("variableBorrowRate", "uint256"),
            ("stableBorrowRate", "uint256"),
            ("averageStableBorrowRate", "uint256"),
            ("liquidityIndex", "uint256"),
            ("variableBorrowIndex", "uint256"),
            ("lastUpdateTimestamp", "uint40"),
        ],
    ),
]

WSTETH_ABI = [
    *ERC20_ABI,
    _view("getStETHByWstETH", [("_wstETHAmount", "uint256")], [("", "uint256")]),
]

RETH_ABI = [
    *ERC20_ABI,
    _view("getEthValue", [("_rethAmount", "uint256")], [("", "uint256")]),
]

POT_ABI = [
    _view("dsr", [], [("", "uint256")]),
]
