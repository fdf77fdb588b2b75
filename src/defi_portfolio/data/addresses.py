"""Centralized protocol contract addresses, keyed by protocol id then chain id."""

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Solana: SOL is reported at the wrapped-SOL mint; SPL balances come from the token program
SOLANA_NATIVE_MINT = "So11111111111111111111111111111111111111112"
SPL_TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

PROTOCOL_ADDRESSES: dict[str, dict[int | str, dict[str, str]]] = {
    "aave-v3": {
        1: {
            "pool": "0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2",
            "pool_data_provider": "0x7B4EB56E7CD4b454BA8ff71E4518426369a138a3",
        },
        42161: {
            "pool": "0x794a61358D6845594F94dc1DB02A252b5b4814aD",
            "pool_data_provider": "0x69FA688f1Dc47d4B5d8029D5a35FB7a548310654",
        },
        10: {
            "pool": "0x794a61358D6845594F94dc1DB02A252b5b4814aD",
            "pool_data_provider": "0x69FA688f1Dc47d4B5d8029D5a35FB7a548310654",
        },
        8453: {
            "pool": "0xA238Dd80C259a72e81d7e4664a9801593F98d1c5",
            "pool_data_provider": "0x2d8A3C5677189723C4cB8873CfC9C8976FDF38Ac",
        },
    },
    "spark": {
        1: {
            "pool": "0xC13e21B648A5Ee794902342038FF3aDAB66BE987",
            "pool_data_provider": "0xFc21d6d146E6086B8359705C8b28512a983db0cb",
        },
    },
    "lido": {
        1: {
            "steth": "0xae7ab96520DE3A18E5e111B5EaAb095312D7fE84",
            "wsteth": "0x7f39C581F595B53c5cb19bD0b3f8dA6c935E2Ca0",
        },
        # stETH only lives on mainnet; L2s carry bridged wstETH
        42161: {"wsteth": "0x5979D7b546E38E414F7E9822514be443A4800529"},
        10: {"wsteth": "0x1F32b1c2345538c0c6f582fCB022739c4A194Ebb"},
        8453: {"wsteth": "0xc1CBa3fCea344f92D9239c08C0568f6F2F0ee452"},
    },
    "rocket-pool": {
        1: {"reth": "0xae78736Cd615f374D3085123A210448E74Fc6393"},
        42161: {"reth": "0xEC70Dcb4A1EFa46b8F2D97C310C9c4790ba5ffA8"},
        10: {"reth": "0x9Bcef72be871e61ED4fBbc7630889beE758eb81D"},
        8453: {"reth": "0xB6fe221Fe9EeF5aBa221c348bA20A1Bf5e73624c"},
    },
    "maker": {
        1: {
            "sdai": "0x83F20F44975D03b1b09e64809B757c47f942BEeA",
            "dai": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
            "pot": "0x197E90f9FAD81970bA7976f33CbD77088E5D7cf7",
            "usds": "0xdC035D45d973E3EC169d2276DDab16f1e407384F",
            "susds": "0xa3931d71877C0E7a3148CB7Eb4463524FEc27fbD",
        },
    },
}

# Fallback staking APRs used when no on-chain rate source is available
LIDO_ESTIMATED_APR = "0.034"
ROCKET_POOL_ESTIMATED_APR = "0.032"
