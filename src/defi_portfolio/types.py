"""Shared type aliases."""

# Numeric EVM chain id, or the "solana" token for Solana.
ChainId = int | str

SOLANA_CHAIN_ID = "solana"
