"""DeFiLlama pricing service for fetching token USD prices."""

import logging
from decimal import Decimal

import httpx

from defi_portfolio.data import ZERO_ADDRESS
from defi_portfolio.types import SOLANA_CHAIN_ID, ChainId

logger = logging.getLogger(__name__)

# Chain id -> DeFiLlama chain slug
LLAMA_CHAINS: dict[ChainId, str] = {
    1: "ethereum",
    42161: "arbitrum",
    10: "optimism",
    8453: "base",
    SOLANA_CHAIN_ID: "solana",
}

# Native balances are reported at the zero address and priced by coingecko id
NATIVE_COIN_IDS: dict[ChainId, str] = {
    1: "coingecko:ethereum",
    42161: "coingecko:ethereum",
    10: "coingecko:ethereum",
    8453: "coingecko:ethereum",
    SOLANA_CHAIN_ID: "coingecko:solana",
}


class DeFiLlamaPricing:
    """
    Fetches token prices from DeFiLlama API.

    Parameters
    ----------
    base_url : str
        DeFiLlama API base URL
    client : httpx.Client | None
        HTTP client to use (a 30s-timeout client is created if None)

    """

    def __init__(self, base_url: str = "https://coins.llama.fi", client: httpx.Client | None = None) -> None:
        self.base_url = base_url
        self.client = client or httpx.Client(timeout=30.0)

    def get_prices(
        self,
        tokens: list[tuple[ChainId, str]],
    ) -> dict[tuple[ChainId, str], Decimal]:
        """
        Fetch USD prices for multiple tokens.

        Parameters
        ----------
        tokens : list[tuple[ChainId, str]]
            List of (chain id, address) tuples

        Returns
        -------
        dict[tuple[ChainId, str], Decimal]
            Mapping of (chain id, address) to USD price; tokens DeFiLlama does
            not know, or on unsupported chains, map to zero

        Examples
        --------
        >>> pricing = DeFiLlamaPricing()
        >>> prices = pricing.get_prices([(1, "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48")])

        """
        if not tokens:
            return {}

        coin_ids = {token: self._format_coin_id(*token) for token in tokens}
        prices_data = self._fetch_batch_prices(sorted({coin_id for coin_id in coin_ids.values() if coin_id}))

        result = {}
        for token, coin_id in coin_ids.items():
            price_info = prices_data.get(coin_id) if coin_id else None
            if price_info and "price" in price_info:
                result[token] = Decimal(str(price_info["price"]))
            else:
                result[token] = Decimal("0")

        return result

    def _fetch_batch_prices(self, coin_ids: list[str]) -> dict:
        """
        Fetch prices from DeFiLlama API.

        Parameters
        ----------
        coin_ids : list[str]
            Coin identifiers in "chain:address" format

        Returns
        -------
        dict
            ``coins`` section of the response, empty on any HTTP failure

        """
        if not coin_ids:
            return {}

        url = f"{self.base_url}/prices/current/{','.join(coin_ids)}"
        try:
            response = self.client.get(url)
            response.raise_for_status()
            return response.json().get("coins", {})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("DeFiLlama price lookup failed for %d coins: %s", len(coin_ids), e)
            return {}

    def _format_coin_id(self, chain_id: ChainId, address: str) -> str | None:
        if address.lower() == ZERO_ADDRESS:
            return NATIVE_COIN_IDS.get(chain_id)

        llama_chain = LLAMA_CHAINS.get(chain_id)
        if llama_chain is None:
            logger.debug("No DeFiLlama chain for %s", chain_id)
            return None
        return f"{llama_chain}:{address}"

    def close(self) -> None:
        """Close HTTP client."""
        self.client.close()

    def __enter__(self) -> "DeFiLlamaPricing":
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        self.close()
