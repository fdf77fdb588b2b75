"""Tests for DeFiLlama pricing."""

import logging
from decimal import Decimal

import httpx
import pytest

from defi_portfolio.data import ZERO_ADDRESS
from defi_portfolio.pricing import DeFiLlamaPricing

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
SOL_USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def pricing_with(handler):
    requests = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.Client(transport=httpx.MockTransport(record))
    return DeFiLlamaPricing(client=client), requests


def coins(payload):
    return lambda request: httpx.Response(200, json={"coins": payload})


def test_get_prices_batches_one_request():
    """Test tokens, native balances and Solana mints are priced in one call."""
    pricing, requests = pricing_with(
        coins(
            {
                f"ethereum:{USDC}": {"price": 0.9998, "symbol": "USDC"},
                "coingecko:ethereum": {"price": 2500.5},
                f"solana:{SOL_USDC}": {"price": 1.0},
            }
        )
    )

    prices = pricing.get_prices([(1, USDC), (8453, ZERO_ADDRESS), ("solana", SOL_USDC)])

    assert prices == {
        (1, USDC): Decimal("0.9998"),
        (8453, ZERO_ADDRESS): Decimal("2500.5"),
        ("solana", SOL_USDC): Decimal("1.0"),
    }
    assert len(requests) == 1
    assert requests[0].url.path.startswith("/prices/current/")
    assert f"ethereum:{USDC}" in requests[0].url.path


def test_unknown_tokens_price_at_zero():
    """Test tokens missing from the response, or on unmapped chains, are zero."""
    pricing, requests = pricing_with(coins({}))

    prices = pricing.get_prices([(1, USDC), (137, USDC)])

    assert prices == {(1, USDC): Decimal("0"), (137, USDC): Decimal("0")}
    assert "polygon" not in requests[0].url.path


def test_no_request_without_priceable_tokens():
    """Test nothing is fetched for empty input or only unmapped chains."""
    pricing, requests = pricing_with(coins({}))

    assert pricing.get_prices([]) == {}
    assert pricing.get_prices([(137, USDC)]) == {(137, USDC): Decimal("0")}
    assert requests == []


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="upstream error"),
        httpx.Response(200, text="not json"),
    ],
)
def test_http_failures_degrade_to_zero(response, caplog):
    """Test server errors and malformed bodies log a warning and price at zero."""
    pricing, _ = pricing_with(lambda request: response)

    with caplog.at_level(logging.WARNING, logger="defi_portfolio.pricing.defillama"):
        assert pricing.get_prices([(1, USDC)]) == {(1, USDC): Decimal("0")}

    assert any("DeFiLlama price lookup failed" in record.getMessage() for record in caplog.records)


def test_transport_errors_degrade_to_zero():
    """Test connection failures never escape the oracle."""

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    pricing, _ = pricing_with(refuse)

    assert pricing.get_prices([(1, USDC)]) == {(1, USDC): Decimal("0")}


def test_context_manager_closes_client():
    """Test the HTTP client is closed on exit."""
    pricing, _ = pricing_with(coins({}))

    with pricing as oracle:
        assert oracle is pricing

    assert pricing.client.is_closed
