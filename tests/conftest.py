"""Pytest configuration and fakes for defi-portfolio tests."""

from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest

from defi_portfolio.chains import ChainConfig, ChainRegistry, NativeCurrency, NetworkType
from defi_portfolio.core.models import Position, PositionType, ProtocolCategory, ProtocolInfo, YieldRate
from defi_portfolio.core.registry import ProtocolRegistry
from defi_portfolio.protocols.base import ProtocolAdapter, make_token_balance
from defi_portfolio.rpc import RetryConfig

USER = "0x1111111111111111111111111111111111111111"

ETH = NativeCurrency(name="Ether", symbol="ETH", decimals=18)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeClient:
    """Stand-in network client bound to one RPC URL."""

    def __init__(self, url: str) -> None:
        self.url = url


class FakeCall:
    def __init__(self, client: "FakeWeb3", address: str, function: str, args: tuple) -> None:
        self._client = client
        self._address = address
        self._function = function
        self._args = args

    def call(self) -> Any:
        return self._client.respond(self._address, self._function, self._args)


class FakeFunctions:
    def __init__(self, client: "FakeWeb3", address: str) -> None:
        self._client = client
        self._address = address

    def __getattr__(self, function: str) -> Any:
        return lambda *args: FakeCall(self._client, self._address, function, args)


class FakeContract:
    def __init__(self, client: "FakeWeb3", address: str) -> None:
        self.address = address
        self.functions = FakeFunctions(client, address)


class FakeEth:
    def __init__(self, client: "FakeWeb3") -> None:
        self._client = client
        self.block_number = 19_000_000

    def contract(self, address: str, abi: list) -> FakeContract:
        return FakeContract(self._client, address)

    def get_balance(self, address: str) -> int:
        result = self._client.native_balance
        if isinstance(result, Exception):
            raise result
        return result


class FakeWeb3:
    """
    Scripted Web3 look-alike.

    Responses are keyed by (contract address, function name). A response can
    be a value, an exception instance to raise, or a callable receiving the
    call arguments. Unscripted calls revert.

    """

    def __init__(self, native_balance: int | Exception = 0) -> None:
        self.native_balance = native_balance
        self.responses: dict[tuple[str, str], Any] = {}
        self.calls: list[tuple[str, str, tuple]] = []
        self.eth = FakeEth(self)

    def on(self, address: str, function: str, response: Any) -> "FakeWeb3":
        self.responses[address.lower(), function] = response
        return self

    def respond(self, address: str, function: str, args: tuple) -> Any:
        self.calls.append((address.lower(), function, args))
        key = (address.lower(), function)
        if key not in self.responses:
            msg = f"execution reverted: {function}"
            raise ValueError(msg)
        response = self.responses[key]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(*args)
        return response


class FakeSolanaClient:
    """
    Scripted solana-py client.

    ``failures`` are raised, in order, by the first ``get_balance`` calls.
    ``token_accounts`` are jsonParsed SPL account payloads.

    """

    def __init__(
        self,
        lamports: int = 0,
        token_accounts: list[dict] | None = None,
        token_error: Exception | None = None,
        failures: list[Exception] | None = None,
    ) -> None:
        self.lamports = lamports
        self.token_accounts = token_accounts or []
        self.token_error = token_error
        self.failures = list(failures or [])
        self.requests: list[tuple] = []

    def get_balance(self, pubkey: Any) -> SimpleNamespace:
        self.requests.append(("getBalance", str(pubkey)))
        if self.failures:
            raise self.failures.pop(0)
        return SimpleNamespace(value=self.lamports)

    def get_token_accounts_by_owner_json_parsed(self, owner: Any, opts: Any) -> SimpleNamespace:
        self.requests.append(("getTokenAccountsByOwner", str(owner), str(opts.program_id)))
        if self.token_error is not None:
            raise self.token_error
        accounts = [
            SimpleNamespace(account=SimpleNamespace(data=SimpleNamespace(parsed=parsed)))
            for parsed in self.token_accounts
        ]
        return SimpleNamespace(value=accounts)


def spl_account(mint: str, amount: int, decimals: int) -> dict:
    return {
        "type": "account",
        "info": {"mint": mint, "tokenAmount": {"amount": str(amount), "decimals": decimals}},
    }


class StaticAdapter(ProtocolAdapter):
    """Adapter returning canned positions, or raising, per chain."""

    def __init__(
        self,
        protocol_id: str,
        supported_chains: tuple,
        positions: dict | None = None,
        errors: dict | None = None,
        category: ProtocolCategory = ProtocolCategory.LENDING,
        rates: dict | None = None,
    ) -> None:
        self.protocol = ProtocolInfo(
            id=protocol_id,
            name=protocol_id.title(),
            category=category,
            website=f"https://{protocol_id}.example",
            earns_yield=True,
        )
        self.supported_chains = supported_chains
        self.positions = positions or {}
        self.errors = errors or {}
        self.rates = rates or {}
        self.calls: list = []

    def get_positions(self, client: Any, address: str, chain_id: Any) -> list[Position]:
        self.calls.append((client, address, chain_id))
        if chain_id in self.errors:
            raise self.errors[chain_id]
        return [position.model_copy(deep=True) for position in self.positions.get(chain_id, [])]

    def get_yield_rates(self, client: Any, chain_id: Any) -> list[YieldRate]:
        if chain_id in self.errors:
            raise self.errors[chain_id]
        return list(self.rates.get(chain_id, []))


def make_chain(
    chain_id: Any = 1,
    name: str = "Ethereum",
    urls: tuple = ("https://a", "https://b", "https://c"),
    **kwargs,
) -> ChainConfig:
    network = NetworkType.SOLANA if chain_id == "solana" else NetworkType.EVM
    return ChainConfig(
        id=chain_id,
        name=name,
        network=network,
        rpc_urls=urls,
        native_currency=ETH,
        block_explorer="https://explorer.example",
        **kwargs,
    )


def make_position(
    protocol: ProtocolInfo,
    chain_id: Any,
    key: str,
    symbol: str = "USDC",
    balance: int = 1_000_000,
    decimals: int = 6,
    address: str = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    position_type: PositionType = PositionType.SUPPLY,
    value_usd: Decimal = Decimal("0"),
    **kwargs,
) -> Position:
    return Position(
        id=f"{protocol.id}-{key}-{chain_id}",
        protocol=protocol,
        chain_id=chain_id,
        position_type=position_type,
        tokens=[make_token_balance(address, symbol, decimals, balance)],
        value_usd=value_usd,
        **kwargs,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_registry(clock, sleeps):
    """Build a ChainRegistry with fake clients, fake time and recorded sleeps."""

    def factory(*configs: ChainConfig, **kwargs) -> ChainRegistry:
        kwargs.setdefault("client_factory", lambda config, url: FakeClient(url))
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("sleep", sleeps.append)
        kwargs.setdefault("retry_config", RetryConfig(max_retries=3, base_delay=1.0, max_delay=10.0, jitter=0.0))
        return ChainRegistry(configs or [make_chain()], **kwargs)

    return factory


@pytest.fixture
def protocol_registry() -> ProtocolRegistry:
    return ProtocolRegistry()
