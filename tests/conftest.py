"""
Pytest configuration and shared fixtures for assetwatch tests.
"""

from typing import Dict, List, Optional

import pytest

from assetwatch.lib.addresses import normalize_address
from assetwatch.lib.asset_store import AssetStore
from assetwatch.lib.contract_registry import ContractRegistry
from assetwatch.lib.models import ApiCollectible, BalanceMap, OwnershipResult


DAI = "0x6b175474e89094c44da98b954eedeac495271d0f"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
KITTIES = "0x06012c8cf97bead5deae237070f9587f8e7a266d"
APES = "0xbc4ca0eda7647a8ab7c2061c2e118a18a936f13d"


class FakeBalanceFetcher:
    """Returns canned balances and records every call."""

    def __init__(self, balances: Optional[BalanceMap] = None):
        self.balances = balances or {}
        self.calls: List[tuple] = []

    def fetch_balances(self, owner, candidates) -> BalanceMap:
        self.calls.append((owner, set(candidates)))
        return {
            normalize_address(a): b
            for a, b in self.balances.items()
            if normalize_address(a) in {normalize_address(c) for c in candidates}
        }


class FakeOwnershipFetcher:
    """Returns a canned listing, or None to simulate a failed fetch."""

    def __init__(self, result: Optional[OwnershipResult] = None):
        self.result = result
        self.calls: List[str] = []

    def fetch_owned_collectibles(self, owner) -> Optional[OwnershipResult]:
        self.calls.append(owner)
        return self.result


class FakeTimer:
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.callback()


class FakeTimerFactory:
    """Timer factory that records timers instead of starting threads."""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, interval, callback):
        timer = FakeTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List[FakeTimer]:
        return [t for t in self.timers if not (t.cancelled or t.fired)]


def api_collectible(address: str, token_id, name: str = "") -> ApiCollectible:
    return ApiCollectible(
        token_id=str(token_id),
        contract_address=address,
        name=name or None,
        description=f"{name} description" if name else None,
        image_url=f"https://img.example/{token_id}.png",
    )


@pytest.fixture
def sample_wallet_address():
    """Sample Ethereum wallet address for testing."""
    return "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"  # vitalik.eth


@pytest.fixture
def other_wallet_address():
    return normalize_address("0x00000000219ab540356cbb839cbe05303d7705fa")


@pytest.fixture
def mock_alchemy_api_key():
    """Mock Alchemy API key for testing."""
    return "test-api-key-12345"


@pytest.fixture
def registry_mapping() -> Dict[str, Dict]:
    """Contract-metadata style registry entries."""
    return {
        DAI: {"name": "Dai Stablecoin", "symbol": "DAI", "decimals": 18, "erc20": True},
        USDC: {"name": "USD Coin", "symbol": "USDC", "decimals": 6, "erc20": True},
        KITTIES: {"name": "CryptoKitties", "symbol": "CK", "decimals": 0, "erc721": True},
    }


@pytest.fixture
def registry(registry_mapping) -> ContractRegistry:
    return ContractRegistry.from_mapping(registry_mapping)


@pytest.fixture
def store() -> AssetStore:
    return AssetStore()


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()
