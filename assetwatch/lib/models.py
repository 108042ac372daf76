"""
Data models for asset detection.

This module defines the tracked Token and Collectible records, the
marketplace and balance payloads consumed during a detection cycle, and the
configuration/snapshot types shared by the controllers.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union


# CSV column order for the tracked asset report
CSV_COLUMNS = [
    "asset_type",
    "address",
    "symbol",
    "decimals",
    "token_id",
    "name",
    "is_detected",
    "balance_error",
]

# Network on which asset detection is supported
MAINNET = "ethereum"

DEFAULT_INTERVAL = 180.0  # seconds


@dataclass
class Token:
    """
    An ERC-20 token tracked by the asset store.

    Identified by its checksummed contract address.
    """

    address: str
    symbol: str
    decimals: int
    balance_error: Optional[str] = None  # Set when the last balance read failed

    def to_csv_row(self) -> List[str]:
        """Convert token to a CSV row (list of strings)."""
        return [
            "ERC20",
            self.address,
            self.symbol,
            str(self.decimals),
            "",
            "",
            "",
            self.balance_error or "",
        ]


@dataclass
class CollectibleInformation:
    """Optional descriptive metadata attached to a collectible."""

    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


@dataclass
class Collectible:
    """
    An ERC-721 collectible tracked by the asset store.

    Identified by the (checksummed contract address, token id) pair.
    """

    address: str
    token_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    is_detected: bool = False  # True when added by auto detection

    @property
    def key(self) -> Tuple[str, int]:
        return self.address, self.token_id

    def to_csv_row(self) -> List[str]:
        """Convert collectible to a CSV row (list of strings)."""
        return [
            "ERC721",
            self.address,
            "",
            "",
            str(self.token_id),
            self.name or "",
            "true" if self.is_detected else "false",
            "",
        ]


@dataclass
class ApiCollectible:
    """A collectible as reported by the marketplace, before normalization."""

    token_id: str
    contract_address: str
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


@dataclass
class OwnershipResult:
    """
    Result of a successful ownership fetch.

    A failed fetch is represented by None rather than an empty result, so
    callers can tell "nothing owned" apart from "no data this cycle".
    """

    collectibles: List[ApiCollectible]
    truncated: bool = False  # The page limit was reached; more items may exist


@dataclass(frozen=True)
class BalanceError:
    """Per-contract failure inside an otherwise successful balance batch."""

    message: str


Balance = Union[int, BalanceError]
BalanceMap = Dict[str, Balance]


@dataclass
class DetectionConfig:
    """
    Mutable configuration of the detection controller.

    Updated from upstream account/network/asset-store events and read at
    the start of every cycle.
    """

    interval: float = DEFAULT_INTERVAL
    network: str = MAINNET
    selected_address: str = ""
    tokens: List[Token] = field(default_factory=list)


@dataclass(frozen=True)
class CycleSnapshot:
    """Account and network a detection cycle was started for."""

    address: str
    network: str


@dataclass
class AssetsState:
    """Read snapshot of the asset store."""

    tokens: List[Token] = field(default_factory=list)
    collectibles: List[Collectible] = field(default_factory=list)
    ignored_tokens: List[str] = field(default_factory=list)
    ignored_collectibles: List[Tuple[str, int]] = field(default_factory=list)
