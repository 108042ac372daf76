"""
Static contract metadata registry.

Maps contract addresses to symbol/decimals and the fungible/non-fungible
flags, in the same JSON shape as the `@metamask/contract-metadata` package.
The registry is loaded once and read-only afterwards.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Set

from .addresses import InvalidAddressError, normalize_address, normalize_address_set


@dataclass(frozen=True)
class ContractInfo:
    """Registry entry for a single contract."""

    address: str
    symbol: str
    decimals: int
    name: str = ""
    erc20: bool = False
    erc721: bool = False


class ContractRegistry:
    """
    Read-only lookup table of known contracts, keyed by checksum address.
    """

    def __init__(self, contracts: Iterable[ContractInfo] = ()):
        self._contracts: Dict[str, ContractInfo] = {}
        for info in contracts:
            self._contracts[normalize_address(info.address)] = info

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[str, Any]]) -> "ContractRegistry":
        """
        Build a registry from a contract-metadata style mapping.

        Entries with an invalid address are skipped.

        Args:
            mapping: {address: {"name", "symbol", "decimals", "erc20", "erc721", ...}}

        Returns:
            ContractRegistry instance
        """
        contracts = []
        for address, entry in mapping.items():
            try:
                checksum = normalize_address(address)
            except InvalidAddressError:
                continue
            contracts.append(
                ContractInfo(
                    address=checksum,
                    symbol=entry.get("symbol") or "",
                    decimals=int(entry.get("decimals") or 0),
                    name=entry.get("name") or "",
                    erc20=bool(entry.get("erc20", False)),
                    erc721=bool(entry.get("erc721", False)),
                )
            )
        return cls(contracts)

    @classmethod
    def from_file(cls, path: str) -> "ContractRegistry":
        """Load a registry from a contract-metadata JSON file."""
        with open(Path(path), "r", encoding="utf-8") as f:
            return cls.from_mapping(json.load(f))

    def __len__(self) -> int:
        return len(self._contracts)

    def __iter__(self) -> Iterator[ContractInfo]:
        return iter(self._contracts.values())

    def __contains__(self, address: Any) -> bool:
        return self.get(address) is not None

    def get(self, address: Any) -> Optional[ContractInfo]:
        """Return the entry for an address in any casing, or None."""
        try:
            return self._contracts.get(normalize_address(address))
        except InvalidAddressError:
            return None

    def candidate_fungible_tokens(self, exclude_addresses: Iterable[str] = ()) -> Set[str]:
        """
        List fungible token contracts that are not already tracked.

        Args:
            exclude_addresses: Addresses to leave out, in any casing

        Returns:
            Set of checksum addresses flagged erc20 in the registry
        """
        excluded = normalize_address_set(exclude_addresses)
        return {
            address
            for address, info in self._contracts.items()
            if info.erc20 and address not in excluded
        }
