"""
Fetchers that turn external ownership sources into detection inputs.

Both fetchers absorb transport failures: the balance fetcher degrades to an
empty map, the ownership fetcher to None. Neither ever raises into a
detection cycle.
"""

import logging
from typing import Iterable, Optional

from .addresses import InvalidAddressError, normalize_address
from .alchemy_client import AlchemyAPIError, AlchemyClient
from .models import BalanceError, BalanceMap, OwnershipResult
from .opensea_client import OpenSeaAPIError, OpenSeaClient

logger = logging.getLogger(__name__)


class BalanceFetcher:
    """
    Batched ERC-20 balance lookups for a set of candidate contracts.
    """

    def __init__(self, client: AlchemyClient, network: str = "ethereum"):
        self.client = client
        self.network = network

    def fetch_balances(self, owner: str, candidates: Iterable[str]) -> BalanceMap:
        """
        Fetch balances of `owner` for every candidate contract in one call.

        An empty result means "no new data this cycle", never "zero balance".

        Args:
            owner: Owner address
            candidates: Candidate token contract addresses

        Returns:
            Mapping of checksum contract address to int balance or BalanceError
        """
        contracts = sorted(set(candidates))
        if not contracts:
            return {}

        try:
            token_balances = self.client.get_token_balances_for_contracts(
                self.network, owner, contracts
            )
        except AlchemyAPIError as e:
            logger.warning("Balance fetch failed for %s: %s", owner, e)
            return {}

        balances: BalanceMap = {}
        for tb in token_balances:
            try:
                address = normalize_address(tb.contract_address)
            except InvalidAddressError:
                logger.debug("Dropping balance for invalid contract %r", tb.contract_address)
                continue

            if tb.error is not None or tb.balance is None:
                balances[address] = BalanceError(str(tb.error or "No balance returned"))
                continue

            try:
                balances[address] = int(tb.balance, 16)
            except (TypeError, ValueError):
                balances[address] = BalanceError(f"Malformed balance: {tb.balance!r}")

        return balances


class OwnershipFetcher:
    """
    Marketplace listing of the collectibles an owner holds.
    """

    def __init__(self, client: OpenSeaClient):
        self.client = client

    def fetch_owned_collectibles(self, owner: str) -> Optional[OwnershipResult]:
        """
        Fetch the collectibles currently owned by `owner`.

        Args:
            owner: Owner address

        Returns:
            OwnershipResult, or None when the fetch failed
        """
        try:
            result = self.client.get_assets_for_owner(owner)
        except OpenSeaAPIError as e:
            logger.warning("Collectible fetch failed for %s: %s", owner, e)
            return None

        if result.truncated:
            logger.warning(
                "Collectible listing for %s reached the page limit of %d; "
                "items beyond the first page are not detected",
                owner,
                self.client.page_limit,
            )
        return result
