"""
Reconciliation of detected ownership against the tracked asset store.

The engine compares what the external sources report as owned with the
tracked assets and the ignore-lists, then issues the minimal add/remove
calls against the asset store. Tokens are only ever added; collectibles are
added and tombstoned.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Set, Tuple

from .addresses import (
    InvalidAddressError,
    InvalidTokenIdError,
    collectible_key,
    normalize_address_set,
)
from .asset_store import AssetStore
from .contract_registry import ContractRegistry
from .fetchers import BalanceFetcher, OwnershipFetcher
from .models import (
    ApiCollectible,
    AssetsState,
    BalanceError,
    CollectibleInformation,
    CycleSnapshot,
    Token,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8

CollectibleKey = Tuple[str, int]


@dataclass
class DetectionSummary:
    """Outcome of one reconciliation pass."""

    tokens_added: List[str] = field(default_factory=list)
    collectibles_added: List[CollectibleKey] = field(default_factory=list)
    collectibles_removed: List[CollectibleKey] = field(default_factory=list)
    dropped_items: int = 0  # Malformed marketplace entries or failed balances
    fetch_failed: bool = False
    stale: bool = False  # Results discarded because the account/network changed


class ReconciliationEngine:
    """
    Runs the token and collectible detection passes for one cycle.

    The engine only reads snapshots and calls the store's public mutators.
    Before mutating it asks `is_current` whether the cycle's account and
    network are still active; stale results are discarded.
    """

    def __init__(
        self,
        registry: ContractRegistry,
        balance_fetcher: BalanceFetcher,
        ownership_fetcher: OwnershipFetcher,
        store: AssetStore,
        is_current: Callable[[CycleSnapshot], bool] = lambda cycle: True,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.registry = registry
        self.balance_fetcher = balance_fetcher
        self.ownership_fetcher = ownership_fetcher
        self.store = store
        self.is_current = is_current
        self.max_workers = max_workers

    def _still_current(self, cycle: CycleSnapshot, what: str) -> bool:
        if self.is_current(cycle):
            return True
        logger.info(
            "Discarding %s results for %s on %s: account or network changed",
            what,
            cycle.address,
            cycle.network,
        )
        return False

    def detect_tokens(self, cycle: CycleSnapshot, assets: AssetsState) -> DetectionSummary:
        """
        Add registry tokens the owner holds a nonzero balance of.

        Args:
            cycle: Account/network the cycle was started for
            assets: Store snapshot taken at cycle start

        Returns:
            DetectionSummary with the added token addresses
        """
        summary = DetectionSummary()
        tracked = normalize_address_set(token.address for token in assets.tokens)
        ignored = normalize_address_set(assets.ignored_tokens)

        candidates = self.registry.candidate_fungible_tokens(tracked)
        if not candidates:
            return summary

        balances = self.balance_fetcher.fetch_balances(cycle.address, candidates)
        if not balances:
            summary.fetch_failed = True
            return summary

        tokens_to_add: List[Token] = []
        for address in sorted(balances):
            balance = balances[address]
            if isinstance(balance, BalanceError):
                logger.debug("Skipping %s: %s", address, balance.message)
                summary.dropped_items += 1
                continue
            if balance <= 0 or address in ignored or address in tracked:
                continue
            info = self.registry.get(address)
            if info is None:
                continue
            tokens_to_add.append(
                Token(address=info.address, symbol=info.symbol, decimals=info.decimals)
            )

        if not tokens_to_add:
            return summary
        if not self._still_current(cycle, "token"):
            summary.stale = True
            return summary

        self.store.add_tokens(tokens_to_add)
        summary.tokens_added = [token.address for token in tokens_to_add]
        logger.info("Detected %d new token(s) for %s", len(tokens_to_add), cycle.address)
        return summary

    def detect_collectibles(self, cycle: CycleSnapshot, assets: AssetsState) -> DetectionSummary:
        """
        Add newly owned collectibles and remove ones no longer owned.

        A failed fetch leaves every tracked collectible in place; a
        successful empty listing removes them all.

        Args:
            cycle: Account/network the cycle was started for
            assets: Store snapshot taken at cycle start

        Returns:
            DetectionSummary with added and removed (address, token id) pairs
        """
        summary = DetectionSummary()
        tracked: Set[CollectibleKey] = set()
        for collectible in assets.collectibles:
            try:
                tracked.add(collectible_key(collectible.address, collectible.token_id))
            except (InvalidAddressError, InvalidTokenIdError):
                continue
        ignored: Set[CollectibleKey] = set()
        for address, token_id in assets.ignored_collectibles:
            try:
                ignored.add(collectible_key(address, token_id))
            except (InvalidAddressError, InvalidTokenIdError):
                continue

        # Ignored pairs are never deleted by detection
        to_remove = tracked - ignored

        result = self.ownership_fetcher.fetch_owned_collectibles(cycle.address)
        if result is None:
            summary.fetch_failed = True
            return summary

        to_add: Dict[CollectibleKey, ApiCollectible] = {}
        for item in result.collectibles:
            try:
                key = collectible_key(item.contract_address, item.token_id)
            except (InvalidAddressError, InvalidTokenIdError) as e:
                logger.debug("Dropping marketplace item: %s", e)
                summary.dropped_items += 1
                continue

            to_remove.discard(key)
            if key in ignored or key in tracked or key in to_add:
                continue
            to_add[key] = item

        if not self._still_current(cycle, "collectible"):
            summary.stale = True
            return summary

        if to_add:
            self._add_collectibles(to_add)
            summary.collectibles_added = sorted(to_add)

        if result.truncated:
            if to_remove:
                logger.warning(
                    "Keeping %d collectible(s) not in the truncated listing for %s",
                    len(to_remove),
                    cycle.address,
                )
        elif to_remove:
            if not self._still_current(cycle, "collectible"):
                summary.stale = True
                return summary
            for address, token_id in sorted(to_remove):
                self.store.remove_collectible(address, token_id)
            summary.collectibles_removed = sorted(to_remove)

        if summary.collectibles_added or summary.collectibles_removed:
            logger.info(
                "Collectibles for %s: %d added, %d removed",
                cycle.address,
                len(summary.collectibles_added),
                len(summary.collectibles_removed),
            )
        return summary

    def _add_collectibles(self, to_add: Dict[CollectibleKey, ApiCollectible]) -> None:
        """Add collectibles concurrently and wait for every addition."""

        def add(key: CollectibleKey, item: ApiCollectible) -> None:
            self.store.add_collectible(
                key[0],
                key[1],
                CollectibleInformation(
                    name=item.name,
                    description=item.description,
                    image=item.image_url,
                ),
                detection=True,
            )

        workers = max(1, min(self.max_workers, len(to_add)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(add, key, item) for key, item in to_add.items()]
            for future in futures:
                future.result()

