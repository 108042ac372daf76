"""
In-memory asset store.

Owns the tracked tokens, tracked collectibles and both ignore-lists. Every
mutator is atomic under the store lock and publishes the new state to
subscribers once the lock is released; readers take a copy through
`snapshot()`.
"""

import copy
import logging
from typing import List, Optional

from .addresses import collectible_key, normalize_address
from .base_controller import BaseController
from .models import AssetsState, Collectible, CollectibleInformation, Token

logger = logging.getLogger(__name__)


class AssetStore(BaseController):
    """
    Canonical list of known tokens, collectibles and ignored assets.
    """

    name = "AssetStore"

    def __init__(self, initial: Optional[AssetsState] = None):
        initial = initial or AssetsState()
        super().__init__(
            {
                "tokens": list(initial.tokens),
                "collectibles": list(initial.collectibles),
                "ignored_tokens": [normalize_address(a) for a in initial.ignored_tokens],
                "ignored_collectibles": [
                    collectible_key(a, t) for a, t in initial.ignored_collectibles
                ],
            }
        )

    def snapshot(self) -> AssetsState:
        """Return a consistent copy of the whole store."""
        with self._state_lock:
            return AssetsState(
                tokens=copy.deepcopy(self._state["tokens"]),
                collectibles=copy.deepcopy(self._state["collectibles"]),
                ignored_tokens=list(self._state["ignored_tokens"]),
                ignored_collectibles=list(self._state["ignored_collectibles"]),
            )

    # Tokens

    def add_token(self, address: str, symbol: str, decimals: int) -> List[Token]:
        return self.add_tokens([Token(address=address, symbol=symbol, decimals=decimals)])

    def add_tokens(self, tokens: List[Token]) -> List[Token]:
        """
        Add tokens, updating symbol/decimals of ones already tracked.

        Adding a token removes it from the ignore-list: an explicit add
        supersedes an earlier ignore.

        Returns:
            The tracked token list after the update
        """
        with self._state_lock:
            current = list(self._state["tokens"])
            ignored = list(self._state["ignored_tokens"])
            for token in tokens:
                address = normalize_address(token.address)
                new_token = Token(address=address, symbol=token.symbol, decimals=token.decimals)
                index = next((i for i, t in enumerate(current) if t.address == address), None)
                if index is None:
                    current.append(new_token)
                else:
                    new_token.balance_error = current[index].balance_error
                    current[index] = new_token
                if address in ignored:
                    ignored.remove(address)
            snapshot = self._apply({"tokens": current, "ignored_tokens": ignored})
        self.notify(snapshot)
        return snapshot["tokens"]

    def remove_and_ignore_token(self, address: str) -> None:
        """Untrack a token and never auto-detect it again."""
        address = normalize_address(address)
        with self._state_lock:
            tokens = [t for t in self._state["tokens"] if t.address != address]
            ignored = list(self._state["ignored_tokens"])
            if address not in ignored:
                ignored.append(address)
            snapshot = self._apply({"tokens": tokens, "ignored_tokens": ignored})
        self.notify(snapshot)

    def set_token_balance_error(self, address: str, error: Optional[str]) -> None:
        """Set or clear the last balance error flag of a tracked token."""
        address = normalize_address(address)
        with self._state_lock:
            changed = False
            tokens = []
            for token in self._state["tokens"]:
                if token.address == address and token.balance_error != error:
                    token = Token(token.address, token.symbol, token.decimals, balance_error=error)
                    changed = True
                tokens.append(token)
            if not changed:
                return
            snapshot = self._apply({"tokens": tokens})
        self.notify(snapshot)

    # Collectibles

    def add_collectible(
        self,
        address: str,
        token_id: int,
        info: Optional[CollectibleInformation] = None,
        detection: bool = False,
    ) -> None:
        """
        Track a collectible, or refresh its metadata if already tracked.

        A detected collectible that is on the ignore-list is not added. A
        manual add (detection=False) clears the matching ignore entry.
        """
        key = collectible_key(address, token_id)
        info = info or CollectibleInformation()
        with self._state_lock:
            ignored = list(self._state["ignored_collectibles"])
            if key in ignored:
                if detection:
                    logger.debug("Not adding ignored collectible %s #%d", key[0], key[1])
                    return
                ignored.remove(key)

            collectibles = list(self._state["collectibles"])
            index = next((i for i, c in enumerate(collectibles) if c.key == key), None)
            collectible = Collectible(
                address=key[0],
                token_id=key[1],
                name=info.name,
                description=info.description,
                image=info.image,
                is_detected=detection if index is None else collectibles[index].is_detected,
            )
            if index is None:
                collectibles.append(collectible)
            else:
                collectibles[index] = collectible
            snapshot = self._apply({"collectibles": collectibles, "ignored_collectibles": ignored})
        self.notify(snapshot)

    def remove_collectible(self, address: str, token_id: int) -> None:
        key = collectible_key(address, token_id)
        with self._state_lock:
            collectibles = [c for c in self._state["collectibles"] if c.key != key]
            if len(collectibles) == len(self._state["collectibles"]):
                return
            snapshot = self._apply({"collectibles": collectibles})
        self.notify(snapshot)

    def remove_and_ignore_collectible(self, address: str, token_id: int) -> None:
        """Untrack a collectible and never auto-detect it again."""
        key = collectible_key(address, token_id)
        with self._state_lock:
            collectibles = [c for c in self._state["collectibles"] if c.key != key]
            ignored = list(self._state["ignored_collectibles"])
            if key not in ignored:
                ignored.append(key)
            snapshot = self._apply({"collectibles": collectibles, "ignored_collectibles": ignored})
        self.notify(snapshot)
