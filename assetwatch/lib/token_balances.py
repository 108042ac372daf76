"""
Controller that passively polls balances of the tracked tokens.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from .alchemy_client import AlchemyAPIError, AlchemyClient
from .asset_store import AssetStore
from .base_controller import BaseController
from .assets_detection import TimerFactory, default_timer_factory
from .models import DEFAULT_INTERVAL, MAINNET, Token

logger = logging.getLogger(__name__)


class TokenBalancesController(BaseController):
    """
    Keeps `contract_balances` in sync for every token in the asset store.

    A token whose balance read fails is reported with balance 0 and gets
    its `balance_error` flag set in the store; the flag is cleared on the
    next successful read.
    """

    name = "TokenBalancesController"

    def __init__(
        self,
        client: AlchemyClient,
        store: AssetStore,
        selected_address: str = "",
        network: str = MAINNET,
        interval: float = DEFAULT_INTERVAL,
        timer_factory: TimerFactory = default_timer_factory,
    ):
        super().__init__({"contract_balances": {}})
        self.client = client
        self.store = store
        self.selected_address = selected_address
        self.network = network
        self.interval = interval
        self.timer_factory = timer_factory
        self._tokens: List[Token] = store.snapshot().tokens
        self._lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._handle = None
        self._generation = 0
        self._stopped = False

        store.subscribe(self.on_asset_state_change)

    def on_asset_state_change(self, state: Dict[str, Any]) -> None:
        tokens = list(state.get("tokens", []))
        known = {t.address for t in self._tokens}
        self._tokens = tokens
        # Error-flag updates also notify; only a changed token set needs a refresh
        if {t.address for t in tokens} != known:
            self.update_balances()

    def on_preferences_state_change(self, state: Dict[str, Any]) -> None:
        self.selected_address = state.get("selected_address", "")

    def poll(self, interval: Optional[float] = None) -> None:
        """
        Start a new polling interval.

        Args:
            interval: Polling interval in seconds
        """
        if interval:
            self.interval = interval
        self._stopped = False
        self._run_and_rearm()

    def stop(self) -> None:
        self._stopped = True
        self._cancel_timer()

    def _run_and_rearm(self) -> None:
        self._cancel_timer()
        self.update_balances()
        self._arm_timer()

    def _cancel_timer(self) -> None:
        with self._timer_lock:
            self._generation += 1
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _arm_timer(self) -> None:
        with self._timer_lock:
            if self._stopped or self._handle is not None:
                return
            generation = self._generation
            self._handle = self.timer_factory(self.interval, lambda: self._on_tick(generation))

    def _on_tick(self, generation: int) -> None:
        with self._timer_lock:
            if self._stopped or generation != self._generation:
                return
            self._handle = None
        self._run_and_rearm()

    def update_balances(self) -> None:
        """Read the balance of every tracked token and publish the result."""
        if self.disabled or not self.selected_address:
            return

        with self._lock:
            balances: Dict[str, int] = {}
            errors: Dict[str, Optional[str]] = {}
            for token in list(self._tokens):
                try:
                    balances[token.address] = self.client.get_token_balance(
                        self.network, token.address, self.selected_address
                    )
                    errors[token.address] = None
                except AlchemyAPIError as e:
                    logger.warning(
                        "Balance read failed for %s: %s", token.symbol or token.address, e
                    )
                    balances[token.address] = 0
                    errors[token.address] = str(e)

        for address, error in errors.items():
            self.store.set_token_balance_error(address, error)
        self.update({"contract_balances": balances})
