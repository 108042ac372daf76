"""
Controller that polls on a set interval for assets auto detection.

Each poll cancels the pending timer, runs one detection cycle (token pass,
then collectible pass) and arms a new timer. An account change triggers an
immediate out-of-band poll.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from .addresses import InvalidAddressError, normalize_address
from .base_controller import BaseController
from .models import DEFAULT_INTERVAL, MAINNET, AssetsState, CycleSnapshot, DetectionConfig
from .reconciler import ReconciliationEngine

logger = logging.getLogger(__name__)

Subscribe = Callable[[Callable[[Dict[str, Any]], None]], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


def default_timer_factory(interval: float, callback: Callable[[], None]) -> threading.Timer:
    """Start a daemon threading.Timer; the returned object has cancel()."""
    timer = threading.Timer(interval, callback)
    timer.daemon = True
    timer.start()
    return timer


def assets_state_from_dict(state: Dict[str, Any]) -> AssetsState:
    return AssetsState(
        tokens=list(state.get("tokens", [])),
        collectibles=list(state.get("collectibles", [])),
        ignored_tokens=list(state.get("ignored_tokens", [])),
        ignored_collectibles=list(state.get("ignored_collectibles", [])),
    )


class AssetsDetectionController(BaseController):
    """
    Passively polls on a set interval for assets auto detection.

    Upstream events arrive through the subscribe callables passed to the
    constructor (or by calling the `on_*` handlers directly). Timers come
    from `timer_factory`, so tests can fire ticks by hand.
    """

    name = "AssetsDetectionController"

    def __init__(
        self,
        engine: ReconciliationEngine,
        initial_assets: Optional[AssetsState] = None,
        config: Optional[DetectionConfig] = None,
        on_asset_state_change: Optional[Subscribe] = None,
        on_preferences_state_change: Optional[Subscribe] = None,
        on_network_state_change: Optional[Subscribe] = None,
        timer_factory: TimerFactory = default_timer_factory,
        start: bool = False,
    ):
        super().__init__({"last_cycle": None})
        self.engine = engine
        self.engine.is_current = self.is_current
        self.config = config or DetectionConfig()
        self.timer_factory = timer_factory

        self._assets = initial_assets or AssetsState(tokens=list(self.config.tokens))
        self._config_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._handle = None
        self._generation = 0
        self._stopped = False

        if on_asset_state_change is not None:
            on_asset_state_change(self.on_asset_state_change)
        if on_preferences_state_change is not None:
            on_preferences_state_change(self.on_preferences_state_change)
        if on_network_state_change is not None:
            on_network_state_change(self.on_network_state_change)

        if start:
            self.poll()

    # Upstream events

    def on_asset_state_change(self, state: Dict[str, Any]) -> None:
        assets = assets_state_from_dict(state)
        with self._config_lock:
            self.config.tokens = list(assets.tokens)
            self._assets = assets

    def on_preferences_state_change(self, state: Dict[str, Any]) -> None:
        selected_address = state.get("selected_address", "")
        with self._config_lock:
            changed = selected_address != self.config.selected_address
            if changed:
                self.config.selected_address = selected_address
        if changed:
            logger.info("Selected address changed to %s", selected_address or "<none>")
            self.poll()

    def on_network_state_change(self, state: Dict[str, Any]) -> None:
        network = state.get("network", "")
        with self._config_lock:
            self.config.network = network

    def configure(self, **changes: Any) -> None:
        """Update configuration fields (interval, network, selected_address)."""
        with self._config_lock:
            for key, value in changes.items():
                if not hasattr(self.config, key):
                    raise AttributeError(f"Unknown config field: {key}")
                setattr(self.config, key, value)

    # Gates and snapshots

    def is_mainnet(self) -> bool:
        """Whether detection is supported on the current network and not disabled."""
        return self.config.network == MAINNET and not self.disabled

    def current_snapshot(self) -> Optional[CycleSnapshot]:
        """Capture the account/network a cycle would run for, or None if gated."""
        with self._config_lock:
            if not self.is_mainnet() or not self.config.selected_address:
                return None
            try:
                address = normalize_address(self.config.selected_address)
            except InvalidAddressError:
                logger.warning("Selected address %r is not valid", self.config.selected_address)
                return None
            return CycleSnapshot(address=address, network=self.config.network)

    def is_current(self, cycle: CycleSnapshot) -> bool:
        return self.current_snapshot() == cycle

    # Scheduling

    def poll(self, interval: Optional[float] = None) -> None:
        """
        Start a new polling interval.

        Cancels any pending tick, runs one detection cycle and arms the next
        tick. Failures inside the cycle are logged and never raised.

        Args:
            interval: New polling interval in seconds, used from the next arm on
        """
        if interval:
            with self._config_lock:
                self.config.interval = interval

        self._stopped = False
        self._run_and_rearm()

    def stop(self) -> None:
        """Cancel the pending tick; an in-flight cycle is left to finish."""
        self._stopped = True
        self._cancel_timer()

    def _run_and_rearm(self) -> None:
        self._cancel_timer()
        self.detect_assets()
        self._arm_timer()

    def _cancel_timer(self) -> None:
        with self._timer_lock:
            self._generation += 1
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _arm_timer(self) -> None:
        with self._timer_lock:
            if self._stopped:
                return
            # A newer poll may already have armed its own tick
            if self._handle is not None:
                return
            generation = self._generation
            interval = self.config.interval or DEFAULT_INTERVAL
            self._handle = self.timer_factory(interval, lambda: self._on_tick(generation))

    def _on_tick(self, generation: int) -> None:
        with self._timer_lock:
            if self._stopped or generation != self._generation:
                return
            self._handle = None
        self._run_and_rearm()

    # Detection

    def detect_assets(self) -> None:
        """
        Run one detection cycle if the gates allow it.

        Only one cycle runs at a time; a concurrent caller waits for the
        in-flight cycle to finish before starting its own.
        """
        with self._cycle_lock:
            cycle = self.current_snapshot()
            if cycle is None:
                logger.debug("Asset detection skipped: not on %s, disabled or no address", MAINNET)
                return

            with self._config_lock:
                assets = self._assets

            logger.debug("Detecting assets for %s on %s", cycle.address, cycle.network)
            token_summary = self._run_pass("token", self.engine.detect_tokens, cycle, assets)
            collectible_summary = self._run_pass(
                "collectible", self.engine.detect_collectibles, cycle, assets
            )
            self.update(
                {
                    "last_cycle": {
                        "address": cycle.address,
                        "network": cycle.network,
                        "tokens": token_summary,
                        "collectibles": collectible_summary,
                    }
                }
            )

    def detect_tokens(self):
        """Run only the token pass; returns its DetectionSummary or None."""
        with self._cycle_lock:
            cycle = self.current_snapshot()
            if cycle is None:
                return None
            return self._run_pass("token", self.engine.detect_tokens, cycle, self._assets)

    def detect_collectibles(self):
        """Run only the collectible pass; returns its DetectionSummary or None."""
        with self._cycle_lock:
            cycle = self.current_snapshot()
            if cycle is None:
                return None
            return self._run_pass(
                "collectible", self.engine.detect_collectibles, cycle, self._assets
            )

    @staticmethod
    def _run_pass(kind: str, detect: Callable, cycle: CycleSnapshot, assets: AssetsState):
        try:
            return detect(cycle, assets)
        except Exception:
            logger.exception("%s detection failed for %s", kind.capitalize(), cycle.address)
            return None
