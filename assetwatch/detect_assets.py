#!/usr/bin/env python3
"""
Detect the tokens and collectibles a wallet owns.

This script runs asset detection for one wallet: ERC-20 balances of every
fungible contract in a contract-metadata registry, and the collectibles the
OpenSea API lists for the owner. It prints the resulting tracked assets as
CSV, once or repeatedly in watch mode.
"""

import argparse
import logging
import os
import sys
import threading
from typing import List, Optional

from dotenv import load_dotenv

from assetwatch.lib.addresses import normalize_address
from assetwatch.lib.alchemy_client import NETWORK_ENDPOINTS, AlchemyClient
from assetwatch.lib.asset_store import AssetStore
from assetwatch.lib.assets_detection import AssetsDetectionController
from assetwatch.lib.composable import ComposableController
from assetwatch.lib.contract_registry import ContractRegistry
from assetwatch.lib.fetchers import BalanceFetcher, OwnershipFetcher
from assetwatch.lib.formatters import write_csv
from assetwatch.lib.models import DEFAULT_INTERVAL, MAINNET, DetectionConfig
from assetwatch.lib.opensea_client import OpenSeaClient
from assetwatch.lib.reconciler import ReconciliationEngine
from assetwatch.lib.token_balances import TokenBalancesController


LOG_FORMAT = "[%(name)s] %(message)s"

logger = logging.getLogger("assetwatch")


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr, prefixed with the logger name."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def validate_network(network: str) -> str:
    """
    Validate and normalize a network name.

    Args:
        network: Network name

    Returns:
        Lowercase network name

    Raises:
        ValueError: If the network is not supported
    """
    network_lower = network.lower()
    if network_lower not in NETWORK_ENDPOINTS:
        raise ValueError(
            f"Unsupported network: {network}. " f"Supported: {', '.join(NETWORK_ENDPOINTS)}"
        )
    return network_lower


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect the tokens and collectibles owned by a wallet and print them as CSV.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run one detection cycle, output to stdout
  %(prog)s --wallet 0x... --registry contract-map.json

  # Keep detecting every 5 minutes
  %(prog)s --wallet 0x... --registry contract-map.json --watch --interval 300
        """,
    )
    parser.add_argument(
        "--alchemy-api-key",
        default=os.environ.get("ALCHEMY_API_KEY"),
        help="Alchemy API key (default: $ALCHEMY_API_KEY)",
    )
    parser.add_argument(
        "--opensea-api-key",
        default=os.environ.get("OPENSEA_API_KEY"),
        help="OpenSea API key (default: $OPENSEA_API_KEY)",
    )
    parser.add_argument("--wallet", required=True, help="Wallet address to scan")
    parser.add_argument(
        "--network",
        default=MAINNET,
        help=(
            f"Network. Detection only runs on {MAINNET}. "
            f"Supported: {', '.join(NETWORK_ENDPOINTS)}"
        ),
    )
    parser.add_argument(
        "--registry",
        required=True,
        help="Contract metadata JSON file (address -> {symbol, decimals, erc20, erc721})",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_INTERVAL,
        help=f"Polling interval in seconds for --watch (default: {DEFAULT_INTERVAL:g})",
    )
    parser.add_argument("--watch", action="store_true", help="Keep polling until interrupted")
    parser.add_argument(
        "--output",
        help="Output file path (timestamp auto-appended). If not specified, outputs to stdout.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, 1 for error)
    """
    load_dotenv()
    parsed_args = build_parser().parse_args(args)
    setup_logging(parsed_args.verbose)

    try:
        network = validate_network(parsed_args.network)
        wallet = normalize_address(parsed_args.wallet)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not parsed_args.alchemy_api_key:
        print(
            "Error: an Alchemy API key is required (--alchemy-api-key or ALCHEMY_API_KEY)",
            file=sys.stderr,
        )
        return 1

    try:
        registry = ContractRegistry.from_file(parsed_args.registry)
    except (OSError, ValueError) as e:
        print(f"Error: cannot load registry {parsed_args.registry}: {e}", file=sys.stderr)
        return 1
    logger.info("Loaded %d contracts from %s", len(registry), parsed_args.registry)

    alchemy = AlchemyClient(parsed_args.alchemy_api_key)
    store = AssetStore()
    engine = ReconciliationEngine(
        registry=registry,
        balance_fetcher=BalanceFetcher(alchemy, network),
        ownership_fetcher=OwnershipFetcher(OpenSeaClient(parsed_args.opensea_api_key)),
        store=store,
    )
    detection = AssetsDetectionController(
        engine,
        initial_assets=store.snapshot(),
        config=DetectionConfig(
            interval=parsed_args.interval,
            network=network,
            selected_address=wallet,
        ),
        on_asset_state_change=store.subscribe,
    )
    balances = TokenBalancesController(alchemy, store, selected_address=wallet, network=network)
    composed = ComposableController([store, detection, balances])

    if network != MAINNET:
        logger.info("Asset detection is only supported on %s; nothing to detect", MAINNET)

    if not parsed_args.watch:
        detection.detect_assets()
        balances.update_balances()
        report_file = write_csv(store.snapshot(), parsed_args.output)
        if report_file:
            print(f"\nResults written to: {report_file}", file=sys.stderr)
        return 0

    composed.subscribe(lambda state: logger.debug("State updated: %s", ", ".join(sorted(state))))
    stop_event = threading.Event()
    try:
        detection.poll(parsed_args.interval)
        balances.poll(parsed_args.interval)
        while not stop_event.wait(parsed_args.interval):
            write_csv(store.snapshot(), parsed_args.output)
    except KeyboardInterrupt:
        logger.info("Stopping")
    finally:
        detection.stop()
        balances.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())
