"""
Output formatters for tracked asset reports.

This module writes the asset store's tracked tokens and collectibles as CSV,
to stdout or to a timestamped file.
"""

import csv
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, TextIO

from .models import CSV_COLUMNS, AssetsState


def generate_timestamp() -> str:
    """
    Generate a timestamp string for filenames.

    Returns:
        Timestamp in YYYYMMDD_HHMMSS format
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def generate_filename(base_path: str, timestamp: Optional[str] = None) -> str:
    """
    Generate a timestamped filename for the report.

    Args:
        base_path: Base output path (e.g., "assets.csv")
        timestamp: Optional timestamp to use (generates new one if not provided)

    Returns:
        Report file path

    Examples:
        generate_filename("assets.csv", "20241214_153022") -> "assets_20241214_153022.csv"
    """
    if timestamp is None:
        timestamp = generate_timestamp()

    path = Path(base_path)
    suffix = path.suffix or ".csv"
    return str(path.parent / f"{path.stem}_{timestamp}{suffix}")


def asset_rows(state: AssetsState) -> List[List[str]]:
    """Tokens first, then collectibles, each sorted by address (and token id)."""
    rows = [t.to_csv_row() for t in sorted(state.tokens, key=lambda t: t.address)]
    rows.extend(
        c.to_csv_row() for c in sorted(state.collectibles, key=lambda c: (c.address, c.token_id))
    )
    return rows


def write_csv_to_stream(state: AssetsState, stream: TextIO) -> None:
    """
    Write tracked assets to a CSV stream.

    Args:
        state: Asset store snapshot
        stream: File-like object to write to
    """
    writer = csv.writer(stream)
    writer.writerow(CSV_COLUMNS)
    writer.writerows(asset_rows(state))


def write_csv(state: AssetsState, output_path: Optional[str] = None) -> Optional[str]:
    """
    Write tracked assets to a CSV file or stdout.

    Args:
        state: Asset store snapshot
        output_path: Base output path. If None, writes to stdout.

    Returns:
        The written file path, or None when writing to stdout
    """
    if output_path is None:
        write_csv_to_stream(state, sys.stdout)
        return None

    report_file = generate_filename(output_path)
    with open(report_file, "w", newline="", encoding="utf-8") as f:
        write_csv_to_stream(state, f)
    return report_file
