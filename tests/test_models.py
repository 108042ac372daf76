"""
Unit tests for data models.

Tests follow the Given/When/Then pattern for clarity.
"""

import dataclasses

import pytest

from assetwatch.lib.models import (
    CSV_COLUMNS,
    DEFAULT_INTERVAL,
    MAINNET,
    Collectible,
    CycleSnapshot,
    DetectionConfig,
    OwnershipResult,
    Token,
)


class TestToken:
    def test_to_csv_row_includes_all_columns(self):
        """
        Given a token with a balance error
        When converting to a CSV row
        Then every column should be filled in order
        """
        # Given
        token = Token(address="0xA", symbol="DAI", decimals=18, balance_error="reverted")

        # When
        row = token.to_csv_row()

        # Then
        assert row == ["ERC20", "0xA", "DAI", "18", "", "", "", "reverted"]
        assert len(row) == len(CSV_COLUMNS)

    def test_default_balance_error_is_none(self):
        assert Token(address="0xA", symbol="DAI", decimals=18).balance_error is None


class TestCollectible:
    def test_to_csv_row_handles_none_values(self):
        # Given
        collectible = Collectible(address="0xC", token_id=5)

        # When
        row = collectible.to_csv_row()

        # Then
        assert row == ["ERC721", "0xC", "", "", "5", "", "false", ""]

    def test_key_is_address_and_token_id(self):
        assert Collectible(address="0xC", token_id=5).key == ("0xC", 5)

    def test_default_is_detected_is_false(self):
        assert Collectible(address="0xC", token_id=5).is_detected is False


class TestDetectionConfig:
    def test_defaults(self):
        config = DetectionConfig()

        assert config.interval == DEFAULT_INTERVAL == 180.0
        assert config.network == MAINNET
        assert config.selected_address == ""
        assert config.tokens == []


class TestCycleSnapshot:
    def test_is_immutable_and_comparable(self):
        snapshot = CycleSnapshot(address="0xA", network="ethereum")

        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.address = "0xB"
        assert snapshot == CycleSnapshot(address="0xA", network="ethereum")


class TestOwnershipResult:
    def test_not_truncated_by_default(self):
        assert OwnershipResult(collectibles=[]).truncated is False


def test_csv_columns_has_correct_order():
    assert CSV_COLUMNS == [
        "asset_type",
        "address",
        "symbol",
        "decimals",
        "token_id",
        "name",
        "is_detected",
        "balance_error",
    ]
