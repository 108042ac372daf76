"""
Unit tests for the composable controller.

Tests follow the Given/When/Then pattern for clarity.
"""

import pytest

from assetwatch.lib.base_controller import BaseController
from assetwatch.lib.composable import ComposableController

from conftest import DAI


class FooController(BaseController):
    name = "FooController"


class BarController(BaseController):
    name = "BarController"


class TestComposableController:
    def test_initial_state_is_keyed_by_child_name(self):
        """
        Given two child controllers with initial state
        When composing them
        Then the composed state should hold each child's state under its name
        """
        # Given
        foo = FooController({"foo": 1})
        bar = BarController({"bar": 2})

        # When
        composed = ComposableController([foo, bar])

        # Then
        assert composed.state == {"FooController": {"foo": 1}, "BarController": {"bar": 2}}

    def test_child_update_is_folded_and_republished(self):
        """
        Given a composed controller with a subscriber
        When a child updates its state
        Then the child's entry is replaced and the merged tree is published
        """
        # Given
        foo = FooController({"foo": 1})
        bar = BarController({"bar": 2})
        composed = ComposableController([foo, bar])
        published = []
        composed.subscribe(published.append)

        # When
        foo.update({"foo": 3})

        # Then
        assert published == [{"FooController": {"foo": 3}, "BarController": {"bar": 2}}]
        assert composed.flat_state["FooController"] == {"foo": 3}

    def test_entry_always_reflects_latest_child_state(self):
        """
        Given a child notification delivered after a newer update
        When the composer folds it
        Then the newest child state should win
        """
        # Given
        foo = FooController({"foo": 1})
        composed = ComposableController([foo])
        listener = foo._listeners[0]
        foo.update({"foo": 2})

        # When
        listener({"foo": 1})

        # Then
        assert composed.state["FooController"] == {"foo": 2}

    def test_flat_state_is_a_copy(self):
        foo = FooController({"foo": {"nested": 1}})
        composed = ComposableController([foo])

        composed.flat_state["FooController"]["foo"]["nested"] = 99

        assert composed.flat_state["FooController"]["foo"]["nested"] == 1

    def test_duplicate_names_are_rejected(self):
        with pytest.raises(ValueError, match="Duplicate controller names"):
            ComposableController([FooController(), FooController()])

    def test_composes_asset_store(self, store):
        # Given
        composed = ComposableController([store])

        # When
        store.add_token(DAI, "DAI", 18)

        # Then
        assert [t.symbol for t in composed.state["AssetStore"]["tokens"]] == ["DAI"]

    def test_failing_listener_does_not_break_others(self):
        # Given
        foo = FooController()
        composed = ComposableController([foo])
        received = []

        def broken(state):
            raise RuntimeError("listener bug")

        composed.subscribe(broken)
        composed.subscribe(received.append)

        # When
        foo.update({"foo": 1})

        # Then
        assert received == [{"FooController": {"foo": 1}}]
