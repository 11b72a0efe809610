"""Tests for the in-memory catalog state."""

import pytest

from llmdesk.errors import ProviderNotFoundError
from llmdesk.schemas.catalog import Provider
from llmdesk.services.catalog_state import CatalogState


@pytest.fixture
def state():
    """Create catalog state with two providers."""
    return CatalogState([Provider(id="a", name="A"), Provider(id="b", name="B")])


def test_providers_is_immutable_snapshot(state):
    """Test that readers get a tuple that later swaps do not change."""
    snapshot = state.providers

    state.swap([Provider(id="c", name="C")])

    assert isinstance(snapshot, tuple)
    assert [p.id for p in snapshot] == ["a", "b"]
    assert [p.id for p in state.providers] == ["c"]


def test_selection_follows_swaps(state):
    """Test that the selected provider is read from the current collection."""
    state.select("a")

    state.swap([Provider(id="a", name="Renamed"), Provider(id="b", name="B")])

    assert state.selected.name == "Renamed"


def test_selection_cleared_when_provider_removed(state):
    """Test that removing the selected provider clears the selection."""
    state.select("b")

    state.swap([Provider(id="a", name="A")])

    assert state.selected_id is None
    assert state.selected is None


def test_select_unknown(state):
    """Test that selecting an unknown id raises."""
    with pytest.raises(ProviderNotFoundError):
        state.select("missing")


def test_clear_selection(state):
    """Test that None clears the selection."""
    state.select("a")

    assert state.select(None) is None
    assert state.selected is None
