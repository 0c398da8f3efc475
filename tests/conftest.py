"""Shared fixtures: small channel trees and synthetic row geometry"""
import pytest
from unittest.mock import AsyncMock, Mock

from playlist_core.models import RowBounds
from playlist_core.tree import build_tree, flatten

ROW_HEIGHT = 20.0


def row(node_id, node_type, name, order, parent_id=None, **extra):
    return {"id": node_id, "type": node_type, "name": name, "order": order, "parent_id": parent_id, **extra}


def sample_rows():
    """
    A (channel)            B (channel)           C (channel)
      a1: a1b1, a1b2         b1: b1b1, b1b2        c1: (empty)
      a2: a2b1               b2: (empty)
    """
    return [
        row("A", "channel", "Alpha", 0, channel_id="ch-1"),
        row("a1", "playlist", "Morning", 0, "A", carousel_type="scrolling_carousel", carousel_name="Morning"),
        row("a1b1", "bucket", "News", 0, "a1", content_id="content-news"),
        row("a1b2", "bucket", "Weather", 1, "a1", content_id="content-weather"),
        row("a2", "playlist", "Evening", 1, "A"),
        row("a2b1", "bucket", "Sports", 0, "a2", content_id="content-sports"),
        row("B", "channel", "Beta", 1),
        row("b1", "playlist", "Morning", 0, "B"),
        row("b1b1", "bucket", "News", 0, "b1", content_id="content-news"),
        row("b1b2", "bucket", "Traffic", 1, "b1", content_id="content-traffic"),
        row("b2", "playlist", "Late", 1, "B"),
        row("C", "channel", "Gamma", 2),
        row("c1", "playlist", "Morning", 0, "C"),
    ]


def row_bounds_for(tree, expanded=None):
    """Provider laying visible rows out top to bottom, ROW_HEIGHT px each"""
    bounds = {
        display_row.node.id: RowBounds(top=index * ROW_HEIGHT, height=ROW_HEIGHT)
        for index, display_row in enumerate(flatten(tree, expanded))
    }
    return bounds.get


def pointer(bounds_provider, node_id, fraction):
    """Pointer y at fraction of node_id's row height"""
    bounds = bounds_provider(node_id)
    return bounds.top + bounds.height * fraction


def assert_well_formed(tree):
    """Contiguous orders, unique sibling names, parent links matching membership"""

    def _check(children, parent_id):
        names = [child.name for child in children]
        assert len(names) == len(set(names)), f"duplicate names under {parent_id}: {names}"
        assert [child.order for child in children] == list(range(len(children)))
        for child in children:
            assert child.parent_id == parent_id
            _check(child.children, child.id)

    _check(tree, None)


@pytest.fixture
def rows():
    return sample_rows()


@pytest.fixture
def tree(rows):
    return build_tree(rows)


@pytest.fixture
def bounds(tree):
    return row_bounds_for(tree)


@pytest.fixture
def mock_toast():
    """Mock notifier"""
    toast = Mock()
    toast.info = Mock()
    toast.success = Mock()
    toast.warning = Mock()
    toast.error = Mock()
    return toast


@pytest.fixture
def mock_store(tree):
    """Async store double; ids handed out as new-1, new-2, ..."""
    store = Mock()
    counter = {"n": 0}

    async def _create(fields):
        counter["n"] += 1
        return f"new-{counter['n']}"

    store.create_node = AsyncMock(side_effect=_create)
    store.update_node = AsyncMock(return_value=None)
    store.batch_delete = AsyncMock(return_value=None)
    store.fetch_all = AsyncMock(return_value=sample_rows())
    return store
