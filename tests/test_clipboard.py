"""Test clipboard and paste planning"""
import itertools

import pytest

from playlist_core.exceptions import InvalidOperationError
from playlist_core.models import BucketMapping, ChannelPasteOptions, NodeType, TreeNode, UpdateOp
from playlist_core.tree import (
    Clipboard,
    clone_subtree,
    delete_nodes,
    find_node,
    get_node,
    insert_subtree,
    plan_paste,
)
from tests.conftest import assert_well_formed


def materialize(blueprint, parent_id, counter):
    """What the synchronizer builds once the store has assigned ids"""
    node_id = f"new-{next(counter)}"
    fields = blueprint.fields.model_copy(update={"parent_id": parent_id})
    children = [materialize(child, node_id, counter) for child in blueprint.children]
    return TreeNode(id=node_id, children=children, **fields.to_record())


def shape(node):
    return (node.node_type, tuple(shape(child) for child in node.children))


class TestClipboard:
    def test_copy_overwrites_slot(self, tree):
        clipboard = Clipboard()
        assert not clipboard.has_data

        clipboard.copy(get_node(tree, "a1"))
        clipboard.copy(get_node(tree, "b2"))

        assert clipboard.entry.source_id == "b2"
        assert clipboard.entry.is_cut is False

    def test_cut_ids(self, tree):
        clipboard = Clipboard()
        clipboard.copy(get_node(tree, "a1"))
        assert clipboard.cut_ids() == set()

        clipboard.cut(get_node(tree, "a1"))
        assert clipboard.cut_ids() == {"a1", "a1b1", "a1b2"}

        clipboard.clear()
        assert not clipboard.has_data

    def test_clone_is_deep_and_persisted_only(self, tree):
        original = get_node(tree, "A")
        clone = clone_subtree(original)

        assert clone.model_dump() == original.model_dump()
        assert clone is not original
        assert clone.children[0] is not original.children[0]
        assert clone.children[0].children[1].to_record() == original.children[0].children[1].to_record()


class TestPasteLanding:
    def test_bucket_on_bucket_is_sibling(self, tree):
        clipboard = Clipboard()
        entry = clipboard.copy(get_node(tree, "a1b1"))

        plan = plan_paste(tree, entry, "b1b1")

        assert plan.parent_id == "b1"
        assert plan.insert_index == 1
        assert plan.as_sibling is True
        assert plan.shift_updates == [UpdateOp(node_id="b1b2", fields={"order": 2})]
        assert plan.root.fields.name == "News (2)"
        assert plan.root.fields.order == 1
        assert plan.root.fields.parent_id == "b1"
        assert plan.root.fields.content_id == "content-news"

    def test_playlist_on_channel_appends(self, tree):
        entry = Clipboard().copy(get_node(tree, "a1"))

        plan = plan_paste(tree, entry, "C")

        assert plan.parent_id == "C"
        assert plan.insert_index == 1
        assert plan.as_sibling is False
        assert plan.shift_updates == []
        assert plan.root.fields.name == "Morning (2)"
        assert [child.fields.name for child in plan.root.children] == ["News", "Weather"]
        assert [child.fields.order for child in plan.root.children] == [0, 1]
        assert plan.root.count() == 3

    def test_playlist_on_playlist_is_sibling(self, tree):
        entry = Clipboard().copy(get_node(tree, "b2"))
        plan = plan_paste(tree, entry, "a1")

        assert plan.parent_id == "A"
        assert plan.insert_index == 1
        assert [op.node_id for op in plan.shift_updates] == ["a2"]

    def test_bucket_on_playlist_appends(self, tree):
        entry = Clipboard().copy(get_node(tree, "b1b2"))
        plan = plan_paste(tree, entry, "a2")

        assert plan.parent_id == "a2"
        assert plan.insert_index == 1
        assert plan.root.fields.name == "Traffic"

    @pytest.mark.parametrize("source_id,target_id", [("a1", "b1b1"), ("a1b1", "B")])
    def test_incompatible_targets(self, tree, source_id, target_id):
        entry = Clipboard().copy(get_node(tree, source_id))
        with pytest.raises(InvalidOperationError) as exc_info:
            plan_paste(tree, entry, target_id)
        assert exc_info.value.reason == "incompatible_type"


class TestChannelPaste:
    def test_lands_after_owning_channel(self, tree):
        entry = Clipboard().copy(get_node(tree, "A"))

        plan = plan_paste(tree, entry, "b1b1")

        assert plan.parent_id is None
        assert plan.insert_index == 2
        assert plan.shift_updates == [UpdateOp(node_id="C", fields={"order": 3})]
        assert plan.root.fields.name == "Alpha (2)"
        assert plan.root.fields.channel_id is None
        assert plan.root.count() == 6

    def test_options_override_name_and_channel(self, tree):
        entry = Clipboard().copy(get_node(tree, "A"))
        options = ChannelPasteOptions(channel_id="ch-7", name="Delta")

        plan = plan_paste(tree, entry, "C", options)

        assert plan.root.fields.name == "Delta"
        assert plan.root.fields.channel_id == "ch-7"

    def test_channel_ref_in_use_rejected(self, tree):
        entry = Clipboard().copy(get_node(tree, "A"))
        with pytest.raises(InvalidOperationError) as exc_info:
            plan_paste(tree, entry, "C", ChannelPasteOptions(channel_id="ch-1"))
        assert exc_info.value.reason == "channel_in_use"

    def test_cut_source_may_keep_its_channel_ref(self, tree):
        entry = Clipboard().cut(get_node(tree, "A"))
        plan = plan_paste(tree, entry, "C", ChannelPasteOptions(channel_id="ch-1"))
        assert plan.root.fields.channel_id == "ch-1"
        assert plan.is_cut is True
        assert plan.source_id == "A"

    def test_bucket_mappings(self, tree):
        entry = Clipboard().copy(get_node(tree, "A"))
        options = ChannelPasteOptions(
            bucket_mappings=[
                BucketMapping(original_content_id="content-news", new_content_id="content-x", new_name="Weather"),
                BucketMapping(original_content_id="content-sports", new_content_id=None, new_name="Ignored"),
            ]
        )

        plan = plan_paste(tree, entry, "C", options)

        morning, evening = plan.root.children
        # remapped name collides with the next sibling
        assert [(b.fields.name, b.fields.content_id) for b in morning.children] == [
            ("Weather", "content-x"),
            ("Weather (2)", "content-weather"),
        ]
        assert evening.children[0].fields.content_id == "content-sports"
        assert evening.children[0].fields.name == "Sports"


class TestCutPasteRoundTrip:
    def test_subtree_shape_preserved(self, tree):
        source = get_node(tree, "a1")
        entry = Clipboard().cut(source)

        plan = plan_paste(tree, entry, "b2")
        pasted = materialize(plan.root, plan.parent_id, itertools.count(1))
        after_paste = insert_subtree(tree, pasted, plan.insert_index)
        result = delete_nodes(after_paste, [entry.source_id])

        assert find_node(result.tree, "a1") is None
        moved = get_node(result.tree, pasted.id)
        assert moved.parent_id == "B"
        assert moved.name == "Morning (2)"
        assert shape(moved) == shape(source)
        assert [child.name for child in moved.children] == ["News", "Weather"]
        assert [child.id for child in get_node(result.tree, "B").children] == ["b1", "b2", pasted.id]
        assert_well_formed(result.tree)

    def test_channel_round_trip(self, tree):
        entry = Clipboard().cut(get_node(tree, "B"))

        plan = plan_paste(tree, entry, "C")
        pasted = materialize(plan.root, plan.parent_id, itertools.count(1))
        result = delete_nodes(insert_subtree(tree, pasted, plan.insert_index), ["B"])

        assert [node.name for node in result.tree] == ["Alpha", "Gamma", "Beta"]
        assert shape(result.tree[2]) == shape(get_node(tree, "B"))
        assert result.tree[2].node_type is NodeType.CHANNEL
        assert_well_formed(result.tree)
