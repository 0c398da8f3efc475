"""Copy / cut clipboard and paste planning"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from playlist_core.exceptions import InvalidOperationError
from playlist_core.models.operations import ChannelPasteOptions, NodeBlueprint, PastePlan
from playlist_core.models.tree import NewNodeFields, NodeType, TreeNode
from playlist_core.tree.model import children_of, collect_descendant_ids, find_parent, get_node, owning_channel
from playlist_core.tree.mutations import channel_refs_in_use, shift_siblings
from playlist_core.tree.naming import resolve_unique_name

logger = logging.getLogger(__name__)


def clone_subtree(node: TreeNode) -> TreeNode:
    """Deep copy keeping persisted columns only"""
    return TreeNode(
        id=node.id,
        children=[clone_subtree(child) for child in node.children],
        **node.to_record(),
    )


@dataclass(frozen=True)
class ClipboardEntry:
    node: TreeNode
    is_cut: bool

    @property
    def source_id(self) -> str:
        return self.node.id


class Clipboard:
    """Single slot; copying again overwrites it"""

    def __init__(self):
        self._entry: Optional[ClipboardEntry] = None

    @property
    def entry(self) -> Optional[ClipboardEntry]:
        return self._entry

    @property
    def has_data(self) -> bool:
        return self._entry is not None

    def copy(self, node: TreeNode) -> ClipboardEntry:
        self._entry = ClipboardEntry(node=clone_subtree(node), is_cut=False)
        logger.info(f"Copied {node.node_type.value} {node.id} with {len(collect_descendant_ids(node)) - 1} descendant(s)")
        return self._entry

    def cut(self, node: TreeNode) -> ClipboardEntry:
        self._entry = ClipboardEntry(node=clone_subtree(node), is_cut=True)
        logger.info(f"Cut {node.node_type.value} {node.id}")
        return self._entry

    def clear(self):
        self._entry = None

    def cut_ids(self) -> set[str]:
        """Rows to render as pending cut"""
        if self._entry is None or not self._entry.is_cut:
            return set()
        return set(collect_descendant_ids(self._entry.node))


def paste_landing(
    tree: Sequence[TreeNode], node_type: NodeType, target: TreeNode
) -> tuple[Optional[str], int, bool]:
    """(parent_id, insert_index, as_sibling) for pasting node_type onto target"""
    if node_type is NodeType.CHANNEL:
        channel = owning_channel(tree, target.id)
        index = [node.id for node in tree].index(channel.id)
        return None, index + 1, True

    if node_type is NodeType.PLAYLIST:
        if target.node_type is NodeType.CHANNEL:
            return target.id, len(target.children), False
        if target.node_type is NodeType.PLAYLIST:
            parent = find_parent(tree, target.id)
            if parent is None:
                raise InvalidOperationError("Could not find parent channel", reason="orphan")
            index = [child.id for child in parent.children].index(target.id)
            return parent.id, index + 1, True
        raise InvalidOperationError("Cannot paste playlist here", reason="incompatible_type")

    if target.node_type is NodeType.PLAYLIST:
        return target.id, len(target.children), False
    if target.node_type is NodeType.BUCKET:
        parent = find_parent(tree, target.id)
        if parent is None:
            raise InvalidOperationError("Could not find parent playlist", reason="orphan")
        index = [child.id for child in parent.children].index(target.id)
        return parent.id, index + 1, True
    raise InvalidOperationError("Cannot paste bucket directly into channel", reason="incompatible_type")


def _fields_for(node: TreeNode, name: str, order: int, parent_id: Optional[str]) -> NewNodeFields:
    record = node.to_record()
    record.update({"name": name, "order": order, "parent_id": parent_id})
    return NewNodeFields(**record)


def _blueprint_children(
    node: TreeNode, mappings: dict[str, tuple[str, str]]
) -> list[NodeBlueprint]:
    """Children keep relative order; names stay unique inside the new parent"""
    taken: list[str] = []
    result = []
    for order, child in enumerate(node.children):
        fields = _fields_for(child, child.name, order, None)
        if child.node_type is NodeType.BUCKET and child.content_id in mappings:
            content_id, new_name = mappings[child.content_id]
            fields = fields.model_copy(update={"content_id": content_id, "name": new_name})
        name = resolve_unique_name(fields.name, taken)
        taken.append(name)
        result.append(
            NodeBlueprint(
                fields=fields.model_copy(update={"name": name}),
                children=_blueprint_children(child, mappings),
            )
        )
    return result


def plan_paste(
    tree: Sequence[TreeNode],
    entry: ClipboardEntry,
    target_id: str,
    options: Optional[ChannelPasteOptions] = None,
) -> PastePlan:
    """Where and what to recreate for a paste onto target_id"""
    target = get_node(tree, target_id)
    clip = entry.node
    parent_id, index, as_sibling = paste_landing(tree, clip.node_type, target)
    siblings = children_of(tree, parent_id)

    name = clip.name
    mappings: dict[str, tuple[str, str]] = {}
    root_fields = _fields_for(clip, name, index, parent_id)
    if clip.node_type is NodeType.CHANNEL:
        options = options or ChannelPasteOptions()
        exclude = entry.source_id if entry.is_cut else None
        if options.channel_id and options.channel_id in channel_refs_in_use(tree, exclude_id=exclude):
            raise InvalidOperationError("Channel is already in use", reason="channel_in_use")
        name = options.name or clip.name
        root_fields = root_fields.model_copy(update={"channel_id": options.channel_id})
        mappings = {
            mapping.original_content_id: (mapping.new_content_id, mapping.new_name)
            for mapping in options.bucket_mappings
            if mapping.new_content_id and mapping.new_name
        }

    # A cut source is deleted once the paste lands, so its name is free
    taken = [sibling.name for sibling in siblings if not (entry.is_cut and sibling.id == entry.source_id)]
    name = resolve_unique_name(name, taken)
    root = NodeBlueprint(
        fields=root_fields.model_copy(update={"name": name}),
        children=_blueprint_children(clip, mappings),
    )
    plan = PastePlan(
        parent_id=parent_id,
        insert_index=index,
        as_sibling=as_sibling,
        shift_updates=shift_siblings(tree, parent_id, index) if as_sibling else [],
        root=root,
        source_id=entry.source_id,
        is_cut=entry.is_cut,
    )
    logger.info(
        f"plan_paste: {clip.node_type.value} '{name}' -> parent={parent_id} index={index} "
        f"sibling={as_sibling} nodes={root.count()} shifts={len(plan.shift_updates)}"
    )
    return plan
